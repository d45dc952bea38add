from fastapi import APIRouter, Depends
from schemas.user_schema import User
from schemas.payment_schema import CouponValidationRequest, CreateOrderRequest, VerifyPaymentRequest
from api.dependencies import get_current_user
from services.coupon_service import validate_coupon
from services.order_service import create_order
from services.payment_service import verify_payment
from utils.responses import no_store_json

router = APIRouter()

@router.post("/coupons/validate")
async def coupon_validate(body: CouponValidationRequest, current_user: User = Depends(get_current_user)):
    """Always 200 for a well-formed request; `valid` says whether the code applies."""
    return no_store_json(await validate_coupon(body.code, body.base_amount))

@router.post("/payments/razorpay/order")
async def razorpay_order_create(body: CreateOrderRequest, current_user: User = Depends(get_current_user)):
    return no_store_json(await create_order(current_user, body.amount, body.coupon_code))

@router.post("/payments/razorpay/verify")
async def razorpay_payment_verify(body: VerifyPaymentRequest, current_user: User = Depends(get_current_user)):
    return no_store_json(await verify_payment(current_user, body))
