from decimal import Decimal
from pydantic import BaseModel, Field
from typing import Optional

class CouponValidationRequest(BaseModel):
    code: Optional[str] = None
    base_amount: Optional[Decimal] = Field(default=None, alias="baseAmount")

    class Config:
        populate_by_name = True

class CreateOrderRequest(BaseModel):
    amount: Decimal
    coupon_code: Optional[str] = Field(default=None, alias="couponCode")

    class Config:
        populate_by_name = True

class VerifyPaymentRequest(BaseModel):
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str
    # Echoed back by older clients; the server uses the amounts stored with the order
    coupon_id: Optional[int] = Field(default=None, alias="couponId")
    base_amount: Optional[Decimal] = Field(default=None, alias="baseAmount")
    gst_amount: Optional[Decimal] = Field(default=None, alias="gstAmount")
    discount_amount: Optional[Decimal] = Field(default=None, alias="discountAmount")
    total_amount: Optional[Decimal] = Field(default=None, alias="totalAmount")

    class Config:
        populate_by_name = True
