from schemas.user_schema import User
from db.session import get_or_use_session
from db.models.payment import PaymentOrder
from services import razorpay_client
from services.coupon_service import resolve_discount
from config import config
from core.config import settings
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from decimal import Decimal
from typing import Dict, Any
from utils.db import safe_commit
from utils.money import round_money, to_decimal, to_minor_units
from utils.timing import timeit
import logging
import time

logger = logging.getLogger(__name__)


def price_breakdown(price: Decimal, discount: Decimal) -> Dict[str, Any]:
    """GST is charged on the discounted price and rounded to paise."""
    base_amount = max(price - discount, Decimal(0))
    gst_amount = round_money(base_amount * config.get_gst_rate())
    total_amount = base_amount + gst_amount
    return {
        "discount_amount": discount,
        "base_amount": base_amount,
        "gst_amount": gst_amount,
        "total_amount": total_amount,
        "amount_minor": to_minor_units(total_amount),
    }


@timeit("create_order")
async def create_order(current_user: User, amount, coupon_code: str = None, db: AsyncSession = None) -> Dict[str, Any]:
    """Price the plan server side, open a Razorpay order and remember its amounts."""
    price = to_decimal(amount) if amount is not None else Decimal(0)
    if price <= 0:
        raise HTTPException(status_code=400, detail="Invalid amount")

    key_id = razorpay_client.public_key_id()
    currency = settings.RAZORPAY_CURRENCY

    async with get_or_use_session(db) as _db:
        # Never trust a client-side discount; the coupon is evaluated again here
        discount, coupon_id = await resolve_discount(_db, coupon_code, price)
        breakdown = price_breakdown(price, discount)

        receipt = f"rcpt_{current_user.id}_{int(time.time() * 1000)}"
        order = await razorpay_client.create_order(
            breakdown["amount_minor"],
            currency,
            receipt,
            notes={
                "user_id": str(current_user.id),
                "coupon_id": str(coupon_id) if coupon_id else "",
                "base_amount": str(breakdown["base_amount"]),
                "gst_amount": str(breakdown["gst_amount"]),
                "discount_amount": str(breakdown["discount_amount"]),
            },
        )

        _db.add(PaymentOrder(
            razorpay_order_id=order["id"],
            user_id=current_user.id,
            coupon_id=coupon_id,
            price=price,
            currency=currency,
            receipt=receipt,
            status="created",
            **breakdown,
        ))
        await safe_commit(_db, client_error_message="Failed to create payment order")

    logger.info(f"Payment order {order['id']} created for user {current_user.id}: {breakdown['amount_minor']} {currency}")
    return {
        "orderId": order["id"],
        "amount": breakdown["amount_minor"],
        "currency": currency,
        "keyId": key_id,
        "prefill": {
            "name": current_user.full_name or "",
            "email": current_user.email or "",
            "contact": current_user.phone or "",
        },
        "notes": {
            "couponId": coupon_id,
            "discount": breakdown["discount_amount"],
            "gstAmount": breakdown["gst_amount"],
            "baseAmount": breakdown["base_amount"],
        },
    }
