from schemas.user_schema import User
from schemas.payment_schema import VerifyPaymentRequest
from db.session import get_or_use_session
from db.models.payment import PaymentOrder
from db.models.settlement import SettlementTask
from db.models.subscription import Subscription
from services import razorpay_client
from services.settlement_service import run_settlement_safely
from config import config
from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime, timedelta
from typing import Dict, Any, Optional
from utils.money import to_decimal
from utils.timing import timeit
import logging

logger = logging.getLogger(__name__)


def add_years(moment: datetime, years: int) -> datetime:
    """Same calendar date `years` later; 29 Feb rolls over to 1 Mar."""
    try:
        return moment.replace(year=moment.year + years)
    except ValueError:
        return moment.replace(year=moment.year + years, day=28) + timedelta(days=1)


def generate_invoice_number(sequence: int, moment: Optional[datetime] = None) -> str:
    """INV + YY + MM + the payment order id zero-padded to at least 4 digits."""
    moment = moment or datetime.utcnow()
    return f"{config.get_invoice_prefix()}{moment:%y%m}{sequence:04d}"


async def get_current_subscription(db: AsyncSession, user_id: int) -> Optional[Subscription]:
    """Latest-created subscription row is the user's current one."""
    result = await db.execute(
        select(Subscription)
        .where(Subscription.user_id == user_id)
        .order_by(Subscription.created_at.desc(), Subscription.id.desc())
        .limit(1)
    )
    return result.scalars().first()


def _log_client_amount_mismatch(order: PaymentOrder, request: VerifyPaymentRequest) -> None:
    sent = {
        "base_amount": request.base_amount,
        "gst_amount": request.gst_amount,
        "discount_amount": request.discount_amount,
        "total_amount": request.total_amount,
    }
    for field, value in sent.items():
        if value is not None and to_decimal(value) != to_decimal(getattr(order, field) or 0):
            logger.warning(f"Client sent {field}={value} for order {order.razorpay_order_id}; using stored amounts")
            return


def _verification_response(order: PaymentOrder) -> Dict[str, Any]:
    return {
        "success": True,
        "message": "Payment verified and subscription activated",
        "subscription": {
            "status": "active",
            "expiresAt": order.subscription_expires_at.isoformat() if order.subscription_expires_at else None,
        },
        "invoiceNumber": order.invoice_number,
    }


@timeit("verify_payment")
async def verify_payment(current_user: User, request: VerifyPaymentRequest, db: AsyncSession = None) -> Dict[str, Any]:
    """Check the checkout signature, activate the subscription and queue its settlement.

    Only a bad signature or a failed activation fail the call. The payment
    record, referral commission and coupon redemption run afterwards from the
    settlement outbox and are retried independently.
    """
    secret = razorpay_client.signing_secret()
    if not razorpay_client.verify_signature(
        request.razorpay_order_id, request.razorpay_payment_id, request.razorpay_signature, secret
    ):
        logger.warning(f"Invalid payment signature for order {request.razorpay_order_id} error_type=SIGNATURE_MISMATCH")
        raise HTTPException(status_code=400, detail="Invalid payment signature")

    async with get_or_use_session(db) as _db:
        result = await _db.execute(
            select(PaymentOrder).where(PaymentOrder.razorpay_order_id == request.razorpay_order_id)
        )
        order = result.scalars().first()
        if not order or order.user_id != current_user.id:
            raise HTTPException(status_code=400, detail="Unknown payment order")
        _log_client_amount_mismatch(order, request)

        if order.status == "paid":
            # Retried confirmation for an order that is already settled or settling
            if order.razorpay_payment_id != request.razorpay_payment_id:
                raise HTTPException(status_code=400, detail="Payment order already processed")
        else:
            subscription = await get_current_subscription(_db, current_user.id)
            if subscription is None:
                logger.error(f"No subscription row for user {current_user.id} error_type=SUBSCRIPTION_ERROR")
                raise HTTPException(status_code=400, detail="Failed to update subscription")

            now = datetime.utcnow()
            subscription.status = "active"
            subscription.plan_name = config.get_plan_name()
            subscription.starts_at = now
            subscription.expires_at = add_years(now, config.get_plan_duration_years())
            subscription.amount_paid = order.total_amount
            subscription.gst_amount = order.gst_amount

            order.status = "paid"
            order.razorpay_payment_id = request.razorpay_payment_id
            order.subscription_id = subscription.id
            order.paid_at = now
            order.invoice_number = generate_invoice_number(order.id, now)
            order.subscription_expires_at = subscription.expires_at

            _db.add(SettlementTask(
                payment_order_id=order.id,
                user_id=current_user.id,
                subscription_id=subscription.id,
                coupon_id=order.coupon_id,
            ))
            try:
                await _db.commit()
            except Exception as e:
                await _db.rollback()
                logger.error(f"Subscription activation failed for user {current_user.id}: {type(e).__name__} error_type=SUBSCRIPTION_ERROR")
                raise HTTPException(status_code=400, detail="Failed to update subscription")
            logger.info(f"Subscription {subscription.id} activated for user {current_user.id} via order {order.razorpay_order_id}")

        task_result = await _db.execute(
            select(SettlementTask.id, SettlementTask.status).where(SettlementTask.payment_order_id == order.id)
        )
        task = task_result.first()
        response = _verification_response(order)

    if task is not None and task.status == "pending":
        await run_settlement_safely(task.id)
    return response
