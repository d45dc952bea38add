"""Side effects of a verified payment, processed from the settlement_tasks outbox.

Each step runs in its own transaction together with its completion flag, so a
failing step never undoes the others and a retry only repeats unfinished work.
A step is claimed by flipping its flag with a conditional UPDATE before it runs,
so two overlapping runs of one task never both perform it.
"""
from db.session import SessionLocal
from db.models.payment import PaymentOrder, Payment
from db.models.settlement import SettlementTask
from db.models.user import User as UserModel
from services.coupon_service import consume_coupon
from services.referral_service import complete_referral, settle_commission, ensure_referral_code
from config import config
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime
from typing import Dict, Any
from utils.timing import timeit
import logging

logger = logging.getLogger(__name__)


async def _record_payment(db: AsyncSession, task: SettlementTask) -> None:
    order = await db.get(PaymentOrder, task.payment_order_id)
    existing = await db.execute(select(Payment.id).where(Payment.payment_order_id == order.id))
    if existing.first() is not None:
        return
    db.add(Payment(
        user_id=order.user_id,
        subscription_id=task.subscription_id,
        payment_order_id=order.id,
        amount=order.base_amount,
        discount_amount=order.discount_amount or 0,
        gst_amount=order.gst_amount,
        total_amount=order.total_amount,
        currency=order.currency,
        status="completed",
        razorpay_order_id=order.razorpay_order_id,
        razorpay_payment_id=order.razorpay_payment_id,
        coupon_id=order.coupon_id,
        invoice_number=order.invoice_number,
    ))
    await db.flush()


async def _settle_referral(db: AsyncSession, task: SettlementTask) -> None:
    await complete_referral(db, task.user_id)
    await settle_commission(db, task.user_id, task.subscription_id)
    # Paying subscribers can refer others right away
    user = await db.get(UserModel, task.user_id)
    if user is not None:
        await ensure_referral_code(db, user)


async def _consume_coupon(db: AsyncSession, task: SettlementTask) -> None:
    if task.coupon_id:
        await consume_coupon(db, task.coupon_id)


SETTLEMENT_STEPS = (
    ("payment_recorded", _record_payment),
    ("commission_settled", _settle_referral),
    ("coupon_consumed", _consume_coupon),
)


def _all_steps_done(task: SettlementTask) -> bool:
    return all(getattr(task, flag) for flag, _ in SETTLEMENT_STEPS)


@timeit("run_settlement")
async def run_settlement(task_id: int) -> str:
    """Run the unfinished steps of one task and return its resulting status."""
    errors = []
    for flag, step in SETTLEMENT_STEPS:
        async with SessionLocal() as db:
            task = await db.get(SettlementTask, task_id)
            if task is None:
                logger.warning(f"Settlement task {task_id} not found")
                return "missing"
            if getattr(task, flag):
                continue
            try:
                claimed = await db.execute(
                    update(SettlementTask)
                    .where(SettlementTask.id == task_id, getattr(SettlementTask, flag).is_(False))
                    .values({flag: True})
                    .execution_options(synchronize_session=False)
                )
                if claimed.rowcount != 1:
                    # Another run already finished this step
                    await db.rollback()
                    continue
                await step(db, task)
                await db.commit()
            except Exception as e:
                await db.rollback()
                logger.error(f"Settlement step {flag} failed for task {task_id}: {type(e).__name__}")
                errors.append(f"{flag}: {type(e).__name__}")

    async with SessionLocal() as db:
        task = await db.get(SettlementTask, task_id)
        task.attempts = (task.attempts or 0) + 1
        if _all_steps_done(task):
            task.status = "done"
            task.processed_at = datetime.utcnow()
            task.last_error = None
        else:
            task.last_error = "; ".join(errors)[:255] or None
            if task.attempts >= config.get_settlement_max_attempts():
                task.status = "failed"
                logger.error(f"Settlement task {task_id} gave up after {task.attempts} attempts")
        await db.commit()
        return task.status


async def run_settlement_safely(task_id: int) -> str:
    """Inline settlement after payment verification; never raises."""
    try:
        return await run_settlement(task_id)
    except Exception as e:
        logger.error(f"Settlement task {task_id} could not run: {type(e).__name__}")
        return "pending"


@timeit("process_pending_settlements")
async def process_pending_settlements(limit: int = 50) -> Dict[str, Any]:
    """Retry outstanding settlement tasks, oldest first."""
    async with SessionLocal() as db:
        result = await db.execute(
            select(SettlementTask.id)
            .where(SettlementTask.status == "pending")
            .order_by(SettlementTask.id)
            .limit(limit)
        )
        task_ids = [row[0] for row in result.all()]

    summary = {"processed": 0, "done": 0, "pending": 0, "failed": 0}
    for task_id in task_ids:
        status = await run_settlement_safely(task_id)
        summary["processed"] += 1
        if status in summary:
            summary[status] += 1
    if task_ids:
        logger.info(f"Settlement retry pass: {summary}")
    return summary
