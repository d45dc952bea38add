from db.models.user import User as UserModel
from db.models.referral import Referral, Commission
from services.wallet_service import credit_wallet
from config import config
from fastapi import HTTPException
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime
from typing import Optional
import logging
import random
import string

logger = logging.getLogger(__name__)

REFERRAL_CODE_LENGTH = 8


def generate_referral_code() -> str:
    """Generate an 8-character alphanumeric referral code"""
    chars = string.ascii_uppercase + string.digits
    return ''.join(random.choice(chars) for _ in range(REFERRAL_CODE_LENGTH))


async def ensure_referral_code(db: AsyncSession, user: UserModel, max_attempts: int = 10) -> str:
    """Give the user a unique referral code if they do not have one yet."""
    if user.referral_code:
        return user.referral_code
    for _ in range(max_attempts):
        code = generate_referral_code()
        existing = await db.execute(select(UserModel.id).where(UserModel.referral_code == code))
        if existing.first() is None:
            user.referral_code = code
            return code
    raise HTTPException(status_code=500, detail="Failed to generate unique referral code")


async def process_referral(db: AsyncSession, referred_user: UserModel, referral_code: str) -> Referral:
    """Link a freshly signed-up user to the owner of referral_code as a pending referral."""
    code = (referral_code or "").strip().upper()
    result = await db.execute(select(UserModel).where(UserModel.referral_code == code))
    referrer = result.scalars().first()
    if not referrer:
        raise HTTPException(status_code=400, detail="Invalid referral code")
    if referred_user.id is not None and referrer.id == referred_user.id:
        raise HTTPException(status_code=400, detail="Cannot use your own referral code")

    existing = await db.execute(select(Referral).where(Referral.referred_user_id == referred_user.id))
    referral = existing.scalars().first()
    if referral:
        return referral

    referral = Referral(referrer_id=referrer.id, referred_user_id=referred_user.id, status="pending")
    db.add(referral)
    logger.info(f"Referral recorded: referrer {referrer.id} -> referred user {referred_user.id}")
    return referral


async def complete_referral(db: AsyncSession, referred_user_id: int) -> bool:
    """Move the user's pending referral to completed; True when a row changed."""
    result = await db.execute(
        update(Referral)
        .where(Referral.referred_user_id == referred_user_id, Referral.status == "pending")
        .values(status="completed", completed_at=datetime.utcnow())
    )
    return bool(result.rowcount)


async def settle_commission(db: AsyncSession, referred_user_id: int, subscription_id: int) -> Optional[Commission]:
    """Credit the referrer once per subscription.

    Returns the new Commission, or None when there is no completed referral or the
    subscription was already paid out. Caller commits.
    """
    result = await db.execute(
        select(Referral).where(
            Referral.referred_user_id == referred_user_id,
            Referral.status == "completed",
        )
    )
    referral = result.scalars().first()
    if not referral:
        return None

    existing = await db.execute(select(Commission.id).where(Commission.subscription_id == subscription_id))
    if existing.first() is not None:
        logger.info(f"Commission already credited for subscription {subscription_id}")
        return None

    amount = config.get_commission_amount()
    commission = Commission(
        referral_id=referral.id,
        referrer_id=referral.referrer_id,
        referred_user_id=referred_user_id,
        subscription_id=subscription_id,
        amount=amount,
    )
    db.add(commission)
    # Flush so the unique subscription_id constraint fires before the wallet moves
    await db.flush()
    await credit_wallet(db, referral.referrer_id, amount)

    logger.info(f"Commission credited: referrer {referral.referrer_id}, amount {amount}, subscription {subscription_id}")
    return commission


async def get_referral_stats(db: AsyncSession, referrer_id: int) -> dict:
    result = await db.execute(select(Referral.status).where(Referral.referrer_id == referrer_id))
    statuses = [row[0] for row in result.all()]
    completed = sum(1 for s in statuses if s == "completed")
    return {
        "total": len(statuses),
        "completed": completed,
        "earnings": completed * config.get_commission_amount(),
    }
