from db.session import get_or_use_session
from db.models.coupon import Coupon
from fastapi import HTTPException
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime
from decimal import Decimal, ROUND_FLOOR
from typing import Optional, Tuple
from utils.money import format_amount, to_decimal
import logging
import re

logger = logging.getLogger(__name__)

COUPON_CODE_PATTERN = re.compile(r"^[A-Z0-9_-]{1,50}$")


def normalize_coupon_code(code: str) -> str:
    return code.strip().upper()


def compute_discount(coupon: Coupon, base_amount: Decimal) -> Decimal:
    """Fixed discounts apply verbatim; percentages round down to a whole unit."""
    if coupon.discount_amount:
        return Decimal(coupon.discount_amount)
    if coupon.discount_percentage:
        raw = Decimal(base_amount) * Decimal(coupon.discount_percentage) / Decimal(100)
        return raw.to_integral_value(rounding=ROUND_FLOOR)
    return Decimal(0)


def check_coupon(coupon: Optional[Coupon], now: Optional[datetime] = None) -> Optional[str]:
    """Return the rejection message for a coupon row, or None when it is redeemable."""
    if coupon is None:
        return "Invalid coupon code"
    now = now or datetime.utcnow()
    if coupon.valid_from and now < coupon.valid_from:
        return "Coupon not yet active"
    if coupon.valid_until and now > coupon.valid_until:
        return "Coupon has expired"
    if coupon.max_uses is not None and (coupon.uses_count or 0) >= coupon.max_uses:
        return "Coupon usage limit reached"
    return None


async def find_active_coupon(db: AsyncSession, code: str) -> Optional[Coupon]:
    result = await db.execute(
        select(Coupon).where(Coupon.code == code, Coupon.is_active.is_(True))
    )
    return result.scalars().first()


async def resolve_discount(db: AsyncSession, code: Optional[str], base_amount: Decimal) -> Tuple[Decimal, Optional[int]]:
    """Discount and coupon id for checkout; an unusable code simply yields no discount."""
    if not code:
        return Decimal(0), None
    normalized = normalize_coupon_code(code)
    if not COUPON_CODE_PATTERN.match(normalized):
        return Decimal(0), None
    coupon = await find_active_coupon(db, normalized)
    if check_coupon(coupon) is not None:
        return Decimal(0), None
    return compute_discount(coupon, base_amount), coupon.id


async def validate_coupon(code: Optional[str], base_amount: Optional[Decimal], db: AsyncSession = None):
    """Check a coupon against a price without consuming it."""
    if not code or not isinstance(code, str):
        raise HTTPException(status_code=400, detail="Invalid coupon code")

    normalized = normalize_coupon_code(code)
    if not COUPON_CODE_PATTERN.match(normalized):
        return {"valid": False, "discount": 0, "couponId": None, "message": "Invalid coupon format"}

    async with get_or_use_session(db) as _db:
        coupon = await find_active_coupon(_db, normalized)

    rejection = check_coupon(coupon)
    if rejection:
        return {"valid": False, "discount": 0, "couponId": None, "message": rejection}

    discount = compute_discount(coupon, to_decimal(base_amount or 0))
    return {
        "valid": True,
        "discount": discount,
        "couponId": coupon.id,
        "message": f"Coupon applied! ₹{format_amount(discount)} off",
    }


async def consume_coupon(db: AsyncSession, coupon_id: int) -> bool:
    """Count one redemption with a single atomic increment."""
    result = await db.execute(
        update(Coupon)
        .where(Coupon.id == coupon_id)
        .values(uses_count=Coupon.uses_count + 1)
    )
    if not result.rowcount:
        logger.warning(f"Coupon {coupon_id} not found while recording redemption")
        return False
    return True
