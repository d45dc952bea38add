from schemas.user_schema import User
from schemas.wallet_schema import WithdrawalCreate, WithdrawalStatusUpdate
from db.session import get_or_use_session
from db.models.user import User as UserModel
from db.models.wallet import Wallet, WithdrawalRequest
from db.models.referral import Commission
from fastapi import HTTPException
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime
from decimal import Decimal
from typing import Dict, Any
from utils.money import to_decimal
from utils.timing import timeit
import logging

logger = logging.getLogger(__name__)

PENDING_WITHDRAWAL_MESSAGE = "You already have a pending withdrawal request"

# Allowed admin moves; completed and rejected are terminal
WITHDRAWAL_TRANSITIONS = {
    "pending": {"approved", "completed", "rejected"},
    "approved": {"completed", "rejected"},
}


async def credit_wallet(db: AsyncSession, user_id: int, amount: Decimal) -> None:
    """Add amount to the user's wallet, creating it on first credit.

    The balance moves with one UPDATE ... SET balance = balance + :amount so
    concurrent credits cannot overwrite each other. Caller commits.
    """
    result = await db.execute(
        update(Wallet)
        .where(Wallet.user_id == user_id)
        .values(balance=Wallet.balance + amount, updated_at=datetime.utcnow())
    )
    if result.rowcount:
        return
    # A concurrent first credit makes this flush fail; the settlement retry then takes the UPDATE path
    db.add(Wallet(user_id=user_id, balance=amount))
    await db.flush()


async def debit_wallet(db: AsyncSession, user_id: int, amount: Decimal) -> bool:
    """Atomically take amount out of the wallet; False if the balance is too low."""
    result = await db.execute(
        update(Wallet)
        .where(Wallet.user_id == user_id, Wallet.balance >= amount)
        .values(balance=Wallet.balance - amount, updated_at=datetime.utcnow())
    )
    return bool(result.rowcount)


async def get_wallet_balance(db: AsyncSession, user_id: int) -> Decimal:
    result = await db.execute(select(Wallet.balance).where(Wallet.user_id == user_id))
    balance = result.scalar_one_or_none()
    return to_decimal(balance) if balance is not None else Decimal(0)


def serialize_withdrawal(withdrawal: WithdrawalRequest) -> Dict[str, Any]:
    return {
        "id": withdrawal.id,
        "user_id": withdrawal.user_id,
        "amount": withdrawal.amount,
        "upi_id": withdrawal.upi_id,
        "bank_account_number": withdrawal.bank_account_number,
        "bank_ifsc": withdrawal.bank_ifsc,
        "bank_name": withdrawal.bank_name,
        "status": withdrawal.status,
        "admin_note": withdrawal.admin_note,
        "created_at": withdrawal.created_at,
        "processed_at": withdrawal.processed_at,
    }


@timeit("get_wallet_info")
async def get_wallet_info(current_user: User, db: AsyncSession = None) -> Dict[str, Any]:
    """Balance, referral earnings and payout history for the wallet page"""
    # Imported here: referral_service imports credit_wallet from this module
    from services.referral_service import get_referral_stats

    async with get_or_use_session(db) as _db:
        balance = await get_wallet_balance(_db, current_user.id)
        user_result = await _db.execute(select(UserModel.referral_code).where(UserModel.id == current_user.id))
        referral_code = user_result.scalar_one_or_none()

        commissions_result = await _db.execute(
            select(Commission)
            .where(Commission.referrer_id == current_user.id)
            .order_by(Commission.created_at.desc(), Commission.id.desc())
        )
        withdrawals_result = await _db.execute(
            select(WithdrawalRequest)
            .where(WithdrawalRequest.user_id == current_user.id)
            .order_by(WithdrawalRequest.created_at.desc(), WithdrawalRequest.id.desc())
        )
        stats = await get_referral_stats(_db, current_user.id)

        return {
            "balance": balance,
            "referral_code": referral_code,
            "referrals": stats,
            "commissions": [
                {
                    "id": c.id,
                    "amount": c.amount,
                    "referred_user_id": c.referred_user_id,
                    "subscription_id": c.subscription_id,
                    "created_at": c.created_at,
                }
                for c in commissions_result.scalars().all()
            ],
            "withdrawals": [serialize_withdrawal(w) for w in withdrawals_result.scalars().all()],
        }


@timeit("request_withdrawal")
async def request_withdrawal(current_user: User, request: WithdrawalCreate, db: AsyncSession = None) -> Dict[str, Any]:
    """File a payout request; the balance only moves when an admin completes it."""
    amount = to_decimal(request.amount) if request.amount is not None else Decimal(0)
    if amount <= 0:
        raise HTTPException(status_code=400, detail="Invalid withdrawal amount")

    upi_id = (request.upi_id or "").strip() or None
    account_number = (request.bank_account_number or "").strip() or None
    ifsc = (request.bank_ifsc or "").strip().upper() or None
    if not upi_id and not (account_number and ifsc):
        raise HTTPException(status_code=400, detail="Please provide UPI ID or bank account details")

    async with get_or_use_session(db) as _db:
        balance_result = await _db.execute(select(Wallet.balance).where(Wallet.user_id == current_user.id))
        balance = balance_result.scalar_one_or_none()
        if balance is None or to_decimal(balance) < amount:
            raise HTTPException(status_code=400, detail="Insufficient wallet balance")

        pending = await _db.execute(
            select(WithdrawalRequest.id).where(
                WithdrawalRequest.user_id == current_user.id,
                WithdrawalRequest.status == "pending",
            )
        )
        if pending.first() is not None:
            raise HTTPException(status_code=400, detail=PENDING_WITHDRAWAL_MESSAGE)

        withdrawal = WithdrawalRequest(
            user_id=current_user.id,
            amount=amount,
            upi_id=upi_id,
            bank_account_number=None if upi_id else account_number,
            bank_ifsc=None if upi_id else ifsc,
            bank_name=None if upi_id else ((request.bank_name or "").strip() or None),
            status="pending",
            pending_user_id=current_user.id,
        )
        _db.add(withdrawal)
        try:
            await _db.commit()
        except IntegrityError:
            # Lost the race against a concurrent request for the same user
            await _db.rollback()
            raise HTTPException(status_code=400, detail=PENDING_WITHDRAWAL_MESSAGE)
        await _db.refresh(withdrawal)

    logger.info(f"Withdrawal {withdrawal.id} requested by user {current_user.id}: {amount}")
    return {
        "success": True,
        "message": "Withdrawal request submitted. Admin will review and process it.",
        "withdrawal": serialize_withdrawal(withdrawal),
    }


@timeit("resolve_withdrawal")
async def resolve_withdrawal(withdrawal_id: int, update_request: WithdrawalStatusUpdate, admin: User, db: AsyncSession = None) -> Dict[str, Any]:
    """Admin decision on a payout; completing it debits the wallet."""
    new_status = (update_request.status or "").strip().lower()
    async with get_or_use_session(db) as _db:
        withdrawal = await _db.get(WithdrawalRequest, withdrawal_id)
        if not withdrawal:
            raise HTTPException(status_code=404, detail="Withdrawal request not found")
        if new_status not in WITHDRAWAL_TRANSITIONS.get(withdrawal.status, set()):
            raise HTTPException(status_code=400, detail=f"Cannot move withdrawal from {withdrawal.status} to {new_status or 'empty status'}")

        if new_status == "completed":
            if not await debit_wallet(_db, withdrawal.user_id, to_decimal(withdrawal.amount)):
                await _db.rollback()
                raise HTTPException(status_code=400, detail="Insufficient wallet balance")

        withdrawal.status = new_status
        withdrawal.pending_user_id = None
        withdrawal.admin_note = update_request.admin_note
        if new_status in ("completed", "rejected"):
            withdrawal.processed_at = datetime.utcnow()
        await _db.commit()

    logger.info(f"Withdrawal {withdrawal_id} moved to {new_status} by admin {admin.id}")
    return {"success": True, "withdrawal": serialize_withdrawal(withdrawal)}
