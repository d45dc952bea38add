from schemas.user_schema import UserCreate, User
from db.session import get_or_use_session
from db.models.user import User as UserModel
from db.models.subscription import Subscription
from services.referral_service import ensure_referral_code, process_referral
from services.payment_service import get_current_subscription
from core.security import get_password_hash, verify_password, create_access_token
from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime
from utils.db import safe_commit
from utils.timing import timeit
import logging

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


def normalize_email(email: str) -> str:
    return email.strip().lower()


@timeit("create_user")
async def create_user(user: UserCreate, db: AsyncSession = None):
    """Sign a user up with a free subscription row and, optionally, a referrer."""
    if len(user.password or "") < MIN_PASSWORD_LENGTH:
        raise HTTPException(status_code=400, detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    email = normalize_email(user.email)

    async with get_or_use_session(db) as _db:
        existing = await _db.execute(select(UserModel.id).where(UserModel.email == email))
        if existing.first() is not None:
            raise HTTPException(status_code=400, detail="Email already registered")

        new_user = UserModel(
            email=email,
            hashed_password=get_password_hash(user.password),
            full_name=(user.full_name or "").strip(),
            phone=(user.phone or "").strip(),
            role="user",
        )
        _db.add(new_user)
        await _db.flush()

        await ensure_referral_code(_db, new_user)
        # Every account starts with a free subscription row that checkout later activates
        _db.add(Subscription(user_id=new_user.id, status="free"))
        if user.referral_code:
            await process_referral(_db, new_user, user.referral_code)

        await safe_commit(_db, client_error_message="Invalid signup data")
        logger.info(f"User {new_user.id} signed up{' with referral' if user.referral_code else ''}")
        return {"message": "User created successfully", "user_id": new_user.id, "referral_code": new_user.referral_code}


async def authenticate_user(email: str, password: str, db: AsyncSession = None):
    async with get_or_use_session(db) as _db:
        result = await _db.execute(select(UserModel).where(UserModel.email == normalize_email(email)))
        user = result.scalars().first()
        if not user or not user.is_active:
            return None
        if not verify_password(password, user.hashed_password):
            return None
        return user


@timeit("login_user")
async def login_user(email: str, password: str, db: AsyncSession = None):
    """Login user and return a bearer token"""
    user = await authenticate_user(email, password, db=db)
    if user is None:
        raise HTTPException(status_code=401, detail="Incorrect email or password")

    access_token = create_access_token(
        data={"sub": user.email, "user_id": user.id, "role": user.role},
    )
    return {
        "access_token": access_token,
        "token_type": "bearer",
        "user": {
            "id": user.id,
            "email": user.email,
            "full_name": user.full_name,
            "role": user.role,
        },
    }


async def get_subscription_status(current_user: User, db: AsyncSession = None):
    async with get_or_use_session(db) as _db:
        subscription = await get_current_subscription(_db, current_user.id)
    if subscription is None:
        return {"status": "free", "is_active": False, "plan_name": None, "expires_at": None}
    is_active = subscription.status == "active" and (
        subscription.expires_at is None or subscription.expires_at > datetime.utcnow()
    )
    return {
        "status": subscription.status,
        "is_active": is_active,
        "plan_name": subscription.plan_name,
        "starts_at": subscription.starts_at,
        "expires_at": subscription.expires_at,
    }
