"""
Pytest configuration and fixtures for the backend tests.
"""
import os
import tempfile

# Settings are read at import time, so the environment is prepared before importing the app
_TEST_DIR = tempfile.mkdtemp(prefix="playoga-tests-")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR}/test.db"
os.environ["RAZORPAY_KEY_ID"] = "rzp_test_key"
os.environ["RAZORPAY_KEY_SECRET"] = "rzp_test_secret"
os.environ["LOG_DIR"] = os.path.join(_TEST_DIR, "logs")

import itertools
from datetime import datetime, timedelta
from decimal import Decimal
from typing import AsyncGenerator
from unittest.mock import AsyncMock, patch

import pytest
from faker import Faker
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from main import app
from core.config import settings
from core.security import create_access_token
from db.base import initialize_database, drop_database
from db.session import SessionLocal
from db.models.coupon import Coupon
from db.models.referral import Referral
from db.models.subscription import Subscription
from db.models.user import User as UserModel
from db.models.wallet import Wallet
from schemas.user_schema import User
from services.razorpay_client import compute_signature

# Initialize Faker for test data generation
fake = Faker()


@pytest.fixture(autouse=True)
async def setup_test_db():
    """Fresh tables for every test."""
    await initialize_database()
    yield
    await drop_database()


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    async with SessionLocal() as session:
        yield session


@pytest.fixture
async def async_client() -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def make_user(db_session: AsyncSession):
    """Create a user with the free subscription row signup would create."""
    counter = itertools.count(1)

    async def _make_user(role: str = "user", referral_code: str = None, with_subscription: bool = True) -> UserModel:
        user = UserModel(
            email=fake.unique.email(),
            hashed_password="not-a-real-hash",
            full_name=fake.name(),
            phone=fake.msisdn()[:10],
            role=role,
            referral_code=referral_code or f"REF{next(counter):05d}",
        )
        db_session.add(user)
        await db_session.flush()
        if with_subscription:
            db_session.add(Subscription(user_id=user.id, status="free"))
        await db_session.commit()
        return user

    return _make_user


@pytest.fixture
def make_referral(db_session: AsyncSession):
    async def _make_referral(referrer: UserModel, referred: UserModel, status: str = "pending") -> Referral:
        referral = Referral(referrer_id=referrer.id, referred_user_id=referred.id, status=status)
        db_session.add(referral)
        await db_session.commit()
        return referral

    return _make_referral


@pytest.fixture
def make_coupon(db_session: AsyncSession):
    async def _make_coupon(code: str = "YOGA100", **fields) -> Coupon:
        values = {
            "discount_amount": Decimal("100"),
            "is_active": True,
            "valid_from": datetime.utcnow() - timedelta(days=1),
            "valid_until": datetime.utcnow() + timedelta(days=30),
            "max_uses": 100,
            "uses_count": 0,
        }
        values.update(fields)
        coupon = Coupon(code=code, **values)
        db_session.add(coupon)
        await db_session.commit()
        return coupon

    return _make_coupon


@pytest.fixture
def make_wallet(db_session: AsyncSession):
    async def _make_wallet(user: UserModel, balance) -> Wallet:
        wallet = Wallet(user_id=user.id, balance=Decimal(str(balance)))
        db_session.add(wallet)
        await db_session.commit()
        return wallet

    return _make_wallet


def as_identity(user: UserModel) -> User:
    """The authenticated identity services receive from get_current_user."""
    return User.model_validate(user)


def auth_headers(user: UserModel) -> dict:
    token = create_access_token({"sub": user.email, "user_id": user.id, "role": user.role})
    return {"Authorization": f"Bearer {token}"}


def sign(order_id: str, payment_id: str) -> str:
    return compute_signature(order_id, payment_id, settings.RAZORPAY_KEY_SECRET)


@pytest.fixture
def mock_gateway():
    """Razorpay order API stand-in that hands out sequential order ids."""
    ids = itertools.count(1)

    async def _create_order(amount_minor, currency, receipt, notes):
        return {"id": f"order_test{next(ids):04d}", "amount": amount_minor, "currency": currency, "receipt": receipt}

    with patch("services.razorpay_client.create_order", new=AsyncMock(side_effect=_create_order)) as mocked:
        yield mocked


async def fetch_all(model, *criteria):
    """Read rows through a fresh session so the result reflects committed state."""
    async with SessionLocal() as session:
        result = await session.execute(select(model).where(*criteria))
        return result.scalars().all()


async def fetch_one(model, *criteria):
    rows = await fetch_all(model, *criteria)
    return rows[0] if rows else None
