"""
Tests for the wallet overview, withdrawal requests and admin payouts.
"""
import pytest
from decimal import Decimal
from fastapi import HTTPException
from httpx import AsyncClient
from sqlalchemy.exc import IntegrityError

from db.models.wallet import Wallet, WithdrawalRequest
from schemas.wallet_schema import WithdrawalCreate, WithdrawalStatusUpdate
from services.wallet_service import request_withdrawal, resolve_withdrawal
from conftest import as_identity, auth_headers, fetch_all, fetch_one


class TestRequestWithdrawal:
    """request_withdrawal service."""

    @pytest.mark.asyncio
    async def test_upi_request(self, make_user, make_wallet):
        user = await make_user()
        await make_wallet(user, 150)

        result = await request_withdrawal(as_identity(user), WithdrawalCreate(amount=Decimal("100"), upi_id=" yogi@upi "))

        assert result["success"] is True
        assert result["message"] == "Withdrawal request submitted. Admin will review and process it."
        assert result["withdrawal"]["status"] == "pending"
        assert result["withdrawal"]["upi_id"] == "yogi@upi"
        # The balance only moves when an admin completes the payout
        wallet = await fetch_one(Wallet, Wallet.user_id == user.id)
        assert Decimal(wallet.balance) == Decimal("150")

    @pytest.mark.asyncio
    async def test_bank_request(self, make_user, make_wallet):
        user = await make_user()
        await make_wallet(user, 150)

        result = await request_withdrawal(
            as_identity(user),
            WithdrawalCreate(amount=Decimal("150"), bank_account_number="123456789012", bank_ifsc="hdfc0001234", bank_name="HDFC"),
        )

        assert result["withdrawal"]["bank_ifsc"] == "HDFC0001234"
        assert result["withdrawal"]["upi_id"] is None

    @pytest.mark.asyncio
    async def test_invalid_amounts(self, make_user, make_wallet):
        user = await make_user()
        await make_wallet(user, 150)
        for amount in (None, Decimal(0), Decimal("-10")):
            with pytest.raises(HTTPException) as exc_info:
                await request_withdrawal(as_identity(user), WithdrawalCreate(amount=amount, upi_id="yogi@upi"))
            assert exc_info.value.detail == "Invalid withdrawal amount"

    @pytest.mark.asyncio
    async def test_payout_details_required(self, make_user, make_wallet):
        user = await make_user()
        await make_wallet(user, 150)
        for request in (
            WithdrawalCreate(amount=Decimal("10")),
            WithdrawalCreate(amount=Decimal("10"), upi_id="   "),
            WithdrawalCreate(amount=Decimal("10"), bank_account_number="123456789012"),
        ):
            with pytest.raises(HTTPException) as exc_info:
                await request_withdrawal(as_identity(user), request)
            assert exc_info.value.detail == "Please provide UPI ID or bank account details"

    @pytest.mark.asyncio
    async def test_insufficient_balance(self, make_user, make_wallet):
        user = await make_user()
        await make_wallet(user, 40)

        with pytest.raises(HTTPException) as exc_info:
            await request_withdrawal(as_identity(user), WithdrawalCreate(amount=Decimal("50"), upi_id="yogi@upi"))
        assert exc_info.value.detail == "Insufficient wallet balance"

    @pytest.mark.asyncio
    async def test_no_wallet(self, make_user):
        user = await make_user()
        with pytest.raises(HTTPException) as exc_info:
            await request_withdrawal(as_identity(user), WithdrawalCreate(amount=Decimal("1"), upi_id="yogi@upi"))
        assert exc_info.value.detail == "Insufficient wallet balance"

    @pytest.mark.asyncio
    async def test_one_pending_request_per_user(self, make_user, make_wallet):
        user = await make_user()
        await make_wallet(user, 150)
        await request_withdrawal(as_identity(user), WithdrawalCreate(amount=Decimal("50"), upi_id="yogi@upi"))

        with pytest.raises(HTTPException) as exc_info:
            await request_withdrawal(as_identity(user), WithdrawalCreate(amount=Decimal("50"), upi_id="yogi@upi"))

        assert exc_info.value.detail == "You already have a pending withdrawal request"
        assert len(await fetch_all(WithdrawalRequest)) == 1

    @pytest.mark.asyncio
    async def test_pending_slot_is_enforced_by_the_database(self, db_session, make_user):
        user = await make_user()
        db_session.add(WithdrawalRequest(user_id=user.id, amount=Decimal("10"), upi_id="a@upi", status="pending", pending_user_id=user.id))
        await db_session.commit()

        db_session.add(WithdrawalRequest(user_id=user.id, amount=Decimal("10"), upi_id="a@upi", status="pending", pending_user_id=user.id))
        with pytest.raises(IntegrityError):
            await db_session.commit()
        await db_session.rollback()


class TestResolveWithdrawal:
    """Admin decisions on payout requests."""

    @pytest.mark.asyncio
    async def test_complete_debits_wallet(self, make_user, make_wallet):
        admin = await make_user(role="admin")
        user = await make_user()
        await make_wallet(user, 150)
        created = await request_withdrawal(as_identity(user), WithdrawalCreate(amount=Decimal("100"), upi_id="yogi@upi"))

        result = await resolve_withdrawal(
            created["withdrawal"]["id"], WithdrawalStatusUpdate(status="completed", admin_note="UTR 123"), as_identity(admin)
        )

        assert result["withdrawal"]["status"] == "completed"
        assert result["withdrawal"]["processed_at"] is not None
        wallet = await fetch_one(Wallet, Wallet.user_id == user.id)
        assert Decimal(wallet.balance) == Decimal("50")

    @pytest.mark.asyncio
    async def test_rejection_frees_the_pending_slot(self, make_user, make_wallet):
        admin = await make_user(role="admin")
        user = await make_user()
        await make_wallet(user, 150)
        created = await request_withdrawal(as_identity(user), WithdrawalCreate(amount=Decimal("100"), upi_id="yogi@upi"))

        await resolve_withdrawal(created["withdrawal"]["id"], WithdrawalStatusUpdate(status="rejected"), as_identity(admin))
        again = await request_withdrawal(as_identity(user), WithdrawalCreate(amount=Decimal("100"), upi_id="yogi@upi"))

        assert again["withdrawal"]["status"] == "pending"
        wallet = await fetch_one(Wallet, Wallet.user_id == user.id)
        assert Decimal(wallet.balance) == Decimal("150")

    @pytest.mark.asyncio
    async def test_terminal_states_do_not_move(self, make_user, make_wallet):
        admin = await make_user(role="admin")
        user = await make_user()
        await make_wallet(user, 150)
        created = await request_withdrawal(as_identity(user), WithdrawalCreate(amount=Decimal("100"), upi_id="yogi@upi"))
        await resolve_withdrawal(created["withdrawal"]["id"], WithdrawalStatusUpdate(status="rejected"), as_identity(admin))

        with pytest.raises(HTTPException) as exc_info:
            await resolve_withdrawal(created["withdrawal"]["id"], WithdrawalStatusUpdate(status="completed"), as_identity(admin))
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_completion_needs_funds(self, db_session, make_user, make_wallet):
        admin = await make_user(role="admin")
        user = await make_user()
        wallet = await make_wallet(user, 150)
        created = await request_withdrawal(as_identity(user), WithdrawalCreate(amount=Decimal("100"), upi_id="yogi@upi"))
        wallet.balance = Decimal("20")
        await db_session.commit()

        with pytest.raises(HTTPException) as exc_info:
            await resolve_withdrawal(created["withdrawal"]["id"], WithdrawalStatusUpdate(status="completed"), as_identity(admin))

        assert exc_info.value.detail == "Insufficient wallet balance"
        stored = await fetch_one(WithdrawalRequest)
        assert stored.status == "pending"

    @pytest.mark.asyncio
    async def test_unknown_withdrawal(self, make_user):
        admin = await make_user(role="admin")
        with pytest.raises(HTTPException) as exc_info:
            await resolve_withdrawal(999, WithdrawalStatusUpdate(status="completed"), as_identity(admin))
        assert exc_info.value.status_code == 404


class TestWalletEndpoints:
    """Wallet and admin payout routes."""

    @pytest.mark.asyncio
    async def test_wallet_overview(self, async_client: AsyncClient, make_user, make_wallet, make_referral):
        user = await make_user(referral_code="OVERVIEW")
        await make_wallet(user, 50)
        await make_referral(user, await make_user(), status="completed")

        response = await async_client.get("/wallet", headers=auth_headers(user))

        assert response.status_code == 200
        data = response.json()
        assert data["balance"] == 50
        assert data["referral_code"] == "OVERVIEW"
        assert data["referrals"]["completed"] == 1
        assert data["withdrawals"] == []

    @pytest.mark.asyncio
    async def test_withdrawal_request(self, async_client: AsyncClient, make_user, make_wallet):
        user = await make_user()
        await make_wallet(user, 50)

        response = await async_client.post(
            "/wallet/withdrawals",
            json={"amount": 50, "upi_id": "yogi@upi"},
            headers=auth_headers(user),
        )

        assert response.status_code == 200
        assert response.json()["withdrawal"]["amount"] == 50

    @pytest.mark.asyncio
    async def test_withdrawal_rejection_body(self, async_client: AsyncClient, make_user):
        user = await make_user()
        response = await async_client.post(
            "/wallet/withdrawals",
            json={"amount": 50, "upi_id": "yogi@upi"},
            headers=auth_headers(user),
        )
        assert response.status_code == 400
        assert response.json() == {"detail": "Insufficient wallet balance"}

    @pytest.mark.asyncio
    async def test_admin_route_requires_admin(self, async_client: AsyncClient, make_user):
        user = await make_user()
        response = await async_client.post(
            "/admin/withdrawals/1/status",
            json={"status": "completed"},
            headers=auth_headers(user),
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_admin_settlement_retry(self, async_client: AsyncClient, make_user):
        admin = await make_user(role="admin")
        response = await async_client.post("/admin/settlements/retry", headers=auth_headers(admin))
        assert response.status_code == 200
        assert response.json() == {"processed": 0, "done": 0, "pending": 0, "failed": 0}
