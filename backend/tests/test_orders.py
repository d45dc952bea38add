"""
Tests for Razorpay order creation and server-side pricing.
"""
import pytest
from decimal import Decimal
from unittest.mock import AsyncMock, patch
from fastapi import HTTPException
from httpx import AsyncClient

from config import config
from core.config import settings
from db.models.payment import PaymentOrder
from services.order_service import create_order, price_breakdown
from conftest import as_identity, auth_headers, fetch_all, fetch_one


class TestBusinessConfig:
    """Rules read from config.json."""

    def test_checkout_rules(self):
        assert config.get_plan_name() == "Premium Yearly"
        assert config.get_plan_duration_years() == 1
        assert config.get_gst_rate() == Decimal("0.05")
        assert config.get_commission_amount() == Decimal("50")
        assert config.get_settlement_max_attempts() == 5
        assert config.get_invoice_prefix() == "INV"

    def test_unknown_key_falls_back(self):
        assert config.get("plan.missing", "fallback") == "fallback"


class TestPriceBreakdown:
    """GST and paise arithmetic."""

    def test_full_price(self):
        breakdown = price_breakdown(Decimal("999"), Decimal(0))
        assert breakdown["base_amount"] == Decimal("999")
        assert breakdown["gst_amount"] == Decimal("49.95")
        assert breakdown["total_amount"] == Decimal("1048.95")
        assert breakdown["amount_minor"] == 104895

    def test_fixed_coupon(self):
        breakdown = price_breakdown(Decimal("999"), Decimal("100"))
        assert breakdown["base_amount"] == Decimal("899")
        assert breakdown["gst_amount"] == Decimal("44.95")
        assert breakdown["total_amount"] == Decimal("943.95")
        assert breakdown["amount_minor"] == 94395

    def test_gst_rounds_half_up(self):
        # 5% of 10.10 is 0.505
        assert price_breakdown(Decimal("10.10"), Decimal(0))["gst_amount"] == Decimal("0.51")

    def test_discount_larger_than_price(self):
        breakdown = price_breakdown(Decimal("50"), Decimal("100"))
        assert breakdown["base_amount"] == Decimal(0)
        assert breakdown["amount_minor"] == 0


class TestCreateOrder:
    """create_order service."""

    @pytest.mark.asyncio
    async def test_order_without_coupon(self, make_user, mock_gateway):
        user = await make_user()

        result = await create_order(as_identity(user), Decimal("999"))

        assert result["orderId"] == "order_test0001"
        assert result["amount"] == 104895
        assert result["currency"] == "INR"
        assert result["keyId"] == "rzp_test_key"
        assert result["prefill"]["email"] == user.email
        assert result["notes"]["couponId"] is None
        assert result["notes"]["gstAmount"] == Decimal("49.95")

        amount_minor, currency, receipt = mock_gateway.call_args.args[:3]
        assert (amount_minor, currency) == (104895, "INR")
        assert receipt.startswith(f"rcpt_{user.id}_")
        notes = mock_gateway.call_args.kwargs["notes"]
        assert notes["gst_amount"] == "49.95"
        assert all(isinstance(value, str) for value in notes.values())

        order = await fetch_one(PaymentOrder, PaymentOrder.razorpay_order_id == "order_test0001")
        assert order.user_id == user.id
        assert order.status == "created"
        assert order.total_amount == Decimal("1048.95")
        assert order.amount_minor == 104895

    @pytest.mark.asyncio
    async def test_order_with_coupon(self, make_user, make_coupon, mock_gateway):
        user = await make_user()
        coupon = await make_coupon("YOGA100")

        result = await create_order(as_identity(user), Decimal("999"), "YOGA100")

        assert result["amount"] == 94395
        assert result["notes"]["couponId"] == coupon.id
        assert result["notes"]["discount"] == Decimal("100")
        assert result["notes"]["baseAmount"] == Decimal("899")
        order = await fetch_one(PaymentOrder, PaymentOrder.razorpay_order_id == result["orderId"])
        assert order.coupon_id == coupon.id
        assert order.discount_amount == Decimal("100")

    @pytest.mark.asyncio
    async def test_unusable_coupon_means_full_price(self, make_user, make_coupon, mock_gateway):
        user = await make_user()
        await make_coupon("FULL", max_uses=1, uses_count=1)

        result = await create_order(as_identity(user), Decimal("999"), "FULL")

        assert result["amount"] == 104895
        assert result["notes"]["couponId"] is None

    @pytest.mark.asyncio
    async def test_invalid_amount(self, make_user, mock_gateway):
        user = await make_user()
        for amount in (Decimal(0), Decimal("-5"), None):
            with pytest.raises(HTTPException) as exc_info:
                await create_order(as_identity(user), amount)
            assert exc_info.value.detail == "Invalid amount"
        mock_gateway.assert_not_called()

    @pytest.mark.asyncio
    async def test_gateway_not_configured(self, make_user, mock_gateway, monkeypatch):
        user = await make_user()
        monkeypatch.setattr(settings, "RAZORPAY_KEY_SECRET", None)

        with pytest.raises(HTTPException) as exc_info:
            await create_order(as_identity(user), Decimal("999"))

        assert exc_info.value.status_code == 400
        assert exc_info.value.detail == "Payment gateway not configured"
        mock_gateway.assert_not_called()

    @pytest.mark.asyncio
    async def test_gateway_failure_persists_nothing(self, make_user):
        user = await make_user()
        failure = HTTPException(status_code=400, detail="Failed to create payment order")

        with patch("services.razorpay_client.create_order", new=AsyncMock(side_effect=failure)):
            with pytest.raises(HTTPException) as exc_info:
                await create_order(as_identity(user), Decimal("999"))

        assert exc_info.value.detail == "Failed to create payment order"
        assert await fetch_all(PaymentOrder) == []


class TestOrderEndpoint:
    """POST /payments/razorpay/order"""

    @pytest.mark.asyncio
    async def test_create_order(self, async_client: AsyncClient, make_user, mock_gateway):
        user = await make_user()
        response = await async_client.post(
            "/payments/razorpay/order",
            json={"amount": 999, "couponCode": None},
            headers=auth_headers(user),
        )
        assert response.status_code == 200
        data = response.json()
        assert data["amount"] == 104895
        assert data["notes"]["gstAmount"] == 49.95

    @pytest.mark.asyncio
    async def test_malformed_body(self, async_client: AsyncClient, make_user, mock_gateway):
        user = await make_user()
        response = await async_client.post(
            "/payments/razorpay/order",
            json={"amount": "lots"},
            headers=auth_headers(user),
        )
        assert response.status_code == 400
        assert response.json() == {"detail": "Invalid request"}
