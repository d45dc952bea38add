from core.config import settings
from fastapi import HTTPException
import aiohttp
import hashlib
import hmac
import logging
from typing import Dict, Any

logger = logging.getLogger(__name__)


def _credentials() -> tuple:
    if not settings.RAZORPAY_KEY_ID or not settings.RAZORPAY_KEY_SECRET:
        logger.error("Razorpay credentials missing in environment error_type=CONFIGURATION_ERROR")
        raise HTTPException(status_code=400, detail="Payment gateway not configured")
    # Tolerate quoted values copied from dashboards
    key_id = settings.RAZORPAY_KEY_ID.strip().strip('"').strip("'")
    key_secret = settings.RAZORPAY_KEY_SECRET.strip().strip('"').strip("'")
    return key_id, key_secret


def public_key_id() -> str:
    return _credentials()[0]


def signing_secret() -> str:
    return _credentials()[1]


async def create_order(amount_minor: int, currency: str, receipt: str, notes: Dict[str, Any]) -> Dict[str, Any]:
    """Open a Razorpay order and return the gateway's JSON body."""
    key_id, key_secret = _credentials()
    payload = {
        "amount": amount_minor,
        "currency": currency,
        "receipt": receipt,
        "notes": notes,
    }
    orders_url = f"{settings.RAZORPAY_API_BASE}/orders"
    timeout = aiohttp.ClientTimeout(total=settings.RAZORPAY_TIMEOUT)
    try:
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(orders_url, json=payload, auth=aiohttp.BasicAuth(key_id, key_secret)) as resp:
                if resp.status >= 400:
                    # Gateway bodies can echo customer data; log the status only
                    logger.error(f"Razorpay order creation failed: status={resp.status} error_type=RAZORPAY_ORDER_ERROR")
                    raise HTTPException(status_code=400, detail="Failed to create payment order")
                data = await resp.json()
    except HTTPException:
        raise
    except aiohttp.ClientError as e:
        logger.error(f"Razorpay connection error: {type(e).__name__} error_type=RAZORPAY_ORDER_ERROR")
        raise HTTPException(status_code=400, detail="Failed to create payment order")

    if not data.get("id"):
        logger.error("Razorpay order response missing id error_type=RAZORPAY_ORDER_ERROR")
        raise HTTPException(status_code=400, detail="Failed to create payment order")
    return data


def compute_signature(order_id: str, payment_id: str, secret: str) -> str:
    body = f"{order_id}|{payment_id}"
    return hmac.new(secret.encode("utf-8"), body.encode("utf-8"), hashlib.sha256).hexdigest()


def verify_signature(order_id: str, payment_id: str, signature: str, secret: str) -> bool:
    """Checkout signatures are HMAC-SHA256 over "<order_id>|<payment_id>" in hex."""
    if not order_id or not payment_id or not signature:
        return False
    return hmac.compare_digest(compute_signature(order_id, payment_id, secret), signature)
