"""
Payment gateway client.

The gateway takes a JSON charge request with the amount in cents and answers
with a transaction id. Nothing here retries; callers decide what a declined
or failed charge means for them.
"""
import asyncio
import logging

import requests

from inkbook.config import PaymentSettings, get_settings
from inkbook.models.credits import PaymentResult

logger = logging.getLogger(__name__)


def _to_cents(amount: float) -> int:
    return int(round(amount * 100))


def _charge_sync(settings: PaymentSettings, amount: float, email: str, description: str) -> PaymentResult:
    headers = {
        "Authorization": f"Bearer {settings.api_key}",
        "X-Merchant-Id": settings.merchant_id,
        "Content-Type": "application/json",
    }
    body = {
        "amount": _to_cents(amount),
        "currency": settings.currency,
        "email": email,
        "description": description or settings.description,
    }
    try:
        resp = requests.post(settings.gateway_url, headers=headers, json=body, timeout=settings.timeout_sec)
    except requests.RequestException as e:
        logger.warning("Payment gateway unreachable: %s", e)
        return PaymentResult(success=False, error="Payment gateway unreachable")

    try:
        data = resp.json()
    except ValueError:
        data = {}
    if not isinstance(data, dict):
        data = {}
    if not resp.ok:
        message = data.get("message") or data.get("error") or f"Gateway returned {resp.status_code}"
        logger.info("Payment declined status=%s message=%s", resp.status_code, message)
        return PaymentResult(success=False, error=message)

    transaction_id = data.get("transactionId") or data.get("transaction_id") or data.get("id")
    if not transaction_id:
        return PaymentResult(success=False, error="Gateway response missing transaction id")
    return PaymentResult(success=True, transaction_id=str(transaction_id))


async def process_payment(amount: float, email: str, description: str = "") -> PaymentResult:
    settings = get_settings().payment
    if not settings.configured:
        logger.warning("Payment requested but PAYMENT_API_KEY / PAYMENT_MERCHANT_ID are not set")
        return PaymentResult(success=False, error="Payment gateway is not configured")
    if amount <= 0:
        return PaymentResult(success=False, error="Amount must be positive")
    return await asyncio.to_thread(_charge_sync, settings, amount, email, description)
