"""
Webhook Security Module

Signature verification for inbound payment processor webhooks:
- constant-time signature comparison
- timestamp tolerance against replays
- raw body returned alongside the verdict so callers parse exactly what was signed
"""

import hashlib
import hmac
import logging
import time
from typing import Optional

from fastapi import HTTPException, Request

logger = logging.getLogger(__name__)

# Maximum age of webhook in seconds (5 minutes)
MAX_WEBHOOK_AGE_SECONDS = 300


def constant_time_compare(a: str, b: str) -> bool:
    """
    Compare two strings in constant time to prevent timing attacks.
    Uses hmac.compare_digest which is designed for this purpose.
    """
    if not a or not b:
        return False
    return hmac.compare_digest(a, b)


def compute_hmac_sha256(secret: str, payload: bytes) -> str:
    """Compute HMAC-SHA256 signature of payload"""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def verify_timestamp(timestamp: Optional[str], max_age: int = MAX_WEBHOOK_AGE_SECONDS) -> bool:
    """
    Verify webhook timestamp is within acceptable range.

    Args:
        timestamp: Unix timestamp as string
        max_age: Maximum age in seconds

    Returns:
        True if timestamp is valid, False otherwise
    """
    if not timestamp:
        return False

    try:
        age = abs(int(time.time()) - int(timestamp))
    except (ValueError, TypeError):
        logger.warning(f"🚫 Invalid webhook timestamp format: {timestamp}")
        return False

    if age > max_age:
        logger.warning(f"🚫 Webhook timestamp too old: {age}s (max: {max_age}s)")
        return False
    return True


def parse_stripe_signature_header(header: str) -> tuple[Optional[str], list[str]]:
    """Split "t=...,v1=...,v1=..." into (timestamp, [v1 signatures])"""
    timestamp = None
    signatures = []
    for item in header.split(","):
        key, sep, value = item.strip().partition("=")
        if not sep:
            continue
        if key == "t":
            timestamp = value
        elif key == "v1":
            signatures.append(value)
    return timestamp, signatures


def verify_stripe_signature(
    payload: bytes, signature_header: str, secret: str, max_age: int = MAX_WEBHOOK_AGE_SECONDS
) -> bool:
    """Check a Stripe-Signature header against the raw payload"""
    if not signature_header or not secret:
        return False

    timestamp, signatures = parse_stripe_signature_header(signature_header)
    if not timestamp or not signatures:
        logger.warning("🚫 Stripe webhook invalid signature format")
        return False

    if not verify_timestamp(timestamp, max_age):
        return False

    # Stripe signs "{timestamp}.{payload}"
    signed_payload = timestamp.encode("utf-8") + b"." + payload
    expected_signature = compute_hmac_sha256(secret, signed_payload)
    return any(constant_time_compare(expected_signature, sig) for sig in signatures)


async def verify_stripe_webhook(
    request: Request, secret: Optional[str], raise_on_failure: bool = True
) -> tuple[bool, bytes]:
    """
    Verify Stripe webhook signature.

    Stripe uses:
    - Header: 'Stripe-Signature' (format: "t=<timestamp>,v1=<signature>")

    Args:
        request: FastAPI request object
        secret: Webhook endpoint secret from Stripe
        raise_on_failure: If True, raises HTTPException(400) on failure

    Returns:
        Tuple of (is_valid, raw_body)
    """
    raw_body = await request.body()
    signature_header = request.headers.get("Stripe-Signature", "")

    logger.debug("📥 Stripe webhook received")

    if not secret:
        logger.error("❌ STRIPE_WEBHOOK_SECRET not configured")
        if raise_on_failure:
            raise HTTPException(status_code=400, detail="Webhook error: signing secret not configured")
        return False, raw_body

    if not signature_header:
        logger.warning("🚫 Stripe webhook missing signature header")
        if raise_on_failure:
            raise HTTPException(status_code=400, detail="Webhook error: missing signature")
        return False, raw_body

    if not verify_stripe_signature(raw_body, signature_header, secret):
        logger.warning("🚫 Stripe webhook signature mismatch")
        if raise_on_failure:
            raise HTTPException(status_code=400, detail="Webhook error: invalid signature")
        return False, raw_body

    logger.debug("✅ Stripe webhook signature verified")
    return True, raw_body


def create_stripe_signature(secret: str, payload: bytes, timestamp: Optional[int] = None) -> str:
    """
    Create a Stripe-Signature header value for a payload.

    Args:
        secret: Signing secret
        payload: Request body bytes
        timestamp: Unix time to sign with (default now)
    """
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed_payload = str(timestamp).encode("utf-8") + b"." + payload
    return f"t={timestamp},v1={compute_hmac_sha256(secret, signed_payload)}"
