"""
Webhook Security Module

Signature verification for payment gateway webhooks (Standard Webhooks scheme):
- Constant-time signature comparison
- Timestamp validation against replay
- Verification runs on the raw request bytes, before any parsing
"""

import base64
import binascii
import hashlib
import hmac
import logging
import time
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

# Maximum age of webhook in seconds (5 minutes)
MAX_WEBHOOK_AGE_SECONDS = 300


class WebhookSignatureError(Exception):
    """Raised when webhook signature verification fails"""

    pass


def constant_time_compare(a: str, b: str) -> bool:
    """Compare two strings in constant time"""
    if not a or not b:
        return False
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


def extract_signing_key(secret: str) -> bytes:
    """
    Signing key bytes from a ``whsec_<base64>`` secret.

    Secrets without the prefix are tried as base64 and otherwise used as raw UTF-8.
    """
    try:
        if secret.startswith("whsec_"):
            return base64.b64decode(secret[6:], validate=True)
        return base64.b64decode(secret, validate=True)
    except (binascii.Error, ValueError):
        return secret.encode("utf-8")


def verify_timestamp(
    timestamp: Optional[str], max_age: int = MAX_WEBHOOK_AGE_SECONDS, now: Optional[float] = None
) -> bool:
    """Reject webhooks whose timestamp is missing, malformed or outside the allowed window"""
    if not timestamp:
        return False

    try:
        webhook_time = int(timestamp)
    except (ValueError, TypeError):
        logger.warning(f"🚫 Invalid webhook timestamp format: {timestamp}")
        return False

    current_time = int(now if now is not None else time.time())
    age = abs(current_time - webhook_time)
    if age > max_age:
        logger.warning(f"🚫 Webhook timestamp too old: {age}s (max: {max_age}s)")
        return False
    return True


def compute_signature(secret: str, webhook_id: str, timestamp: str, payload: bytes) -> str:
    """base64(HMAC-SHA256(key, "id.timestamp.payload"))"""
    signed_message = b".".join([webhook_id.encode("utf-8"), timestamp.encode("utf-8"), payload])
    digest = hmac.new(extract_signing_key(secret), signed_message, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8")


def sign_webhook(secret: str, webhook_id: str, timestamp: str, payload: bytes) -> str:
    """Signature header value for an outgoing (or test) webhook"""
    return f"v1,{compute_signature(secret, webhook_id, timestamp, payload)}"


def verify_webhook(
    raw_body: bytes,
    headers: Mapping[str, str],
    secret: str,
    now: Optional[float] = None,
) -> str:
    """
    Verify a Standard Webhooks signature.

    Headers:
      - 'webhook-id': unique delivery id
      - 'webhook-timestamp': Unix timestamp (seconds)
      - 'webhook-signature': space-separated 'v1,<base64>' entries

    Returns:
        The webhook id

    Raises:
        WebhookSignatureError: on any missing header, stale timestamp or mismatch
    """
    if not secret:
        raise WebhookSignatureError("Webhook secret not configured")

    normalized = {key.lower(): value for key, value in headers.items()}
    signature_header = normalized.get("webhook-signature", "")
    timestamp = normalized.get("webhook-timestamp", "")
    webhook_id = normalized.get("webhook-id", "")

    if not signature_header or not timestamp or not webhook_id:
        raise WebhookSignatureError("Missing webhook signature headers")

    if not verify_timestamp(timestamp, now=now):
        raise WebhookSignatureError("Webhook timestamp expired or invalid")

    expected_signature = compute_signature(secret, webhook_id, timestamp, raw_body)
    for candidate in signature_header.split():
        version, _, signature = candidate.partition(",")
        if version == "v1" and constant_time_compare(expected_signature, signature):
            logger.info(f"✅ Webhook signature verified: {webhook_id}")
            return webhook_id

    raise WebhookSignatureError(f"Webhook signature mismatch for {webhook_id}")
