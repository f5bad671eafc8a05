"""MINDBODY webhook signature verification.

MINDBODY signs each webhook body with HMAC-SHA256 using the subscription's
``messageSignatureKey`` and sends ``X-Mindbody-Signature: sha256=<base64>``.
"""
from __future__ import annotations

import base64
import hashlib
import hmac

SIGNATURE_HEADER = "X-Mindbody-Signature"
SIGNATURE_PREFIX = "sha256="


def compute_signature(key: str, body: bytes) -> str:
    """Return the header value MINDBODY would send for ``body``."""
    digest = hmac.new(key.encode("utf-8"), body, hashlib.sha256).digest()
    return SIGNATURE_PREFIX + base64.b64encode(digest).decode("ascii")


def verify_signature(header_value: str | None, key: str, body: bytes) -> bool:
    """Check a signature header against the raw request body.

    Uses hmac.compare_digest; an unset key never verifies.
    """
    if not key or not header_value:
        return False
    return hmac.compare_digest(header_value.strip(), compute_signature(key, body))
