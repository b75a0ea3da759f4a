"""
Webhook signature validation.

Jobber signs each webhook with HMAC-SHA256 over the raw request body, keyed by
the app's client secret, and sends the base64 digest in X-Jobber-Hmac-SHA256.
The digest must be computed over the exact bytes received; re-serialized JSON
will not match.
"""
import base64
import binascii
import hashlib
import hmac
from typing import Optional

from jobber_agent.errors import AuthenticationError

SIGNATURE_HEADER = "X-Jobber-Hmac-SHA256"


def compute_signature(raw_body: bytes, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def validate_signature(raw_body: bytes, claimed_signature: Optional[str], secret: Optional[str]) -> None:
    """
    Raise AuthenticationError unless `claimed_signature` is the HMAC of `raw_body`.
    """
    if not secret:
        raise AuthenticationError("Webhook secret is not configured")
    if not claimed_signature:
        raise AuthenticationError(f"Missing {SIGNATURE_HEADER} header")

    try:
        claimed = base64.b64decode(claimed_signature.strip(), validate=True)
    except (binascii.Error, ValueError):
        raise AuthenticationError("Malformed webhook signature")

    expected = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).digest()
    if not hmac.compare_digest(expected, claimed):
        raise AuthenticationError("Webhook signature mismatch")
