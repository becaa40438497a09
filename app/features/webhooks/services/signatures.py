"""
HMAC-SHA256 signature checks for inbound lead webhooks.

All checks run over the raw request bytes exactly as received and compare
with hmac.compare_digest. They return False instead of raising on anything
missing or malformed.
"""

import hashlib
import hmac
import time
from typing import Optional

META_SIGNATURE_PREFIX = "sha256="
SNAPCHAT_TIMESTAMP_TOLERANCE_SECONDS = 300


def _hex_digest(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def _matches(expected: str, provided: str) -> bool:
    if len(expected) != len(provided):
        return False
    return hmac.compare_digest(expected.encode("utf-8"), provided.encode("utf-8"))


def verify_meta_signature(raw_body: bytes, signature: Optional[str], app_secret: Optional[str]) -> bool:
    """Meta sends `x-hub-signature-256: sha256=<hex digest of the body>`."""
    if not signature or not app_secret:
        return False

    provided = signature.strip()
    if provided.startswith(META_SIGNATURE_PREFIX):
        provided = provided[len(META_SIGNATURE_PREFIX):]

    return _matches(_hex_digest(app_secret, raw_body), provided.lower())


def verify_snapchat_signature(
    raw_body: bytes,
    signature: Optional[str],
    client_secret: Optional[str],
    timestamp: Optional[str],
    tolerance_seconds: int = SNAPCHAT_TIMESTAMP_TOLERANCE_SECONDS,
    now: Optional[float] = None,
) -> bool:
    """
    Snapchat signs `"{timestamp}.{body}"`. The timestamp must also be within
    `tolerance_seconds` of the current time so captured requests can't be replayed.
    """
    if not signature or not client_secret or not timestamp:
        return False

    try:
        sent_at = int(str(timestamp).strip())
    except ValueError:
        return False

    current = time.time() if now is None else now
    if abs(current - sent_at) > tolerance_seconds:
        return False

    message = str(timestamp).strip().encode("utf-8") + b"." + raw_body
    return _matches(_hex_digest(client_secret, message), signature.strip().lower())


def verify_tiktok_signature(raw_body: bytes, signature: Optional[str], app_secret: Optional[str]) -> bool:
    if not signature or not app_secret:
        return False
    return _matches(_hex_digest(app_secret, raw_body), signature.strip().lower())
