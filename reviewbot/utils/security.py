"""Webhook signature checks."""

from __future__ import annotations

import hashlib
import hmac

SIGNATURE_PREFIX = "sha256="


def build_signature(secret: str, payload: bytes) -> str:
    """Return the ``X-Hub-Signature-256`` value GitHub sends for ``payload``."""

    digest = hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def is_signature_valid(secret: str | None, payload: bytes, raw_signature: str | None) -> bool:
    """Check a delivery signature; with no secret configured every delivery passes."""

    if not secret:
        return True
    if not raw_signature or not raw_signature.startswith(SIGNATURE_PREFIX):
        return False
    return hmac.compare_digest(build_signature(secret, payload), raw_signature)
