"""Webhook signature verification (HMAC-SHA256 over the raw request body)."""

from __future__ import annotations

import hashlib
import hmac

SIGNATURE_HEADER = "X-Alchemy-Signature"


def compute_signature(raw_body: bytes, signing_key: str) -> str:
    return hmac.new(signing_key.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


def verify(raw_body: bytes, provided_signature: str | None, signing_key: str) -> bool:
    """True iff ``provided_signature`` is the hex HMAC-SHA256 of ``raw_body``.

    The body must be the exact bytes received, before any JSON parsing.
    A mismatch (or a missing signature) returns False; only a missing body
    or signing key raises ValueError.
    """
    if raw_body is None:
        raise ValueError("raw_body is required")
    if not signing_key:
        raise ValueError("signing_key is required")
    if not isinstance(provided_signature, str) or not provided_signature:
        return False

    expected = compute_signature(bytes(raw_body), signing_key)
    return hmac.compare_digest(
        expected.encode("ascii"),
        provided_signature.encode("utf-8"),
    )


class SignatureVerifier:
    """Verifies notifications for a single provider subscription."""

    def __init__(self, signing_key: str) -> None:
        if not signing_key:
            raise ValueError("signing_key is required")
        self._signing_key = signing_key

    def __repr__(self) -> str:
        return "SignatureVerifier(signing_key=***)"

    def verify(self, raw_body: bytes, provided_signature: str | None) -> bool:
        return verify(raw_body, provided_signature, self._signing_key)
