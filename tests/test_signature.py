"""Webhook signature verification."""

from __future__ import annotations

import hashlib
import hmac

import pytest

from nft_relay.security.signature import SignatureVerifier, compute_signature, verify

BODY = b'{"webhookId":"wh_1","event":{"activity":[]}}'
KEY = "whsec_abc123"


def _expected(body: bytes, key: str) -> str:
    return hmac.new(key.encode(), body, hashlib.sha256).hexdigest()


def test_compute_signature_is_hex_hmac_sha256():
    sig = compute_signature(BODY, KEY)
    assert sig == _expected(BODY, KEY)
    assert len(sig) == 64


def test_valid_signature_accepted():
    assert verify(BODY, _expected(BODY, KEY), KEY) is True


def test_signature_with_other_key_rejected():
    assert verify(BODY, _expected(BODY, "whsec_other"), KEY) is False


def test_missing_signature_rejected():
    assert verify(BODY, None, KEY) is False
    assert verify(BODY, "", KEY) is False


def test_empty_body_is_verifiable():
    assert verify(b"", _expected(b"", KEY), KEY) is True


@pytest.mark.parametrize("position", [0, 10, len(BODY) - 1])
def test_single_byte_change_in_body_rejected(position):
    sig = _expected(BODY, KEY)
    tampered = bytearray(BODY)
    tampered[position] ^= 0x01
    assert verify(bytes(tampered), sig, KEY) is False


@pytest.mark.parametrize("position", [0, 31, 63])
def test_single_char_change_in_signature_rejected(position):
    sig = _expected(BODY, KEY)
    flipped = "0" if sig[position] != "0" else "1"
    tampered = sig[:position] + flipped + sig[position + 1:]
    assert verify(BODY, tampered, KEY) is False


def test_reserialized_body_rejected():
    """Signature covers the exact bytes, not an equivalent JSON document."""
    sig = _expected(BODY, KEY)
    reformatted = b'{"webhookId": "wh_1", "event": {"activity": []}}'
    assert verify(reformatted, sig, KEY) is False


def test_missing_body_raises():
    with pytest.raises(ValueError):
        verify(None, "abc", KEY)


def test_missing_key_raises():
    with pytest.raises(ValueError):
        verify(BODY, "abc", "")


def test_verifier_binds_key():
    verifier = SignatureVerifier(KEY)
    assert verifier.verify(BODY, _expected(BODY, KEY)) is True
    assert verifier.verify(BODY, _expected(BODY, "nope")) is False


def test_verifier_requires_key():
    with pytest.raises(ValueError):
        SignatureVerifier("")


def test_verifier_repr_hides_key():
    assert KEY not in repr(SignatureVerifier(KEY))
