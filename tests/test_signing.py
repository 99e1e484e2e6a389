"""
tests/test_signing.py -- Unit tests for SessionSigner.
"""

from __future__ import annotations

import pytest

from auth.signing import SessionSigner

SECRET = "x" * 40


def test_issue_returns_256_bit_hex_id_and_valid_signature() -> None:
    signer = SessionSigner(SECRET)
    session_id, signature = signer.issue()
    assert len(session_id) == 64
    int(session_id, 16)
    assert signer.verify(session_id, signature)


def test_ids_are_unique() -> None:
    signer = SessionSigner(SECRET)
    assert len({signer.issue()[0] for _ in range(200)}) == 200


def test_sign_is_deterministic() -> None:
    signer = SessionSigner(SECRET)
    session_id, _ = signer.issue()
    assert signer.sign(session_id) == signer.sign(session_id)


def test_signature_from_other_secret_rejected() -> None:
    session_id, signature = SessionSigner(SECRET).issue()
    assert not SessionSigner("y" * 40).verify(session_id, signature)


def test_tampered_id_rejected() -> None:
    signer = SessionSigner(SECRET)
    session_id, signature = signer.issue()
    flipped = ("0" if session_id[0] != "0" else "1") + session_id[1:]
    assert not signer.verify(flipped, signature)


@pytest.mark.parametrize(
    "session_id, signature",
    [
        ("", ""),
        ("abc", "def"),
        ("g" * 64, "0" * 64),
        ("0" * 64, "0" * 63),
        (None, "0" * 64),
        ("0" * 64, None),
    ],
)
def test_malformed_input_returns_false(session_id, signature) -> None:
    assert SessionSigner(SECRET).verify(session_id, signature) is False


def test_empty_secret_rejected() -> None:
    with pytest.raises(ValueError):
        SessionSigner("")


def test_any_altered_signature_character_rejected() -> None:
    signer = SessionSigner(SECRET)
    session_id, signature = signer.issue()
    for i in range(len(signature)):
        replacement = "0" if signature[i] != "0" else "1"
        altered = signature[:i] + replacement + signature[i + 1 :]
        assert not signer.verify(session_id, altered)
