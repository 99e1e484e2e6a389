"""
auth/signing.py -- Session id issuance and HMAC signing (SessionSigner).

Security design decisions:
  Session ids: secrets.token_hex(32) gives 256 bits from the OS CSPRNG, as
       64 hex characters. Guessing a live id is computationally infeasible.

  Signature: HMAC-SHA256(SESSION_SECRET, session_id), hex encoded. The cookie
       carries "<session_id>.<signature>" so a tampered or invented id is
       rejected before the store is even consulted.

  verify(): recomputes and compares with hmac.compare_digest. Returns False
       for anything malformed (wrong type, wrong length, non-hex) -- callers
       treat every failure the same way, as an anonymous request.

The secret is passed in once at construction (from core.config at app
startup) and never derived from request data. Changing it invalidates every
outstanding session.

Layer rule: no imports from api/, web/, or library/.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets

SESSION_ID_BYTES = 32
_SIGNATURE_HEX_LEN = hashlib.sha256().digest_size * 2
_HEX = frozenset("0123456789abcdef")


class SessionSigner:
    def __init__(self, secret_key: str) -> None:
        if not secret_key:
            raise ValueError("SessionSigner requires a non-empty secret key")
        self._key = secret_key.encode("utf-8")

    def issue(self) -> tuple[str, str]:
        """Return a fresh (session_id, signature) pair."""
        session_id = secrets.token_hex(SESSION_ID_BYTES)
        return session_id, self.sign(session_id)

    def sign(self, session_id: str) -> str:
        return hmac.new(self._key, session_id.encode("utf-8"), hashlib.sha256).hexdigest()

    def verify(self, session_id: str, signature: str) -> bool:
        """Constant-time signature check. Never raises."""
        if not isinstance(session_id, str) or not isinstance(signature, str):
            return False
        if len(session_id) != SESSION_ID_BYTES * 2 or not _is_hex(session_id):
            return False
        if len(signature) != _SIGNATURE_HEX_LEN or not _is_hex(signature):
            return False
        return hmac.compare_digest(self.sign(session_id), signature)


def _is_hex(value: str) -> bool:
    return _HEX.issuperset(value)
