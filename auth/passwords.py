"""
auth/passwords.py -- Password hashing and verification (CredentialHasher).

Security design decisions:
  bcrypt (default scheme): bcrypt is the right choice for low-entropy secrets
       because its cost factor makes brute force expensive. gensalt() draws a
       fresh 16-byte salt per call and the stored record is bcrypt's own
       self-describing "$2b$<cost>$<salt><hash>" string. bcrypt is used
       directly rather than through passlib -- passlib's wrap-bug detection
       trips bcrypt 4.x's 72-byte check.

  pbkdf2_sha512: "salt:hash" records, hex encoded, 16-byte salt, 64-byte
       PBKDF2-HMAC-SHA512 key. This is the format the user table has always
       held, so existing records keep verifying. New hashes use it only when
       PASSWORD_SCHEME=pbkdf2_sha512.

  Comparison: always constant time. bcrypt.checkpw compares internally;
       the PBKDF2 branch uses hmac.compare_digest on the raw digests. Never ==.

  Corrupt records: _parse_pbkdf2 raises CorruptCredential; verify() logs it
       and returns False so callers cannot tell a corrupt record from a wrong
       password.

  needs_rehash(): True when a record was produced by a different scheme or
       weaker parameters than the current settings. AuthService.login uses it
       to upgrade records transparently after a successful verification.

Layer rule: no imports from api/, web/, or library/.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets

import bcrypt

from auth.errors import CorruptCredential
from core.config import PasswordScheme

logger = logging.getLogger("reelguard.auth")

_PBKDF2_SALT_BYTES = 16
_PBKDF2_KEY_BYTES = 64
_PBKDF2_DIGEST = "sha512"
_BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")

# bcrypt only looks at the first 72 bytes. Registration rejects longer
# passwords (auth/service.py) instead of letting them truncate silently.
MAX_PASSWORD_BYTES = 72


class CredentialHasher:
    """Hash and verify passwords under a configured scheme.

    Usage:
        hasher = CredentialHasher()                       # bcrypt, cost 12
        record = hasher.hash("secret1")
        hasher.verify("secret1", record)                  # True
        hasher.verify("wrong", record)                    # False
    """

    def __init__(
        self,
        scheme: PasswordScheme = PasswordScheme.bcrypt,
        bcrypt_rounds: int = 12,
        pbkdf2_iterations: int = 10_000,
    ) -> None:
        if pbkdf2_iterations < 10_000:
            raise ValueError("pbkdf2_iterations must be at least 10000")
        self.scheme = scheme
        self.bcrypt_rounds = bcrypt_rounds
        self.pbkdf2_iterations = pbkdf2_iterations
        self._dummy_hash: str | None = None

    # ------------------------------------------------------------------
    # Public contract
    # ------------------------------------------------------------------

    def hash(self, password: str) -> str:
        """Return a storable hash record for password. Fresh salt every call."""
        if self.scheme is PasswordScheme.bcrypt:
            return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=self.bcrypt_rounds)).decode("utf-8")
        salt = secrets.token_hex(_PBKDF2_SALT_BYTES)
        derived = _pbkdf2(password, salt, self.pbkdf2_iterations)
        return f"{salt}:{derived.hex()}"

    def verify(self, password: str, hash_record: str) -> bool:
        """Return True if password matches hash_record. Never raises."""
        try:
            if _is_bcrypt(hash_record):
                return bcrypt.checkpw(password.encode("utf-8"), hash_record.encode("utf-8"))
            salt, expected = _parse_pbkdf2(hash_record)
            candidate = _pbkdf2(password, salt, self.pbkdf2_iterations)
            return hmac.compare_digest(candidate, expected)
        except CorruptCredential:
            logger.warning("Stored credential could not be parsed; treating as mismatch")
            return False
        except (ValueError, TypeError):
            # bcrypt raises ValueError on malformed salts and over-long input.
            return False

    def needs_rehash(self, hash_record: str) -> bool:
        if _is_bcrypt(hash_record):
            if self.scheme is not PasswordScheme.bcrypt:
                return True
            try:
                cost = int(hash_record.split("$")[2])
            except (IndexError, ValueError):
                return True
            return cost < self.bcrypt_rounds
        # PBKDF2 records do not carry their iteration count; they are
        # rehashed only when the configured scheme moved away from them.
        return self.scheme is not PasswordScheme.pbkdf2_sha512

    def dummy_verify(self, password: str) -> None:
        """Burn the same CPU as a real verify [C1].

        Called for unknown usernames so the response time of a failed login
        does not reveal whether the account exists. The dummy record is
        computed once, on first use, under the current scheme.

        Limit: this only equalizes against records of the current scheme. A
        known user still holding a legacy PBKDF2 record verifies faster than
        a bcrypt dummy, so failed-login timing can mark legacy accounts. The
        gap closes as AuthService.login upgrades those records.
        """
        if self._dummy_hash is None:
            self._dummy_hash = self.hash(secrets.token_urlsafe(16))
        self.verify(password, self._dummy_hash)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _is_bcrypt(hash_record: str) -> bool:
    return isinstance(hash_record, str) and hash_record.startswith(_BCRYPT_PREFIXES)


def _pbkdf2(password: str, salt_hex: str, iterations: int) -> bytes:
    # The salt is used as its hex text, not decoded bytes, matching how the
    # existing records were produced.
    return hashlib.pbkdf2_hmac(
        _PBKDF2_DIGEST, password.encode("utf-8"), salt_hex.encode("ascii"), iterations, _PBKDF2_KEY_BYTES
    )


def _parse_pbkdf2(hash_record: str) -> tuple[str, bytes]:
    """Split a "salt:hash" record. Raises CorruptCredential on any defect."""
    if not isinstance(hash_record, str):
        raise CorruptCredential("hash record is not a string")
    parts = hash_record.split(":")
    if len(parts) != 2:
        raise CorruptCredential(f"expected 2 fields, got {len(parts)}")
    salt, derived_hex = parts
    if len(salt) != _PBKDF2_SALT_BYTES * 2 or len(derived_hex) != _PBKDF2_KEY_BYTES * 2:
        raise CorruptCredential("unexpected field length")
    try:
        bytes.fromhex(salt)
        derived = bytes.fromhex(derived_hex)
    except ValueError as exc:
        raise CorruptCredential("field is not hex") from exc
    return salt, derived
