"""
auth/service.py -- Register / login / logout / whoami / list-users orchestration.

AuthService wires the four auth building blocks together. The JSON routes in
api/routes/v1/auth.py and the page routes in web/routes.py both call it, so
the security-relevant sequencing lives in exactly one place:

  register: validate everything -> hash -> INSERT (UNIQUE constraint decides
            duplicates) -> mint session
  login:    lookup -> verify (dummy verify for unknown users [C1]) ->
            optional rehash -> mint session
  logout:   delete session; idempotent

Minting a session = SessionSigner.issue() + SessionStore.set(). The caller
writes the cookie with set_session_cookie().

Layer rule: no imports from api/, web/, or library/. fastapi/starlette are
imported only for the Response type used by the cookie helpers.
"""

from __future__ import annotations

import logging
import re

from sqlalchemy.exc import IntegrityError
from starlette.responses import Response

from auth.errors import InvalidCredentials, Unauthenticated, ValidationError
from auth.middleware import SESSION_COOKIE
from auth.models import Role, SessionContext, SessionRecord, User
from auth.passwords import MAX_PASSWORD_BYTES, CredentialHasher
from auth.sessions import SessionStore
from auth.signing import SessionSigner
from auth.store import UserStore
from core.config import PasswordScheme

logger = logging.getLogger("reelguard.auth")

MIN_USERNAME_LENGTH = 3
MIN_PASSWORD_LENGTH = 6
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def validate_registration(username: str | None, password: str | None, email: str | None) -> list[str]:
    """Return every violated registration rule (empty list = valid)."""
    errors: list[str] = []
    if not username or len(username.strip()) < MIN_USERNAME_LENGTH:
        errors.append(f"Username must be at least {MIN_USERNAME_LENGTH} characters long")
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    elif len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        errors.append(f"Password must be at most {MAX_PASSWORD_BYTES} bytes long")
    if email and not EMAIL_PATTERN.match(email.strip()):
        errors.append("Invalid email format")
    return errors


class AuthService:
    def __init__(
        self,
        *,
        user_store: UserStore,
        hasher: CredentialHasher,
        signer: SessionSigner,
        session_store: SessionStore,
        session_ttl: int,
    ) -> None:
        self.user_store = user_store
        self.hasher = hasher
        self.signer = signer
        self.session_store = session_store
        self.session_ttl = session_ttl

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def register(self, username: str | None, password: str | None, email: str | None = None) -> tuple[User, SessionRecord]:
        """Create a role=user account and log it in.

        Raises ValidationError listing every violated rule, or
        ["Username already exists"] when the UNIQUE constraint fires.
        """
        errors = validate_registration(username, password, email)
        if errors:
            raise ValidationError(errors)

        user = User(
            username=username.strip(),
            hashed_password=self.hasher.hash(password),
            email=email,
            role=Role.user,
        )
        try:
            user_id = self.user_store.create_user(user)
        except IntegrityError as exc:
            raise ValidationError(["Username already exists"]) from exc

        created = self.user_store.get_by_id(user_id)
        if created is None:
            raise RuntimeError(f"user {user_id} not found after insert")
        logger.info("Registered user id=%s", created.id)
        return created, self.start_session(created)

    def login(self, username: str | None, password: str | None) -> tuple[User, SessionRecord]:
        """Verify credentials and mint a session.

        Unknown username and wrong password raise the same InvalidCredentials
        after the same amount of hashing work [C1].
        """
        password = password or ""
        user = self.user_store.get_by_username(username.strip()) if username else None
        if user is None:
            self.hasher.dummy_verify(password)
            logger.info("Login failed")
            raise InvalidCredentials()
        if not self.hasher.verify(password, user.hashed_password):
            logger.info("Login failed")
            raise InvalidCredentials()

        if self.hasher.needs_rehash(user.hashed_password):
            self._upgrade_hash(user, password)

        logger.info("Login succeeded for user id=%s", user.id)
        return user, self.start_session(user)

    def logout(self, context: SessionContext | None) -> None:
        if context is not None:
            self.session_store.delete(context.session_id)
            logger.info("Logged out user id=%s", context.user_id)

    def whoami(self, context: SessionContext | None) -> SessionContext:
        if context is None:
            raise Unauthenticated()
        return context

    def list_users(self) -> list[User]:
        return self.user_store.list_users()

    def _upgrade_hash(self, user: User, password: str) -> None:
        """Re-hash a verified password under the current scheme.

        Legacy PBKDF2 records may hold passwords longer than bcrypt accepts.
        Those records are kept as they are; login still succeeds.
        """
        if self.hasher.scheme is PasswordScheme.bcrypt and len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            logger.warning("Password hash upgrade skipped for user id=%s: password exceeds bcrypt limit", user.id)
            return
        self.user_store.update_user(user.id, hashed_password=self.hasher.hash(password))
        logger.info("Upgraded password hash for user id=%s", user.id)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def start_session(self, user: User) -> SessionRecord:
        session_id, signature = self.signer.issue()
        record = SessionRecord(
            session_id=session_id,
            signature=signature,
            user_id=user.id,
            username=user.username,
            role=user.role,
        )
        return self.session_store.set(session_id, record, self.session_ttl)


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_session_cookie(response: Response, record: SessionRecord, max_age: int, secure: bool) -> None:
    """Write the session token cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="strict": never sent on cross-site requests (CSRF mitigation).
    secure: HTTPS only in production or when SECURE_COOKIES=true.
    max_age: matches the server-side TTL so both expire together.
    """
    response.set_cookie(
        SESSION_COOKIE,
        value=record.cookie_value,
        max_age=max_age,
        httponly=True,
        secure=secure,
        samesite="strict",
        path="/",
    )


def clear_session_cookie(response: Response, secure: bool) -> None:
    response.delete_cookie(SESSION_COOKIE, path="/", httponly=True, secure=secure, samesite="strict")
