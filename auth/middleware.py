"""
auth/middleware.py -- Attach session state to every request (SessionMiddleware).

Pattern: Interceptor. Every request passes through dispatch() before any
route handler or guard. The middleware never rejects a request; it only
decides what request.state.session is:

  1. No "sessionId" cookie, or not "<id>.<signature>"  -> None
  2. Signature does not verify                        -> None
  3. No live record in the store                      -> None (stale entry removed)
  4. Otherwise                                        -> SessionContext

Guards in auth/dependencies.py decide what an anonymous request may do.

resolve_session() holds the whole algorithm as a plain function so it can be
tested without an ASGI stack. It has no side effects beyond deleting a stale
store entry, so running it twice yields the same context.

Layer rule: no imports from api/, web/, or library/.
"""

from __future__ import annotations

import logging

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from auth.models import SessionContext
from auth.sessions import SessionStore
from auth.signing import SessionSigner

logger = logging.getLogger("reelguard.auth")

SESSION_COOKIE = "sessionId"


def split_cookie(cookie_value: str | None) -> tuple[str, str] | None:
    """Split "<session_id>.<signature>". Returns None when malformed."""
    if not cookie_value:
        return None
    parts = cookie_value.split(".")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        return None
    return parts[0], parts[1]


def resolve_session(cookie_value: str | None, signer: SessionSigner, store: SessionStore) -> SessionContext | None:
    parts = split_cookie(cookie_value)
    if parts is None:
        return None
    session_id, signature = parts
    if not signer.verify(session_id, signature):
        logger.debug("Ignoring session cookie with invalid signature")
        return None
    # get() deletes an expired record on the way out.
    record = store.get(session_id)
    if record is None:
        return None
    return SessionContext.from_record(record)


class SessionMiddleware(BaseHTTPMiddleware):
    """Starlette middleware wrapper around resolve_session().

    The signer and store are injected at construction:
        app.add_middleware(SessionMiddleware, signer=signer, store=session_store)
    """

    def __init__(
        self,
        app: ASGIApp,
        signer: SessionSigner,
        store: SessionStore,
        cookie_name: str = SESSION_COOKIE,
    ) -> None:
        super().__init__(app)
        self.signer = signer
        self.store = store
        self.cookie_name = cookie_name

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request.state.session = resolve_session(request.cookies.get(self.cookie_name), self.signer, self.store)
        return await call_next(request)
