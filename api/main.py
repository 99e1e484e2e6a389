"""
api/main.py -- FastAPI application factory for ReelGuard.

Run with:  uvicorn asgi:app --reload

create_app() builds one fully wired application. Everything with state is
created here and handed to its consumers explicitly -- the session store in
particular is shared by SessionMiddleware, AuthService and the sweep task,
and tests inject their own via create_app(session_store=...).

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter
  4. SessionMiddleware     -- resolves the sessionId cookie into request.state.session
  5. log_requests          -- one access log line per request

Lifespan handles startup (stores, auth service, sweep task) and shutdown
(cancel sweep task, close the stores this app opened) symmetrically.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.movies import router as movies_router
from auth.errors import AuthError, Forbidden, Interface, Unauthenticated, ValidationError
from auth.middleware import SessionMiddleware
from auth.passwords import CredentialHasher
from auth.service import AuthService
from auth.sessions import InMemorySessionStore, SessionStore
from auth.signing import SessionSigner
from auth.store import UserStore
from core.config import Settings, get_settings
from library.store import MovieStore

APP_VERSION = "1.0.0"

logger = logging.getLogger("reelguard.api")


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


# ---------------------------------------------------------------------------
# Background sweep task
# ---------------------------------------------------------------------------


async def _sweep_loop(store: SessionStore, interval: int) -> None:
    """Remove expired sessions every `interval` seconds.

    The sweep takes the store lock, so it runs in a worker thread to keep the
    event loop free. CancelledError from task.cancel() during shutdown
    propagates out of asyncio.sleep and unwinds the coroutine cleanly.
    """
    while True:
        await asyncio.sleep(interval)
        try:
            await asyncio.to_thread(store.sweep)
        except Exception:
            logger.exception("Session sweep failed")


# ---------------------------------------------------------------------------
# Error rendering
# ---------------------------------------------------------------------------


def _error_response(status_code: int, detail: ErrorDetail) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=detail).model_dump(exclude_none=True),
    )


async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Render AuthError subclasses.

    Page guards: Unauthenticated -> 302 /login?next=<path>, Forbidden ->
    plain-text 403. Everything else uses the JSON envelope; ValidationError
    adds the full list of violated rules under error.errors.
    """
    interface = getattr(exc, "interface", Interface.api)
    if interface is Interface.page:
        if isinstance(exc, Unauthenticated):
            return RedirectResponse(f"/login?next={request.url.path}", status_code=302)
        if isinstance(exc, Forbidden):
            return PlainTextResponse(exc.message, status_code=403)
    return _error_response(
        exc.status_code,
        ErrorDetail(
            code=exc.code,
            message=exc.message,
            errors=exc.errors if isinstance(exc, ValidationError) else None,
        ),
    )


def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded.

    Sync on purpose: SlowAPIMiddleware calls this handler directly (without
    awaiting it) when the limited endpoint is a sync function.
    """
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error_response(
        429,
        ErrorDetail(code="rate_limited", message="Too many requests.", detail=str(exc.detail)),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation."""
    return _error_response(
        422,
        ErrorDetail(
            code="validation_error",
            message="Request validation failed.",
            detail=str(exc.errors()),
        ),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
    return _error_response(exc.status_code, ErrorDetail(code=f"http_{exc.status_code}", message=str(exc.detail)))


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(500, ErrorDetail(code="internal_error", message="An unexpected error occurred."))


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def create_app(
    settings: Optional[Settings] = None,
    *,
    session_store: Optional[SessionStore] = None,
    user_store: Optional[UserStore] = None,
    movie_store: Optional[MovieStore] = None,
) -> FastAPI:
    """Build the ReelGuard application.

    Stores passed in are used as-is and left open on shutdown (the caller
    owns them). Stores not passed in are created from settings.database_url
    during lifespan startup and closed on shutdown.
    """
    settings = settings or get_settings()
    _configure_logging(settings.log_level)

    signer = SessionSigner(settings.session_secret)
    sessions = session_store if session_store is not None else InMemorySessionStore()
    hasher = CredentialHasher(
        scheme=settings.password_scheme,
        bcrypt_rounds=settings.bcrypt_rounds,
        pbkdf2_iterations=settings.pbkdf2_iterations,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("ReelGuard API starting up (env=%s)", settings.app_env.value)
        owned = []
        users = user_store
        if users is None:
            users = UserStore(settings.database_url)
            owned.append(users)
        movies = movie_store
        if movies is None:
            movies = MovieStore(settings.database_url)
            owned.append(movies)

        app.state.user_store = users
        app.state.movie_store = movies
        app.state.resource_stores = {"movie": movies}
        app.state.auth_service = AuthService(
            user_store=users,
            hasher=hasher,
            signer=signer,
            session_store=sessions,
            session_ttl=settings.session_ttl_seconds,
        )
        # Compute the dummy hash now so the first unknown-username login is
        # not measurably slower than later ones [C1].
        await asyncio.to_thread(hasher.dummy_verify, "")
        sweep_task = asyncio.create_task(_sweep_loop(sessions, settings.session_sweep_interval_seconds))
        logger.info("Session sweep scheduled every %ds", settings.session_sweep_interval_seconds)

        yield

        sweep_task.cancel()
        for store in owned:
            store.close()
        logger.info("ReelGuard API shutdown complete")

    app = FastAPI(
        title="ReelGuard API",
        description="Session authentication and role-based access control for a movie library.",
        version=APP_VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.session_store = sessions
    app.state.signer = signer
    # SlowAPI looks for app.state.limiter by convention.
    app.state.limiter = limiter

    # -----------------------------------------------------------------------
    # Middleware stack. add_middleware() wraps the existing stack, so the
    # LAST registration is the outermost layer: register innermost first.
    # -----------------------------------------------------------------------

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        ms = (time.perf_counter() - start) * 1000
        logger.info(
            "%s %s %d %.1fms %s",
            request.method,
            request.url.path,
            response.status_code,
            ms,
            request.client.host if request.client else "unknown",
        )
        return response

    app.add_middleware(SessionMiddleware, signer=signer, store=sessions)
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type"],
        max_age=3600,
    )
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.allowed_hosts)

    # -----------------------------------------------------------------------
    # Exception handlers -- one ErrorResponse envelope for every JSON error.
    # -----------------------------------------------------------------------

    app.add_exception_handler(AuthError, auth_error_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    # -----------------------------------------------------------------------
    # Routers
    # -----------------------------------------------------------------------

    app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
    app.include_router(movies_router, prefix="/api/v1", tags=["Movies"])
    # Web UI router is mounted by asgi.py, not here.

    @app.get("/api/v1/health", tags=["Health"])
    def health(request: Request) -> HealthResponse:
        """Liveness plus a cheap probe of each dependency. No auth, no rate limit."""
        components = {"app": "ok"}
        try:
            request.app.state.user_store.has_users()
            components["database"] = "ok"
        except SQLAlchemyError:
            logger.warning("Health check: database unreachable", exc_info=True)
            components["database"] = "error"
        components["sessions"] = f"{len(request.app.state.session_store)} active"
        return HealthResponse(version=APP_VERSION, components=components)

    return app
