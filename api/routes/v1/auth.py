"""
api/routes/v1/auth.py -- Authentication and user listing REST endpoints.

Routes:
  POST /api/v1/auth/register   -- create account (role=user); sets session cookie; 201
  POST /api/v1/auth/login      -- password login; sets session cookie
  POST /api/v1/auth/logout     -- deletes the session, clears cookie; always 200
  GET  /api/v1/auth/me         -- current session identity (requires auth)
  GET  /api/v1/auth/users      -- all users without hashes, newest first (admin only)

Security:
  [H2] register and login are rate-limited per client IP.
  [C1] AuthService.login() equalizes timing for unknown usernames -- never
       inline a user lookup + verify here.
  [M5] Cache-Control: no-store on every response that sets a session cookie.
  Login failures return one error for wrong username and wrong password
  ("invalid_credentials") so usernames cannot be enumerated.

register and login are sync handlers on purpose: password hashing is
CPU-bound and Starlette runs sync handlers in its thread pool instead of on
the event loop.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_limit
from api.models import AuthResponse, LoginRequest, MeResponse, MessageResponse, RegisterRequest, UserResponse, UserSummary
from auth.dependencies import require_admin, try_get_session
from auth.models import SessionContext
from auth.service import AuthService, clear_session_cookie, set_session_cookie
from core.config import Settings

# Auth policy:
# - POST /api/v1/auth/register: public
# - POST /api/v1/auth/login:    public
# - POST /api/v1/auth/logout:   public -- ending a session needs no prior auth
# - GET  /api/v1/auth/me:       requires auth (AuthService.whoami)
# - GET  /api/v1/auth/users:    requires admin (require_admin)
router = APIRouter()


def _credential_response(request: Request, status_code: int, message: str, service_result) -> JSONResponse:
    user, record = service_result
    settings: Settings = request.app.state.settings
    resp = JSONResponse(
        status_code=status_code,
        content=AuthResponse(message=message, user=UserSummary.from_user(user)).model_dump(mode="json"),
    )
    set_session_cookie(resp, record, max_age=settings.session_ttl_seconds, secure=settings.cookie_secure)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@limiter.limit(login_limit)  # [H2] must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/register", response_model=AuthResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create a role=user account and log it in.

    All validation failures come back together in error.errors. A taken
    username is reported the same way ("Username already exists").
    """
    service: AuthService = request.app.state.auth_service
    result = service.register(body.username, body.password, body.email)
    return _credential_response(request, 201, "User registered successfully", result)


@limiter.limit(login_limit)  # [H2]
@router.post("/auth/login", response_model=AuthResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with username and password; set the session cookie."""
    service: AuthService = request.app.state.auth_service
    result = service.login(body.username, body.password)
    return _credential_response(request, 200, "Login successful", result)


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request) -> JSONResponse:
    """Delete the current session (if any) and clear the cookie. Always 200."""
    service: AuthService = request.app.state.auth_service
    service.logout(try_get_session(request))
    resp = JSONResponse(content=MessageResponse(message="Logout successful").model_dump())
    clear_session_cookie(resp, secure=request.app.state.settings.cookie_secure)
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=MeResponse)
async def me(request: Request) -> MeResponse:
    """Return identity information for the current session (401 if none)."""
    service: AuthService = request.app.state.auth_service
    session = service.whoami(try_get_session(request))
    return MeResponse(user_id=session.user_id, username=session.username, role=session.role)


@router.get("/auth/users", response_model=list[UserResponse])
def list_users(request: Request, session: SessionContext = Depends(require_admin)) -> list[UserResponse]:
    """List all user accounts, newest first. Admin only."""
    service: AuthService = request.app.state.auth_service
    return [UserResponse.from_user(u) for u in service.list_users()]
