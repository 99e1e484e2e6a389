"""
web/routes.py -- Jinja2 template routes for the ReelGuard web UI.

These routes serve server-rendered HTML. They share app.state with the API
routes (same AuthService, stores and session store) but return HTML and
redirects instead of JSON.

Guards here are the page-style variants (require_page_auth,
require_page_admin): an anonymous visitor is redirected to /login?next=<path>
and a non-admin gets a plain-text 403, instead of the JSON envelope.

Routes:
  GET  /             -- home: current identity and latest movies (auth required)
  GET  /admin/users  -- user list (admin required)
  GET  /login        -- login form
  POST /login        -- handle password login, redirect to ?next
  POST /logout       -- delete the session, clear cookie, redirect /login
"""

from pathlib import Path
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from auth.dependencies import require_page_admin, require_page_auth, try_get_session
from auth.errors import InvalidCredentials
from auth.models import SessionContext
from auth.service import AuthService, clear_session_cookie, set_session_cookie

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
# layout.html calls try_get_session(request) to render the nav bar.
templates.env.globals["try_get_session"] = try_get_session
router = APIRouter()

_HOME_MOVIE_COUNT = 10

# Whitelist mapping for ?error= query params on /login [M3].
# The raw query param is NEVER passed to templates -- only the message from
# this dict is. Prevents reflected XSS via crafted error query strings.
_ERROR_MESSAGES: dict[str, str] = {
    "invalid_credentials": "Invalid username or password.",
}


def _safe_next(next_url: Optional[str]) -> str:
    """Validate a post-login redirect target. Only accept relative paths. [C2]

    Rejects absolute URLs and protocol-relative URLs ("//evil.example"),
    both of which would send the browser off-site after login.
    """
    if next_url and next_url.startswith("/") and not next_url.startswith("//"):
        return next_url
    return "/"


# ---------------------------------------------------------------------------
# Protected pages
# ---------------------------------------------------------------------------


@router.get("/", response_class=HTMLResponse)
def home(request: Request, session: SessionContext = Depends(require_page_auth)) -> HTMLResponse:
    movies = request.app.state.movie_store.list_movies(limit=_HOME_MOVIE_COUNT)
    return templates.TemplateResponse(request, "home.html", {"session": session, "movies": movies})


@router.get("/admin/users", response_class=HTMLResponse)
def admin_users(request: Request, session: SessionContext = Depends(require_page_admin)) -> HTMLResponse:
    service: AuthService = request.app.state.auth_service
    return templates.TemplateResponse(request, "admin_users.html", {"users": service.list_users()})


# ---------------------------------------------------------------------------
# Login / logout
# ---------------------------------------------------------------------------


@router.get("/login", response_class=HTMLResponse)
def login_form(request: Request) -> HTMLResponse:
    """Render the login page. Already-authenticated users go to /."""
    if try_get_session(request) is not None:
        return RedirectResponse("/", status_code=302)

    error_msg = _ERROR_MESSAGES.get(request.query_params.get("error", ""))
    return templates.TemplateResponse(
        request,
        "login.html",
        {"error_msg": error_msg, "next": _safe_next(request.query_params.get("next"))},
    )


@router.post("/login", response_class=HTMLResponse)
def login_post(
    request: Request,
    username: str = Form(default=""),
    password: str = Form(default=""),
    next: str = Form(default="/"),
) -> RedirectResponse:
    """Handle username/password login form submission."""
    service: AuthService = request.app.state.auth_service
    next_url = _safe_next(next)  # [C2]
    try:
        _user, record = service.login(username, password)  # [C1] timing equalization
    except InvalidCredentials:
        return RedirectResponse(f"/login?error=invalid_credentials&next={quote(next_url)}", status_code=302)

    settings = request.app.state.settings
    resp = RedirectResponse(next_url, status_code=302)
    set_session_cookie(resp, record, max_age=settings.session_ttl_seconds, secure=settings.cookie_secure)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@router.post("/logout")
def logout(request: Request) -> RedirectResponse:
    """Delete the server-side session, clear the cookie and go to /login."""
    service: AuthService = request.app.state.auth_service
    service.logout(try_get_session(request))
    resp = RedirectResponse("/login", status_code=302)
    clear_session_cookie(resp, secure=request.app.state.settings.cookie_secure)
    return resp
