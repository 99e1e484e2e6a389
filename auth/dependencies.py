"""
auth/dependencies.py -- FastAPI Depends() guards for authentication and authorization.

All guards read request.state.session, which SessionMiddleware has already
set to a SessionContext or None. They never touch cookies themselves.

try_get_session() is the soft variant (returns None when anonymous).
require_auth() raises Unauthenticated (401 JSON).
require_admin() wraps require_auth() and raises Forbidden (403) if not admin.
check_ownership(resource_type) builds a guard that lets the resource's
  creator or any admin through, and raises NotFound / Forbidden otherwise.

Page-style routes declare require_page_auth / require_page_admin instead.
The check is the same; the raised errors are tagged Interface.page so the
exception handlers answer with a redirect to /login or a plain-text 403.

Guards short-circuit: the first failing check raises before any later check
runs and before the route body executes.

Layer rule: no imports from web/ or library/. Resource stores are looked up
on app.state.resource_stores, registered by api/main.create_app().
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol

from fastapi import Request

from auth.errors import Forbidden, Interface, NotFound, Unauthenticated
from auth.models import Role, SessionContext


class OwnedResourceStore(Protocol):
    """What check_ownership needs from a CRUD collaborator."""

    def find_by_id(self, resource_id: int) -> Any | None: ...


def try_get_session(request: Request) -> SessionContext | None:
    """Return the request's SessionContext, or None. Never raises."""
    return getattr(request.state, "session", None)


def _authenticated(request: Request, interface: Interface) -> SessionContext:
    session = try_get_session(request)
    if session is None or session.user_id is None:
        raise Unauthenticated(interface=interface)
    return session


def _admin(request: Request, interface: Interface) -> SessionContext:
    session = _authenticated(request, interface)
    if session.role is not Role.admin:
        raise Forbidden("Admin access required.", interface=interface)
    return session


def require_auth(request: Request) -> SessionContext:
    """Require authentication. Raises Unauthenticated (401) otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(session: SessionContext = Depends(require_auth)): ...
    """
    return _authenticated(request, Interface.api)


def require_admin(request: Request) -> SessionContext:
    """Require admin role. 401 if unauthenticated, 403 if not admin."""
    return _admin(request, Interface.api)


def require_page_auth(request: Request) -> SessionContext:
    return _authenticated(request, Interface.page)


def require_page_admin(request: Request) -> SessionContext:
    return _admin(request, Interface.page)


def check_ownership(resource_type: str, id_param: str | None = None) -> Callable[[Request], SessionContext]:
    """Build a guard allowing only the resource's creator or an admin.

    resource_type names the store in app.state.resource_stores and appears in
    error messages. id_param is the path parameter holding the resource id
    (default "<resource_type>_id").

    Admins pass without a lookup. For everyone else the resource is fetched;
    a missing resource (or an id that is not an integer) is NotFound, and a
    created_by that differs from the session's user_id is Forbidden.
    """
    param = id_param or f"{resource_type}_id"
    label = resource_type.capitalize()

    def guard(request: Request) -> SessionContext:
        session = _authenticated(request, Interface.api)
        if session.role is Role.admin:
            return session

        store: OwnedResourceStore = request.app.state.resource_stores[resource_type]
        try:
            resource_id = int(request.path_params[param])
        except (KeyError, TypeError, ValueError):
            raise NotFound(f"{label} not found.") from None
        resource = store.find_by_id(resource_id)
        if resource is None:
            raise NotFound(f"{label} not found.")
        if resource.created_by != session.user_id:
            raise Forbidden(f"Access denied: you can only modify your own {resource_type}s.")
        return session

    guard.__name__ = f"check_{resource_type}_ownership"
    return guard
