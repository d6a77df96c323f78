"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Credential transport is the Authorization: Bearer <token> header, and only
that. Cookies are not read.

get_auth_context() runs the AuthGate and maps its outcomes to HTTP:
  Unauthenticated -> 401 (WWW-Authenticate: Bearer)
  InternalFailure -> 500 with a generic body; details stay in the log
get_current_user() narrows the context to the User.
require_admin() adds the authorization gate: 403 if not admin.

Layer rule: no imports from core/ or catalog/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.errors import Forbidden, InternalFailure, Unauthenticated
from auth.gate import AuthGate
from auth.gate import require_admin as _require_admin
from auth.models import AuthContext, User

_UNAUTHORIZED = {"code": "unauthorized", "message": "Authentication required."}


def _unauthorized() -> HTTPException:
    return HTTPException(status_code=401, detail=_UNAUTHORIZED, headers={"WWW-Authenticate": "Bearer"})


def bearer_token(request: Request) -> str | None:
    """Return the token from 'Authorization: Bearer <token>', or None.

    The scheme match is case-insensitive; anything other than exactly a
    scheme and a non-empty token counts as no credential.
    """
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token or " " in token:
        return None
    return token


def get_auth_context(request: Request) -> AuthContext:
    """Require a live, valid bearer token. Raises HTTP 401 or 500.

    Use as a FastAPI dependency when the route needs the token claims too
    (e.g. logout, which revokes the presented jti):
        @router.post("/logout")
        def route(ctx: AuthContext = Depends(get_auth_context)): ...
    """
    token = bearer_token(request)
    if token is None:
        raise _unauthorized()
    gate: AuthGate = request.app.state.auth_gate
    try:
        return gate.authenticate(token)
    except Unauthenticated as exc:
        raise _unauthorized() from exc
    except InternalFailure as exc:
        raise HTTPException(
            status_code=500,
            detail={"code": "internal_error", "message": "An unexpected error occurred."},
        ) from exc


def get_current_user(request: Request) -> User:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(user: User = Depends(get_current_user)): ...
    """
    return get_auth_context(request).user


def require_admin(request: Request) -> User:
    """Require admin rights. Raises HTTP 401 if unauthenticated, HTTP 403 if not admin.

    Use as a FastAPI dependency:
        @router.post("/admin-only")
        async def route(user: User = Depends(require_admin)): ...
    """
    user = get_current_user(request)
    try:
        return _require_admin(user)
    except Forbidden as exc:
        raise HTTPException(
            status_code=403,
            detail={"code": "forbidden", "message": "Admin access required."},
        ) from exc
