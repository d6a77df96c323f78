"""
api/routes/v1/auth.py -- Signup, login, logout and identity endpoints.

Routes:
  POST /api/v1/auth/signup      -- create account; returns bearer token (public)
  POST /api/v1/auth/login       -- password login; returns bearer token (public)
  POST /api/v1/auth/logout      -- revoke the presented token's session
  POST /api/v1/auth/logout-all  -- revoke every session of the caller
  GET  /api/v1/auth/me          -- current user info (requires auth)

Security:
  [H2] signup and login are rate-limited per IP (LOGIN_RATE_LIMIT).
  [C1] login goes through auth.service.login -> authenticate_user(), which
       equalizes timing between unknown usernames and wrong passwords.
  [M5] Cache-Control: no-store on every response that carries a token.
  Tokens are only returned after their session is registered; a session
  store failure is a 500 with no token.
"""

from __future__ import annotations

import time

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from api.limiter import LOGIN_RATE_LIMIT, limiter
from api.models import Credentials, LogoutResponse, MeResponse, TokenResponse
from auth import service
from auth.dependencies import get_auth_context
from auth.errors import BadCredentials, InternalFailure, UsernameTaken
from auth.models import AuthContext, IssuedToken, User
from core.config import get_settings

router = APIRouter()


def _internal_error() -> HTTPException:
    return HTTPException(
        status_code=500,
        detail={"code": "internal_error", "message": "An unexpected error occurred."},
    )


def _token_response(user: User, issued: IssuedToken, status_code: int) -> JSONResponse:
    resp = JSONResponse(
        status_code=status_code,
        content=TokenResponse(
            access_token=issued.token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=max(issued.expires_at - int(time.time()), 0),
            user_id=user.id,
            username=user.username,
        ).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@limiter.limit(LOGIN_RATE_LIMIT)  # [H2] must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/signup", response_model=TokenResponse, status_code=201)
def signup(request: Request, body: Credentials) -> JSONResponse:
    """Create an account and log it in. 409 if the username is taken."""
    if not get_settings().self_registration_enabled:
        raise HTTPException(
            status_code=403,
            detail={"code": "registration_disabled", "message": "Self-registration is disabled."},
        )
    state = request.app.state
    try:
        user, issued = service.signup(state.user_store, state.codec, state.sessions, body.username, body.password)
    except UsernameTaken as exc:
        raise HTTPException(
            status_code=409,
            detail={"code": "conflict", "message": "A user with that username already exists."},
        ) from exc
    except InternalFailure as exc:
        raise _internal_error() from exc
    return _token_response(user, issued, 201)


@limiter.limit(LOGIN_RATE_LIMIT)  # [H2]
@router.post("/auth/login", response_model=TokenResponse)
def login(request: Request, body: Credentials) -> JSONResponse:
    """Authenticate with username and password and open a new session.

    Returns the same generic error for wrong username and wrong password
    ("bad_credentials") to avoid leaking username existence information.
    Earlier sessions of the same user remain valid.
    """
    state = request.app.state
    try:
        user, issued = service.login(state.user_store, state.codec, state.sessions, body.username, body.password)
    except BadCredentials:
        resp = JSONResponse(
            status_code=401,
            content={"error": {"code": "bad_credentials", "message": "Invalid username or password."}},
        )
        resp.headers["Cache-Control"] = "no-store"  # [M5]
        return resp
    except InternalFailure as exc:
        raise _internal_error() from exc
    return _token_response(user, issued, 200)


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/logout", response_model=LogoutResponse)
def logout(request: Request, ctx: AuthContext = Depends(get_auth_context)) -> LogoutResponse:
    """Revoke the session of the token used for this request.

    The token stays cryptographically valid until exp, but the gate rejects it
    from now on because its jti is no longer registered.
    """
    try:
        service.logout(request.app.state.sessions, ctx)
    except InternalFailure as exc:
        raise _internal_error() from exc
    return LogoutResponse(message="Logged out.")


@router.post("/auth/logout-all", response_model=LogoutResponse)
def logout_all(request: Request, ctx: AuthContext = Depends(get_auth_context)) -> LogoutResponse:
    """Revoke every session of the caller, on every device."""
    try:
        count = service.logout_everywhere(request.app.state.sessions, ctx)
    except InternalFailure as exc:
        raise _internal_error() from exc
    return LogoutResponse(message="Logged out everywhere.", sessions_closed=count)


@router.get("/auth/me", response_model=MeResponse)
def me(ctx: AuthContext = Depends(get_auth_context)) -> MeResponse:
    """Return identity information for the currently authenticated user."""
    return MeResponse(
        user_id=ctx.user.id,
        username=ctx.user.username,
        is_admin=ctx.user.is_admin,
        session_expires_at=ctx.claims.expires_at,
    )
