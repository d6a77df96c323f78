"""
auth/service.py -- Signup, login and logout flows.

Every flow that hands out a token goes through open_session(), which issues
the token and registers its jti before returning. If registration fails the
caller gets InternalFailure and no token: a token without a session record
would be rejected on first use anyway, so handing it out only hides the
outage.

Layer rule: no imports from api/, core/, or catalog/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import BadCredentials, InternalFailure, SessionStoreError, UsernameTaken
from auth.models import AuthContext, IssuedToken, User
from auth.sessions import SessionStore
from auth.store import UserStore
from auth.tokens import TokenCodec, authenticate_user, hash_password

logger = logging.getLogger("grader.auth")


def open_session(
    codec: TokenCodec,
    sessions: SessionStore,
    user: User,
    ttl: timedelta | None = None,
    now: datetime | None = None,
) -> IssuedToken:
    """Issue a token for user and register it as live.

    Raises SessionStoreError (an InternalFailure) if the session could not be
    recorded; no token escapes in that case.
    """
    issued = codec.issue(user, issued_at=now, ttl=ttl)
    sessions.register(user.id, issued.jti, issued.expires_at)
    logger.info("Opened session for user %s (expires %d)", user.id, issued.expires_at)
    return issued


def signup(
    users: UserStore,
    codec: TokenCodec,
    sessions: SessionStore,
    username: str,
    password: str,
) -> tuple[User, IssuedToken]:
    """Create a user and log them in.

    Raises:
        UsernameTaken:   username already registered.
        InternalFailure: directory or session store failed. If the session
                         could not be registered the new user is removed again.
    """
    user = User(username=username, hashed_password=hash_password(password))
    try:
        user.id = users.create_user(user)
    except IntegrityError as exc:
        raise UsernameTaken("A user with that username already exists.") from exc
    except SQLAlchemyError as exc:
        logger.exception("Signup failed for %r", username)
        raise InternalFailure("User directory unavailable.") from exc
    logger.info("Created user %s (%s)", user.id, username)
    try:
        issued = open_session(codec, sessions, user)
    except SessionStoreError:
        # No token was handed out, so the account must not outlive the failure
        # or a retry would hit UsernameTaken.
        _discard_user(users, user)
        raise
    return user, issued


def _discard_user(users: UserStore, user: User) -> None:
    try:
        users.delete_user(user.id)
    except SQLAlchemyError:
        logger.exception("Could not remove user %s after failed signup", user.id)
    else:
        logger.info("Removed user %s after failed signup", user.id)


def login(
    users: UserStore,
    codec: TokenCodec,
    sessions: SessionStore,
    username: str,
    password: str,
) -> tuple[User, IssuedToken]:
    """Verify username/password and open a new session.

    Earlier sessions of the same user stay live; each device keeps its own.

    Raises:
        BadCredentials:  unknown username or wrong password (indistinguishable).
        InternalFailure: directory or session store failed.
    """
    try:
        user = authenticate_user(users, username, password)
    except SQLAlchemyError as exc:
        logger.exception("Login lookup failed for %r", username)
        raise InternalFailure("User directory unavailable.") from exc
    if user is None:
        logger.info("Failed login for %r", username)
        raise BadCredentials("Invalid username or password.")
    return user, open_session(codec, sessions, user)


def logout(sessions: SessionStore, ctx: AuthContext) -> None:
    """Revoke the session the caller authenticated with."""
    sessions.revoke(ctx.user.id, ctx.claims.jti)
    logger.info("Closed session for user %s", ctx.user.id)


def logout_everywhere(sessions: SessionStore, ctx: AuthContext) -> int:
    """Revoke every session of the caller. Returns how many were closed."""
    count = sessions.revoke_all(ctx.user.id)
    logger.info("Closed %d session(s) for user %s", count, ctx.user.id)
    return count
