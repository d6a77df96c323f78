"""
auth/gate.py -- Request-time authentication and authorization.

AuthGate.authenticate() is the single path every protected operation goes
through. It runs, in order, and stops at the first rejection:

  1. parse     -- TokenCodec verifies header, algorithm, signature, expiry.
  2. liveness  -- SessionStore confirms this exact jti is still registered.
  3. resolve   -- UserStore loads the principal by id.

Liveness is checked before the directory lookup so a revoked but otherwise
valid token never costs a database round-trip. Nothing is retried.

require_admin() is the authorization gate composed after authenticate(). It
is a pure function of the User.

Both gates raise auth.errors types; auth/dependencies.py maps those to HTTP.

Layer rule: no imports from api/, core/, or catalog/.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError

from auth.errors import Forbidden, InternalFailure, TokenError, Unauthenticated
from auth.models import AuthContext, User
from auth.sessions import SessionStore
from auth.store import UserStore
from auth.tokens import TokenCodec

logger = logging.getLogger("grader.auth")


class AuthGate:
    """Turns a bearer token into an AuthContext or a typed rejection.

    Holds references to shared collaborators only; no per-request state, so
    one instance serves all concurrent requests.
    """

    def __init__(self, codec: TokenCodec, sessions: SessionStore, users: UserStore) -> None:
        self.codec = codec
        self.sessions = sessions
        self.users = users

    def authenticate(self, token: str) -> AuthContext:
        """Return the AuthContext for token.

        Raises:
            Unauthenticated: token invalid/expired, session not live, or the
                             user no longer exists.
            InternalFailure: the user directory failed.
        """
        try:
            claims = self.codec.parse(token)
        except TokenError as exc:
            logger.info("Rejected token: %s", type(exc).__name__)
            raise Unauthenticated("Invalid or expired token.") from exc

        if not self.sessions.is_live(claims.user_id, claims.jti):
            logger.info("Rejected token for user %s: session not live", claims.user_id)
            raise Unauthenticated("Session is no longer valid.")

        try:
            user = self.users.get_by_id(claims.user_id)
        except SQLAlchemyError as exc:
            logger.exception("User lookup failed for user %s", claims.user_id)
            raise InternalFailure("User directory unavailable.") from exc
        if user is None:
            logger.info("Rejected token for user %s: user no longer exists", claims.user_id)
            raise Unauthenticated("Session is no longer valid.")

        return AuthContext(user=user, claims=claims)


def require_admin(user: User) -> User:
    """Pass user through unchanged if they are an admin, else raise Forbidden."""
    if not user.is_admin:
        logger.info("Denied admin operation to user %s", user.id)
        raise Forbidden("Admin access required.")
    return user
