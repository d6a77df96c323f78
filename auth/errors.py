"""
auth/errors.py -- Exception taxonomy for the authentication subsystem.

TokenCodec and SessionStore raise the narrow types. Only auth/gate.py,
auth/service.py and the FastAPI layer translate them into user-visible
rejections, and the HTTP layer never echoes store details for InternalFailure.

Layer rule: stdlib only.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for every authentication/authorization failure."""


# ---------------------------------------------------------------------------
# Codec failures
# ---------------------------------------------------------------------------


class TokenError(AuthError):
    """The presented token cannot be trusted. Callers treat all subclasses alike."""


class MalformedToken(TokenError):
    pass


class InvalidSignature(TokenError):
    pass


class UnsupportedAlgorithm(TokenError):
    pass


class TokenExpired(TokenError):
    pass


# ---------------------------------------------------------------------------
# Gate outcomes
# ---------------------------------------------------------------------------


class Unauthenticated(AuthError):
    """No usable identity: bad token, revoked session, or vanished principal."""


class BadCredentials(Unauthenticated):
    """Username/password login failed. Deliberately silent about which half was wrong."""


class Forbidden(AuthError):
    """Authenticated, but not allowed to perform the operation."""


class UsernameTaken(AuthError):
    pass


class InternalFailure(AuthError):
    """A backing store failed or timed out. Details go to the log, not the caller."""


class SessionStoreError(InternalFailure):
    pass
