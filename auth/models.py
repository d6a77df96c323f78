"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in catalog/models.py -- dataclasses own domain shape; stores, the codec and
the gates do the work.

Layer rule: no imports from api/, core/, or catalog/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """A principal known to the grader.

    hashed_password is a bcrypt hash; the plaintext is never stored.
    is_admin gates privileged operations such as creating tasks.
    """

    username: str
    id: int | None = None
    hashed_password: str | None = None
    is_admin: bool = False
    created_at: str | None = None


@dataclass(frozen=True)
class TokenClaims:
    """Decoded claim set of a verified token.

    issued_at / expires_at are unix seconds, exactly as carried in iat / exp.
    """

    user_id: int
    username: str
    jti: str
    issued_at: int
    expires_at: int


@dataclass(frozen=True)
class IssuedToken:
    """Result of TokenCodec.issue().

    jti is returned next to the serialized token because the caller must
    register it with the SessionStore before handing the token out.
    """

    token: str
    jti: str
    issued_at: int
    expires_at: int


@dataclass(frozen=True)
class AuthContext:
    """What the Authentication Gate hands to a protected operation."""

    user: User
    claims: TokenClaims
