"""
auth/tokens.py -- Token codec and password hashing.

Security design decisions:
  JWT: python-jose, HS256 by default. Tokens are signed with the key from an
       immutable TokenConfig and carry user_id, username (sub), a per-issue
       jti, iat and exp. parse() reports *why* a token was rejected through
       distinct TokenError subclasses; the gate collapses them all to 401.

  Algorithm pinning: the header alg must equal the configured algorithm
       before any key material is used. This blocks "alg": "none" and any
       attempt to make the server verify with a different algorithm than the
       one it signs with.

  Check order: header -> alg -> signature -> claims. A token that is both
       expired and tampered reports InvalidSignature, because nothing in an
       unverified claim set is worth reporting on.

  Passwords: bcrypt with a per-hash salt. Plaintext passwords are never
       stored or compared directly. The _DUMMY_HASH constant enables timing
       equalization in authenticate_user() so response time does not reveal
       whether a username exists [C1].

Layer rule: no imports from api/ or catalog/. Import from core/ is allowed --
core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwk, jwt
from jose.utils import base64url_decode, base64url_encode

from auth.errors import InvalidSignature, MalformedToken, TokenExpired, UnsupportedAlgorithm
from auth.models import IssuedToken, TokenClaims
from core.config import TokenConfig

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    Passwords longer than 72 bytes are silently truncated by bcrypt. The API
    layer caps password length well below that (Pydantic max_length).
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Corrupt or non-bcrypt hash in the DB -- treat as a mismatch.
        return False


# Timing equalization dummy hash [C1]. Computed once at module load so the
# first login attempt is not measurably slower than subsequent ones.
_DUMMY_HASH: str = hash_password("grader_timing_dummy")


def authenticate_user(store: UserStore, username: str, password: str) -> User | None:
    """Authenticate a username/password login with timing equalization.

    Always runs bcrypt whether or not the user exists:
    - Unknown username: bcrypt runs against _DUMMY_HASH (same cost as real check)
    - Wrong password: bcrypt runs against the real hash (same cost)

    Returns the User on success, None on any credential mismatch. Store
    failures (SQLAlchemyError) propagate -- they are not a bad password.
    """
    user = store.get_by_username(username)
    if user is None or user.hashed_password is None:
        # Equalize timing -- do NOT return early before running bcrypt [C1]
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


# ---------------------------------------------------------------------------
# Token codec
# ---------------------------------------------------------------------------

_REQUIRED_CLAIMS = ("user_id", "sub", "jti", "iat", "exp")


class TokenCodec:
    """Issues and verifies signed, time-bounded bearer tokens.

    Stateless apart from the frozen TokenConfig, so one instance is shared by
    every request handler without locking.

    Usage:
        codec = TokenCodec(settings.token_config())
        issued = codec.issue(user)
        claims = codec.parse(issued.token)
    """

    def __init__(self, config: TokenConfig) -> None:
        self._config = config
        self._key = jwk.construct(config.secret_key, config.algorithm)

    @property
    def algorithm(self) -> str:
        return self._config.algorithm

    @property
    def default_ttl(self) -> timedelta:
        return timedelta(seconds=self._config.ttl_seconds)

    def issue(
        self,
        user: User,
        issued_at: datetime | None = None,
        ttl: timedelta | None = None,
    ) -> IssuedToken:
        """Sign a new token for user.

        issued_at is truncated to whole seconds (iat/exp are integer claims).
        A fresh uuid4 jti is minted on every call, so identical inputs still
        produce different tokens -- callers must not rely on idempotence.
        """
        if user.id is None:
            raise ValueError("Cannot issue a token for a user without an id.")
        when = issued_at if issued_at is not None else datetime.now(timezone.utc)
        duration = ttl if ttl is not None else self.default_ttl
        iat = int(when.timestamp())
        exp = iat + int(duration.total_seconds())
        jti = str(uuid.uuid4())
        payload = {
            "sub": user.username,
            "user_id": user.id,
            "jti": jti,
            "iat": iat,
            "exp": exp,
        }
        token = jwt.encode(payload, self._config.secret_key, algorithm=self._config.algorithm)
        return IssuedToken(token=token, jti=jti, issued_at=iat, expires_at=exp)

    def parse(self, token: str) -> TokenClaims:
        """Verify token and return its claims.

        Raises:
            MalformedToken:       not a compact JWS, or the claim set is unusable.
            UnsupportedAlgorithm: header alg differs from the configured one.
            InvalidSignature:     HMAC does not match.
            TokenExpired:         signature is fine but exp has passed.
        """
        try:
            header = jwt.get_unverified_header(token)
        except JWTError as exc:
            raise MalformedToken("Token is not a valid JWS.") from exc

        if header.get("alg") != self._config.algorithm:
            raise UnsupportedAlgorithm(f"Token algorithm {header.get('alg')!r} is not accepted.")

        signing_input, _, signature_segment = token.rpartition(".")
        try:
            signature = base64url_decode(signature_segment.encode("utf-8"))
        except ValueError as exc:
            raise InvalidSignature("Token signature is not decodable.") from exc
        # Lenient decoding ignores the unused low bits of the last character, so
        # several segments map to one signature. Only the canonical one counts.
        if base64url_encode(signature).decode("ascii") != signature_segment:
            raise InvalidSignature("Token signature is not canonically encoded.")
        if not self._key.verify(signing_input.encode("utf-8"), signature):
            raise InvalidSignature("Token signature verification failed.")

        try:
            payload = jwt.decode(token, self._config.secret_key, algorithms=[self._config.algorithm])
        except ExpiredSignatureError as exc:
            raise TokenExpired("Token has expired.") from exc
        except JWTError as exc:
            raise MalformedToken("Token claims are invalid.") from exc

        return _claims_from_payload(payload)


def _claims_from_payload(payload: dict) -> TokenClaims:
    missing = [name for name in _REQUIRED_CLAIMS if name not in payload]
    if missing:
        raise MalformedToken(f"Token is missing claims: {', '.join(missing)}")
    user_id = payload["user_id"]
    if isinstance(user_id, bool) or not isinstance(user_id, int):
        raise MalformedToken("user_id claim must be an integer.")
    if not isinstance(payload["jti"], str) or not payload["jti"]:
        raise MalformedToken("jti claim must be a non-empty string.")
    return TokenClaims(
        user_id=user_id,
        username=payload["sub"],
        jti=payload["jti"],
        issued_at=int(payload["iat"]),
        expires_at=int(payload["exp"]),
    )
