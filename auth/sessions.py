"""
auth/sessions.py -- Server-side liveness tracking for issued tokens.

A token proves "we signed this and it has not structurally expired". The
SessionStore answers the other half: "is this particular session still
wanted". A token is only accepted when both agree.

Storage shape (one Redis hash per principal):

    sessions:<user_id>  ->  { <jti>: "<exp unix seconds>", ... }

One principal may hold several live jtis at once (one per device/login).

Expiry is enforced lazily: register() sweeps dead fields of the same hash
before writing the new one, so there is no background sweeper. is_live()
only checks field existence and never deletes.

Concurrency: register() is read-sweep-write without a transaction. Two
concurrent registrations for the same principal can at worst leave a dead
field alive for one more cycle. They cannot drop each other's new field,
because each writes its own jti and the sweep only deletes fields whose
stored expiry has already passed.

Layer rule: no imports from api/, core/, or catalog/.
"""

from __future__ import annotations

import logging
import time

import redis

from auth.errors import SessionStoreError

logger = logging.getLogger("grader.sessions")

_DEFAULT_PREFIX = "sessions:"


class SessionStore:
    """Redis-backed registry of live token identifiers per user.

    Usage:
        store = SessionStore.from_url("redis://localhost:6379/0", timeout=1.0)
        store.register(user_id=7, jti=issued.jti, expires_at=issued.expires_at)
        store.is_live(7, issued.jti)   # True
        store.close()
    """

    def __init__(self, client: redis.Redis, key_prefix: str = _DEFAULT_PREFIX) -> None:
        self._client = client
        self._prefix = key_prefix

    @classmethod
    def from_url(cls, url: str, timeout: float = 1.0, key_prefix: str = _DEFAULT_PREFIX) -> "SessionStore":
        """Build a store whose every round-trip is bounded by timeout seconds.

        A timed-out call surfaces as redis.TimeoutError, which register()
        reports as SessionStoreError and is_live() treats as not-live.
        """
        client = redis.Redis.from_url(
            url,
            socket_timeout=timeout,
            socket_connect_timeout=timeout,
            decode_responses=True,
        )
        return cls(client, key_prefix=key_prefix)

    def _key(self, user_id: int) -> str:
        return f"{self._prefix}{user_id}"

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def register(self, user_id: int, jti: str, expires_at: int) -> None:
        """Record jti as live for user_id until expires_at (unix seconds).

        Phase 1 deletes every field of the user's hash whose expiry is at or
        before now. Phase 2 upserts the new field. Raises SessionStoreError on
        any Redis failure, including timeouts.
        """
        key = self._key(user_id)
        now = int(time.time())
        try:
            entries = self._client.hgetall(key)
            dead = [field for field, exp in entries.items() if _is_dead(exp, now)]
            if dead:
                self._client.hdel(key, *dead)
                logger.debug("Swept %d expired session(s) for user %s", len(dead), user_id)
            self._client.hset(key, jti, str(int(expires_at)))
        except redis.RedisError as exc:
            logger.error("Session registration failed for user %s: %s", user_id, exc)
            raise SessionStoreError("Could not register session.") from exc

    def revoke(self, user_id: int, jti: str) -> bool:
        """Forget one session. Returns True if it was live."""
        try:
            removed = self._client.hdel(self._key(user_id), jti)
        except redis.RedisError as exc:
            logger.error("Session revocation failed for user %s: %s", user_id, exc)
            raise SessionStoreError("Could not revoke session.") from exc
        return removed > 0

    def revoke_all(self, user_id: int) -> int:
        """Forget every session of user_id. Returns how many were removed."""
        key = self._key(user_id)
        try:
            count = self._client.hlen(key)
            self._client.delete(key)
        except redis.RedisError as exc:
            logger.error("Session revocation failed for user %s: %s", user_id, exc)
            raise SessionStoreError("Could not revoke sessions.") from exc
        return count

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def is_live(self, user_id: int, jti: str) -> bool:
        """Return True iff the (user_id, jti) field currently exists.

        Fails closed: a Redis error is logged and answered False.
        """
        try:
            return bool(self._client.hexists(self._key(user_id), jti))
        except redis.RedisError as exc:
            logger.warning("Session lookup failed for user %s, treating as not live: %s", user_id, exc)
            return False

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except redis.RedisError:
            return False

    def close(self) -> None:
        self._client.close()


def _is_dead(stored_exp, now: int) -> bool:
    """True if a stored expiry is at or before now, or is not an integer."""
    try:
        return int(stored_exp) <= now
    except (TypeError, ValueError):
        return True
