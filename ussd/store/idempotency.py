"""
Replay guard for confirmed transfers.

The gateway may resend the final confirmation of a session. The key is derived
from (session id, full answer path); the first request claims it before any
settlement is attempted and later stores the terminal screen, which replays
verbatim to duplicates.
"""
import hashlib
from dataclasses import dataclass
from typing import Optional

from redis import Redis
from redis.exceptions import RedisError

from ussd.observability.logging import log

PREFIX = "idem:"
PENDING = "__pending__"


class IdempotencyUnavailable(RuntimeError):
    pass


@dataclass(frozen=True)
class Claim:
    acquired: bool
    # Stored terminal text from an earlier run, or PENDING while it is still executing
    previous: Optional[str] = None

    @property
    def in_flight(self) -> bool:
        return not self.acquired and self.previous in (None, PENDING)


def idempotency_key(session_id: str, text: str) -> str:
    digest = hashlib.sha256(f"{session_id}\x1f{text}".encode("utf-8")).hexdigest()
    return f"{PREFIX}{digest}"


class RedisIdempotencyStore:
    def __init__(self, redis: Redis, ttl_sec: int = 86400):
        self.r = redis
        self.ttl_sec = int(ttl_sec)

    def claim(self, key: str) -> Claim:
        """Without a working guard a transfer must not start, so errors propagate."""
        try:
            if self.r.set(key, PENDING, nx=True, ex=self.ttl_sec):
                return Claim(acquired=True)
            return Claim(acquired=False, previous=self.r.get(key))
        except RedisError as e:
            raise IdempotencyUnavailable(type(e).__name__) from e

    def complete(self, key: str, response_text: str) -> None:
        try:
            self.r.set(key, response_text, ex=self.ttl_sec)
        except RedisError as e:
            # The PENDING marker stays; duplicates get the in-progress screen until TTL.
            log(event="idempotency_complete_failed", key=key, errorType=type(e).__name__)
