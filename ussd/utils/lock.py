from contextlib import contextmanager
import time
import uuid

from redis import Redis
from redis.exceptions import RedisError

_RELEASE = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class LockUnavailable(RuntimeError):
    pass


class RedisLocks:
    """
    Short-lived single-writer locks. Used to serialise transfers per source account
    so two sessions can't both pass the balance check before either debits.
    """

    def __init__(self, redis: Redis, ttl_ms: int = 60000, spins: int = 5, spin_sleep_sec: float = 0.1):
        self.r = redis
        self.ttl_ms = int(ttl_ms)
        self.spins = int(spins)
        self.spin_sleep_sec = float(spin_sleep_sec)

    @contextmanager
    def hold(self, name: str):
        key = f"lock:{name}"
        token = uuid.uuid4().hex
        try:
            acquired = bool(self.r.set(key, token, px=self.ttl_ms, nx=True))
            if not acquired:
                # Short spin, then give up: the caller turns this into a "try again" screen.
                for _ in range(self.spins):
                    time.sleep(self.spin_sleep_sec)
                    if self.r.set(key, token, px=self.ttl_ms, nx=True):
                        acquired = True
                        break
        except RedisError as e:
            raise LockUnavailable(f"lock backend unavailable for {name}") from e

        if not acquired:
            raise LockUnavailable(f"Could not acquire lock for {name}")

        try:
            yield
        finally:
            # Release only if we still own it
            try:
                self.r.eval(_RELEASE, 1, key, token)
            except RedisError:
                pass
