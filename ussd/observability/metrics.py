"""
Lightweight Redis counters consumed by /admin/metrics. Best-effort: a counter
that fails to increment never affects the request that triggered it.
"""
from __future__ import annotations

import time

from redis.exceptions import RedisError

K_REQUESTS = "metrics:requests"
K_TRANSFER_PREFIX = "metrics:transfers:"
K_REGISTRATIONS = "metrics:registrations"


class RedisMetrics:
    def __init__(self, redis):
        self.r = redis

    def _incr(self, key: str) -> None:
        try:
            self.r.incr(key, 1)
        except RedisError:
            pass

    def increment_request(self) -> None:
        self._incr(K_REQUESTS)

    def increment_registration(self) -> None:
        self._incr(K_REGISTRATIONS)

    def increment_transfer(self, status: str) -> None:
        self._incr(f"{K_TRANSFER_PREFIX}{status}")

    def snapshot(self, statuses) -> dict:
        transfers = {}
        for status in statuses:
            transfers[status] = int(self.r.get(f"{K_TRANSFER_PREFIX}{status}") or 0)
        return {
            "requests": int(self.r.get(K_REQUESTS) or 0),
            "registrations": int(self.r.get(K_REGISTRATIONS) or 0),
            "transfers": transfers,
            "snapshot_at": int(time.time()),
        }
