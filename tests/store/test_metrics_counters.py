from unittest.mock import MagicMock

from redis.exceptions import ConnectionError as RedisConnectionError

from ussd.observability.metrics import RedisMetrics


def test_counter_failure_is_ignored():
    r = MagicMock()
    r.incr.side_effect = RedisConnectionError("down")
    RedisMetrics(r).increment_transfer("completed")


def test_snapshot_reads_counters():
    r = MagicMock()
    values = {"metrics:requests": "7", "metrics:registrations": "2", "metrics:transfers:completed": "3"}
    r.get.side_effect = lambda k: values.get(k)
    snap = RedisMetrics(r).snapshot(["completed", "busy"])
    assert snap["requests"] == 7
    assert snap["registrations"] == 2
    assert snap["transfers"] == {"completed": 3, "busy": 0}
