import time
from datetime import datetime, timezone


def now_ms() -> int:
    return int(time.time() * 1000)


def utc_now_iso() -> str:
    """ISO-8601 UTC timestamp with a trailing Z, as stored on records."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
