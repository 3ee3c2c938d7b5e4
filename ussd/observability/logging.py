import json
import time
from ussd.settings import settings

# The cumulative USSD text carries the PIN, so it is always treated as sensitive.
SENSITIVE_KEYS = {"text", "pin", "secret", "payload"}


def _redact_value(v):
    if isinstance(v, str) and len(v) > 0:
        return f"[REDACTED:{len(v)}chars]"
    if isinstance(v, dict):
        return {k: _redact_value(val) for k, val in v.items()}
    return v


def mask_phone(phone: str) -> str:
    """Keep the country prefix and the last two digits: +2547*****12."""
    p = phone or ""
    if len(p) <= 6:
        return p
    return p[:5] + "*" * (len(p) - 7) + p[-2:]


def log(event: str, **fields):
    payload = {"ts": int(time.time()), "event": event}

    if settings.ENABLE_PII_REDACTION:
        clean_fields = {}
        for k, v in fields.items():
            if k in SENSITIVE_KEYS:
                clean_fields[k] = _redact_value(v)
            elif isinstance(v, dict):
                clean_fields[k] = {sk: (_redact_value(sv) if sk in SENSITIVE_KEYS else sv) for sk, sv in v.items()}
            else:
                clean_fields[k] = v
        payload.update(clean_fields)
    else:
        payload.update({k: v for k, v in fields.items() if k != "secret"})

    print(json.dumps(payload, ensure_ascii=False, default=str))
