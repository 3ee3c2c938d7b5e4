def _first(payload: dict, *keys) -> str:
    for k in keys:
        v = payload.get(k)
        if v is not None:
            return str(v)
    return ""


def normalize_ussd_payload(payload: dict) -> dict:
    """
    Gateways differ in field naming (Africa's Talking camelCase forms, snake_case
    JSON from test harnesses). Map them onto the canonical UssdRequest shape:

    {"sessionId": "...", "serviceCode": "...", "phoneNumber": "...", "text": "..."}
    """
    if payload is None:
        payload = {}

    return {
        "sessionId": _first(payload, "sessionId", "session_id", "SessionId", "session"),
        "serviceCode": _first(payload, "serviceCode", "service_code", "ServiceCode"),
        "phoneNumber": _first(payload, "phoneNumber", "phone_number", "phone", "msisdn", "MSISDN"),
        "text": _first(payload, "text", "input", "ussdString", "Text"),
    }
