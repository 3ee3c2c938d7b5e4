import json
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse
from starlette.concurrency import run_in_threadpool

from ussd.api.normalize import normalize_ussd_payload
from ussd.api.schemas import UssdRequest
from ussd.core.orchestrator import handle_event

router = APIRouter()

COMPAT_POST_PATHS = (
    "/ussd",        # primary
    "/api/ussd",    # alias used by some gateway configs
    "/",            # callback URL registered as the bare host
)


async def _read_payload(request: Request) -> Any:
    """Form posts (Africa's Talking) or JSON; anything else is treated as empty."""
    content_type = (request.headers.get("content-type") or "").lower()
    if "application/json" in content_type:
        try:
            return await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return {}
    if "form" in content_type:
        form = await request.form()
        return dict(form)
    body = await request.body()
    if not body:
        return {}
    try:
        return json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return {}


async def _handle_ussd(request: Request) -> PlainTextResponse:
    payload = await _read_payload(request)
    if not isinstance(payload, dict):
        payload = {}

    req = UssdRequest.model_validate(normalize_ussd_payload(payload))
    services = request.app.state.services
    out = await run_in_threadpool(handle_event, req, services)
    return PlainTextResponse(out)


for _path in COMPAT_POST_PATHS:
    @router.post(_path, response_class=PlainTextResponse)
    async def ussd_post(request: Request):  # type: ignore
        return await _handle_ussd(request)
