"""
Per-request entry point: normalise -> decode -> resolve -> run -> render.

The gateway must always get a well-formed END, so anything that escapes the
menu is logged and converted here.
"""
import time

from ussd.api.schemas import UssdRequest
from ussd.core import prompts
from ussd.core.menu import SessionContext, run_step
from ussd.core.outcomes import end
from ussd.core.path_decoder import decode_path
from ussd.core.responder import render
from ussd.core.state_machine import resolve_step
from ussd.core.validators import normalize_phone
from ussd.observability.logging import log, mask_phone


def handle_event(req: UssdRequest, services) -> str:
    started = time.monotonic()
    text = req.text or ""
    ctx = SessionContext(
        session_id=req.sessionId or "",
        service_code=req.serviceCode or "",
        caller_phone=normalize_phone(req.phoneNumber or ""),
        text=text,
    )
    if services.metrics is not None:
        services.metrics.increment_request()

    try:
        tokens = decode_path(text)
        step = resolve_step(tokens)
        result = run_step(step, tokens, ctx, services)
    except Exception as e:
        log(
            event="ussd_request_failed",
            sessionId=ctx.session_id,
            caller=mask_phone(ctx.caller_phone),
            errorType=type(e).__name__,
            error=str(e),
        )
        return render(end(prompts.UNEXPECTED_ERROR, "unexpected_error"))

    log(
        event="ussd_request_processed",
        sessionId=ctx.session_id,
        serviceCode=ctx.service_code,
        caller=mask_phone(ctx.caller_phone),
        depth=len(tokens),
        step=step.value,
        outcome=result.outcome,
        terminal=result.terminal,
        latencyMs=int((time.monotonic() - started) * 1000),
    )
    return render(result)
