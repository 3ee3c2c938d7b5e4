from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi import Request
from fastapi.responses import PlainTextResponse

from ussd.api.routes import router
from ussd.api.admin_routes import router as admin_router
from ussd.core import prompts
from ussd.core.responder import END_PREFIX
from ussd.observability.logging import log
from ussd.services import build_services
from ussd.settings import settings, parse_currency_list


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.services = build_services(settings)
    log(
        event="boot",
        network=settings.STELLAR_NETWORK,
        currencies=parse_currency_list(settings.SUPPORTED_CURRENCIES),
        balanceSource=settings.BALANCE_SOURCE,
        signer=app.state.services.settlement.signer_address,
    )
    yield


app = FastAPI(title="Stellar USSD Service", lifespan=lifespan)

app.include_router(admin_router)
app.include_router(router)


@app.get("/health")
def health():
    return {"status": "ok"}


# ---------------------------------------------------------------------------
# The gateway treats non-200 or unprefixed bodies as a dropped session, so even
# an unhandled error is answered with a well-formed END screen.
# ---------------------------------------------------------------------------
@app.exception_handler(Exception)
async def universal_exception_handler(request: Request, exc: Exception):
    log(event="unhandled_exception", path=request.url.path, errorType=type(exc).__name__)
    return PlainTextResponse(f"{END_PREFIX}{prompts.UNEXPECTED_ERROR}", status_code=200)
