from fastapi import APIRouter, Depends, HTTPException, Header, Request
from redis.exceptions import RedisError

from ussd.core.outcomes import TransferStatus
from ussd.core.validators import validate_phone
from ussd.settings import settings
from ussd.store.account_repo import DirectoryError

router = APIRouter(prefix="/admin", tags=["admin"])


def require_admin(x_admin_key: str = Header(default="", alias="x-admin-key")):
    if not settings.ADMIN_RBAC_ENABLED:
        return
    # Secure default: if enabled but no key configured, reject all.
    if not settings.ADMIN_API_KEY:
        raise HTTPException(status_code=403, detail="Admin access disabled (no key configured)")
    if x_admin_key != settings.ADMIN_API_KEY:
        raise HTTPException(status_code=403, detail="Invalid admin key")


def _phone_or_400(phone: str) -> str:
    check = validate_phone(phone)
    if not check.ok:
        raise HTTPException(status_code=400, detail="Invalid phone number")
    return check.value


@router.get("/account/{phone}")
def get_account_snapshot(phone: str, request: Request, _=Depends(require_admin)):
    """Account as stored, PIN hash withheld."""
    services = request.app.state.services
    try:
        account = services.directory.find_by_phone(_phone_or_400(phone))
    except DirectoryError:
        raise HTTPException(status_code=503, detail="Directory unavailable")
    if account is None:
        raise HTTPException(status_code=404, detail="Account not found")

    data = account.to_dict()
    data["pin"] = "[REDACTED]"
    return data


@router.get("/account/{phone}/transactions")
def get_account_transactions(phone: str, request: Request, limit: int = 20, _=Depends(require_admin)):
    services = request.app.state.services
    normalized = _phone_or_400(phone)
    try:
        txs = services.directory.list_transactions(normalized, limit=max(1, min(int(limit), 200)))
    except DirectoryError:
        raise HTTPException(status_code=503, detail="Directory unavailable")
    return {"phone": normalized, "transactions": [t.to_dict() for t in txs]}


@router.get("/reconciliation")
def get_pending_reconciliation(request: Request, limit: int = 50, _=Depends(require_admin)):
    """Entries the worker has not resolved yet (oldest first)."""
    reconciler = request.app.state.services.reconciler
    entries = reconciler.pending(limit) if reconciler is not None else []
    return {"count": len(entries), "entries": entries}


@router.get("/metrics")
def get_metrics(request: Request, _=Depends(require_admin)):
    metrics = request.app.state.services.metrics
    if metrics is None:
        return {}
    try:
        return metrics.snapshot([s.value for s in TransferStatus])
    except RedisError:
        raise HTTPException(status_code=503, detail="Metrics unavailable")
