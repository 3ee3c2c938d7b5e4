from ussd.core.reconciliation import RetryLater, reconcile_entry
from ussd.observability.logging import log
from ussd.services import build_services
from ussd.settings import settings
from ussd.store.account_repo import DirectoryError


def reconcile_entry_job(entry_id: str):
    """
    Background job for one pending reconciliation entry.
    RetryLater / DirectoryError propagate so RQ's Retry policy re-runs the job.
    """
    services = build_services(settings, with_queue=False)
    queue = services.reconciler
    entry = queue.get(entry_id)
    if entry is None:
        log(event="reconciliation_entry_missing", entryId=entry_id)
        return None

    try:
        log(event="reconciliation_job_start", entryId=entry_id, kind=entry.get("kind"))
        outcome = reconcile_entry(
            entry,
            services.directory,
            services.settlement,
            tx_timeout_sec=settings.STELLAR_TX_TIMEOUT_SEC,
        )
    except (RetryLater, DirectoryError) as e:
        log(event="reconciliation_retry", entryId=entry_id, errorType=type(e).__name__, error=str(e))
        raise

    queue.close(entry, outcome)
    log(event=f"reconciliation_{outcome}", entryId=entry_id, kind=entry.get("kind"),
        reference=entry.get("reference"))
    return outcome
