"""
Reconciliation of transfers whose bookkeeping lags the network
--------------------------------------------------------------
Entries are produced by the transfer orchestrator when:
- the settlement succeeded but the debit failed or lost a compare-and-set race
- the debit succeeded but the transaction record could not be written
- the settlement timed out and may or may not be on the ledger

Processing never re-settles. It only re-applies the debit with compare-and-set,
records the transaction (idempotent per reference), or asks the network whether
a timed-out hash landed.
"""
from __future__ import annotations

import json
import uuid
from typing import List, Optional

from rq import Queue, Retry

from ussd.core.outcomes import (
    BALANCE_CONFLICT,
    BALANCE_WRITE_FAILED,
    RECORD_WRITE_FAILED,
    PendingTransfer,
)
from ussd.observability.logging import log, mask_phone
from ussd.settlement.gateway import SettlementError
from ussd.store.models import STATUS_COMPLETED, Transaction
from ussd.utils.money import parse_balance, subtract, to_storage
from ussd.utils.time import now_ms

SETTLEMENT_UNKNOWN = "settlement_unknown"

PENDING_KEY = "reconciliation:pending"
MANUAL_KEY = "reconciliation:manual"

RESOLVED = "resolved"
NOT_SETTLED = "not_settled"
MANUAL = "manual"

# Seconds to wait past the transaction time bound before trusting a "not found".
LOOKUP_GRACE_SEC = 15


class RetryLater(Exception):
    """Outcome still unknown; let the job runner try again."""


def build_entry(kind: str, p: PendingTransfer, *, expected_balance: Optional[str],
                new_balance: Optional[str], reference: Optional[str]) -> dict:
    return {
        "id": uuid.uuid4().hex,
        "kind": kind,
        "source_phone": p.source_phone,
        "destination_phone": p.destination_phone,
        "currency": p.currency,
        "amount": to_storage(p.amount),
        "expected_balance": expected_balance,
        "new_balance": new_balance,
        "reference": reference,
        "created_at_ms": now_ms(),
    }


def _record(entry: dict, directory) -> None:
    directory.insert_transaction(Transaction(
        source_phone=entry["source_phone"],
        destination_phone=entry["destination_phone"],
        currency=entry["currency"],
        amount=entry["amount"],
        status=STATUS_COMPLETED,
        settlement_reference=entry.get("reference"),
    ))


def _apply_debit(entry: dict, directory) -> bool:
    """
    Bring the stored balance to "debited once". True when done, False when the
    stored value can't be explained and a person has to look at it.
    """
    account = directory.find_by_phone(entry["source_phone"])
    if account is None:
        return False
    currency = entry["currency"]
    current = account.balance_raw(currency)
    expected = entry.get("expected_balance")
    target = entry.get("new_balance")

    if target is not None and current == target:
        # The earlier write landed after all.
        return True
    if current == expected and target is not None:
        return directory.update_balance(entry["source_phone"], currency, target, expected=expected)

    # Balance moved since the transfer: debit from the current value instead.
    try:
        value = parse_balance(current)
    except ValueError:
        return False
    amount = parse_balance(entry["amount"])
    if value < amount:
        return False
    return directory.update_balance(
        entry["source_phone"], currency, to_storage(subtract(value, amount)), expected=current
    )


def reconcile_entry(entry: dict, directory, settlement, *, tx_timeout_sec: int = 30) -> str:
    kind = entry.get("kind")

    if kind == SETTLEMENT_UNKNOWN:
        try:
            landed = settlement.lookup(entry["reference"])
        except SettlementError as e:
            raise RetryLater(str(e)) from e
        if landed is None:
            raise RetryLater("lookup inconclusive")
        if landed is False:
            age_sec = (now_ms() - int(entry.get("created_at_ms") or 0)) / 1000.0
            if age_sec < tx_timeout_sec + LOOKUP_GRACE_SEC:
                raise RetryLater("transaction may still be pending")
            return NOT_SETTLED
        if not _apply_debit(entry, directory):
            return MANUAL
        _record(entry, directory)
        return RESOLVED

    if kind in (BALANCE_WRITE_FAILED, BALANCE_CONFLICT):
        if not _apply_debit(entry, directory):
            return MANUAL
        _record(entry, directory)
        return RESOLVED

    if kind == RECORD_WRITE_FAILED:
        _record(entry, directory)
        return RESOLVED

    return MANUAL


class RedisReconciliationQueue:
    """Pending entries in a Redis hash, processed by an RQ job."""

    def __init__(self, redis, queue: Optional[Queue] = None, max_retries: int = 5):
        self.r = redis
        self.queue = queue
        self.max_retries = int(max_retries)

    def submit(self, entry: dict) -> None:
        self.r.hset(PENDING_KEY, entry["id"], json.dumps(entry))
        if self.queue is None:
            return
        # Imported here: the job module builds services and would import this module back.
        from ussd.queue.jobs import reconcile_entry_job

        self.queue.enqueue(
            reconcile_entry_job,
            entry["id"],
            retry=Retry(max=self.max_retries, interval=[15, 30, 60, 120, 300]),
        )
        log(event="reconciliation_enqueued", entryId=entry["id"], kind=entry.get("kind"),
            source=mask_phone(entry.get("source_phone", "")))

    def get(self, entry_id: str) -> Optional[dict]:
        raw = self.r.hget(PENDING_KEY, entry_id)
        return json.loads(raw) if raw else None

    def pending(self, limit: int = 50) -> List[dict]:
        out = []
        for raw in list((self.r.hgetall(PENDING_KEY) or {}).values())[: max(0, int(limit))]:
            out.append(json.loads(raw))
        return sorted(out, key=lambda e: int(e.get("created_at_ms") or 0))

    def close(self, entry: dict, outcome: str) -> None:
        if outcome == MANUAL:
            self.r.hset(MANUAL_KEY, entry["id"], json.dumps(entry))
        self.r.hdel(PENDING_KEY, entry["id"])
