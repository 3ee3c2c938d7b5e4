"""
Transfer execution
------------------
Order is fixed: preconditions -> settle (once) -> debit -> record.

Settlement is external and irreversible, so once it succeeds every later failure
is reported as a success with bookkeeping behind (RECONCILIATION_NEEDED) and
handed to the reconciliation queue. Nothing here ever calls settle twice.
"""
from __future__ import annotations

from typing import Optional

from ussd.core.outcomes import (
    BALANCE_CONFLICT,
    BALANCE_WRITE_FAILED,
    RECORD_WRITE_FAILED,
    PendingTransfer,
    TransferResult,
    TransferStatus,
)
from ussd.core.reconciliation import build_entry
from ussd.observability.logging import log, mask_phone
from ussd.settlement import gateway as sg
from ussd.store.account_repo import DirectoryError
from ussd.store.models import STATUS_COMPLETED, Transaction
from ussd.utils.lock import LockUnavailable
from ussd.utils.money import parse_balance, subtract, to_storage


class TransferOrchestrator:
    def __init__(self, directory, settlement, locks=None, reconciler=None, metrics=None):
        self.directory = directory
        self.settlement = settlement
        self.locks = locks
        self.reconciler = reconciler
        self.metrics = metrics

    def execute(self, pending: PendingTransfer) -> TransferResult:
        if self.locks is None:
            result = self._execute(pending)
        else:
            try:
                with self.locks.hold(f"account:{pending.source_phone}"):
                    result = self._execute(pending)
            except LockUnavailable:
                result = TransferResult(status=TransferStatus.BUSY, currency=pending.currency)

        self._count(result)
        return result

    def _execute(self, p: PendingTransfer) -> TransferResult:
        currency = p.currency

        # 1) Preconditions: no side effects on any failure here
        try:
            source = self.directory.find_by_phone(p.source_phone)
            if source is None or not source.settlement_address:
                return TransferResult(status=TransferStatus.SOURCE_NOT_FOUND, currency=currency)

            destination = self.directory.find_by_phone(p.destination_phone)
            if destination is None or not destination.settlement_address:
                return TransferResult(status=TransferStatus.DESTINATION_NOT_FOUND, currency=currency)
        except DirectoryError as e:
            log(event="transfer_precondition_error", stage="lookup", errorType=type(e).__name__)
            return TransferResult(status=TransferStatus.DIRECTORY_UNAVAILABLE, currency=currency)

        balance_raw = source.balance_raw(currency)
        try:
            balance = parse_balance(balance_raw)
        except ValueError:
            log(event="transfer_precondition_error", stage="balance_parse", currency=currency,
                source=mask_phone(p.source_phone))
            return TransferResult(status=TransferStatus.DIRECTORY_UNAVAILABLE, currency=currency)

        if balance < p.amount:
            return TransferResult(status=TransferStatus.INSUFFICIENT_BALANCE, currency=currency)

        # 2) Settlement: the single value-moving call
        settled = self.settlement.settle(
            source.settlement_address, destination.settlement_address, currency, p.amount
        )

        if settled.status == sg.MISCONFIGURED:
            log(event="transfer_configuration_error", reason=settled.error, currency=currency,
                source=mask_phone(p.source_phone))
            return TransferResult(status=TransferStatus.CONFIGURATION_ERROR, currency=currency)

        if settled.status == sg.TIMEOUT:
            log(event="settlement_timeout", reference=settled.reference, error=settled.error,
                currency=currency, amount=str(p.amount), source=mask_phone(p.source_phone))
            if settled.reference:
                self._submit(build_entry(
                    "settlement_unknown", p,
                    expected_balance=balance_raw,
                    new_balance=to_storage(subtract(balance, p.amount)),
                    reference=settled.reference,
                ))
            return TransferResult(
                status=TransferStatus.SETTLEMENT_UNKNOWN,
                currency=currency,
                settlement_reference=settled.reference,
            )

        if not settled.ok:
            log(event="settlement_failed", error=settled.error, currency=currency,
                amount=str(p.amount), source=mask_phone(p.source_phone))
            return TransferResult(status=TransferStatus.SETTLEMENT_FAILED, currency=currency)

        # 3) Debit: compare-and-set against the value read above
        new_balance = to_storage(subtract(balance, p.amount))
        reason: Optional[str] = None
        try:
            if not self.directory.update_balance(p.source_phone, currency, new_balance, expected=balance_raw):
                reason = BALANCE_CONFLICT
        except DirectoryError as e:
            log(event="transfer_balance_write_error", errorType=type(e).__name__, reference=settled.reference)
            reason = BALANCE_WRITE_FAILED

        if reason is not None:
            return self._needs_reconciliation(p, reason, settled.reference, balance_raw, new_balance)

        # 4) Record
        tx = Transaction(
            source_phone=p.source_phone,
            destination_phone=p.destination_phone,
            currency=currency,
            amount=to_storage(p.amount),
            status=STATUS_COMPLETED,
            settlement_reference=settled.reference,
        )
        try:
            self.directory.insert_transaction(tx)
        except DirectoryError as e:
            log(event="transfer_record_write_error", errorType=type(e).__name__, reference=settled.reference)
            return self._needs_reconciliation(
                p, RECORD_WRITE_FAILED, settled.reference, balance_raw, new_balance
            )

        log(
            event="transfer_completed",
            reference=settled.reference,
            currency=currency,
            amount=str(p.amount),
            source=mask_phone(p.source_phone),
            destination=mask_phone(p.destination_phone),
        )
        return TransferResult(
            status=TransferStatus.COMPLETED,
            currency=currency,
            new_balance=new_balance,
            settlement_reference=settled.reference,
        )

    def _needs_reconciliation(self, p: PendingTransfer, reason: str, reference: Optional[str],
                              balance_raw: Optional[str], new_balance: str) -> TransferResult:
        log(
            event="transfer_reconciliation_needed",
            reason=reason,
            reference=reference,
            currency=p.currency,
            amount=str(p.amount),
            source=mask_phone(p.source_phone),
        )
        self._submit(build_entry(
            reason, p, expected_balance=balance_raw, new_balance=new_balance, reference=reference,
        ))
        return TransferResult(
            status=TransferStatus.RECONCILIATION_NEEDED,
            currency=p.currency,
            new_balance=new_balance,
            settlement_reference=reference,
            reason=reason,
        )

    def _submit(self, entry: dict) -> None:
        if self.reconciler is None:
            return
        try:
            self.reconciler.submit(entry)
        except Exception as e:
            # The log line above is the fallback trail for manual reconciliation.
            log(event="reconciliation_submit_failed", entryId=entry.get("id"), errorType=type(e).__name__)

    def _count(self, result: TransferResult) -> None:
        if self.metrics is None:
            return
        self.metrics.increment_transfer(result.status.value)
