from contextlib import contextmanager
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from conftest import RECIPIENT, SENDER
from ussd.core.outcomes import PendingTransfer, TransferStatus
from ussd.core.transfer import TransferOrchestrator
from ussd.settlement.gateway import FAILED, TIMEOUT, SettlementResult
from ussd.utils.lock import LockUnavailable


def _pending(amount="10", currency="XLM", destination=RECIPIENT):
    return PendingTransfer(SENDER, destination, currency, Decimal(amount))


@pytest.fixture
def orchestrator(directory, settlement, reconciler):
    return TransferOrchestrator(directory, settlement, reconciler=reconciler, metrics=MagicMock())


def test_completed_transfer_debits_once_and_records(orchestrator, directory, settlement):
    result = orchestrator.execute(_pending("10"))
    assert result.status == TransferStatus.COMPLETED
    assert result.new_balance == "90.0000000"
    assert len(settlement.calls) == 1
    assert directory.accounts[SENDER].balance_raw("XLM") == "90.0000000"
    assert len(directory.transactions) == 1
    orchestrator.metrics.increment_transfer.assert_called_once_with("completed")


def test_fractional_amount_is_exact(orchestrator, directory):
    result = orchestrator.execute(_pending("0.1", currency="USDC"))
    assert result.new_balance == "25.4000000"


def test_exact_balance_can_be_sent(orchestrator, directory):
    result = orchestrator.execute(_pending("100"))
    assert result.status == TransferStatus.COMPLETED
    assert directory.accounts[SENDER].balance_raw("XLM") == "0.0000000"


def test_preconditions_have_no_side_effects(orchestrator, directory, settlement):
    assert orchestrator.execute(_pending("100.0000001")).status == TransferStatus.INSUFFICIENT_BALANCE
    assert orchestrator.execute(_pending(destination="+15550000000")).status == TransferStatus.DESTINATION_NOT_FOUND
    assert settlement.calls == []
    assert directory.transactions == []


def test_missing_source_address_is_source_not_found(orchestrator, directory):
    directory.accounts[SENDER] = directory.accounts[SENDER].__class__(phone=SENDER, balances={"XLM": "100"})
    assert orchestrator.execute(_pending()).status == TransferStatus.SOURCE_NOT_FOUND


def test_malformed_stored_balance_is_not_settled(orchestrator, directory, settlement):
    directory.accounts[SENDER] = directory.accounts[SENDER].with_balance("XLM", "lots")
    assert orchestrator.execute(_pending()).status == TransferStatus.DIRECTORY_UNAVAILABLE
    assert settlement.calls == []


def test_settlement_failure_no_writes(orchestrator, directory, settlement, reconciler):
    settlement.result = SettlementResult(status=FAILED, error="rejected:op_underfunded")
    result = orchestrator.execute(_pending())
    assert result.status == TransferStatus.SETTLEMENT_FAILED
    assert directory.accounts[SENDER].balance_raw("XLM") == "100"
    assert directory.transactions == []
    assert reconciler.entries == []


def test_timeout_queues_lookup_without_debit(orchestrator, directory, settlement, reconciler):
    settlement.result = SettlementResult(status=TIMEOUT, reference="abc", error="horizon_timeout")
    result = orchestrator.execute(_pending())
    assert result.status == TransferStatus.SETTLEMENT_UNKNOWN
    assert result.settlement_reference == "abc"
    assert directory.accounts[SENDER].balance_raw("XLM") == "100"
    entry = reconciler.entries[0]
    assert entry["kind"] == "settlement_unknown"
    assert entry["expected_balance"] == "100"
    assert entry["new_balance"] == "90.0000000"
    assert entry["reference"] == "abc"


def test_lost_compare_and_set_needs_reconciliation(orchestrator, directory, settlement, reconciler):
    directory.conflict_on_update = True
    result = orchestrator.execute(_pending())
    assert result.status == TransferStatus.RECONCILIATION_NEEDED
    assert result.reason == "balance_conflict"
    assert len(settlement.calls) == 1
    assert directory.transactions == []
    assert reconciler.entries[0]["kind"] == "balance_conflict"


def test_record_failure_after_debit(orchestrator, directory, reconciler):
    directory.fail_record = True
    result = orchestrator.execute(_pending())
    assert result.status == TransferStatus.RECONCILIATION_NEEDED
    assert result.reason == "record_write_failed"
    assert directory.accounts[SENDER].balance_raw("XLM") == "90.0000000"


def test_reconciler_failure_does_not_change_the_result(directory, settlement):
    reconciler = MagicMock()
    reconciler.submit.side_effect = RuntimeError("redis down")
    directory.fail_update = True
    orchestrator = TransferOrchestrator(directory, settlement, reconciler=reconciler)
    assert orchestrator.execute(_pending()).status == TransferStatus.RECONCILIATION_NEEDED


def test_busy_when_account_lock_is_held(directory, settlement):
    locks = MagicMock()

    @contextmanager
    def held(name):
        raise LockUnavailable(name)
        yield  # pragma: no cover

    locks.hold.side_effect = held
    orchestrator = TransferOrchestrator(directory, settlement, locks=locks)
    assert orchestrator.execute(_pending()).status == TransferStatus.BUSY
    locks.hold.assert_called_once_with(f"account:{SENDER}")
    assert settlement.calls == []
