from unittest.mock import MagicMock, patch

import pytest

from ussd.core.reconciliation import RESOLVED, RetryLater
from ussd.queue.jobs import reconcile_entry_job


def _services(entry):
    services = MagicMock()
    services.reconciler.get.return_value = entry
    return services


@patch("ussd.queue.jobs.reconcile_entry")
@patch("ussd.queue.jobs.build_services")
def test_job_resolves_and_closes(mock_build, mock_reconcile):
    entry = {"id": "e1", "kind": "record_write_failed"}
    services = _services(entry)
    mock_build.return_value = services
    mock_reconcile.return_value = RESOLVED

    assert reconcile_entry_job("e1") == RESOLVED
    assert mock_build.call_args.kwargs == {"with_queue": False}
    services.reconciler.close.assert_called_once_with(entry, RESOLVED)


@patch("ussd.queue.jobs.reconcile_entry")
@patch("ussd.queue.jobs.build_services")
def test_job_reraises_for_rq_retry(mock_build, mock_reconcile):
    services = _services({"id": "e1", "kind": "settlement_unknown"})
    mock_build.return_value = services
    mock_reconcile.side_effect = RetryLater("pending")

    with pytest.raises(RetryLater):
        reconcile_entry_job("e1")
    services.reconciler.close.assert_not_called()


@patch("ussd.queue.jobs.log")
@patch("ussd.queue.jobs.build_services")
def test_missing_entry_is_a_noop(mock_build, mock_log):
    mock_build.return_value = _services(None)
    assert reconcile_entry_job("gone") is None
    assert mock_log.call_args.kwargs["event"] == "reconciliation_entry_missing"
