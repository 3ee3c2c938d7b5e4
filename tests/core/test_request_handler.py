from unittest.mock import MagicMock, patch

from ussd.api.schemas import UssdRequest
from ussd.core import prompts
from ussd.core.orchestrator import handle_event


def _req(text):
    return UssdRequest(sessionId="s-1", serviceCode="*384#", phoneNumber="+15551234567", text=text)


def test_handle_event_renders_entry_menu(services):
    assert handle_event(_req(""), services).startswith("CON Welcome to")


def test_none_text_is_first_contact(services):
    assert handle_event(_req(None), services).startswith("CON Welcome to")


@patch("ussd.core.orchestrator.log")
def test_internal_failure_becomes_well_formed_end(mock_log, services):
    services.directory.find_by_phone = MagicMock(side_effect=ZeroDivisionError("bug"))
    out = handle_event(_req("2*+15551234567"), services)
    assert out == f"END {prompts.UNEXPECTED_ERROR}"
    assert mock_log.call_args.kwargs["event"] == "ussd_request_failed"
    assert mock_log.call_args.kwargs["errorType"] == "ZeroDivisionError"


@patch("ussd.core.orchestrator.log")
def test_processed_log_has_no_raw_text(mock_log, services):
    handle_event(_req("2*+15551234567*1234"), services)
    fields = mock_log.call_args.kwargs
    assert fields["event"] == "ussd_request_processed"
    assert fields["step"] == "LOGIN_PIN"
    assert "text" not in fields
    assert "1234" not in str(fields)


def test_request_counter(services):
    services.metrics = MagicMock()
    handle_event(_req(""), services)
    services.metrics.increment_request.assert_called_once()
