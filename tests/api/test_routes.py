import pytest
from fastapi.testclient import TestClient

from conftest import RECIPIENT, SENDER
from ussd.main import app

client = TestClient(app)


@pytest.fixture(autouse=True)
def wired(services):
    app.state.services = services
    yield
    del app.state.services


def _form(text, session_id="at-1"):
    return {"sessionId": session_id, "serviceCode": "*384#", "phoneNumber": SENDER, "text": text}


@pytest.mark.parametrize("path", ["/ussd", "/api/ussd", "/"])
def test_form_post_returns_plain_text(path):
    response = client.post(path, data=_form(""))
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert response.text.startswith("CON Welcome to Stellar USSD Service")


def test_json_post_with_snake_case_keys():
    response = client.post("/ussd", json={"session_id": "j-1", "phone_number": SENDER, "text": "1"})
    assert response.text.startswith("CON Enter your phone number")


def test_empty_body_is_first_contact():
    response = client.post("/ussd")
    assert response.status_code == 200
    assert response.text.startswith("CON ")


def test_transfer_over_http(services):
    response = client.post("/ussd", data=_form(f"2*{SENDER}*1234*2*1*{RECIPIENT}*10*1"))
    assert response.text == "END Transaction successful! Your new XLM balance is 90"
    assert len(services.directory.transactions) == 1


def test_health():
    assert client.get("/health").json() == {"status": "ok"}


def test_unhandled_error_is_still_a_well_formed_end():
    del app.state.services
    safe = TestClient(app, raise_server_exceptions=False)
    response = safe.post("/ussd", data=_form(""))
    app.state.services = None
    assert response.status_code == 200
    assert response.text == "END An unexpected error occurred. Please try again later."
