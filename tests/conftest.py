from decimal import Decimal

import pytest

from ussd.api.schemas import UssdRequest
from ussd.core.credentials import hash_pin
from ussd.core.orchestrator import handle_event
from ussd.core.transfer import TransferOrchestrator
from ussd.services import Services
from ussd.settlement.gateway import SETTLED, SettlementResult
from ussd.store.account_repo import DirectoryError, DuplicateAccountError
from ussd.store.idempotency import PENDING, Claim
from ussd.store.models import Account

SENDER = "+15551234567"
SENDER_ADDRESS = "GSENDERADDRESS"
RECIPIENT = "+15557654321"
RECIPIENT_ADDRESS = "GRECIPIENTADDRESS"
PIN = "1234"


class InMemoryDirectory:
    def __init__(self):
        self.accounts = {}
        self.transactions = []
        self.fail_find = False
        self.fail_update = False
        self.fail_record = False
        # Simulates a concurrent write between the read and the compare-and-set
        self.conflict_on_update = False

    def find_by_phone(self, phone):
        if self.fail_find:
            raise DirectoryError("down")
        return self.accounts.get(phone)

    def insert(self, account):
        if account.phone in self.accounts:
            raise DuplicateAccountError(account.phone)
        self.accounts[account.phone] = account

    def update_balance(self, phone, currency, new_value, expected):
        if self.fail_update:
            raise DirectoryError("down")
        account = self.accounts.get(phone)
        if account is None or self.conflict_on_update:
            return False
        if (account.balance_raw(currency) or "") != ("" if expected is None else expected):
            return False
        self.accounts[phone] = account.with_balance(currency, new_value)
        return True

    def insert_transaction(self, tx):
        if self.fail_record:
            raise DirectoryError("down")
        if tx.settlement_reference and any(
            t.settlement_reference == tx.settlement_reference for t in self.transactions
        ):
            return False
        self.transactions.append(tx)
        return True

    def list_transactions(self, phone, limit=20):
        out = [t for t in reversed(self.transactions) if phone in (t.source_phone, t.destination_phone)]
        return out[:limit]


class FakeSettlement:
    def __init__(self):
        self.calls = []
        self.result = SettlementResult(status=SETTLED, reference="txhash-1")
        self.identity = "GNEWIDENTITY"
        self.landed = True
        self.balances = {}

    def settle(self, source, destination, currency, amount):
        self.calls.append((source, destination, currency, Decimal(amount)))
        return self.result

    def new_identity(self):
        return self.identity

    def lookup(self, reference):
        return self.landed

    def balance_of(self, address, currency):
        return self.balances.get((address, currency))


class FakeProvisioner:
    def __init__(self, funded=True):
        self.funded = funded
        self.funded_addresses = []

    def fund(self, address):
        self.funded_addresses.append(address)
        return self.funded


class InMemoryIdempotency:
    def __init__(self):
        self.values = {}

    def claim(self, key):
        if key not in self.values:
            self.values[key] = PENDING
            return Claim(acquired=True)
        return Claim(acquired=False, previous=self.values[key])

    def complete(self, key, response_text):
        self.values[key] = response_text


class ListReconciler:
    def __init__(self):
        self.entries = []

    def submit(self, entry):
        self.entries.append(entry)

    def pending(self, limit=50):
        return self.entries[:limit]


def seed_account(directory, phone, address, balances=None, pin=PIN, hashed=True):
    stored = hash_pin(pin, 4) if hashed else pin
    directory.accounts[phone] = Account(
        phone=phone,
        settlement_address=address,
        balances=dict(balances or {"XLM": "100", "USDC": "0"}),
        pin=stored,
    )


@pytest.fixture
def directory():
    d = InMemoryDirectory()
    seed_account(d, SENDER, SENDER_ADDRESS, {"XLM": "100", "USDC": "25.5"})
    seed_account(d, RECIPIENT, RECIPIENT_ADDRESS, {"XLM": "5", "USDC": "0"}, hashed=False)
    return d


@pytest.fixture
def settlement():
    return FakeSettlement()


@pytest.fixture
def reconciler():
    return ListReconciler()


@pytest.fixture
def services(directory, settlement, reconciler):
    return Services(
        directory=directory,
        settlement=settlement,
        transfers=TransferOrchestrator(directory, settlement, reconciler=reconciler),
        currencies=["XLM", "USDC"],
        service_name="Stellar USSD Service",
        provisioner=FakeProvisioner(),
        idempotency=InMemoryIdempotency(),
        reconciler=reconciler,
        metrics=None,
        pin_hash_rounds=4,
    )


@pytest.fixture
def dial(services):
    """Send one gateway request and return the raw response body."""
    def _dial(text, session_id="session-1", phone=SENDER):
        req = UssdRequest(sessionId=session_id, serviceCode="*384#", phoneNumber=phone, text=text)
        return handle_event(req, services)
    return _dial
