import json
from unittest.mock import MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from ussd.store.account_repo import (
    DirectoryError,
    DuplicateAccountError,
    RedisAccountDirectory,
)
from ussd.store.models import Account, Transaction


@pytest.fixture
def r():
    return MagicMock()


def test_find_by_phone_maps_hash_fields(r):
    r.hgetall.return_value = {
        "phone": "+15551234567",
        "settlement_address": "GABC",
        "pin": "hash",
        "preferred_currency": "XLM",
        "created_at": "2024-01-01T00:00:00Z",
        "balance:XLM": "100",
        "balance:USDC": "2.5000000",
    }
    account = RedisAccountDirectory(r).find_by_phone("+15551234567")
    r.hgetall.assert_called_once_with("account:+15551234567")
    assert account.settlement_address == "GABC"
    assert account.balances == {"XLM": "100", "USDC": "2.5000000"}


def test_find_missing_account(r):
    r.hgetall.return_value = {}
    assert RedisAccountDirectory(r).find_by_phone("+15551234567") is None


def test_redis_errors_become_directory_errors(r):
    r.hgetall.side_effect = RedisConnectionError("refused")
    with pytest.raises(DirectoryError):
        RedisAccountDirectory(r).find_by_phone("+15551234567")


def test_insert_duplicate(r):
    r.eval.return_value = 0
    with pytest.raises(DuplicateAccountError):
        RedisAccountDirectory(r).insert(Account(phone="+15551234567", balances={"XLM": "0"}))


def test_insert_flattens_fields(r):
    r.eval.return_value = 1
    RedisAccountDirectory(r).insert(Account(phone="+15551234567", settlement_address="GA", balances={"XLM": "0"}))
    args = r.eval.call_args.args
    assert args[1] == 1
    assert args[2] == "account:+15551234567"
    flat = list(args[3:])
    fields = dict(zip(flat[0::2], flat[1::2]))
    assert fields["balance:XLM"] == "0"
    assert fields["settlement_address"] == "GA"


def test_update_balance_compare_and_set(r):
    directory = RedisAccountDirectory(r)
    r.eval.return_value = 1
    assert directory.update_balance("+15551234567", "XLM", "90.0000000", expected="100") is True
    args = r.eval.call_args.args
    assert args[2:] == ("account:+15551234567", "balance:XLM", "100", "90.0000000")

    r.eval.return_value = 0
    assert directory.update_balance("+15551234567", "XLM", "90.0000000", expected="100") is False


def test_insert_transaction_keys_by_reference(r):
    r.eval.return_value = 1
    tx = Transaction("+15551234567", "+15557654321", "XLM", "10.0000000", settlement_reference="h1")
    assert RedisAccountDirectory(r).insert_transaction(tx) is True
    args = r.eval.call_args.args
    assert args[1] == 3
    assert args[2:5] == ("transaction:h1", "transactions:+15551234567", "transactions:+15557654321")
    assert json.loads(args[5])["amount"] == "10.0000000"


def test_list_transactions(r):
    tx = Transaction("+15551234567", "+15557654321", "XLM", "10.0000000", settlement_reference="h1")
    r.lrange.return_value = ["h1"]
    r.mget.return_value = [json.dumps(tx.to_dict()), None]
    out = RedisAccountDirectory(r).list_transactions("+15551234567", limit=5)
    r.lrange.assert_called_once_with("transactions:+15551234567", 0, 4)
    assert out == [tx]
