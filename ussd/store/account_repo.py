"""
Account directory
-----------------
Accounts live in one Redis hash per phone number (`account:<phone>`); balances are
hash fields named `balance:<CODE>`. Transactions are JSON strings keyed by their
settlement reference, with per-phone index lists.

Writes that must not race are single Lua scripts:
- insert: create the hash only if the phone is unknown
- update_balance: compare-and-set on one balance field
- insert_transaction: record once per settlement reference
"""
from __future__ import annotations

import json
import uuid
from typing import List, Optional, Protocol

from redis import Redis
from redis.exceptions import RedisError

from ussd.store.models import Account, Transaction

PREFIX = "account:"
BALANCE_FIELD_PREFIX = "balance:"
TX_PREFIX = "transaction:"
TX_INDEX_PREFIX = "transactions:"
TX_INDEX_MAX = 200

_INSERT_ACCOUNT = """
if redis.call("exists", KEYS[1]) == 1 then
    return 0
end
redis.call("hset", KEYS[1], unpack(ARGV))
return 1
"""

_COMPARE_AND_SET_BALANCE = """
if redis.call("exists", KEYS[1]) == 0 then
    return -1
end
local cur = redis.call("hget", KEYS[1], ARGV[1])
if not cur then
    cur = ""
end
if cur ~= ARGV[2] then
    return 0
end
redis.call("hset", KEYS[1], ARGV[1], ARGV[3])
return 1
"""

_INSERT_TRANSACTION = """
if redis.call("set", KEYS[1], ARGV[1], "NX") then
    redis.call("lpush", KEYS[2], ARGV[2])
    redis.call("ltrim", KEYS[2], 0, tonumber(ARGV[3]) - 1)
    if KEYS[3] ~= KEYS[2] then
        redis.call("lpush", KEYS[3], ARGV[2])
        redis.call("ltrim", KEYS[3], 0, tonumber(ARGV[3]) - 1)
    end
    return 1
end
return 0
"""


class DirectoryError(Exception):
    """The account store could not be read or written."""


class DuplicateAccountError(DirectoryError):
    """An account already exists for this phone number."""


class AccountDirectory(Protocol):
    def find_by_phone(self, phone: str) -> Optional[Account]:
        ...

    def insert(self, account: Account) -> None:
        ...

    def update_balance(self, phone: str, currency: str, new_value: str, expected: Optional[str]) -> bool:
        """Write new_value only if the stored value still equals expected. False on conflict."""
        ...

    def insert_transaction(self, tx: Transaction) -> bool:
        """False if a record for the same settlement reference already exists."""
        ...

    def list_transactions(self, phone: str, limit: int = 20) -> List[Transaction]:
        ...


def _key(phone: str) -> str:
    return f"{PREFIX}{phone}"


def _account_to_fields(account: Account) -> dict:
    fields = {
        "phone": account.phone,
        "settlement_address": account.settlement_address or "",
        "pin": account.pin or "",
        "preferred_currency": account.preferred_currency or "",
        "created_at": account.created_at or "",
    }
    for code, value in (account.balances or {}).items():
        fields[f"{BALANCE_FIELD_PREFIX}{code}"] = str(value)
    return fields


def _account_from_fields(data: dict) -> Account:
    balances = {
        k[len(BALANCE_FIELD_PREFIX):]: v
        for k, v in data.items()
        if k.startswith(BALANCE_FIELD_PREFIX)
    }
    return Account(
        phone=data.get("phone", ""),
        settlement_address=data.get("settlement_address", ""),
        balances=balances,
        pin=data.get("pin", ""),
        preferred_currency=data.get("preferred_currency", "XLM"),
        created_at=data.get("created_at", ""),
    )


class RedisAccountDirectory:
    def __init__(self, redis: Redis):
        self.r = redis

    def find_by_phone(self, phone: str) -> Optional[Account]:
        try:
            data = self.r.hgetall(_key(phone))
        except RedisError as e:
            raise DirectoryError(f"find_by_phone failed: {type(e).__name__}") from e
        if not data:
            return None
        return _account_from_fields(data)

    def insert(self, account: Account) -> None:
        flat = []
        for k, v in _account_to_fields(account).items():
            flat.extend([k, v])
        try:
            created = self.r.eval(_INSERT_ACCOUNT, 1, _key(account.phone), *flat)
        except RedisError as e:
            raise DirectoryError(f"insert failed: {type(e).__name__}") from e
        if int(created or 0) != 1:
            raise DuplicateAccountError(account.phone)

    def update_balance(self, phone: str, currency: str, new_value: str, expected: Optional[str]) -> bool:
        try:
            res = self.r.eval(
                _COMPARE_AND_SET_BALANCE,
                1,
                _key(phone),
                f"{BALANCE_FIELD_PREFIX}{currency}",
                "" if expected is None else str(expected),
                str(new_value),
            )
        except RedisError as e:
            raise DirectoryError(f"update_balance failed: {type(e).__name__}") from e
        return int(res or 0) == 1

    def insert_transaction(self, tx: Transaction) -> bool:
        record_id = tx.settlement_reference or uuid.uuid4().hex
        try:
            res = self.r.eval(
                _INSERT_TRANSACTION,
                3,
                f"{TX_PREFIX}{record_id}",
                f"{TX_INDEX_PREFIX}{tx.source_phone}",
                f"{TX_INDEX_PREFIX}{tx.destination_phone}",
                json.dumps(tx.to_dict()),
                record_id,
                TX_INDEX_MAX,
            )
        except RedisError as e:
            raise DirectoryError(f"insert_transaction failed: {type(e).__name__}") from e
        return int(res or 0) == 1

    def list_transactions(self, phone: str, limit: int = 20) -> List[Transaction]:
        try:
            ids = self.r.lrange(f"{TX_INDEX_PREFIX}{phone}", 0, max(0, int(limit) - 1)) or []
            raws = self.r.mget([f"{TX_PREFIX}{i}" for i in ids]) if ids else []
        except RedisError as e:
            raise DirectoryError(f"list_transactions failed: {type(e).__name__}") from e
        out = []
        for raw in raws:
            if raw:
                out.append(Transaction.from_dict(json.loads(raw)))
        return out
