from dataclasses import dataclass, field, replace, asdict
from typing import Dict, Optional, Sequence

from ussd.utils.time import utc_now_iso

STATUS_COMPLETED = "completed"


@dataclass(frozen=True)
class Account:
    # Canonical "+<10-15 digits>", unique key
    phone: str
    # Stellar public key (settlement identity)
    settlement_address: str = ""
    # currency code -> decimal string
    balances: Dict[str, str] = field(default_factory=dict)
    # Stored credential (hashed; see ussd.core.credentials)
    pin: str = ""
    preferred_currency: str = "XLM"
    created_at: str = ""

    def balance_raw(self, currency: str) -> Optional[str]:
        return (self.balances or {}).get(currency)

    def with_balance(self, currency: str, value: str) -> "Account":
        """New Account value with one balance replaced; the original is untouched."""
        balances = dict(self.balances or {})
        balances[currency] = value
        return replace(self, balances=balances)

    def to_dict(self) -> dict:
        return asdict(self)


def new_account(phone: str, settlement_address: str, pin: str, currencies: Sequence[str]) -> Account:
    return Account(
        phone=phone,
        settlement_address=settlement_address,
        balances={code: "0" for code in currencies},
        pin=pin,
        preferred_currency=(currencies[0] if currencies else "XLM"),
        created_at=utc_now_iso(),
    )


@dataclass(frozen=True)
class Transaction:
    source_phone: str
    destination_phone: str
    currency: str
    amount: str
    status: str = STATUS_COMPLETED
    settlement_reference: Optional[str] = None
    transaction_type: str = "send"
    created_at: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Transaction":
        return cls(
            source_phone=data.get("source_phone", ""),
            destination_phone=data.get("destination_phone", ""),
            currency=data.get("currency", ""),
            amount=str(data.get("amount", "")),
            status=data.get("status", STATUS_COMPLETED),
            settlement_reference=data.get("settlement_reference"),
            transaction_type=data.get("transaction_type", "send"),
            created_at=data.get("created_at") or utc_now_iso(),
        )
