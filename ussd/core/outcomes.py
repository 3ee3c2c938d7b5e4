from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional

CONTINUE = "continue"
END = "end"


@dataclass(frozen=True)
class MenuResult:
    kind: str  # CONTINUE | END
    text: str
    # Classification for logs/metrics; never shown to the user
    outcome: str = ""

    @property
    def terminal(self) -> bool:
        return self.kind == END


def cont(text: str, outcome: str = "prompt") -> MenuResult:
    return MenuResult(kind=CONTINUE, text=text, outcome=outcome)


def end(text: str, outcome: str = "") -> MenuResult:
    return MenuResult(kind=END, text=text, outcome=outcome)


@dataclass(frozen=True)
class PendingTransfer:
    source_phone: str
    destination_phone: str
    currency: str
    amount: Decimal


class TransferStatus(str, Enum):
    COMPLETED = "completed"
    # Funds moved on the network but local bookkeeping is behind
    RECONCILIATION_NEEDED = "reconciliation_needed"

    # No side effects happened for any of these
    SOURCE_NOT_FOUND = "source_not_found"
    DESTINATION_NOT_FOUND = "destination_not_found"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    CONFIGURATION_ERROR = "configuration_error"
    SETTLEMENT_FAILED = "settlement_failed"
    DIRECTORY_UNAVAILABLE = "directory_unavailable"
    BUSY = "busy"

    # Submitted, outcome unknown (timeout). No debit performed.
    SETTLEMENT_UNKNOWN = "settlement_unknown"


# Why bookkeeping is behind for RECONCILIATION_NEEDED
BALANCE_WRITE_FAILED = "balance_write_failed"
BALANCE_CONFLICT = "balance_conflict"
RECORD_WRITE_FAILED = "record_write_failed"


@dataclass(frozen=True)
class TransferResult:
    status: TransferStatus
    currency: str = ""
    new_balance: Optional[str] = None
    settlement_reference: Optional[str] = None
    reason: Optional[str] = None
