"""
Settlement gateway contract.

`settle` never raises for network or signing trouble; it reports a classified
SettlementResult so the caller can tell "nothing happened" apart from
"the network may have accepted it" (timeout).
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Protocol

SETTLED = "settled"
FAILED = "failed"
TIMEOUT = "timeout"
MISCONFIGURED = "misconfigured"


@dataclass(frozen=True)
class SettlementResult:
    status: str
    # Transaction hash. Known for SETTLED, and for TIMEOUT when the envelope was built.
    reference: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == SETTLED


class SettlementGateway(Protocol):
    def settle(self, source: str, destination: str, currency: str, amount: Decimal) -> SettlementResult:
        ...

    def new_identity(self) -> str:
        """Create a fresh network identity and return its public address."""
        ...

    def lookup(self, reference: str) -> Optional[bool]:
        """True if the referenced transaction is on the ledger, False if not, None if unknown."""
        ...

    def balance_of(self, address: str, currency: str) -> Optional[Decimal]:
        """Live balance on the network; None when the account or trustline is absent."""
        ...


class SettlementError(Exception):
    """Raised by gateway read helpers (lookup/balance_of) when the network can't be reached."""
