"""
Stellar settlement adapter
--------------------------
Builds, signs and submits a single payment operation through Horizon.

Timeout semantics: the transaction hash is computed before submission, so a
connection drop or Horizon 504 during submit is reported as TIMEOUT together
with the hash. The network may still include it; callers must not debit and
must not resubmit, only look the hash up later.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Dict, Optional

from stellar_sdk import Asset, Keypair, Network, RequestsClient, Server, TransactionBuilder
from stellar_sdk.exceptions import (
    BadResponseError,
    BaseHorizonError,
    ConnectionError as HorizonConnectionError,
    NotFoundError,
    SdkError,
)

from ussd.observability.logging import log
from ussd.settlement.assets import match_balance_line
from ussd.settlement.gateway import (
    FAILED,
    MISCONFIGURED,
    SETTLED,
    TIMEOUT,
    SettlementError,
    SettlementResult,
)
from ussd.utils.money import to_storage


def network_passphrase(name: str) -> str:
    if (name or "").lower() in ("public", "pubnet", "mainnet"):
        return Network.PUBLIC_NETWORK_PASSPHRASE
    return Network.TESTNET_NETWORK_PASSPHRASE


class StellarSettlementGateway:
    def __init__(
        self,
        *,
        server: Server,
        assets: Dict[str, Asset],
        signer_secret: str = "",
        passphrase: str = Network.TESTNET_NETWORK_PASSPHRASE,
        base_fee_fallback: int = 100,
        tx_timeout_sec: int = 30,
    ):
        self.server = server
        self.assets = assets
        self.passphrase = passphrase
        self.base_fee_fallback = int(base_fee_fallback)
        self.tx_timeout_sec = int(tx_timeout_sec)
        self._signer: Optional[Keypair] = None
        if signer_secret:
            try:
                self._signer = Keypair.from_secret(signer_secret)
            except SdkError:
                log(event="settlement_signer_invalid")

    @classmethod
    def from_settings(cls, settings, assets: Dict[str, Asset]) -> "StellarSettlementGateway":
        client = RequestsClient(
            request_timeout=int(settings.HORIZON_REQUEST_TIMEOUT_SEC),
            post_timeout=float(settings.HORIZON_POST_TIMEOUT_SEC),
        )
        return cls(
            server=Server(horizon_url=settings.STELLAR_HORIZON_URL, client=client),
            assets=assets,
            signer_secret=settings.STELLAR_SENDER_SECRET,
            passphrase=network_passphrase(settings.STELLAR_NETWORK),
            base_fee_fallback=settings.STELLAR_BASE_FEE_FALLBACK,
            tx_timeout_sec=settings.STELLAR_TX_TIMEOUT_SEC,
        )

    @property
    def signer_address(self) -> Optional[str]:
        return self._signer.public_key if self._signer else None

    def _base_fee(self) -> int:
        try:
            return int(self.server.fetch_base_fee())
        except BaseHorizonError as e:
            log(event="settlement_base_fee_fallback", status=getattr(e, "status", None))
        except HorizonConnectionError:
            log(event="settlement_base_fee_fallback", status=None)
        return self.base_fee_fallback

    def settle(self, source: str, destination: str, currency: str, amount: Decimal) -> SettlementResult:
        # The operational signer must be the account that holds the funds.
        if self._signer is None:
            log(event="settlement_configuration_error", reason="no_signer", currency=currency)
            return SettlementResult(status=MISCONFIGURED, error="no_signer")
        if self._signer.public_key != source:
            log(event="settlement_configuration_error", reason="signer_mismatch", currency=currency)
            return SettlementResult(status=MISCONFIGURED, error="signer_mismatch")

        asset = self.assets.get(currency)
        if asset is None:
            log(event="settlement_configuration_error", reason="unsupported_asset", currency=currency)
            return SettlementResult(status=MISCONFIGURED, error="unsupported_asset")

        # Nothing below has reached the network until submit_transaction.
        try:
            account = self.server.load_account(source)
            envelope = (
                TransactionBuilder(
                    source_account=account,
                    network_passphrase=self.passphrase,
                    base_fee=self._base_fee(),
                )
                .append_payment_op(destination=destination, asset=asset, amount=to_storage(amount))
                .set_timeout(self.tx_timeout_sec)
                .build()
            )
            envelope.sign(self._signer)
            tx_hash = envelope.hash_hex()
        except (BaseHorizonError, HorizonConnectionError, SdkError) as e:
            return SettlementResult(status=FAILED, error=f"prepare:{type(e).__name__}")

        try:
            resp = self.server.submit_transaction(envelope)
        except BadResponseError as e:
            if getattr(e, "status", None) == 504:
                return SettlementResult(status=TIMEOUT, reference=tx_hash, error="horizon_timeout")
            return SettlementResult(status=FAILED, reference=tx_hash, error=f"rejected:{e.status}")
        except BaseHorizonError as e:
            codes = (getattr(e, "extras", None) or {}).get("result_codes")
            return SettlementResult(status=FAILED, reference=tx_hash, error=f"rejected:{codes or e.status}")
        except HorizonConnectionError as e:
            return SettlementResult(status=TIMEOUT, reference=tx_hash, error=f"connection:{e}"[:200])

        return SettlementResult(status=SETTLED, reference=str((resp or {}).get("hash") or tx_hash))

    def new_identity(self) -> str:
        # Custody of the secret seed is outside this service; it is neither stored nor logged.
        return Keypair.random().public_key

    def lookup(self, reference: str) -> Optional[bool]:
        try:
            record = self.server.transactions().transaction(reference).call()
        except NotFoundError:
            return False
        except (BaseHorizonError, HorizonConnectionError) as e:
            raise SettlementError(f"lookup failed: {type(e).__name__}") from e
        return bool((record or {}).get("successful", True))

    def balance_of(self, address: str, currency: str) -> Optional[Decimal]:
        try:
            record = self.server.accounts().account_id(address).call()
        except NotFoundError:
            return None
        except (BaseHorizonError, HorizonConnectionError) as e:
            raise SettlementError(f"balance lookup failed: {type(e).__name__}") from e
        asset = self.assets.get(currency)
        for line in (record or {}).get("balances") or []:
            if match_balance_line(line, currency, asset):
                return Decimal(str(line.get("balance") or "0"))
        return None
