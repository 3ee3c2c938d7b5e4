import os
from dotenv import load_dotenv

load_dotenv()

# Default testnet issuers for the credit assets offered by the menu.
DEFAULT_ASSET_ISSUERS = (
    "USDC:GBBD47IF6LWK7P7MDEVSCWR7DPUWV3NY3DTQEVFL4NAT4AQH3ZLLFLA5,"
    "EURC:GB3Q6QDZYTHWT7E5PVS3W7FUT5GVAFC5KSZFFLPU25GO7VTC3NM2ZTVO"
)


class Settings:
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    REDIS_SOCKET_TIMEOUT_SEC: float = float(os.getenv("REDIS_SOCKET_TIMEOUT_SEC", "5"))
    RQ_QUEUE_NAME: str = os.getenv("RQ_QUEUE_NAME", "reconciliation")

    # Menu texts
    SERVICE_NAME: str = os.getenv("SERVICE_NAME", "Stellar USSD Service")

    # Ordered: menu digit 1 maps to the first code. "XLM" alone gives the single-currency variant.
    SUPPORTED_CURRENCIES: str = os.getenv("SUPPORTED_CURRENCIES", "XLM,USDC,EURC")
    ASSET_ISSUERS: str = os.getenv("ASSET_ISSUERS", DEFAULT_ASSET_ISSUERS)

    # Stellar settlement
    STELLAR_HORIZON_URL: str = os.getenv("STELLAR_HORIZON_URL", "https://horizon-testnet.stellar.org")
    STELLAR_NETWORK: str = os.getenv("STELLAR_NETWORK", "testnet").lower()
    STELLAR_SENDER_SECRET: str = os.getenv("STELLAR_SENDER_SECRET", "")
    STELLAR_BASE_FEE_FALLBACK: int = int(os.getenv("STELLAR_BASE_FEE_FALLBACK", "100"))
    STELLAR_TX_TIMEOUT_SEC: int = int(os.getenv("STELLAR_TX_TIMEOUT_SEC", "30"))
    HORIZON_REQUEST_TIMEOUT_SEC: int = int(os.getenv("HORIZON_REQUEST_TIMEOUT_SEC", "10"))
    HORIZON_POST_TIMEOUT_SEC: float = float(os.getenv("HORIZON_POST_TIMEOUT_SEC", "35"))

    # Testnet funding on registration. Empty URL disables it.
    FRIENDBOT_URL: str = os.getenv("FRIENDBOT_URL", "https://friendbot.stellar.org")
    FRIENDBOT_TIMEOUT_SEC: float = float(os.getenv("FRIENDBOT_TIMEOUT_SEC", "10"))

    # "directory" shows the bookkept balance, "network" asks Horizon.
    BALANCE_SOURCE: str = os.getenv("BALANCE_SOURCE", "directory").lower()

    # Duplicate-confirmation guard and per-account transfer lock
    IDEMPOTENCY_TTL_SEC: int = int(os.getenv("IDEMPOTENCY_TTL_SEC", "86400"))
    TRANSFER_LOCK_TTL_MS: int = int(os.getenv("TRANSFER_LOCK_TTL_MS", "60000"))

    # bcrypt cost factor
    PIN_HASH_ROUNDS: int = int(os.getenv("PIN_HASH_ROUNDS", "12"))

    # Reconciliation worker
    RECONCILE_MAX_RETRIES: int = int(os.getenv("RECONCILE_MAX_RETRIES", "5"))

    # Security & privacy
    ENABLE_PII_REDACTION: bool = os.getenv("ENABLE_PII_REDACTION", "true").lower() == "true"
    ADMIN_RBAC_ENABLED: bool = os.getenv("ADMIN_RBAC_ENABLED", "true").lower() == "true"
    ADMIN_API_KEY: str = os.getenv("ADMIN_API_KEY", "")


def parse_currency_list(raw: str) -> list:
    """Comma list -> ordered, de-duplicated upper-case codes."""
    out = []
    for part in (raw or "").split(","):
        code = part.strip().upper()
        if code and code not in out:
            out.append(code)
    return out


def parse_asset_issuers(raw: str) -> dict:
    """`CODE:ISSUER,CODE:ISSUER` -> {code: issuer}."""
    out = {}
    for part in (raw or "").split(","):
        code, sep, issuer = part.strip().partition(":")
        if sep and code.strip() and issuer.strip():
            out[code.strip().upper()] = issuer.strip()
    return out


settings = Settings()
