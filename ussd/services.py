"""
Collaborator wiring. Built once by the process entry point (API lifespan or the
RQ job) and passed down explicitly; nothing in the core reaches for globals.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional

from ussd.core.transfer import TransferOrchestrator
from ussd.core.reconciliation import RedisReconciliationQueue
from ussd.observability.metrics import RedisMetrics
from ussd.provisioning.friendbot import FriendbotProvisioner
from ussd.queue.rq_conn import get_queue
from ussd.settings import parse_asset_issuers, parse_currency_list
from ussd.settlement.assets import build_asset_table
from ussd.settlement.gateway import SettlementGateway
from ussd.settlement.stellar import StellarSettlementGateway
from ussd.store.account_repo import AccountDirectory, RedisAccountDirectory
from ussd.store.idempotency import RedisIdempotencyStore
from ussd.store.redis_conn import get_redis
from ussd.utils.lock import RedisLocks


@dataclass
class Services:
    directory: AccountDirectory
    settlement: SettlementGateway
    transfers: TransferOrchestrator
    currencies: List[str] = field(default_factory=lambda: ["XLM"])
    service_name: str = "Stellar USSD Service"
    provisioner: Optional[Any] = None
    idempotency: Optional[Any] = None
    reconciler: Optional[Any] = None
    metrics: Optional[Any] = None
    balance_source: str = "directory"
    pin_hash_rounds: int = 12


def build_services(settings, *, with_queue: bool = True) -> Services:
    redis = get_redis(settings.REDIS_URL, socket_timeout=settings.REDIS_SOCKET_TIMEOUT_SEC)
    currencies = parse_currency_list(settings.SUPPORTED_CURRENCIES)
    assets = build_asset_table(currencies, parse_asset_issuers(settings.ASSET_ISSUERS))

    directory = RedisAccountDirectory(redis)
    settlement = StellarSettlementGateway.from_settings(settings, assets)
    metrics = RedisMetrics(redis)
    queue = get_queue(settings.REDIS_URL, settings.RQ_QUEUE_NAME) if with_queue else None
    reconciler = RedisReconciliationQueue(redis, queue, max_retries=settings.RECONCILE_MAX_RETRIES)

    transfers = TransferOrchestrator(
        directory,
        settlement,
        locks=RedisLocks(redis, ttl_ms=settings.TRANSFER_LOCK_TTL_MS),
        reconciler=reconciler,
        metrics=metrics,
    )
    return Services(
        directory=directory,
        settlement=settlement,
        transfers=transfers,
        currencies=currencies,
        service_name=settings.SERVICE_NAME,
        provisioner=FriendbotProvisioner(settings.FRIENDBOT_URL, settings.FRIENDBOT_TIMEOUT_SEC),
        idempotency=RedisIdempotencyStore(redis, ttl_sec=settings.IDEMPOTENCY_TTL_SEC),
        reconciler=reconciler,
        metrics=metrics,
        balance_source=settings.BALANCE_SOURCE,
        pin_hash_rounds=settings.PIN_HASH_ROUNDS,
    )
