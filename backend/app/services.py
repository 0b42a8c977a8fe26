"""Service wiring for route handlers.

Each dependency builds a TalentPay service on top of the Supabase
client. Tests swap ``get_storage`` and the collaborators through
``app.dependency_overrides``.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, status

from talentpay.config import CommerceConfig
from talentpay.ledger.audit import LedgerAudit
from talentpay.media import MediaStorage, SupabaseMediaStorage
from talentpay.notifications import NotificationDispatcher, SupabaseNotificationDispatcher
from talentpay.orders.service import OrderService
from talentpay.payouts.chip import ChipChargeVerifier, ChipPayoutProvider
from talentpay.payouts.provider import ChargeVerifier, PayoutProvider
from talentpay.settlement.service import SettlementService
from talentpay.storage.base import CommerceStorage
from talentpay.storage.supabase import SupabaseCommerceStorage
from talentpay.wallet.service import WalletService

from .config import Settings, get_settings
from .database import Database

_payout_provider: ChipPayoutProvider | None = None
_charge_verifier: ChipChargeVerifier | None = None


def get_commerce_config(settings: Annotated[Settings, Depends(get_settings)]) -> CommerceConfig:
    return settings.commerce_config()


def get_storage(
    db: Database,
    config: Annotated[CommerceConfig, Depends(get_commerce_config)],
) -> CommerceStorage:
    return SupabaseCommerceStorage(db, max_attempts=config.balance_update_max_attempts)


def get_media_storage(
    db: Database,
    settings: Annotated[Settings, Depends(get_settings)],
) -> MediaStorage:
    return SupabaseMediaStorage(db, bucket=settings.review_media_bucket)


def get_notifier(db: Database) -> NotificationDispatcher:
    return SupabaseNotificationDispatcher(db)


def get_payout_provider(settings: Annotated[Settings, Depends(get_settings)]) -> PayoutProvider:
    """Shared CHIP client; 503 when payouts are not configured."""
    global _payout_provider
    if not settings.chip_brand_id or not settings.chip_secret_key:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Payouts are not configured",
        )
    if _payout_provider is None:
        _payout_provider = ChipPayoutProvider(
            brand_id=settings.chip_brand_id,
            secret_key=settings.chip_secret_key,
            endpoint=settings.chip_api_endpoint,
        )
    return _payout_provider


def get_charge_verifier(settings: Annotated[Settings, Depends(get_settings)]) -> ChargeVerifier:
    """Shared CHIP client for confirming top-up charges; 503 when not configured."""
    global _charge_verifier
    if not settings.chip_brand_id or not settings.chip_secret_key:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Top-ups are not configured",
        )
    if _charge_verifier is None:
        _charge_verifier = ChipChargeVerifier(
            brand_id=settings.chip_brand_id,
            secret_key=settings.chip_secret_key,
            endpoint=settings.chip_purchases_endpoint,
        )
    return _charge_verifier


Storage = Annotated[CommerceStorage, Depends(get_storage)]
Config = Annotated[CommerceConfig, Depends(get_commerce_config)]
Notifier = Annotated[NotificationDispatcher, Depends(get_notifier)]


def get_order_service(storage: Storage, config: Config, notifier: Notifier) -> OrderService:
    return OrderService(storage=storage, config=config, notifier=notifier)


def get_settlement_service(
    storage: Storage,
    config: Config,
    notifier: Notifier,
    media: Annotated[MediaStorage, Depends(get_media_storage)],
) -> SettlementService:
    return SettlementService(storage=storage, config=config, media=media, notifier=notifier)


def get_wallet_service(storage: Storage, config: Config, notifier: Notifier) -> WalletService:
    """Wallet service without external providers (balances, listings)."""
    return WalletService(storage=storage, config=config, notifier=notifier)


def get_payout_wallet_service(
    storage: Storage,
    config: Config,
    notifier: Notifier,
    provider: Annotated[PayoutProvider, Depends(get_payout_provider)],
) -> WalletService:
    """Wallet service that can submit withdrawals."""
    return WalletService(storage=storage, config=config, payout_provider=provider, notifier=notifier)


def get_topup_wallet_service(
    storage: Storage,
    config: Config,
    notifier: Notifier,
    verifier: Annotated[ChargeVerifier, Depends(get_charge_verifier)],
) -> WalletService:
    """Wallet service that confirms card charges before crediting them."""
    return WalletService(storage=storage, config=config, notifier=notifier, charge_verifier=verifier)


def get_ledger_audit(storage: Storage, config: Config) -> LedgerAudit:
    return LedgerAudit(storage=storage, config=config)


# Type aliases for dependency injection
OrderServiceDep = Annotated[OrderService, Depends(get_order_service)]
SettlementServiceDep = Annotated[SettlementService, Depends(get_settlement_service)]
WalletServiceDep = Annotated[WalletService, Depends(get_wallet_service)]
PayoutWalletServiceDep = Annotated[WalletService, Depends(get_payout_wallet_service)]
TopUpWalletServiceDep = Annotated[WalletService, Depends(get_topup_wallet_service)]
LedgerAuditDep = Annotated[LedgerAudit, Depends(get_ledger_audit)]
