"""Billing dependencies shared by the project, task and invoice routes."""

from fastapi import Depends

from app.core.config import get_settings
from app.core.locking import ProjectLockManager, get_lock_manager
from app.db.base import get_session_factory
from app.services.billing_service import BillingService
from app.wallet import WalletLedger, WalletLedgerFake

_wallet_ledger: WalletLedger | None = None


def get_wallet_ledger() -> WalletLedger:
    """Dependency that provides the wallet ledger.

    Defaults to the in-memory ledger. Override this dependency in tests or
    deployments via app.dependency_overrides.
    """
    global _wallet_ledger
    if _wallet_ledger is None:
        _wallet_ledger = WalletLedgerFake()
    return _wallet_ledger


def get_project_locks() -> ProjectLockManager:
    return get_lock_manager()


def get_billing_service(
    ledger: WalletLedger = Depends(get_wallet_ledger),
    locks: ProjectLockManager = Depends(get_project_locks),
) -> BillingService:
    return BillingService(get_session_factory(), ledger, locks, get_settings())
