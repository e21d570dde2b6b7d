"""API-specific test fixtures."""

from contextlib import asynccontextmanager

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.core.locking import LocalLockManager
from app.wallet import WalletLedgerFake


@pytest.fixture
def api_ledger() -> WalletLedgerFake:
    """Ledger shared by every request of one test client."""
    return WalletLedgerFake(scenario="accept")


@pytest.fixture
def api_client(tmp_path, api_ledger):
    """FastAPI test client with a throwaway SQLite database.

    Initializes the global database via init_db inside the TestClient's
    own event loop so route handlers can use get_session_factory().
    """
    from fastapi import HTTPException
    from fastapi.middleware.cors import CORSMiddleware

    from app.api.routes import api_router
    from app.api.routes.billing import get_project_locks, get_wallet_ledger
    from app.core.config import get_settings
    from app.core.exceptions import BillingError
    from app.db import close_db, init_db
    from app.main import billing_exception_handler, generic_exception_handler, http_exception_handler
    from app.middleware.correlation import setup_correlation_middleware

    db_url = f"sqlite+aiosqlite:///{tmp_path / 'api.db'}"

    @asynccontextmanager
    async def test_lifespan(app: FastAPI):
        """Test lifespan - initialize DB in TestClient's event loop."""
        # Reset global so init_db creates a fresh engine in THIS loop
        import app.db.base as db_mod

        db_mod._engine = None
        db_mod._session_factory = None
        await init_db(db_url)
        yield
        await close_db()

    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Project Billing Engine - Test Client",
        version="0.1.0",
        lifespan=test_lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    setup_correlation_middleware(app)

    # Exception handlers (needed for debug_id testing)
    app.exception_handler(BillingError)(billing_exception_handler)
    app.exception_handler(HTTPException)(http_exception_handler)
    app.exception_handler(Exception)(generic_exception_handler)

    app.include_router(api_router, prefix="/api")

    locks = LocalLockManager(timeout=5.0)
    app.dependency_overrides[get_wallet_ledger] = lambda: api_ledger
    app.dependency_overrides[get_project_locks] = lambda: locks

    with TestClient(app) as client:
        yield client
