"""
Pytest Configuration and Centralized Fixtures.

Provides reusable fixtures for testing:
- Catalog products
- In-memory store collaborator
- Purchase engine and storefront wired to the local store
- Error sink that records verification failures
"""

import os

# Set environment variables BEFORE importing purchasekit modules
os.environ.setdefault("PURCHASEKIT_LOG_FORMAT", "console")
os.environ.setdefault("PURCHASEKIT_METRICS_ENABLED", "true")

import pytest

from purchasekit.exceptions import VerificationFailure
from purchasekit.models.store import Product, ProductType
from purchasekit.services.local_store import LocalStore
from purchasekit.services.purchase_engine import PurchaseEngine
from purchasekit.services.storefront import Storefront

# ============================================================================
# Product Fixtures
# ============================================================================


@pytest.fixture
def pro_monthly() -> Product:
    """Auto-renewable subscription product."""
    return Product(
        product_id="pro_monthly",
        display_name="Pro Monthly",
        description="All pro features, billed monthly",
        display_price="$4.99",
        type=ProductType.AUTO_RENEWABLE,
    )


@pytest.fixture
def lifetime() -> Product:
    """Non-consumable product."""
    return Product(
        product_id="lifetime_unlock",
        display_name="Lifetime Unlock",
        display_price="$49.99",
        type=ProductType.NON_CONSUMABLE,
    )


@pytest.fixture
def coins() -> Product:
    """Consumable product."""
    return Product(
        product_id="coins_100",
        display_name="100 Coins",
        display_price="$0.99",
        type=ProductType.CONSUMABLE,
    )


# ============================================================================
# Store and Engine Fixtures
# ============================================================================


@pytest.fixture
def local_store(pro_monthly: Product, lifetime: Product, coins: Product) -> LocalStore:
    """Local store selling all test products."""
    return LocalStore([pro_monthly, lifetime, coins])


class RecordingSink:
    """Error sink that records every verification failure it receives."""

    def __init__(self) -> None:
        self.failures: list[VerificationFailure] = []

    def __call__(self, failure: VerificationFailure) -> None:
        self.failures.append(failure)


@pytest.fixture
def error_sink() -> RecordingSink:
    """Recording error sink."""
    return RecordingSink()


@pytest.fixture
def engine(local_store: LocalStore, error_sink: RecordingSink) -> PurchaseEngine:
    """Engine configured for pro_monthly only (listener not started)."""
    return PurchaseEngine(local_store, ["pro_monthly"], error_sink=error_sink)


@pytest.fixture
def storefront(local_store: LocalStore, error_sink: RecordingSink) -> Storefront:
    """Storefront configured for pro_monthly and lifetime_unlock (not opened)."""
    return Storefront(local_store, ["pro_monthly", "lifetime_unlock"], error_sink=error_sink)
