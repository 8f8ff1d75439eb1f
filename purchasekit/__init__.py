"""
purchasekit - In-app purchase reconciliation for asyncio applications.

Fetches products from a store, drives purchases through their outcomes,
verifies transactions before granting entitlements, and drains the store's
background transaction updates.

Hosts that want purchasekit's structured events call ``setup_logging()`` once
at startup; the library never configures the root logger.
"""

from purchasekit.exceptions import (
    EmptyCatalogError,
    PurchaseKitError,
    StoreTransportError,
    VerificationFailure,
)
from purchasekit.models.outcome import PurchaseOutcome, PurchaseStatus
from purchasekit.models.store import (
    Product,
    ProductType,
    StorePurchaseResult,
    StoreSnapshot,
    Transaction,
    UnverifiedTransaction,
    VerificationResult,
    VerifiedTransaction,
)
from purchasekit.observability.logging import setup_logging
from purchasekit.services.purchase_engine import PurchaseEngine, check_verified
from purchasekit.services.store_client import StoreClient
from purchasekit.services.storefront import Storefront

__all__ = [
    "EmptyCatalogError",
    "Product",
    "ProductType",
    "PurchaseEngine",
    "PurchaseKitError",
    "PurchaseOutcome",
    "PurchaseStatus",
    "StoreClient",
    "StorePurchaseResult",
    "StoreSnapshot",
    "StoreTransportError",
    "Storefront",
    "Transaction",
    "UnverifiedTransaction",
    "VerificationFailure",
    "VerificationResult",
    "VerifiedTransaction",
    "check_verified",
    "setup_logging",
]
