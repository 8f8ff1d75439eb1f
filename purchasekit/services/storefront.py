"""
Storefront - Observable facade over the purchase engine.

Mirrors the engine's catalog and owned products for a UI layer. Operations are
pass-throughs: the engine's state lock guards every mutation, so a restore
never waits behind a purchase that is still on the payment sheet.
"""

from collections.abc import Callable, Iterable

from structlog import get_logger

from purchasekit.config import settings
from purchasekit.exceptions import PurchaseKitError
from purchasekit.models.outcome import PurchaseOutcome
from purchasekit.models.store import Product, StoreSnapshot
from purchasekit.services.purchase_engine import ErrorSink, PurchaseEngine, SnapshotObserver
from purchasekit.services.store_client import StoreClient

logger = get_logger(__name__)


class Storefront:
    """
    Facade exposing purchase operations and observable product snapshots.

    Usage:
        async with Storefront(store, ["pro_monthly"]) as storefront:
            outcome = await storefront.request_and_handle_purchase(product)
    """

    def __init__(
        self,
        store: StoreClient,
        product_ids: Iterable[str] | None = None,
        error_sink: ErrorSink | None = None,
    ) -> None:
        """
        Initialize the storefront.

        Args:
            store: Store collaborator
            product_ids: Product identifiers (defaults to configured settings)
            error_sink: Receives background verification failures
        """
        if product_ids is None:
            product_ids = settings.configured_product_ids
        self.engine = PurchaseEngine(store, product_ids, error_sink=error_sink)
        self._snapshot = self.engine.snapshot()
        self._unsubscribe = self.engine.subscribe(self._mirror)

    def _mirror(self, snapshot: StoreSnapshot) -> None:
        self._snapshot = snapshot

    @property
    def snapshot(self) -> StoreSnapshot:
        return self._snapshot

    @property
    def fetched_products(self) -> tuple[Product, ...]:
        return self._snapshot.fetched_products

    @property
    def purchased_products(self) -> tuple[Product, ...]:
        return self._snapshot.purchased_products

    def subscribe(self, observer: SnapshotObserver) -> Callable[[], None]:
        """Register an observer for snapshot changes. Returns an unsubscribe callable."""
        return self.engine.subscribe(observer)

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def open(self) -> None:
        """Start listening for transaction updates and load the catalog."""
        self.engine.start()
        try:
            await self.fetch_products()
        except PurchaseKitError as exc:
            logger.warning("initial_catalog_fetch_failed", error=str(exc))

    async def close(self) -> None:
        """Stop the transaction listener."""
        # An in-flight listener event may still publish while the engine closes
        await self.engine.close()
        self._unsubscribe()

    async def __aenter__(self) -> "Storefront":
        await self.open()
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        await self.close()

    # ========================================================================
    # Operations
    # ========================================================================

    async def add_product_identifier(self, product_id: str) -> None:
        """Add a product identifier and refresh the catalog on a best-effort basis."""
        self.engine.add_product_identifier(product_id)
        try:
            await self.fetch_products()
        except PurchaseKitError as exc:
            logger.warning(
                "catalog_refresh_after_add_failed",
                product_id=product_id,
                error=str(exc),
            )

    async def fetch_products(self) -> tuple[Product, ...]:
        """
        Fetch products and reconcile entitlements.

        Raises:
            EmptyCatalogError: If the store returned no products
            StoreTransportError: If a store call failed
        """
        return await self.engine.fetch_products()

    async def request_and_handle_purchase(self, product: Product) -> PurchaseOutcome:
        """Purchase a product. Expected failures come back as outcomes."""
        return await self.engine.request_purchase(product)

    async def restore_purchases(self) -> tuple[Product, ...]:
        """Re-fetch products and reconcile entitlements."""
        return await self.engine.restore_purchases()
