"""
Product Catalog - Configured product identifiers and the last fetched catalog.
"""

import asyncio
from collections.abc import Iterable

from structlog import get_logger

from purchasekit.exceptions import EmptyCatalogError, PurchaseKitError, StoreTransportError
from purchasekit.models.store import Product
from purchasekit.observability.metrics import metrics
from purchasekit.services.store_client import StoreClient

logger = get_logger(__name__)


class ProductCatalog:
    """Holds product identifiers and the most recently fetched products."""

    def __init__(
        self,
        store: StoreClient,
        product_ids: Iterable[str] = (),
        lock: asyncio.Lock | None = None,
    ) -> None:
        """
        Initialize the catalog.

        Args:
            store: Store collaborator used for catalog lookups
            product_ids: Initial product identifiers
            lock: State lock shared with the owning engine
        """
        self.store = store
        self.lock = lock or asyncio.Lock()
        self._product_ids: list[str] = []
        self._products: tuple[Product, ...] = ()
        self.configure(product_ids)

    @property
    def product_ids(self) -> tuple[str, ...]:
        """Configured product identifiers."""
        return tuple(self._product_ids)

    @property
    def products(self) -> tuple[Product, ...]:
        """Last fetched products."""
        return self._products

    def configure(self, product_ids: Iterable[str]) -> None:
        """
        Extend the configured identifiers.

        New identifiers are not purchasable until the next fetch.
        """
        for product_id in product_ids:
            if not product_id:
                raise ValueError("Product ID required")
            if product_id not in self._product_ids:
                self._product_ids.append(product_id)

    def replace_identifiers(self, product_ids: Iterable[str]) -> None:
        """Replace the configured identifiers."""
        self._product_ids = []
        self.configure(product_ids)

    def lookup(self, product_id: str) -> Product | None:
        """Find a fetched product by identifier."""
        for product in self._products:
            if product.product_id == product_id:
                return product
        return None

    async def fetch(self) -> tuple[Product, ...]:
        """
        Fetch products for the configured identifiers from the store.

        Returns:
            The new catalog snapshot

        Raises:
            EmptyCatalogError: If the store returned no products
            StoreTransportError: If the store lookup failed
        """
        requested = self.product_ids
        logger.info("fetching_catalog", product_ids=list(requested))

        try:
            fetched = await self.store.fetch_catalog(requested)
        except PurchaseKitError:
            metrics.record_catalog_fetch("error")
            raise
        except Exception as exc:
            metrics.record_catalog_fetch("error")
            logger.exception("catalog_fetch_failed")
            raise StoreTransportError(f"Catalog lookup failed: {exc}", cause=exc) from exc

        # Identifiers are unique within a snapshot; first entry wins
        unique: dict[str, Product] = {}
        for product in fetched:
            unique.setdefault(product.product_id, product)

        if not unique:
            metrics.record_catalog_fetch("empty")
            logger.error("catalog_empty", product_ids=list(requested))
            raise EmptyCatalogError(requested)

        products = tuple(unique.values())
        async with self.lock:
            self._products = products

        metrics.record_catalog_fetch("success", size=len(products))
        logger.info(
            "catalog_fetched",
            count=len(products),
            missing=[pid for pid in requested if pid not in unique],
        )

        return products
