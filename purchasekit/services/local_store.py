"""
Local Store - In-memory store collaborator for tests and local development.

Plays the role of a sandbox storefront: products are registered up front,
purchase responses can be scripted per product, and transaction updates are
pushed by hand.
"""

import asyncio
import itertools
from collections.abc import AsyncIterator, Iterable, Sequence
from datetime import UTC, datetime
from enum import Enum

from structlog import get_logger

from purchasekit.exceptions import StoreTransportError
from purchasekit.models.store import (
    OwnershipType,
    Product,
    ProductType,
    StorePurchaseResult,
    Transaction,
    UnverifiedTransaction,
    VerificationResult,
    VerifiedTransaction,
)

logger = get_logger(__name__)


class ScriptedResponse(str, Enum):
    """How the local store answers a purchase request."""

    COMPLETE = "complete"
    CANCEL = "cancel"
    PENDING = "pending"
    UNVERIFIED = "unverified"
    FAIL = "fail"
    UNRECOGNIZED = "unrecognized"


class _StreamEnd:
    pass


class _StreamFailure:
    def __init__(self, error: Exception) -> None:
        self.error = error


class LocalStore:
    """In-memory implementation of the store client protocol.

    Supports a single consumer of ``transaction_updates()``.
    """

    def __init__(self, products: Iterable[Product] = (), environment: str = "Sandbox") -> None:
        """
        Initialize the local store.

        Args:
            products: Products available for sale
            environment: Environment stamped on generated transactions
        """
        self.environment = environment
        self.catalog_error: Exception | None = None
        self.finished: list[Transaction] = []
        self.purchase_requests: list[str] = []

        self._products: dict[str, Product] = {}
        self._responses: dict[str, ScriptedResponse] = {}
        self._entitlements: dict[str, VerificationResult] = {}
        self._updates: asyncio.Queue[VerificationResult | _StreamEnd | _StreamFailure] = (
            asyncio.Queue()
        )
        self._ids = itertools.count(1_000_000_001)

        for product in products:
            self.add_product(product)

    # ========================================================================
    # Setup helpers
    # ========================================================================

    def add_product(self, product: Product) -> None:
        """Make a product available for sale."""
        self._products[product.product_id] = product

    def remove_product(self, product_id: str) -> None:
        """Withdraw a product from sale."""
        self._products.pop(product_id, None)

    def script(self, product_id: str, response: ScriptedResponse) -> None:
        """Set how purchases of a product are answered."""
        self._responses[product_id] = response

    def make_transaction(
        self,
        product_id: str,
        ownership_type: OwnershipType = OwnershipType.PURCHASED,
    ) -> Transaction:
        """Create a new transaction with a fresh identifier."""
        transaction_id = str(next(self._ids))
        return Transaction(
            transaction_id=transaction_id,
            original_transaction_id=transaction_id,
            product_id=product_id,
            purchase_date=datetime.now(UTC),
            ownership_type=ownership_type,
            environment=self.environment,
        )

    def grant_entitlement(self, product_id: str, verified: bool = True) -> Transaction:
        """Record an entitlement as if it were purchased earlier or elsewhere."""
        transaction = self.make_transaction(product_id)
        self._entitlements[product_id] = _wrap(transaction, verified)
        return transaction

    def push_update(self, result: VerificationResult) -> None:
        """Deliver an event on the transaction update stream."""
        self._updates.put_nowait(result)

    def push_transaction(
        self,
        product_id: str,
        verified: bool = True,
        ownership_type: OwnershipType = OwnershipType.PURCHASED,
    ) -> Transaction:
        """Create a transaction and deliver it on the update stream."""
        transaction = self.make_transaction(product_id, ownership_type)
        self.push_update(_wrap(transaction, verified))
        return transaction

    def close(self) -> None:
        """End the update stream."""
        self._updates.put_nowait(_StreamEnd())

    def fail_stream(self, error: Exception) -> None:
        """Make the update stream raise ``error`` once queued events are consumed."""
        self._updates.put_nowait(_StreamFailure(error))

    def finish_count(self, transaction_id: str) -> int:
        """Number of times a transaction was finished."""
        return sum(1 for t in self.finished if t.transaction_id == transaction_id)

    # ========================================================================
    # Store client protocol
    # ========================================================================

    async def fetch_catalog(self, product_ids: Iterable[str]) -> Sequence[Product]:
        if self.catalog_error is not None:
            raise self.catalog_error
        return [self._products[pid] for pid in product_ids if pid in self._products]

    async def initiate_purchase(self, product: Product) -> StorePurchaseResult:
        self.purchase_requests.append(product.product_id)
        response = self._responses.get(product.product_id, ScriptedResponse.COMPLETE)
        logger.debug(
            "local_store_purchase",
            product_id=product.product_id,
            response=response.value,
        )

        if response == ScriptedResponse.FAIL:
            raise StoreTransportError("Simulated store failure")
        if response == ScriptedResponse.CANCEL:
            return StorePurchaseResult.user_cancelled()
        if response == ScriptedResponse.PENDING:
            return StorePurchaseResult.pending()
        if response == ScriptedResponse.UNRECOGNIZED:
            return StorePurchaseResult.unrecognized()

        transaction = self.make_transaction(product.product_id)
        if response == ScriptedResponse.UNVERIFIED:
            return StorePurchaseResult.completed(
                UnverifiedTransaction(transaction, reason="signature mismatch")
            )

        result = VerifiedTransaction(transaction)
        if product.type != ProductType.CONSUMABLE:
            self._entitlements[product.product_id] = result
        return StorePurchaseResult.completed(result)

    async def current_entitlement(self, product: Product) -> VerificationResult | None:
        return self._entitlements.get(product.product_id)

    async def transaction_updates(self) -> AsyncIterator[VerificationResult]:
        while True:
            item = await self._updates.get()
            if isinstance(item, _StreamEnd):
                return
            if isinstance(item, _StreamFailure):
                raise item.error
            yield item

    async def finish(self, transaction: Transaction) -> None:
        self.finished.append(transaction)


def _wrap(transaction: Transaction, verified: bool) -> VerificationResult:
    if verified:
        return VerifiedTransaction(transaction)
    return UnverifiedTransaction(transaction, reason="signature mismatch")
