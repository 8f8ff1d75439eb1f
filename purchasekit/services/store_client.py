"""
Store Client Protocol - Store-agnostic collaborator interface.

NO DICTIONARIES - All data uses strongly typed models.
"""

from collections.abc import AsyncIterator, Iterable, Sequence
from typing import Protocol

from purchasekit.models.store import (
    Product,
    StorePurchaseResult,
    Transaction,
    VerificationResult,
)


class StoreClient(Protocol):
    """
    Store collaborator protocol.

    Any storefront backend (platform store, HTTP backend, local test store)
    must implement this interface. The engine never talks to a payment
    system directly.
    """

    async def fetch_catalog(self, product_ids: Iterable[str]) -> Sequence[Product]:
        """
        Look up catalog entries for the given identifiers.

        Args:
            product_ids: Product identifiers to look up

        Returns:
            Products known to the store (unknown identifiers are omitted)

        Raises:
            StoreTransportError: If the lookup fails
        """
        ...

    async def initiate_purchase(self, product: Product) -> StorePurchaseResult:
        """
        Start a purchase and wait for the store to respond.

        Args:
            product: Product to buy

        Returns:
            The store's response (completed, cancelled, pending, ...)

        Raises:
            StoreTransportError: If the purchase request fails
        """
        ...

    async def current_entitlement(self, product: Product) -> VerificationResult | None:
        """
        Get the transaction currently entitling the user to a product.

        Args:
            product: Product to check

        Returns:
            Verification result for the entitling transaction, or None
        """
        ...

    def transaction_updates(self) -> AsyncIterator[VerificationResult]:
        """
        Stream of transactions delivered outside a direct purchase call.

        Covers renewals, Family Sharing grants, purchases made on other
        devices and resolution of pending purchases. The stream is long-lived.
        """
        ...

    async def finish(self, transaction: Transaction) -> None:
        """
        Acknowledge that a transaction has been processed.

        The store does not guarantee idempotence; callers must finish each
        transaction once.
        """
        ...
