"""
Exception Classes - Strongly typed exception hierarchy.

NO DICTIONARIES - All exceptions have typed attributes.
"""

from collections.abc import Iterable

from purchasekit.models.store import Transaction


class PurchaseKitError(Exception):
    """Base exception for all purchase processing errors."""

    pass


class EmptyCatalogError(PurchaseKitError):
    """Raised when the store returns no products for the configured identifiers.

    Treated as a configuration error, not a transient one.
    """

    def __init__(self, product_ids: Iterable[str]) -> None:
        self.product_ids = tuple(product_ids)
        requested = ", ".join(self.product_ids) or "<none>"
        super().__init__(f"Store returned no products for: {requested}")


class StoreTransportError(PurchaseKitError):
    """Raised when a call to the store collaborator fails."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        self.message = message
        self.cause = cause
        super().__init__(f"Store transport error: {message}")


class VerificationFailure(PurchaseKitError):
    """Raised when a transaction fails the store's authenticity check."""

    def __init__(self, transaction: Transaction, reason: str) -> None:
        self.transaction = transaction
        self.reason = reason
        super().__init__(
            f"Transaction {transaction.transaction_id} for {transaction.product_id} "
            f"failed verification: {reason}"
        )
