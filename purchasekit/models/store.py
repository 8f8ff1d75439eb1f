"""
Store domain models - Immutable dataclasses for catalog and transaction data.

NO DICTIONARIES - All data uses strongly typed models.

These are the values exchanged with the store collaborator: catalog entries,
transactions, verification results and purchase responses.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class ProductType(str, Enum):
    """Kind of purchasable product."""

    CONSUMABLE = "consumable"
    NON_CONSUMABLE = "non_consumable"
    AUTO_RENEWABLE = "auto_renewable"
    NON_RENEWING = "non_renewing"


class OwnershipType(str, Enum):
    """How the user came to hold a transaction."""

    PURCHASED = "purchased"
    FAMILY_SHARED = "family_shared"


class PurchaseResultKind(str, Enum):
    """Kind of response the store gives to a purchase initiation."""

    COMPLETED = "completed"
    USER_CANCELLED = "user_cancelled"
    PENDING = "pending"  # e.g. Ask to Buy, awaiting parental approval
    UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True)
class Product:
    """Catalog entry returned by the store.

    Display and pricing fields are opaque to the engine; only ``product_id``
    is interpreted.
    """

    product_id: str
    display_name: str = ""
    description: str = ""
    display_price: str = ""
    type: ProductType = ProductType.NON_CONSUMABLE

    def __post_init__(self) -> None:
        """Validate product fields."""
        if not self.product_id:
            raise ValueError("Product ID required")


@dataclass(frozen=True)
class Transaction:
    """One purchase or entitlement event reported by the store."""

    transaction_id: str
    product_id: str
    purchase_date: datetime
    original_transaction_id: str | None = None  # First transaction in a renewal chain
    ownership_type: OwnershipType = OwnershipType.PURCHASED
    expires_date: datetime | None = None
    revocation_date: datetime | None = None
    environment: str = "Production"  # "Production" or "Sandbox"

    def __post_init__(self) -> None:
        """Validate transaction fields."""
        if not self.transaction_id:
            raise ValueError("Transaction ID required")
        if not self.product_id:
            raise ValueError("Product ID required")

    def is_revoked(self) -> bool:
        """Check if the store revoked this transaction."""
        return self.revocation_date is not None

    def is_family_shared(self) -> bool:
        """Check if the entitlement comes from Family Sharing."""
        return self.ownership_type == OwnershipType.FAMILY_SHARED

    def is_sandbox(self) -> bool:
        """Check if this is a sandbox (test) transaction."""
        return self.environment.lower() == "sandbox"


@dataclass(frozen=True)
class VerifiedTransaction:
    """A transaction whose signature the store vouched for."""

    transaction: Transaction


@dataclass(frozen=True)
class UnverifiedTransaction:
    """A transaction that failed the store's authenticity check.

    The transaction payload is untrusted and must never grant content.
    """

    transaction: Transaction
    reason: str = "verification failed"


VerificationResult = VerifiedTransaction | UnverifiedTransaction


@dataclass(frozen=True)
class StorePurchaseResult:
    """Store response to a purchase initiation."""

    kind: PurchaseResultKind | str
    verification: VerificationResult | None = None

    def __post_init__(self) -> None:
        """Validate that completed purchases carry a verification result."""
        if self.kind == PurchaseResultKind.COMPLETED and self.verification is None:
            raise ValueError("Completed purchase requires a verification result")

    @classmethod
    def completed(cls, verification: VerificationResult) -> "StorePurchaseResult":
        return cls(kind=PurchaseResultKind.COMPLETED, verification=verification)

    @classmethod
    def user_cancelled(cls) -> "StorePurchaseResult":
        return cls(kind=PurchaseResultKind.USER_CANCELLED)

    @classmethod
    def pending(cls) -> "StorePurchaseResult":
        return cls(kind=PurchaseResultKind.PENDING)

    @classmethod
    def unrecognized(cls) -> "StorePurchaseResult":
        return cls(kind=PurchaseResultKind.UNRECOGNIZED)


@dataclass(frozen=True)
class StoreSnapshot:
    """Immutable view of catalog and owned products published to observers."""

    fetched_products: tuple[Product, ...] = ()
    purchased_products: tuple[Product, ...] = ()

    def owns(self, product_id: str) -> bool:
        """Check if a product is in the purchased set."""
        return any(p.product_id == product_id for p in self.purchased_products)
