"""
Purchase outcome models.

Expected business outcomes of a purchase attempt are values, not exceptions,
so a user cancelling is never mistaken for a crash.
"""

from dataclasses import dataclass
from enum import Enum

from purchasekit.models.store import Product


class PurchaseStatus(str, Enum):
    """Outcome of a single purchase attempt."""

    SUCCESS = "success"
    CANCELED = "canceled"
    PENDING = "pending"
    VERIFICATION_FAILED = "verification_failed"
    UNMAPPABLE = "unmappable"
    TRANSPORT_ERROR = "transport_error"
    UNKNOWN = "unknown"


# User-facing text per outcome. Cancellation needs no explanation. Transport
# errors show the cause's own message and fall back to this text when it has none.
OUTCOME_MESSAGES: dict[PurchaseStatus, str] = {
    PurchaseStatus.SUCCESS: "Purchase complete",
    PurchaseStatus.CANCELED: "",
    PurchaseStatus.PENDING: (
        "Your purchase is pending. Once it's completed, your purchase will be activated"
    ),
    PurchaseStatus.VERIFICATION_FAILED: "Your purchase failed verification. Please try again",
    PurchaseStatus.UNMAPPABLE: (
        "Your purchase appears to have completed successfully but we're unable to "
        "verify it at this time. Once verification succeeds, your purchase will be "
        "activated. Thank you for your patience"
    ),
    PurchaseStatus.TRANSPORT_ERROR: "Unable to reach the store. Please try again later",
    PurchaseStatus.UNKNOWN: "An unknown error occurred. Please try again later",
}


@dataclass(frozen=True)
class PurchaseOutcome:
    """Result of ``PurchaseEngine.request_purchase``."""

    status: PurchaseStatus
    product: Product | None = None
    cause: BaseException | None = None

    def __post_init__(self) -> None:
        """Validate status-specific fields."""
        if self.status == PurchaseStatus.SUCCESS and self.product is None:
            raise ValueError("Successful outcome requires a product")
        if self.status == PurchaseStatus.TRANSPORT_ERROR and self.cause is None:
            raise ValueError("Transport error outcome requires a cause")

    @property
    def is_success(self) -> bool:
        return self.status == PurchaseStatus.SUCCESS

    @property
    def message(self) -> str:
        """Short user-facing message for this outcome."""
        if self.status == PurchaseStatus.TRANSPORT_ERROR:
            return str(self.cause) or OUTCOME_MESSAGES[self.status]
        return OUTCOME_MESSAGES[self.status]

    @classmethod
    def success(cls, product: Product) -> "PurchaseOutcome":
        return cls(status=PurchaseStatus.SUCCESS, product=product)

    @classmethod
    def canceled(cls) -> "PurchaseOutcome":
        return cls(status=PurchaseStatus.CANCELED)

    @classmethod
    def pending(cls) -> "PurchaseOutcome":
        return cls(status=PurchaseStatus.PENDING)

    @classmethod
    def verification_failed(cls) -> "PurchaseOutcome":
        return cls(status=PurchaseStatus.VERIFICATION_FAILED)

    @classmethod
    def unmappable(cls) -> "PurchaseOutcome":
        return cls(status=PurchaseStatus.UNMAPPABLE)

    @classmethod
    def transport_error(cls, cause: BaseException) -> "PurchaseOutcome":
        return cls(status=PurchaseStatus.TRANSPORT_ERROR, cause=cause)

    @classmethod
    def unknown(cls) -> "PurchaseOutcome":
        return cls(status=PurchaseStatus.UNKNOWN)
