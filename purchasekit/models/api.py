"""
API Models - Pydantic models for store backend responses.

NO DICTIONARIES - All data structures are strongly typed.
"""

from pydantic import BaseModel, ConfigDict, Field

from purchasekit.models.store import Product, ProductType


class _StoreModel(BaseModel):
    """Base for store payloads (camelCase on the wire)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class CatalogProduct(_StoreModel):
    """One product in GET /v1/products."""

    product_id: str = Field(..., alias="productId", min_length=1, max_length=255)
    display_name: str = Field("", alias="displayName")
    description: str = ""
    display_price: str = Field("", alias="displayPrice")
    type: ProductType = ProductType.NON_CONSUMABLE

    def to_product(self) -> Product:
        """Convert to the domain model."""
        return Product(
            product_id=self.product_id,
            display_name=self.display_name,
            description=self.description,
            display_price=self.display_price,
            type=self.type,
        )


class CatalogResponse(_StoreModel):
    """GET /v1/products response."""

    products: list[CatalogProduct] = Field(default_factory=list)


class PurchaseRequest(_StoreModel):
    """POST /v1/purchases request body."""

    product_id: str = Field(..., alias="productId", min_length=1, max_length=255)


class PurchaseResponse(_StoreModel):
    """POST /v1/purchases response.

    ``status`` is kept as a plain string so new statuses from the backend are
    passed through as unknown purchase results rather than rejected.
    """

    status: str
    signed_transaction: str | None = Field(None, alias="signedTransaction")


class EntitlementResponse(_StoreModel):
    """GET /v1/entitlements/{product_id} response."""

    signed_transaction: str | None = Field(None, alias="signedTransaction")


class TransactionUpdatesResponse(_StoreModel):
    """GET /v1/transactions/updates response."""

    signed_transactions: list[str] = Field(default_factory=list, alias="signedTransactions")
    cursor: str | None = None
