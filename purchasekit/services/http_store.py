"""
HTTP Store Client - Store collaborator backed by a storefront HTTP API.

NO DICTIONARIES - Responses are validated into typed models.

Endpoints:
    GET  /v1/products?ids=a,b              catalog lookup
    POST /v1/purchases                     purchase initiation
    GET  /v1/entitlements/{product_id}     current entitlement
    GET  /v1/transactions/updates          long-poll for transaction updates
    POST /v1/transactions/{id}/finish      acknowledge a transaction
"""

from collections.abc import AsyncIterator, Iterable, Sequence

import httpx
from pydantic import ValidationError
from structlog import get_logger

from purchasekit.config import Settings
from purchasekit.exceptions import StoreTransportError
from purchasekit.models.api import (
    CatalogResponse,
    EntitlementResponse,
    PurchaseRequest,
    PurchaseResponse,
    TransactionUpdatesResponse,
)
from purchasekit.models.store import (
    Product,
    PurchaseResultKind,
    StorePurchaseResult,
    Transaction,
    VerificationResult,
)
from purchasekit.services.signed_transactions import SignedTransactionDecoder

logger = get_logger(__name__)


class HttpStoreClient:
    """
    Storefront HTTP API client.

    Handles catalog lookup, purchases, entitlements and the update stream.
    """

    def __init__(
        self,
        base_url: str,
        api_token: str,
        decoder: SignedTransactionDecoder,
        timeout: float = 30.0,
        poll_timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the HTTP store client.

        Args:
            base_url: Storefront API base URL
            api_token: Bearer token for the storefront API
            decoder: Decoder for signed transactions
            timeout: Per-request timeout in seconds
            poll_timeout: Long-poll window for transaction updates
            transport: Optional httpx transport (used by tests)
        """
        if not base_url:
            raise ValueError("Store base URL required")
        self.base_url = base_url.rstrip("/")
        self.api_token = api_token
        self.decoder = decoder
        self.timeout = timeout
        self.poll_timeout = poll_timeout
        self._transport = transport

        logger.info("http_store_client_initialized", base_url=self.base_url)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "HttpStoreClient":
        """Build a client from application settings."""
        decoder = SignedTransactionDecoder(
            settings.signing_key,
            algorithms=settings.allowed_signing_algorithms,
        )
        return cls(
            base_url=settings.store_base_url,
            api_token=settings.store_api_token,
            decoder=decoder,
            timeout=settings.store_request_timeout,
            poll_timeout=settings.store_poll_timeout,
            transport=transport,
        )

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        allow_missing: bool = False,
        timeout: float | None = None,
        **kwargs: object,
    ) -> dict[str, object] | None:
        """Make authenticated request to the storefront API."""
        url = f"{self.base_url}{endpoint}"
        headers = {
            "Authorization": f"Bearer {self.api_token}",
            "Accept": "application/json",
        }

        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.request(
                    method,
                    url,
                    headers=headers,
                    timeout=timeout or self.timeout,
                    **kwargs,  # type: ignore[arg-type]
                )
        except httpx.HTTPError as exc:
            logger.error("store_request_failed", endpoint=endpoint, error=str(exc))
            raise StoreTransportError(f"Request to {endpoint} failed: {exc}", cause=exc) from exc

        if response.status_code == 401:
            raise StoreTransportError("Invalid API credentials")
        if response.status_code == 404:
            if allow_missing:
                return None
            raise StoreTransportError(f"Not found: {endpoint}")
        if response.status_code >= 400:
            logger.error(
                "store_api_error",
                endpoint=endpoint,
                status=response.status_code,
                error=response.text,
            )
            raise StoreTransportError(f"API error: {response.status_code}")
        if response.status_code == 204 or not response.content:
            return {}

        try:
            result: dict[str, object] = response.json()
        except ValueError as exc:
            raise StoreTransportError(f"Invalid JSON from {endpoint}", cause=exc) from exc
        return result

    async def fetch_catalog(self, product_ids: Iterable[str]) -> Sequence[Product]:
        ids = list(product_ids)
        if not ids:
            return []

        data = await self._make_request("GET", "/v1/products", params={"ids": ",".join(ids)})
        try:
            catalog = CatalogResponse.model_validate(data or {})
        except ValidationError as exc:
            raise StoreTransportError("Malformed catalog response", cause=exc) from exc

        products = [entry.to_product() for entry in catalog.products]
        logger.info("http_store_catalog_fetched", requested=len(ids), returned=len(products))
        return products

    async def initiate_purchase(self, product: Product) -> StorePurchaseResult:
        body = PurchaseRequest(product_id=product.product_id).model_dump(by_alias=True)
        data = await self._make_request("POST", "/v1/purchases", json=body)
        try:
            response = PurchaseResponse.model_validate(data or {})
        except ValidationError as exc:
            raise StoreTransportError("Malformed purchase response", cause=exc) from exc

        logger.info(
            "http_store_purchase_response",
            product_id=product.product_id,
            status=response.status,
        )

        if response.status == PurchaseResultKind.COMPLETED:
            if not response.signed_transaction:
                raise StoreTransportError("Completed purchase without a signed transaction")
            return StorePurchaseResult.completed(self.decoder.decode(response.signed_transaction))

        try:
            kind: PurchaseResultKind | str = PurchaseResultKind(response.status)
        except ValueError:
            kind = response.status
        return StorePurchaseResult(kind=kind)

    async def current_entitlement(self, product: Product) -> VerificationResult | None:
        data = await self._make_request(
            "GET",
            f"/v1/entitlements/{product.product_id}",
            allow_missing=True,
        )
        if data is None:
            return None
        try:
            response = EntitlementResponse.model_validate(data)
        except ValidationError as exc:
            raise StoreTransportError("Malformed entitlement response", cause=exc) from exc
        if not response.signed_transaction:
            return None
        return self.decoder.decode(response.signed_transaction)

    async def transaction_updates(self) -> AsyncIterator[VerificationResult]:
        cursor: str | None = None
        while True:
            params: dict[str, str] = {"timeout": str(int(self.poll_timeout))}
            if cursor:
                params["cursor"] = cursor

            data = await self._make_request(
                "GET",
                "/v1/transactions/updates",
                timeout=self.poll_timeout + self.timeout,
                params=params,
            )
            try:
                page = TransactionUpdatesResponse.model_validate(data or {})
            except ValidationError as exc:
                raise StoreTransportError("Malformed updates response", cause=exc) from exc

            for signed in page.signed_transactions:
                try:
                    result = self.decoder.decode(signed)
                except StoreTransportError as exc:
                    # Nothing to finish without a transaction; skip it
                    logger.error("transaction_update_undecodable", error=str(exc))
                    continue
                yield result

            cursor = page.cursor or cursor

    async def finish(self, transaction: Transaction) -> None:
        await self._make_request(
            "POST",
            f"/v1/transactions/{transaction.transaction_id}/finish",
        )
        logger.debug("http_store_transaction_finished", transaction_id=transaction.transaction_id)
