"""
Purchase Engine - Purchase flow, verification and entitlement reconciliation.

Coordinates foreground calls (fetch, purchase, restore) with the background
transaction listener against one shared state lock. The lock guards only
in-memory mutations; it is never held while awaiting the store.
"""

import asyncio
from collections import OrderedDict
from collections.abc import Callable, Iterable

from structlog import get_logger

from purchasekit.exceptions import PurchaseKitError, StoreTransportError, VerificationFailure
from purchasekit.models.outcome import PurchaseOutcome
from purchasekit.models.store import (
    Product,
    PurchaseResultKind,
    StoreSnapshot,
    Transaction,
    UnverifiedTransaction,
    VerificationResult,
    VerifiedTransaction,
)
from purchasekit.observability.logging import log_context
from purchasekit.observability.metrics import metrics
from purchasekit.services.catalog import ProductCatalog
from purchasekit.services.store_client import StoreClient
from purchasekit.services.transaction_listener import TransactionListener

logger = get_logger(__name__)

SnapshotObserver = Callable[[StoreSnapshot], None]
ErrorSink = Callable[[VerificationFailure], None]

# Finished ids remembered per engine. Older ids are dropped first; the store
# stops redelivering a transaction once it has been finished.
FINISHED_ID_LIMIT = 10_000


def log_verification_failure(failure: VerificationFailure) -> None:
    """Default error sink: record the failure in the structured log."""
    logger.error(
        "transaction_verification_failed",
        transaction_id=failure.transaction.transaction_id,
        product_id=failure.transaction.product_id,
        reason=failure.reason,
    )


def check_verified(result: VerificationResult) -> Transaction:
    """
    Accept a transaction only if the store marked it verified.

    Shared by the purchase, reconciliation and listener paths so all three
    apply identical acceptance criteria.

    Raises:
        VerificationFailure: If the result is unverified
        TypeError: If the value is not a verification result
    """
    if isinstance(result, VerifiedTransaction):
        return result.transaction
    if isinstance(result, UnverifiedTransaction):
        raise VerificationFailure(result.transaction, result.reason)
    raise TypeError(f"Expected a verification result, got {type(result).__name__}")


class PurchaseEngine:
    """Owns the fetched catalog and the owned-products set."""

    def __init__(
        self,
        store: StoreClient,
        product_ids: Iterable[str] = (),
        error_sink: ErrorSink | None = None,
        finished_id_limit: int = FINISHED_ID_LIMIT,
    ) -> None:
        """
        Initialize the engine.

        Args:
            store: Store collaborator
            product_ids: Initial product identifiers
            error_sink: Receives verification failures from background paths
            finished_id_limit: Most recent finished transaction ids kept for
                duplicate suppression
        """
        self.store = store
        self.state_lock = asyncio.Lock()
        self.catalog = ProductCatalog(store, product_ids, lock=self.state_lock)
        self.error_sink = error_sink or log_verification_failure
        self.listener = TransactionListener(self)

        self._owned: dict[str, Product] = {}
        if finished_id_limit <= 0:
            raise ValueError("Finished id limit must be positive")
        self.finished_id_limit = finished_id_limit
        self._finished_ids: OrderedDict[str, None] = OrderedDict()
        self._observers: list[SnapshotObserver] = []

    # ========================================================================
    # Lifecycle
    # ========================================================================

    def start(self) -> None:
        """Start the background transaction listener."""
        self.listener.start()

    async def close(self) -> None:
        """Stop the background transaction listener."""
        await self.listener.stop()

    async def __aenter__(self) -> "PurchaseEngine":
        self.start()
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        await self.close()

    # ========================================================================
    # State and observation
    # ========================================================================

    @property
    def fetched_products(self) -> tuple[Product, ...]:
        return self.catalog.products

    @property
    def purchased_products(self) -> tuple[Product, ...]:
        return tuple(self._owned.values())

    def snapshot(self) -> StoreSnapshot:
        """Immutable view of the current catalog and owned products."""
        return StoreSnapshot(
            fetched_products=self.catalog.products,
            purchased_products=tuple(self._owned.values()),
        )

    def subscribe(self, observer: SnapshotObserver) -> Callable[[], None]:
        """
        Register an observer for state changes.

        The observer is called with a new snapshot whenever the fetched
        catalog or the owned set changes.

        Returns:
            A callable that removes the observer
        """
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def _publish(self) -> None:
        """Notify observers. Callers hold the state lock."""
        snapshot = self.snapshot()
        metrics.record_owned(len(snapshot.purchased_products))
        for observer in list(self._observers):
            try:
                observer(snapshot)
            except Exception:
                logger.exception("snapshot_observer_failed")

    # ========================================================================
    # Configuration and catalog
    # ========================================================================

    def add_product_identifier(self, product_id: str) -> None:
        """Add a product identifier. It becomes purchasable after the next fetch."""
        self.catalog.configure([product_id])
        logger.info("product_identifier_added", product_id=product_id)

    async def fetch_products(self) -> tuple[Product, ...]:
        """
        Fetch the catalog, then reconcile current entitlements.

        Reconciliation failures propagate but do not roll back the fetch.

        Raises:
            EmptyCatalogError: If the store returned no products
            StoreTransportError: If a store call failed
        """
        products = await self.catalog.fetch()
        async with self.state_lock:
            self._publish()
        await self.reconcile_entitlements()
        return products

    async def restore_purchases(self) -> tuple[Product, ...]:
        """Re-fetch the catalog and reconcile entitlements."""
        logger.info("restore_purchases_requested")
        return await self.fetch_products()

    # ========================================================================
    # Grant and finish
    # ========================================================================

    async def _grant(self, transaction: Transaction) -> Product | None:
        """Add the transaction's product to the owned set if it is in the catalog."""
        async with self.state_lock:
            product = self.catalog.lookup(transaction.product_id)
            if product is None:
                return None
            if product.product_id not in self._owned:
                self._owned[product.product_id] = product
                self._publish()
                logger.info(
                    "entitlement_granted",
                    product_id=product.product_id,
                    transaction_id=transaction.transaction_id,
                )
            return product

    async def _finish_once(self, transaction: Transaction, path: str) -> bool:
        """
        Finish a transaction unless this engine already finished it.

        Returns:
            True if finish was called, False if it was already finished

        Raises:
            StoreTransportError: If the store rejected the finish call
        """
        async with self.state_lock:
            if transaction.transaction_id in self._finished_ids:
                return False
            self._finished_ids[transaction.transaction_id] = None
            while len(self._finished_ids) > self.finished_id_limit:
                self._finished_ids.popitem(last=False)

        try:
            await self.store.finish(transaction)
        except Exception as exc:
            # Not acknowledged; allow a later delivery to finish it
            async with self.state_lock:
                self._finished_ids.pop(transaction.transaction_id, None)
            logger.exception(
                "transaction_finish_failed",
                transaction_id=transaction.transaction_id,
                path=path,
            )
            if isinstance(exc, PurchaseKitError):
                raise
            raise StoreTransportError(f"Finish failed: {exc}", cause=exc) from exc

        metrics.record_finish(path)
        logger.info(
            "transaction_finished",
            transaction_id=transaction.transaction_id,
            product_id=transaction.product_id,
            path=path,
        )
        return True

    def _report(self, failure: VerificationFailure, path: str) -> None:
        metrics.record_verification_failure(path)
        try:
            self.error_sink(failure)
        except Exception:
            logger.exception("error_sink_failed", transaction_id=failure.transaction.transaction_id)

    # ========================================================================
    # Purchase flow
    # ========================================================================

    async def request_purchase(self, product: Product) -> PurchaseOutcome:
        """
        Purchase a product and return the outcome.

        Expected outcomes (cancelled, pending, unverified, unmappable) are
        returned, never raised. Store failures come back as transport errors.
        """
        with log_context(product_id=product.product_id):
            outcome = await self._run_purchase(product)
            metrics.record_purchase(outcome.status.value)
            logger.info("purchase_finished", status=outcome.status.value)
            return outcome

    async def _run_purchase(self, product: Product) -> PurchaseOutcome:
        logger.info("purchase_requested")

        try:
            response = await self.store.initiate_purchase(product)
        except Exception as exc:
            logger.warning("purchase_transport_error", error=str(exc))
            return PurchaseOutcome.transport_error(exc)

        if response.kind == PurchaseResultKind.USER_CANCELLED:
            return PurchaseOutcome.canceled()
        if response.kind == PurchaseResultKind.PENDING:
            return PurchaseOutcome.pending()
        if response.kind != PurchaseResultKind.COMPLETED or response.verification is None:
            logger.warning("purchase_result_unrecognized", kind=str(response.kind))
            return PurchaseOutcome.unknown()

        try:
            transaction = check_verified(response.verification)
        except VerificationFailure as failure:
            # Not finished: content is withheld and the store keeps the
            # transaction visible for its own retry handling
            metrics.record_verification_failure("purchase")
            logger.warning(
                "purchase_verification_failed",
                transaction_id=failure.transaction.transaction_id,
                reason=failure.reason,
            )
            return PurchaseOutcome.verification_failed()
        except TypeError:
            logger.warning(
                "purchase_result_malformed",
                verification_type=type(response.verification).__name__,
            )
            return PurchaseOutcome.unknown()

        granted = await self._grant(transaction)
        if granted is None:
            logger.warning(
                "purchase_unmappable",
                transaction_id=transaction.transaction_id,
                transaction_product_id=transaction.product_id,
            )
            return PurchaseOutcome.unmappable()

        try:
            await self._finish_once(transaction, "purchase")
        except PurchaseKitError:
            # Entitlement stands; the store redelivers unfinished transactions
            # through the update stream, where they are finished
            pass

        return PurchaseOutcome.success(granted)

    # ========================================================================
    # Entitlements and background updates
    # ========================================================================

    async def reconcile_entitlements(self) -> None:
        """
        Grant and finish the current entitlement for every fetched product.

        Entitlements are authoritative grants, so they are always finished.

        Raises:
            StoreTransportError: If an entitlement lookup or finish failed
        """
        for product in self.catalog.products:
            try:
                result = await self.store.current_entitlement(product)
            except PurchaseKitError:
                raise
            except Exception as exc:
                logger.exception("entitlement_lookup_failed", product_id=product.product_id)
                raise StoreTransportError(f"Entitlement lookup failed: {exc}", cause=exc) from exc

            if result is None:
                continue

            try:
                transaction = check_verified(result)
            except VerificationFailure as failure:
                self._report(failure, "reconcile")
                await self._finish_once(failure.transaction, "reconcile")
                continue

            await self._grant(transaction)
            await self._finish_once(transaction, "reconcile")

        logger.info("entitlements_reconciled", owned=len(self._owned))

    async def process_update(self, result: VerificationResult) -> Product | None:
        """
        Handle one event from the store's transaction update stream.

        The transaction is always finished. Verification failures are reported
        to the error sink before finishing.

        Returns:
            The granted product, or None if nothing was granted
        """
        try:
            transaction = check_verified(result)
        except VerificationFailure as failure:
            self._report(failure, "listener")
            await self._finish_once(failure.transaction, "listener")
            return None

        product = await self._grant(transaction)
        if product is None:
            logger.info(
                "transaction_update_unmappable",
                transaction_id=transaction.transaction_id,
                product_id=transaction.product_id,
            )
        await self._finish_once(transaction, "listener")
        return product
