"""
Payment Queue Observer - Adapter for legacy queue-based transaction callbacks.

Older store SDKs push batches of updated transactions through a payment
queue. This adapter does not process them itself: it triggers the regular
catalog fetch and entitlement reconciliation path.
"""

import asyncio
from collections.abc import Sequence

from structlog import get_logger

from purchasekit.exceptions import PurchaseKitError
from purchasekit.services.storefront import Storefront

logger = get_logger(__name__)


class PaymentQueueObserver:
    """Routes legacy payment-queue callbacks into the storefront."""

    def __init__(self, storefront: Storefront) -> None:
        self.storefront = storefront
        self._refreshes: set[asyncio.Task[None]] = set()

    def should_add_store_payment(self, product_id: str) -> bool:
        """Allow a store-initiated (promoted) purchase only for fetched products."""
        return any(p.product_id == product_id for p in self.storefront.fetched_products)

    def on_transactions_updated(self, transactions: Sequence[object]) -> asyncio.Task[None]:
        """
        Handle a batch of updated transactions from the payment queue.

        Must be called from the event loop thread.

        Returns:
            The scheduled refresh task
        """
        logger.info("payment_queue_transactions_updated", count=len(transactions))
        task = asyncio.get_running_loop().create_task(self._refresh())
        self._refreshes.add(task)
        task.add_done_callback(self._refreshes.discard)
        return task

    async def drain(self) -> None:
        """Wait for scheduled refreshes to complete."""
        if self._refreshes:
            await asyncio.gather(*self._refreshes, return_exceptions=True)

    async def _refresh(self) -> None:
        try:
            await self.storefront.fetch_products()
        except PurchaseKitError as exc:
            logger.warning("payment_queue_refresh_failed", error=str(exc))
