"""
Transaction Listener - Background consumer of the store's update stream.

Renewals, Family Sharing grants, purchases from other devices and resolved
pending purchases arrive here rather than through a purchase call.
"""

import asyncio
from typing import TYPE_CHECKING

from structlog import get_logger

from purchasekit.models.store import VerificationResult
from purchasekit.observability.metrics import metrics

if TYPE_CHECKING:
    from purchasekit.services.purchase_engine import PurchaseEngine

logger = get_logger(__name__)


class TransactionListener:
    """
    Drains ``store.transaction_updates()`` into the engine.

    Each received event is processed to completion even if the listener is
    stopped meanwhile; cancellation lands on the wait for the next event.
    The listener does not restart itself after a stream failure.
    """

    def __init__(self, engine: "PurchaseEngine") -> None:
        self.engine = engine
        self.failure: BaseException | None = None
        self._task: asyncio.Task[None] | None = None
        self._inflight: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start consuming updates. Must be called from a running event loop."""
        if self.running:
            return
        self.failure = None
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name="purchasekit-transaction-listener"
        )

    async def stop(self) -> None:
        """Cancel the listener and wait for any in-flight event to finish."""
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

        inflight, self._inflight = self._inflight, None
        if inflight is not None:
            await asyncio.gather(inflight, return_exceptions=True)

        logger.info("transaction_listener_stopped")

    async def wait(self) -> None:
        """Wait for the listener to end on its own (stream closed or failed)."""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    async def _run(self) -> None:
        logger.info("transaction_listener_started")
        try:
            async for result in self.engine.store.transaction_updates():
                self._inflight = asyncio.ensure_future(self._handle(result))
                await asyncio.shield(self._inflight)
                self._inflight = None
        except asyncio.CancelledError:
            logger.info("transaction_listener_cancelled")
            raise
        except Exception as exc:
            self.failure = exc
            logger.exception("transaction_update_stream_failed")
            return

        logger.info("transaction_update_stream_ended")

    async def _handle(self, result: VerificationResult) -> None:
        """Process one event. Errors are logged so the loop keeps running."""
        try:
            product = await self.engine.process_update(result)
        except Exception:
            metrics.record_listener_event("error")
            logger.exception("transaction_update_failed")
            return

        metrics.record_listener_event("granted" if product is not None else "processed")
