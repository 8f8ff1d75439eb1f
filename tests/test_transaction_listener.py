"""
Tests for TransactionListener.

Events are pushed onto the local store's update stream; closing the stream
lets the listener run to completion so results can be asserted without
sleeping.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from purchasekit.models.store import OwnershipType, VerifiedTransaction
from purchasekit.services.local_store import LocalStore
from purchasekit.services.purchase_engine import PurchaseEngine


async def _drain(engine: PurchaseEngine, store: LocalStore) -> None:
    """Close the stream and wait for the listener to process everything."""
    store.close()
    await asyncio.wait_for(engine.listener.wait(), timeout=5)


class TestListenerProcessing:
    """Tests for event processing."""

    @pytest.mark.asyncio
    async def test_renewal_granted_and_finished(self, engine, local_store, pro_monthly):
        """Verified background transactions are owned and finished."""
        await engine.fetch_products()
        engine.start()

        tx = local_store.push_transaction("pro_monthly")
        await _drain(engine, local_store)

        assert engine.purchased_products == (pro_monthly,)
        assert local_store.finish_count(tx.transaction_id) == 1

    @pytest.mark.asyncio
    async def test_family_shared_grant(self, engine, local_store, pro_monthly):
        """Family Sharing grants arrive through the listener."""
        await engine.fetch_products()
        engine.start()

        local_store.push_transaction("pro_monthly", ownership_type=OwnershipType.FAMILY_SHARED)
        await _drain(engine, local_store)

        assert engine.snapshot().owns("pro_monthly")

    @pytest.mark.asyncio
    async def test_unmappable_event_finished_without_report(self, engine, local_store, error_sink):
        """Unknown products are finished, not owned, and not reported."""
        await engine.fetch_products()
        engine.start()

        tx = local_store.push_transaction("unknown_sku")
        await _drain(engine, local_store)

        assert local_store.finish_count(tx.transaction_id) == 1
        assert engine.purchased_products == ()
        assert error_sink.failures == []

    @pytest.mark.asyncio
    async def test_unverified_event_does_not_stop_listener(
        self, engine, local_store, error_sink, pro_monthly
    ):
        """A bad event is reported and finished; later events still get processed."""
        await engine.fetch_products()
        engine.start()

        bad = local_store.push_transaction("pro_monthly", verified=False)
        good = local_store.push_transaction("pro_monthly")
        await _drain(engine, local_store)

        assert len(error_sink.failures) == 1
        assert error_sink.failures[0].transaction.transaction_id == bad.transaction_id
        assert local_store.finish_count(bad.transaction_id) == 1
        assert local_store.finish_count(good.transaction_id) == 1
        assert engine.purchased_products == (pro_monthly,)

    @pytest.mark.asyncio
    async def test_every_event_finished_exactly_once(self, engine, local_store):
        """Each transaction through the listener is finished once, redeliveries included."""
        await engine.fetch_products()
        engine.start()

        pushed = [
            local_store.push_transaction("pro_monthly"),
            local_store.push_transaction("unknown_sku"),
            local_store.push_transaction("pro_monthly", verified=False),
        ]
        local_store.push_update(VerifiedTransaction(pushed[0]))
        await _drain(engine, local_store)

        for tx in pushed:
            assert local_store.finish_count(tx.transaction_id) == 1
        assert len(local_store.finished) == len(pushed)

    @pytest.mark.asyncio
    async def test_finish_failure_does_not_stop_listener(self, engine, local_store, pro_monthly):
        """A store error while finishing one event is contained."""
        await engine.fetch_products()
        local_store.finish = AsyncMock(side_effect=[ConnectionError("reset"), None])
        engine.start()

        local_store.push_transaction("unknown_sku")
        local_store.push_transaction("pro_monthly")
        await _drain(engine, local_store)

        assert local_store.finish.await_count == 2
        assert engine.purchased_products == (pro_monthly,)
        assert engine.listener.failure is None


class TestListenerLifecycle:
    """Tests for starting, stopping and stream termination."""

    @pytest.mark.asyncio
    async def test_start_and_stop(self, engine):
        """The listener runs until stopped."""
        engine.start()
        await asyncio.sleep(0)
        assert engine.listener.running is True

        await engine.close()

        assert engine.listener.running is False

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, engine):
        """Starting twice keeps a single task."""
        engine.start()
        task = engine.listener._task
        engine.start()

        assert engine.listener._task is task
        await engine.close()

    @pytest.mark.asyncio
    async def test_stop_without_start(self, engine):
        """Stopping a listener that never started is a no-op."""
        await engine.close()
        assert engine.listener.running is False

    @pytest.mark.asyncio
    async def test_events_after_stop_not_processed(self, engine, local_store):
        """Events delivered after cancellation are left for the store."""
        await engine.fetch_products()
        engine.start()
        await asyncio.sleep(0)
        await engine.close()

        local_store.push_transaction("pro_monthly")
        await asyncio.sleep(0)

        assert local_store.finished == []

    @pytest.mark.asyncio
    async def test_stream_failure_ends_listener(self, engine, local_store):
        """An unrecoverable stream error stops the listener without restart."""
        engine.start()
        error = ConnectionError("stream lost")

        local_store.fail_stream(error)
        await asyncio.wait_for(engine.listener.wait(), timeout=5)

        assert engine.listener.running is False
        assert engine.listener.failure is error

    @pytest.mark.asyncio
    async def test_stream_end_ends_listener(self, engine, local_store):
        """A closed stream ends the listener cleanly."""
        engine.start()

        await _drain(engine, local_store)

        assert engine.listener.running is False
        assert engine.listener.failure is None

    @pytest.mark.asyncio
    async def test_context_manager(self, local_store):
        """The engine starts and stops the listener as a context manager."""
        async with PurchaseEngine(local_store, ["pro_monthly"]) as engine:
            await asyncio.sleep(0)
            assert engine.listener.running is True

        assert engine.listener.running is False

    @pytest.mark.asyncio
    async def test_inflight_event_completes_on_stop(self, local_store, pro_monthly):
        """Stopping mid-event still finishes the event being processed."""
        engine = PurchaseEngine(local_store, ["pro_monthly"])
        await engine.fetch_products()

        entered = asyncio.Event()
        release = asyncio.Event()
        original_finish = local_store.finish

        async def slow_finish(transaction):
            entered.set()
            await release.wait()
            await original_finish(transaction)

        local_store.finish = slow_finish
        engine.start()
        tx = local_store.push_transaction("pro_monthly")
        await asyncio.wait_for(entered.wait(), timeout=5)

        stop = asyncio.ensure_future(engine.close())
        await asyncio.sleep(0)
        release.set()
        await asyncio.wait_for(stop, timeout=5)

        assert local_store.finish_count(tx.transaction_id) == 1
        assert engine.purchased_products == (pro_monthly,)
