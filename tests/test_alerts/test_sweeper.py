"""Tests for ExpirySweeper."""

import asyncio
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from alertrelay.alerts.correlation import CorrelationStore
from alertrelay.alerts.sweeper import ExpirySweeper
from tests.conftest import T0


class TestSweep:
    def test_prunes_expired_entries(self, metrics):
        store = CorrelationStore(clock=lambda: T0 + timedelta(hours=13))
        store.get_or_create("old", T0)
        store.get_or_create("new", T0 + timedelta(hours=12, minutes=30))
        sweeper = ExpirySweeper(store, ttl=timedelta(hours=12), metrics=metrics)

        assert sweeper.sweep() == 1
        assert "old" not in store
        assert "new" in store

    def test_records_prune_duration(self, metrics):
        sweeper = ExpirySweeper(CorrelationStore(), ttl=timedelta(hours=12), metrics=metrics)

        sweeper.sweep()
        sweeper.sweep()

        assert metrics.registry.get_sample_value(
            "alertrelay_alerts_prune_duration_seconds_count",
        ) == 2

    def test_without_metrics(self):
        sweeper = ExpirySweeper(CorrelationStore(), ttl=timedelta(hours=1))

        assert sweeper.sweep() == 0

    def test_reports_remaining_count(self):
        store = CorrelationStore(clock=lambda: T0 + timedelta(hours=13))
        store.get_or_create("old", T0)
        store.get_or_create("new", T0 + timedelta(hours=12, minutes=30))
        counts = []
        sweeper = ExpirySweeper(store, ttl=timedelta(hours=12), on_pruned=counts.append)

        sweeper.sweep()

        assert counts == [1]

    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValueError):
            ExpirySweeper(CorrelationStore(), ttl=timedelta(hours=1), interval=timedelta(0))


class TestLifecycle:
    """Background task start/stop."""

    @pytest.mark.asyncio
    async def test_runs_periodically(self):
        store = CorrelationStore(clock=lambda: T0 + timedelta(hours=2))
        store.get_or_create("abc", T0)
        sweeper = ExpirySweeper(
            store, ttl=timedelta(hours=1), interval=timedelta(milliseconds=10),
        )

        sweeper.start()
        assert sweeper.running
        for _ in range(50):
            if "abc" not in store:
                break
            await asyncio.sleep(0.01)
        await sweeper.stop()

        assert "abc" not in store
        assert not sweeper.running

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self):
        sweeper = ExpirySweeper(CorrelationStore(), ttl=timedelta(hours=1))

        sweeper.start()
        task = sweeper._task
        sweeper.start()

        assert sweeper._task is task
        await sweeper.stop()

    @pytest.mark.asyncio
    async def test_stop_without_start(self):
        sweeper = ExpirySweeper(CorrelationStore(), ttl=timedelta(hours=1))

        await sweeper.stop()

        assert not sweeper.running

    @pytest.mark.asyncio
    async def test_survives_prune_errors(self):
        """A failing cycle is logged and the loop keeps going."""
        calls = []

        def prune(ttl):
            calls.append(ttl)
            if len(calls) == 1:
                raise RuntimeError("boom")
            return 0

        store = MagicMock(spec=CorrelationStore)
        store.prune.side_effect = prune
        store.__len__.return_value = 0
        sweeper = ExpirySweeper(
            store, ttl=timedelta(hours=1), interval=timedelta(milliseconds=5),
        )

        sweeper.start()
        for _ in range(50):
            if store.prune.call_count >= 2:
                break
            await asyncio.sleep(0.01)

        assert sweeper.running
        await sweeper.stop()
        assert store.prune.call_count >= 2
