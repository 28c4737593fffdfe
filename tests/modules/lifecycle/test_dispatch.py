"""Tests for replacement search dispatchers."""

import asyncio

from src.modules.lifecycle.dispatch import BackgroundReplacementDispatcher, build_dispatcher


class TestBackgroundReplacementDispatcher:
    """Test suite for the in-process dispatcher."""

    def test_dispatch_does_not_wait(self):
        events = []

        async def runner(order_id):
            await asyncio.sleep(0.01)
            events.append(order_id)
            return "P2"

        async def scenario():
            dispatcher = BackgroundReplacementDispatcher(runner)
            dispatcher.dispatch("order-1")
            before = list(events)
            pending = dispatcher.pending
            await dispatcher.drain()
            return before, pending, dispatcher.pending

        before, pending, after = asyncio.run(scenario())

        assert before == []
        assert pending == 1
        assert after == 0
        assert events == ["order-1"]

    def test_runner_failure_is_contained(self, caplog):
        async def runner(order_id):
            raise ConnectionError("directory down")

        async def scenario():
            dispatcher = BackgroundReplacementDispatcher(runner)
            dispatcher.dispatch("order-1")
            await dispatcher.drain()
            return dispatcher.pending

        assert asyncio.run(scenario()) == 0
        assert "Replacement search for order order-1 failed" in caplog.text

    def test_default_mode_is_background(self):
        async def runner(order_id):
            return None

        assert isinstance(build_dispatcher(runner), BackgroundReplacementDispatcher)
