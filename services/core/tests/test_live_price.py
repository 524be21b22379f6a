"""Tests for LivePriceMonitor polling, halting and cancellation."""

import asyncio

import pytest

from chartist.streaming.live_price import LivePriceMonitor, MonitorState


POLL = 0.01


class ScriptedQuotes:
    """Returns scripted prices in order; repeats the last entry when exhausted."""

    def __init__(self, script, delay=0.0):
        self.script = list(script)
        self.delay = delay
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch_quote(self, symbol):
        self.calls.append(symbol)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if len(self.script) > 1:
                return self.script.pop(0)
            return self.script[0] if self.script else None
        finally:
            self.in_flight -= 1


async def wait_until(predicate, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


def make_monitor(quotes, max_failures=5):
    updates = []
    monitor = LivePriceMonitor(quotes, on_update=updates.append, poll_seconds=POLL, max_failures=max_failures)
    return monitor, updates


class TestPolling:
    """Tests for the Running state."""

    @pytest.mark.asyncio
    async def test_start_returns_immediately(self):
        quotes = ScriptedQuotes(["10.00"])
        monitor, _ = make_monitor(quotes)

        monitor.start("ABC")

        assert monitor.state == MonitorState.RUNNING
        assert quotes.calls == []
        await monitor.aclose()

    @pytest.mark.asyncio
    async def test_emits_prices(self):
        quotes = ScriptedQuotes(["10.00", "10.25"])
        monitor, updates = make_monitor(quotes)

        monitor.start("ABC")
        await wait_until(lambda: len(updates) >= 2)
        await monitor.aclose()

        assert updates[0].price == "10.00"
        assert updates[1].price == "10.25"
        assert not any(u.halted for u in updates)
        assert updates[0].symbol == "ABC"

    @pytest.mark.asyncio
    async def test_failures_emit_nothing(self):
        quotes = ScriptedQuotes([None, None, "11.00"])
        monitor, updates = make_monitor(quotes)

        monitor.start("ABC")
        await wait_until(lambda: len(updates) >= 1)
        await monitor.aclose()

        assert updates[0].price == "11.00"
        assert len(quotes.calls) >= 3

    @pytest.mark.asyncio
    async def test_success_resets_failure_counter(self):
        quotes = ScriptedQuotes([None, None, None, None, "12.00", None])
        monitor, updates = make_monitor(quotes)

        monitor.start("ABC")
        await wait_until(lambda: monitor.state == MonitorState.HALTED)

        # 4 failures + 1 success + 5 failures
        assert len(quotes.calls) == 10
        assert [u.halted for u in updates] == [False, True]
        assert updates[-1].price == "12.00"
        await monitor.aclose()

    @pytest.mark.asyncio
    async def test_at_most_one_request_in_flight(self):
        quotes = ScriptedQuotes(["1.00"], delay=POLL * 5)
        monitor, updates = make_monitor(quotes)

        monitor.start("ABC")
        await wait_until(lambda: len(updates) >= 3)
        await monitor.aclose()

        assert quotes.max_in_flight == 1

    @pytest.mark.asyncio
    async def test_listener_error_does_not_stop_polling(self):
        quotes = ScriptedQuotes(["1.00"])
        calls = []

        def listener(update):
            calls.append(update)
            raise RuntimeError("listener broke")

        monitor = LivePriceMonitor(quotes, on_update=listener, poll_seconds=POLL)
        monitor.start("ABC")
        await wait_until(lambda: len(calls) >= 2)

        assert monitor.state == MonitorState.RUNNING
        await monitor.aclose()


class TestHalt:
    """Tests for the Running -> Halted transition."""

    @pytest.mark.asyncio
    async def test_halts_after_five_failures(self):
        quotes = ScriptedQuotes([None])
        monitor, updates = make_monitor(quotes)

        monitor.start("ABC")
        await wait_until(lambda: monitor.state == MonitorState.HALTED)
        await asyncio.sleep(POLL * 10)

        assert len(quotes.calls) == 5
        assert len(updates) == 1
        assert updates[0].halted is True
        assert updates[0].price is None
        assert monitor.snapshot().halted is True
        await monitor.aclose()

    @pytest.mark.asyncio
    async def test_custom_threshold(self):
        quotes = ScriptedQuotes([None])
        monitor, updates = make_monitor(quotes, max_failures=2)

        monitor.start("ABC")
        await wait_until(lambda: monitor.state == MonitorState.HALTED)

        assert len(quotes.calls) == 2
        await monitor.aclose()

    @pytest.mark.asyncio
    async def test_restart_after_halt(self):
        quotes = ScriptedQuotes([None, None, None, None, None, "5.00"])
        monitor, updates = make_monitor(quotes)

        monitor.start("ABC")
        await wait_until(lambda: monitor.state == MonitorState.HALTED)

        monitor.start("ABC")
        assert monitor.state == MonitorState.RUNNING
        assert monitor.consecutive_failures == 0
        await wait_until(lambda: any(u.price == "5.00" for u in updates))
        await monitor.aclose()


class TestStop:
    """Tests for stop() and session replacement."""

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self):
        monitor, _ = make_monitor(ScriptedQuotes([None]))

        monitor.stop()
        monitor.start("ABC")
        monitor.stop()
        monitor.stop()

        assert monitor.state == MonitorState.IDLE
        assert monitor.consecutive_failures == 0
        assert monitor.snapshot().symbol is None
        await asyncio.sleep(POLL)

    @pytest.mark.asyncio
    async def test_stop_resets_after_failures(self):
        quotes = ScriptedQuotes([None])
        monitor, _ = make_monitor(quotes, max_failures=100)

        monitor.start("ABC")
        await wait_until(lambda: monitor.consecutive_failures >= 2)
        monitor.stop()

        assert monitor.state == MonitorState.IDLE
        assert monitor.consecutive_failures == 0
        await asyncio.sleep(POLL)

    @pytest.mark.asyncio
    async def test_in_flight_result_discarded_after_stop(self):
        release = asyncio.Event()
        started = asyncio.Event()

        class BlockingQuotes:
            async def fetch_quote(self, symbol):
                started.set()
                await release.wait()
                return "99.00"

        updates = []
        monitor = LivePriceMonitor(BlockingQuotes(), on_update=updates.append, poll_seconds=POLL)
        monitor.start("ABC")
        await started.wait()

        monitor.stop()
        release.set()
        await asyncio.sleep(POLL * 5)

        assert updates == []
        assert monitor.snapshot().price is None

    @pytest.mark.asyncio
    async def test_start_replaces_previous_session(self):
        quotes = ScriptedQuotes(["1.00"])
        monitor, updates = make_monitor(quotes)

        monitor.start("AAA")
        await wait_until(lambda: len(updates) >= 1)
        monitor.start("BBB")
        seen = len(quotes.calls)
        await wait_until(lambda: len(quotes.calls) >= seen + 2)
        await monitor.aclose()

        assert monitor.symbol is None
        assert set(quotes.calls[seen:]) == {"BBB"}
        assert updates[-1].symbol == "BBB"
