from __future__ import annotations

import asyncio
from typing import Dict, List

import pytest

from cashdesk.domain.errors import ServiceError, UnauthorizedError
from cashdesk.orchestrator.query import DebounceTimer, QueryEngine


class Recorder:
    def __init__(self) -> None:
        self.results: List = []
        self.errors: List = []
        self.unauthorized = 0

    def engine(self, fetch, delay: float = 0.0) -> QueryEngine:
        return QueryEngine(
            fetch,
            on_result=lambda f, r: self.results.append((f, r)),
            on_error=self.errors.append,
            on_unauthorized=self._unauth,
            delay=delay,
        )

    def _unauth(self) -> None:
        self.unauthorized += 1


def test_debounce_timer_collapses_bursts():
    fired: List[int] = []

    async def run() -> None:
        timer = DebounceTimer(0.03, lambda: fired.append(1))
        for _ in range(5):
            timer.schedule()
            await asyncio.sleep(0.005)
        assert timer.pending
        await asyncio.sleep(0.08)
        assert not timer.pending

    asyncio.run(run())
    assert fired == [1]


def test_debounce_timer_cancel_prevents_callback():
    fired: List[int] = []

    async def run() -> None:
        timer = DebounceTimer(0.02, lambda: fired.append(1))
        timer.schedule()
        timer.cancel()
        await asyncio.sleep(0.05)

    asyncio.run(run())
    assert fired == []


def test_rapid_submissions_issue_one_fetch_with_final_state():
    rec = Recorder()
    seen: List[Dict] = []

    async def fetch(filters):
        seen.append(filters)
        return [filters["q"]]

    async def run() -> None:
        engine = rec.engine(fetch, delay=0.05)
        for q in ("a", "ab", "abc", "abcd"):
            engine.submit({"q": q})
        await engine.settle()

    asyncio.run(run())
    assert seen == [{"q": "abcd"}]
    assert rec.results == [({"q": "abcd"}, ["abcd"])]


def test_immediate_mode_fetches_on_every_submit():
    rec = Recorder()
    seen: List[str] = []

    async def fetch(filters):
        seen.append(filters)
        return filters

    async def run() -> None:
        engine = rec.engine(fetch)
        engine.submit("d1")
        engine.submit("d2")
        await engine.settle()

    asyncio.run(run())
    assert seen == ["d1", "d2"]
    assert rec.results[-1] == ("d2", "d2")


def test_stale_response_resolving_late_is_discarded():
    rec = Recorder()

    async def run() -> None:
        release_first = asyncio.Event()

        async def fetch(filters):
            if filters == "old":
                await release_first.wait()
            return f"result:{filters}"

        engine = rec.engine(fetch)
        engine.submit("old")
        await asyncio.sleep(0)
        engine.submit("new")
        await asyncio.sleep(0.01)
        assert rec.results == [("new", "result:new")]
        release_first.set()
        await engine.settle()
        assert not engine.loading

    asyncio.run(run())
    assert rec.results == [("new", "result:new")]


def test_error_keeps_previous_results_and_clears_loading():
    rec = Recorder()

    async def run() -> None:
        async def fetch(filters):
            if filters == "bad":
                raise ServiceError(500, "boom")
            return "ok"

        engine = rec.engine(fetch)
        engine.submit("good")
        await engine.settle()
        engine.submit("bad")
        await engine.settle()
        assert engine.loading is False

    asyncio.run(run())
    assert rec.results == [("good", "ok")]
    assert len(rec.errors) == 1 and rec.errors[0].message == "boom"


def test_unauthorized_is_not_an_error():
    rec = Recorder()

    async def run() -> None:
        async def fetch(filters):
            raise UnauthorizedError()

        engine = rec.engine(fetch)
        engine.submit("x")
        await engine.settle()
        assert engine.loading is False

    asyncio.run(run())
    assert rec.unauthorized == 1
    assert rec.errors == [] and rec.results == []


def test_close_cancels_pending_fetch_and_ignores_in_flight():
    rec = Recorder()
    calls: List[str] = []

    async def run() -> None:
        gate = asyncio.Event()

        async def fetch(filters):
            calls.append(filters)
            await gate.wait()
            return filters

        debounced = rec.engine(fetch, delay=0.02)
        debounced.submit("never")
        debounced.close()
        await asyncio.sleep(0.05)

        immediate = rec.engine(fetch)
        immediate.submit("in-flight")
        await asyncio.sleep(0)
        immediate.close()
        gate.set()
        await immediate.settle()
        immediate.submit("after-close")
        await asyncio.sleep(0.01)

    asyncio.run(run())
    assert calls == ["in-flight"]
    assert rec.results == []


def test_unexpected_fetch_error_is_not_swallowed():
    rec = Recorder()

    async def run() -> None:
        async def fetch(filters):
            raise KeyError("broken")

        engine = rec.engine(fetch)
        engine.submit("x")
        try:
            await engine.settle()
        finally:
            assert engine.loading is False

    with pytest.raises(KeyError):
        asyncio.run(run())
    assert rec.results == [] and rec.errors == []
