"""Reactive query engine: debounced, latest-wins fetching for a filter state."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Generic, Optional, Set, TypeVar

from ..domain.errors import CashdeskError, UnauthorizedError
from ..logging import get_logger

LOG = get_logger("orchestrator-query")

F = TypeVar("F")
R = TypeVar("R")


class DebounceTimer:
    """Cancellable trailing-edge timer on the running asyncio loop.

    `schedule()` cancels any pending call and re-arms, so a burst of calls
    collapses into one callback `delay` seconds after the last of them.
    """

    def __init__(self, delay: float, callback: Callable[[], None]) -> None:
        self.delay = float(delay)
        self.callback = callback
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self.callback()


class QueryEngine(Generic[F, R]):
    """Re-fetches whenever the filter state changes and publishes the newest result.

    Every fetch is numbered; only the most recently issued one may publish a
    result, an error or clear the loading flag. Older completions are dropped.
    With `delay` > 0 submissions are debounced, otherwise they fetch at once.
    """

    def __init__(
        self,
        fetch: Callable[[F], Awaitable[R]],
        *,
        on_result: Callable[[F, R], None],
        on_error: Callable[[CashdeskError], None],
        on_unauthorized: Optional[Callable[[], None]] = None,
        delay: float = 0.0,
        name: str = "query",
    ) -> None:
        self._fetch = fetch
        self._on_result = on_result
        self._on_error = on_error
        self._on_unauthorized = on_unauthorized
        self.name = name
        self.filters: Optional[F] = None
        self.loading = False
        self.closed = False
        self._seq = 0
        self._tasks: Set[asyncio.Task] = set()
        self._timer = DebounceTimer(delay, self._launch) if delay > 0 else None

    @property
    def sequence(self) -> int:
        return self._seq

    def submit(self, filters: F) -> None:
        """Record a new filter state and (re)schedule a fetch for it.

        Must be called from code running on an asyncio event loop; the fetch is
        scheduled on that loop.
        """
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            raise RuntimeError(
                f"[{self.name}] filter changes must be made from a running asyncio event loop"
            ) from None
        if self.closed:
            LOG.debug(f"[{self.name}] submit after close ignored")
            return
        self.filters = filters
        if self._timer is not None:
            self._timer.schedule()
        else:
            self._launch()

    async def refresh(self) -> None:
        """Fetch the current filters right away, dropping any pending debounce."""
        if self._timer is not None:
            self._timer.cancel()
        await self._run()

    async def settle(self) -> None:
        """Wait until no debounce is pending and all launched fetches finished.

        Errors other than CashdeskError raised by a fetch propagate from here.
        """
        while (self._timer is not None and self._timer.pending) or self._tasks:
            if self._tasks:
                await asyncio.gather(*list(self._tasks))
            else:
                await asyncio.sleep(self._timer.delay if self._timer else 0)

    def close(self) -> None:
        """Teardown: cancel the timer and make every in-flight fetch stale."""
        self.closed = True
        if self._timer is not None:
            self._timer.cancel()
        self._seq += 1
        self.loading = False

    # ---------- internals ----------
    def _launch(self) -> None:
        task = asyncio.get_running_loop().create_task(self._run(self.filters))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _is_latest(self, seq: int) -> bool:
        return seq == self._seq and not self.closed

    async def _run(self, filters: Optional[F] = None) -> None:
        if filters is None:
            filters = self.filters
        if self.closed or filters is None:
            return
        self._seq += 1
        seq = self._seq
        self.loading = True
        LOG.debug(f"[{self.name}] fetch #{seq} for {filters}")
        try:
            result = await self._fetch(filters)
        except UnauthorizedError:
            if self._is_latest(seq) and self._on_unauthorized is not None:
                self._on_unauthorized()
            return
        except CashdeskError as e:
            if not self._is_latest(seq):
                LOG.debug(f"[{self.name}] dropping error from stale fetch #{seq}: {e}")
                return
            LOG.warning(f"[{self.name}] fetch #{seq} failed: {e}")
            self._on_error(e)
            return
        finally:
            if self._is_latest(seq):
                self.loading = False
        if not self._is_latest(seq):
            LOG.debug(f"[{self.name}] discarding stale response #{seq} (latest is #{self._seq})")
            return
        self._on_result(filters, result)
