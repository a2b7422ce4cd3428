"""Wall-clock driver for a replay engine.

Runs an asyncio task that ticks the engine at a fixed period with the
measured elapsed time, so the virtual clock follows wall-clock time even
when the event loop is late.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable

import structlog

from replay.engine import ReplayEngine
from replay.errors import ControlResult
from replay.snapshot import ReplaySnapshot

logger = structlog.get_logger(__name__)


class ReplayTimer:
    """Periodically calls ``engine.tick`` from an asyncio task.

    Usage:
        timer = ReplayTimer(engine, interval_s=0.1)
        timer.start()
        ...
        await timer.stop()
    """

    def __init__(
        self,
        engine: ReplayEngine,
        interval_s: float = 0.1,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the timer.

        Args:
            engine: Engine to drive.
            interval_s: Period between ticks in seconds.
            clock: Monotonic clock used to measure elapsed time.
        """
        if interval_s <= 0:
            raise ValueError(f"interval_s must be positive, got {interval_s}")

        self.engine = engine
        self.interval_s = interval_s
        self._clock = clock
        self._task: asyncio.Task | None = None
        self._last_tick: float | None = None
        self._on_tick: Callable[[ReplaySnapshot], None] | None = None
        self.tick_count = 0
        self.failed_ticks = 0

    @property
    def is_running(self) -> bool:
        """True while the tick task is alive."""
        return self._task is not None and not self._task.done()

    def set_on_tick(self, callback: Callable[[ReplaySnapshot], None] | None) -> None:
        """Set callback invoked with the snapshot published by each tick."""
        self._on_tick = callback

    def start(self) -> None:
        """Start ticking on the running event loop."""
        if self.is_running:
            return
        self._last_tick = self._clock()
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info("replay_timer_started", interval_s=self.interval_s)

    async def stop(self) -> None:
        """Cancel the tick task and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("replay_timer_stopped", ticks=self.tick_count)

    def tick_now(self) -> ReplaySnapshot:
        """Tick once with the time elapsed since the previous tick."""
        now = self._clock()
        elapsed = 0.0 if self._last_tick is None else now - self._last_tick
        self._last_tick = now

        snapshot = self.engine.tick(elapsed)
        self.tick_count += 1
        if self._on_tick:
            self._on_tick(snapshot)
        return snapshot

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_s)
            try:
                self.tick_now()
            except Exception as exc:
                self.failed_ticks += 1
                logger.warning("replay_tick_failed", error=str(exc))

    async def add_track(self, identifier: str, name: str | None = None) -> ControlResult:
        """Open a source in a worker thread so ticking is not blocked."""
        return await asyncio.to_thread(self.engine.add_track, identifier, name)

    async def start_replay(self, identifier: str, name: str | None = None) -> ControlResult:
        """Start the engine from a worker thread."""
        return await asyncio.to_thread(self.engine.start, identifier, name)
