"""
Periodic live-detection loop.

The loop repeatedly probes the capture for a face so the caller can give
live feedback (e.g. draw a bounding box). It never touches the registered
template and never starts a proof.

Suspension is explicit state owned by the match session: the session calls
suspend() and resume(), and the loop additionally consults a ``should_scan``
predicate before every tick. The loop task itself is created once and is
never cancelled to pause scanning.
"""

import asyncio
from typing import Awaitable, Callable, Optional

import structlog

from .constants import DEFAULT_SCAN_INTERVAL_MS

# Initialize structured logger
logger = structlog.get_logger(__name__)

TickFunction = Callable[[], Awaitable[Optional[bool]]]


class ScanLoop:
    """
    Periodic scheduler for live detection probes.

    Parameters
    ----------
    tick : Callable[[], Awaitable[Optional[bool]]], optional
        Coroutine function run on every tick. Its return value, when not
        None, is stored as ``last_face_detected``.
    interval_seconds : float, default=1.0
        Pause between ticks.
    should_scan : Callable[[], bool], optional
        Predicate queried before every tick.

    Examples
    --------
    >>> loop = ScanLoop(capture.probe, interval_seconds=0.5)
    >>> loop.start()
    >>> loop.suspend()
    >>> loop.resume()
    >>> await loop.stop()
    """

    def __init__(
        self,
        tick: Optional[TickFunction] = None,
        interval_seconds: float = DEFAULT_SCAN_INTERVAL_MS / 1000,
        should_scan: Optional[Callable[[], bool]] = None,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")

        self.tick = tick
        self.interval_seconds = interval_seconds
        self.should_scan = should_scan

        self.tick_count = 0
        self.last_face_detected: Optional[bool] = None

        self._resumed = asyncio.Event()
        self._resumed.set()
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def is_suspended(self) -> bool:
        return not self._resumed.is_set()

    def suspend(self) -> None:
        if not self.is_suspended:
            self._resumed.clear()
            logger.debug("Scan loop suspended")

    def resume(self) -> None:
        if self.is_suspended:
            self._resumed.set()
            logger.debug("Scan loop resumed")

    def start(self) -> None:
        """Start the loop task on the running event loop."""
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info("Scan loop started", interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        """Stop the loop task and wait for it to finish."""
        if self._task is None:
            return

        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Scan loop stopped", tick_count=self.tick_count)

    async def _run(self) -> None:
        while True:
            await self._resumed.wait()

            if self.should_scan is None or self.should_scan():
                await self._tick_once()

            await asyncio.sleep(self.interval_seconds)

    async def _tick_once(self) -> None:
        self.tick_count += 1
        if self.tick is None:
            return

        try:
            detected = await self.tick()
        except Exception as e:
            logger.warning(
                "Scan tick failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            return

        if detected is not None:
            self.last_face_detected = detected
