"""Cron-driven scheduling of digest runs."""

import asyncio
from collections.abc import Callable
from datetime import datetime

from croniter import croniter
from structlog.stdlib import BoundLogger

from slackdigest.application.services.pipeline import DigestPipeline, RunReport
from slackdigest.domain.timestamps import TimeWindow, as_utc, utcnow


class DigestScheduler:
    """Runs the digest pipeline on a cron schedule.

    Scheduled ticks and manual triggers share one run slot: while a run is
    active, start_run() refuses to start another.
    """

    def __init__(
        self,
        pipeline: DigestPipeline,
        cron: str,
        logger: BoundLogger,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if not croniter.is_valid(cron):
            raise ValueError(f"Invalid cron expression: {cron}")
        self._pipeline = pipeline
        self._cron = cron
        self._logger = logger
        self._clock = clock
        self._task: asyncio.Task[RunReport | None] | None = None

    @property
    def is_running(self) -> bool:
        """Return True while a digest run is active."""
        return self._task is not None and not self._task.done()

    def next_fire(self, now: datetime | None = None) -> datetime:
        """Return the first scheduled time after now."""
        return croniter(self._cron, as_utc(now or self._clock())).get_next(datetime)

    def window_ending_at(self, fire: datetime) -> TimeWindow:
        """Return the window between the fire before fire and fire itself."""
        start = croniter(self._cron, as_utc(fire)).get_prev(datetime)
        return TimeWindow(start=start, end=fire)

    def window_for(self, now: datetime | None = None) -> TimeWindow:
        """Return the most recently closed window as of now."""
        end = croniter(self._cron, as_utc(now or self._clock())).get_prev(datetime)
        return self.window_ending_at(end)

    def start_run(
        self, window: TimeWindow | None = None
    ) -> "asyncio.Task[RunReport | None] | None":
        """Start a digest run in the background.

        Args:
            window: Window to summarize. Defaults to the last closed window.

        Returns:
            The run task, or None if a run is already active.
        """
        if self.is_running:
            self._logger.warning("Digest run already in progress")
            return None

        self._task = asyncio.create_task(self._run(window or self.window_for()))
        return self._task

    async def _run(self, window: TimeWindow) -> RunReport | None:
        try:
            return await self._pipeline.run_once(window)
        except Exception as e:
            self._logger.error("Digest run failed", error=str(e), exc_info=True)
            return None

    async def run_forever(self, shutdown_event: asyncio.Event) -> None:
        """Sleep until each cron fire and run the pipeline until shutdown."""
        while not shutdown_event.is_set():
            now = self._clock()
            fire = self.next_fire(now)
            delay = max((fire - as_utc(now)).total_seconds(), 0.0)
            self._logger.info("Next digest run scheduled", at=fire.isoformat())

            try:
                await asyncio.wait_for(shutdown_event.wait(), timeout=delay)
                break
            except TimeoutError:
                pass

            task = self.start_run(self.window_ending_at(fire))
            if task is None:
                continue

            shutdown_task = asyncio.create_task(shutdown_event.wait())
            done, pending = await asyncio.wait(
                [task, shutdown_task], return_when=asyncio.FIRST_COMPLETED
            )
            for pending_task in pending:
                pending_task.cancel()
                try:
                    await pending_task
                except asyncio.CancelledError:
                    pass

    async def stop(self) -> None:
        """Cancel an active run and wait for it to finish."""
        if self._task is None or self._task.done():
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
