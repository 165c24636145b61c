"""Periodic re-acquisition of the trailing rate window.

The scheduler runs on a single asyncio loop. Every cycle fetches the window,
normalizes it and publishes a new immutable ``RefreshState``. Cycles may
overlap when the feed is slow; each one carries a sequence number and only
commits if it is newer than the last committed cycle, so a slow earlier
fetch can never overwrite a fresher result. After ``stop()`` nothing is
published, even by fetches that were already in flight.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import date, datetime

from krw_rate_dashboard.config import Settings
from krw_rate_dashboard.data.frankfurter_fetcher import RateSource
from krw_rate_dashboard.errors import RateSourceError
from krw_rate_dashboard.indicators.normalizer import normalize, trailing_window
from krw_rate_dashboard.indicators.signals import current_rate
from krw_rate_dashboard.models import CurrencyPair, DenseSeries, RefreshState, RefreshStatus


logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 60.0
DEFAULT_WINDOW_DAYS = 30

UpdateCallback = Callable[[RefreshState], None]


class ScheduleHandle:
    """Returned by ``RefreshScheduler.start``; stopping it ends all updates."""

    def __init__(self, scheduler: "RefreshScheduler") -> None:
        self._scheduler = scheduler

    @property
    def stopped(self) -> bool:
        return self._scheduler.stopped

    def stop(self) -> None:
        """Cancel the timer and any in-flight cycle. Safe to call repeatedly."""
        self._scheduler.stop()

    async def wait_closed(self) -> None:
        """Wait for cancelled tasks to unwind."""
        await self._scheduler.wait_closed()


class RefreshScheduler:
    """Keeps a dense trailing-window series fresh on a fixed cadence."""

    def __init__(
        self,
        source: RateSource,
        pair: CurrencyPair | None = None,
        *,
        interval: float = DEFAULT_INTERVAL,
        window_days: int = DEFAULT_WINDOW_DAYS,
        today: Callable[[], date] | None = None,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        if window_days < 1:
            raise ValueError(f"window_days must be positive, got {window_days}")
        self.source = source
        self.pair = pair or CurrencyPair()
        self.interval = interval
        self.window_days = window_days
        self._now = now or datetime.now
        self._today = today or (lambda: self._now().date())

        self._state = RefreshState()
        self._on_update: UpdateCallback | None = None
        self._handle: ScheduleHandle | None = None
        self._stopped = False
        self._next_sequence = 0
        self._committed_sequence = 0
        self._timer_task: asyncio.Task | None = None
        self._cycle_tasks: set[asyncio.Task] = set()

    @classmethod
    def from_settings(
        cls, source: RateSource, settings: Settings, **kwargs
    ) -> "RefreshScheduler":
        """Build a scheduler using configured pair, cadence, window and timezone."""
        tz = settings.tzinfo
        kwargs.setdefault("interval", settings.refresh_interval)
        kwargs.setdefault("window_days", settings.window_days)
        kwargs.setdefault("now", lambda: datetime.now(tz))
        pair = CurrencyPair(settings.base_currency, settings.quote_currency)
        return cls(source, pair, **kwargs)

    @property
    def state(self) -> RefreshState:
        """Latest published snapshot."""
        return self._state

    @property
    def stopped(self) -> bool:
        return self._stopped

    def start(self, on_update: UpdateCallback) -> ScheduleHandle:
        """
        Begin refreshing. Must be called from inside a running event loop.

        The first cycle starts immediately; later cycles follow every
        ``interval`` seconds until the returned handle is stopped.
        """
        if self._handle is not None:
            raise RuntimeError("scheduler already started")
        loop = asyncio.get_running_loop()

        self._on_update = on_update
        self._handle = ScheduleHandle(self)
        logger.info(f"Refreshing {self.pair} every {self.interval:g}s")

        self._spawn_cycle()
        self._timer_task = loop.create_task(self._tick())
        return self._handle

    def refresh_now(self) -> asyncio.Task:
        """Run an extra cycle right away, e.g. for a user-triggered retry."""
        if self._handle is None or self._stopped:
            raise RuntimeError("scheduler is not running")
        return self._spawn_cycle()

    def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        if self._timer_task is not None:
            self._timer_task.cancel()
        for task in list(self._cycle_tasks):
            task.cancel()
        logger.info(f"Stopped refreshing {self.pair}")

    async def wait_closed(self) -> None:
        tasks = list(self._cycle_tasks)
        if self._timer_task is not None:
            tasks.append(self._timer_task)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _tick(self) -> None:
        while not self._stopped:
            await asyncio.sleep(self.interval)
            if self._stopped:
                return
            self._spawn_cycle()

    def _spawn_cycle(self) -> asyncio.Task:
        self._next_sequence += 1
        sequence = self._next_sequence

        # Only show a loading state while nothing is on screen yet
        if not self._state.has_data and self._state.status is not RefreshStatus.LOADING:
            self._publish(replace(self._state, status=RefreshStatus.LOADING, error=None))

        task = asyncio.get_running_loop().create_task(self._run_cycle(sequence))
        self._cycle_tasks.add(task)
        task.add_done_callback(self._cycle_tasks.discard)
        return task

    async def _run_cycle(self, sequence: int) -> None:
        try:
            window_start, window_end = trailing_window(self._today(), self.window_days)
            logger.debug(f"Cycle {sequence}: {window_start} .. {window_end}")
            sparse = await self.source.fetch(self.pair, window_start, window_end)
            series = normalize(sparse, window_start, window_end)
        except RateSourceError as e:
            logger.warning(f"Cycle {sequence} failed: {e}")
            self._commit_failure(sequence, str(e))
            return
        except Exception as e:
            logger.exception(f"Cycle {sequence} failed unexpectedly")
            self._commit_failure(sequence, f"unexpected error: {e}")
            return

        self._commit_success(sequence, series)

    def _accepts(self, sequence: int) -> bool:
        if self._stopped:
            logger.debug(f"Cycle {sequence} finished after stop; dropped")
            return False
        if sequence <= self._committed_sequence:
            logger.debug(
                f"Cycle {sequence} is older than committed cycle "
                f"{self._committed_sequence}; dropped"
            )
            return False
        self._committed_sequence = sequence
        return True

    def _commit_success(self, sequence: int, series: DenseSeries) -> None:
        if not self._accepts(sequence):
            return
        state = RefreshState(
            series=series,
            current_rate=current_rate(series),
            last_updated=self._now(),
            status=RefreshStatus.READY,
            error=None,
            sequence=sequence,
        )
        logger.info(
            f"Cycle {sequence}: {len(series)} points, current={state.current_rate}"
        )
        self._publish(state)

    def _commit_failure(self, sequence: int, cause: str) -> None:
        if not self._accepts(sequence):
            return
        # Keep the last good series so the display does not go blank
        message = (
            f"Could not load {self.pair} rates ({cause}); "
            f"retrying in {self.interval:g}s"
        )
        self._publish(
            replace(self._state, status=RefreshStatus.FAILED, error=message, sequence=sequence)
        )

    def _publish(self, state: RefreshState) -> None:
        self._state = state
        if self._on_update is None or self._stopped:
            return
        try:
            self._on_update(state)
        except Exception:
            logger.exception("Refresh state observer raised")


def main() -> None:
    """CLI entry point: print every state transition until interrupted."""
    import argparse

    from krw_rate_dashboard.data.frankfurter_fetcher import FrankfurterFetcher

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(description="Watch the USD/KRW trailing window")
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between refreshes (default: REFRESH_INTERVAL_SECONDS or 60)",
    )
    parser.add_argument(
        "--cycles",
        type=int,
        default=0,
        help="Stop after this many completed cycles (0 = run until Ctrl-C)",
    )
    args = parser.parse_args()

    settings = Settings()
    overrides = {"interval": args.interval} if args.interval else {}

    async def run() -> None:
        completed = 0
        done = asyncio.Event()

        def on_update(state: RefreshState) -> None:
            nonlocal completed
            if state.status is RefreshStatus.LOADING:
                print("Loading...")
                return
            if state.status is RefreshStatus.FAILED:
                print(f"FAILED: {state.error}")
            elif state.current_rate is None:
                print("No data available")
            else:
                first, last = state.series[0].date, state.series[-1].date
                print(
                    f"{state.last_updated:%H:%M:%S} | {len(state.series)} days "
                    f"{first} .. {last} | current {state.current_rate:,.2f}"
                )
            completed += 1
            if args.cycles and completed >= args.cycles:
                done.set()

        async with FrankfurterFetcher(settings) as fetcher:
            scheduler = RefreshScheduler.from_settings(fetcher, settings, **overrides)
            handle = scheduler.start(on_update)
            try:
                await done.wait()
            finally:
                handle.stop()
                await handle.wait_closed()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        print("\nStopped.")


if __name__ == "__main__":
    main()
