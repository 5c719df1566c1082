"""Fixed-interval tick scheduler.

Two states: IDLE (waiting for the next tick) and TICKING (a pipeline run
in progress). Ticks never overlap. If a tick takes longer than the
interval, the next one starts as soon as it finishes instead of being
run concurrently. The dedup window is unsynchronized shared state, so
this guarantee is what makes the pipeline safe without locks.
"""

import logging
import threading
import time
from enum import Enum
from typing import Any, Callable


logger = logging.getLogger(__name__)


class SchedulerState(str, Enum):
    """Scheduler state."""
    IDLE = "idle"
    TICKING = "ticking"


class Scheduler:
    """Runs a tick callable every interval_seconds, one tick at a time."""

    def __init__(
        self,
        tick: Callable[[], Any],
        interval_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Any] | None = None,
    ) -> None:
        """Initialize scheduler.

        Args:
            tick: Callable running one pipeline pass
            interval_seconds: Fixed interval between tick starts
            clock: Monotonic clock in seconds
            sleep: Wait function (defaults to an interruptible wait)
        """
        self.tick = tick
        self.interval_seconds = interval_seconds
        self._clock = clock
        self._stop_event = threading.Event()
        self._sleep = sleep or self._stop_event.wait
        self._tick_lock = threading.Lock()
        self._state = SchedulerState.IDLE
        self.ticks_completed = 0
        self.last_result: Any = None

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def fire(self) -> bool:
        """Run one tick now unless a tick is already in progress.

        An exception escaping the tick is logged; the scheduler always
        returns to IDLE.

        Returns:
            True if a tick ran, False if it was refused because one was running
        """
        if not self._tick_lock.acquire(blocking=False):
            logger.warning("Tick requested while previous tick is still running, skipped")
            return False

        try:
            self._state = SchedulerState.TICKING
            self.last_result = self.tick()
        except Exception:
            logger.exception("Unexpected error during tick")
            self.last_result = None
        finally:
            self.ticks_completed += 1
            self._state = SchedulerState.IDLE
            self._tick_lock.release()

        return True

    def run(self, max_ticks: int | None = None) -> None:
        """Fire ticks until stopped (or max_ticks have run).

        The first tick fires immediately. The wait after each tick is the
        remainder of the interval, or zero if the tick overran it.

        Args:
            max_ticks: Stop after this many ticks (None to run until stop())
        """
        ticks = 0
        logger.info("Scheduler started, interval %ss", self.interval_seconds)

        while not self.stopped:
            started = self._clock()
            self.fire()
            ticks += 1

            if max_ticks is not None and ticks >= max_ticks:
                break

            elapsed = self._clock() - started
            delay = max(0.0, self.interval_seconds - elapsed)
            if delay == 0.0:
                logger.warning(
                    "Tick took %.1fs, longer than the %ss interval",
                    elapsed,
                    self.interval_seconds,
                )
            self._sleep(delay)

        logger.info("Scheduler stopped after %d ticks", ticks)

    def stop(self) -> None:
        """Stop the run loop after the current tick."""
        self._stop_event.set()
