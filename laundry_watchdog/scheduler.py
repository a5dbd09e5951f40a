"""Timer-based job scheduling with unique names, replacement and retry backoff."""

import threading
from typing import Callable, Dict

from laundry_watchdog.log_util import app_logger
from laundry_watchdog.models import CycleStatus

logger = app_logger(__name__)


class ThreadScheduler:
    """
    Run jobs on daemon `threading.Timer`s keyed by name.

    Scheduling a name that is already pending replaces it, so at most one job per
    name is ever armed. Jobs return a CycleStatus; a periodic job answering RETRY
    is re-run after an exponential backoff (capped at the interval) up to
    `max_retries` times before falling back to its normal interval.
    """

    def __init__(
        self,
        max_retries: int = 3,
        backoff_seconds: float = 60,
        timer_factory: Callable = threading.Timer,
    ):
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self.timer_factory = timer_factory
        self._timers: Dict[str, object] = {}
        self._generations: Dict[str, int] = {}
        self._lock = threading.Lock()

    def _next_generation(self, name: str) -> int:
        gen = self._generations.get(name, 0) + 1
        self._generations[name] = gen
        return gen

    def _is_current(self, name: str, generation: int) -> bool:
        with self._lock:
            return self._generations.get(name) == generation

    def _arm(self, name: str, generation: int, delay: float, fn: Callable[[], None]) -> None:
        timer = self.timer_factory(delay, fn)
        timer.daemon = True
        with self._lock:
            if self._generations.get(name) != generation:
                return
            old = self._timers.get(name)
            self._timers[name] = timer
        if old is not None and old is not timer:
            old.cancel()
        timer.start()

    @staticmethod
    def _run(name: str, job: Callable[[], CycleStatus]) -> CycleStatus:
        try:
            return job()
        except Exception:
            logger.exception(f"Scheduled job '{name}' crashed")
            return CycleStatus.FAILURE

    def schedule_periodic(
        self,
        name: str,
        interval_seconds: float,
        job: Callable[[], CycleStatus],
        initial_delay: float = None,
    ) -> None:
        with self._lock:
            generation = self._next_generation(name)

        def tick(attempt: int = 0):
            status = self._run(name, job)
            if not self._is_current(name, generation):
                return
            if status is CycleStatus.RETRY and attempt < self.max_retries:
                delay = min(interval_seconds, self.backoff_seconds * (2 ** attempt))
                logger.info(f"'{name}' will retry in {delay:.0f}s (attempt {attempt + 1}/{self.max_retries})")
                self._arm(name, generation, delay, lambda: tick(attempt + 1))
            else:
                self._arm(name, generation, interval_seconds, tick)

        delay = interval_seconds if initial_delay is None else initial_delay
        logger.debug(f"Scheduling '{name}' every {interval_seconds}s, first run in {delay}s")
        self._arm(name, generation, delay, tick)

    def schedule_once(self, name: str, delay_seconds: float, job: Callable[[], CycleStatus]) -> None:
        """Run `job` once after `delay_seconds`; failures are not retried."""
        with self._lock:
            generation = self._next_generation(name)

        def fire():
            status = self._run(name, job)
            with self._lock:
                if self._generations.get(name) == generation:
                    self._timers.pop(name, None)
            if status is not CycleStatus.SUCCESS:
                logger.info(f"One-shot job '{name}' finished with {status.name}")

        logger.debug(f"Scheduling '{name}' once in {delay_seconds}s")
        self._arm(name, generation, delay_seconds, fire)

    def cancel(self, name: str) -> None:
        with self._lock:
            self._next_generation(name)
            timer = self._timers.pop(name, None)
        if timer is not None:
            timer.cancel()
            logger.debug(f"Cancelled '{name}'")

    def cancel_all(self) -> None:
        with self._lock:
            names = list(self._timers)
        for name in names:
            self.cancel(name)

    def is_scheduled(self, name: str) -> bool:
        with self._lock:
            return name in self._timers
