"""
Monitoring loop: one check cycle for both periodic and snooze re-checks,
plus the user actions that start, stop and snooze monitoring.

Cycle: FETCH_LOCATION -> FETCH_FORECAST -> ANALYZE -> POLICY_DECIDE
       -> EMIT | SUPPRESS | RECOVERED -> PERSIST_LEDGER
"""

import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from laundry_watchdog.alert_policy import decide, decide_snooze, describe_decision
from laundry_watchdog.config import WatchdogSettings
from laundry_watchdog.errors import PersistenceError, TransientFetchError
from laundry_watchdog.log_util import app_logger
from laundry_watchdog.models import (
    AlertDecision,
    CheckMode,
    CycleOutcome,
    CycleStatus,
    HistoryEntry,
    LaundryStatus,
    RainRiskAnalysis,
)
from laundry_watchdog.risk_analysis import analyze

logger = app_logger(__name__)

PERIODIC_JOB = "weather_check_periodic"
SNOOZE_JOB = "weather_check_snooze"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CycleReport:
    status: CycleStatus
    outcome: Optional[CycleOutcome] = None
    analysis: Optional[RainRiskAnalysis] = None
    decision: Optional[AlertDecision] = None


class MonitoringLoop:
    """
    Wires the analyzer and policy to the injected collaborators.

    Collaborators:
        repository: StateRepository (laundry state, ledger, history)
        locator: LocationResolver
        forecast_source: object with fetch_hourly_forecast(lat, lon, now=None)
        notifier: object with notify_rain_alert / notify_general / cancel_rain_alert
        scheduler: object with schedule_periodic / schedule_once / cancel
    """

    def __init__(
        self,
        settings: WatchdogSettings,
        repository,
        locator,
        forecast_source,
        notifier,
        scheduler,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.settings = settings
        self.repository = repository
        self.locator = locator
        self.forecast_source = forecast_source
        self.notifier = notifier
        self.scheduler = scheduler
        self.clock = clock
        self._cancelled = threading.Event()

    # ------------------------------------------------------------------
    # Check cycle
    # ------------------------------------------------------------------
    def _failure_status(self, mode: CheckMode) -> CycleStatus:
        return CycleStatus.RETRY if mode is CheckMode.PERIODIC else CycleStatus.FAILURE

    def _decide(self, mode: CheckMode, status: LaundryStatus, analysis: RainRiskAnalysis, ledger, now):
        threshold = self.settings.precipitation_threshold
        fallback = self.settings.fallback_minutes_until_rain
        if mode is CheckMode.SNOOZE:
            return decide_snooze(status, analysis, ledger, now, threshold=threshold, fallback_minutes=fallback)
        return decide(
            status,
            analysis,
            ledger,
            now,
            cooldown_seconds=self.settings.cooldown_seconds,
            threshold=threshold,
            fallback_minutes=fallback,
        )

    def run_cycle(self, mode: CheckMode = CheckMode.PERIODIC, now: Optional[datetime] = None) -> CycleReport:
        """
        Run one check cycle.

        Periodic cycles report RETRY on a transient fetch failure, snooze cycles
        report FAILURE. Nothing is persisted unless a full decision was reached.
        """
        now = now or self.clock()

        try:
            state = self.repository.load_state()
        except PersistenceError as e:
            logger.error(f"[{mode.value}] Could not load laundry state: {e}")
            return CycleReport(CycleStatus.FAILURE)

        if not state.is_hanging:
            logger.debug(f"[{mode.value}] Laundry is {state.status.name}; nothing to check")
            return CycleReport(CycleStatus.SUCCESS, CycleOutcome.SKIPPED)

        # FETCH_LOCATION -> FETCH_FORECAST
        try:
            lat, lon = self.locator.resolve(now)
            logger.debug(f"[{mode.value}] Fetching forecast for ({lat}, {lon})")
            forecast = self.forecast_source.fetch_hourly_forecast(lat, lon, now=now)
        except TransientFetchError as e:
            logger.warning(f"[{mode.value}] Check cycle failed transiently: {e}")
            return CycleReport(self._failure_status(mode))
        except PersistenceError as e:
            logger.error(f"[{mode.value}] Could not read stored location: {e}")
            return CycleReport(CycleStatus.FAILURE)

        if self._cancelled.is_set():
            logger.info(f"[{mode.value}] Cycle cancelled before a decision; nothing persisted")
            return CycleReport(CycleStatus.CANCELLED)

        # ANALYZE
        analysis = analyze(forecast, self.settings.precipitation_threshold, now)
        logger.debug(
            f"[{mode.value}] risk={analysis.risk_level.name} "
            f"max4h={analysis.max_probability_next_4h}% onset={analysis.estimated_rain_onset}"
        )

        # POLICY_DECIDE -> EMIT | SUPPRESS | RECOVERED -> PERSIST_LEDGER
        try:
            with self.repository.ledger_guard():
                ledger = self.repository.load_ledger()
                decision = self._decide(mode, state.status, analysis, ledger, now)
                logger.info(
                    f"[{mode.value}] {describe_decision(decision)}: risk {analysis.risk_level.name}, "
                    f"{analysis.max_probability_next_4h}% within 4h"
                )
                if decision.emit:
                    self.notifier.notify_rain_alert(decision.minutes_until_rain)
                    self.repository.save_ledger(decision.new_ledger)
        except PersistenceError as e:
            logger.error(f"[{mode.value}] Could not persist alert ledger: {e}")
            return CycleReport(CycleStatus.FAILURE, analysis=analysis)

        if decision.emit:
            outcome = CycleOutcome.EMIT
            self._record(now, "rain_alert", state.status, analysis, decision.minutes_until_rain)
        elif decision.recovered:
            outcome = CycleOutcome.RECOVERED
            self.notifier.notify_general(
                "Weather improving",
                "The chance of rain has dropped. Your laundry can stay out for now.",
            )
            self._record(now, "recovered", state.status, analysis)
        else:
            outcome = CycleOutcome.SUPPRESS

        return CycleReport(CycleStatus.SUCCESS, outcome, analysis, decision)

    def _record(self, now, event, status, analysis=None, minutes=None):
        entry = HistoryEntry(
            time=now,
            event=event,
            status=status,
            probability=analysis.max_probability_next_4h if analysis else None,
            risk_level=analysis.risk_level if analysis else None,
            minutes_until_rain=minutes,
        )
        try:
            self.repository.append_history(entry)
        except PersistenceError as e:
            logger.warning(f"Could not record '{event}' in history: {e}")

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------
    def _periodic_job(self) -> CycleStatus:
        return self.run_cycle(CheckMode.PERIODIC).status

    def _snooze_job(self) -> CycleStatus:
        return self.run_cycle(CheckMode.SNOOZE).status

    def start_periodic_checks(self, initial_delay: Optional[float] = 0) -> None:
        self._cancelled.clear()
        self.scheduler.schedule_periodic(
            PERIODIC_JOB,
            self.settings.check_interval_seconds,
            self._periodic_job,
            initial_delay=initial_delay,
        )

    def stop_checks(self) -> None:
        self.scheduler.cancel(PERIODIC_JOB)
        self.scheduler.cancel(SNOOZE_JOB)

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------
    def hang_laundry(self, now: Optional[datetime] = None, start_checks: bool = True):
        now = now or self.clock()
        state = self.repository.update_status(LaundryStatus.HANGING, now)
        if start_checks:
            self.start_periodic_checks()
            logger.info("Laundry is hanging; rain monitoring started")
        self._record(now, "hung", state.status)
        return state

    def bring_in_laundry(self, now: Optional[datetime] = None):
        now = now or self.clock()
        state = self.repository.update_status(LaundryStatus.BROUGHT_IN, now)
        self.stop_checks()
        self.notifier.cancel_rain_alert()
        self.notifier.notify_general("Laundry brought in", "Monitoring has stopped.")
        self._record(now, "brought_in", state.status)
        logger.info("Laundry brought in; rain monitoring stopped")
        return state

    def reset(self, now: Optional[datetime] = None):
        now = now or self.clock()
        state = self.repository.update_status(LaundryStatus.NOT_HANGING, now)
        self.stop_checks()
        self.notifier.cancel_rain_alert()
        self._record(now, "reset", state.status)
        return state

    def snooze(self, now: Optional[datetime] = None) -> None:
        """Dismiss the current alert and re-check once after the snooze delay."""
        now = now or self.clock()
        self.notifier.cancel_rain_alert()
        self._record(now, "snoozed", self.repository.load_state().status)
        self.notifier.notify_general(
            "Snoozed", f"We'll check the weather again in {self.settings.snooze_minutes} minutes."
        )
        self.scheduler.schedule_once(SNOOZE_JOB, self.settings.snooze_seconds, self._snooze_job)

    def resume(self) -> bool:
        """Re-arm periodic checks after a restart if laundry is still out."""
        state = self.repository.load_state()
        if state.is_hanging:
            logger.info("Laundry still hanging after restart; resuming rain monitoring")
            self.start_periodic_checks()
            return True
        return False

    def shutdown(self) -> None:
        """Cancel scheduled jobs; an in-flight cycle stops before persisting anything."""
        self._cancelled.set()
        self.stop_checks()
