#!/usr/bin/env python3
"""
Main module for the Laundry Watchdog application.
Watches the short-term rain forecast while laundry is hanging outside.

Usage:
    laundry-watchdog [--config Settings.json] status
    laundry-watchdog hang | bring-in | reset | snooze
    laundry-watchdog check [--snooze]
    laundry-watchdog forecast
    laundry-watchdog history [--excel PATH]
    laundry-watchdog watch
"""

import argparse
import sys
import time
from datetime import datetime, timezone

from laundry_watchdog.config import ConfigError, load_settings
from laundry_watchdog.errors import InvalidTransition, PersistenceError, TransientFetchError
from laundry_watchdog.helpers import describe_conditions
from laundry_watchdog.location import FixedLocationProvider, LocationResolver
from laundry_watchdog.log_util import app_logger
from laundry_watchdog.models import CheckMode, CycleStatus
from laundry_watchdog.monitor import SNOOZE_JOB, MonitoringLoop
from laundry_watchdog.notifier import ConsoleNotifier
from laundry_watchdog.reporting import export_history_excel, print_forecast_preview, print_history
from laundry_watchdog.risk_analysis import analyze
from laundry_watchdog.scheduler import ThreadScheduler
from laundry_watchdog.state_store import StateRepository, open_store
from laundry_watchdog.weather import OpenMeteoForecastSource

logger = app_logger(__name__)

ERROR_MESSAGES = {
    ConfigError.FILE_NOT_FOUND: "Error: Configuration file not found",
    ConfigError.INVALID_JSON: "Error: Invalid settings format",
    ConfigError.INVALID_THRESHOLD: "Error: Invalid precipitation threshold",
    ConfigError.INVALID_STORAGE: "Error: Invalid storage backend",
    ConfigError.GENERAL_ERROR: "Error: Failed to process configuration",
}

EXIT_RUNTIME_ERROR = 10

WATCH_HELP = "Commands: hang | in | snooze | check | status | quit"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def build_monitor(settings, store=None, forecast_source=None, notifier=None, scheduler=None, clock=_utc_now):
    """Assemble a MonitoringLoop from settings, with optional collaborator overrides."""
    repository = StateRepository(store if store is not None else open_store(settings.storage))
    provider = FixedLocationProvider(*settings.location) if settings.location else None
    locator = LocationResolver(
        repository,
        provider=provider,
        default=settings.default_location,
        max_age_minutes=settings.location_max_age_minutes,
    )
    return MonitoringLoop(
        settings=settings,
        repository=repository,
        locator=locator,
        forecast_source=forecast_source
        or OpenMeteoForecastSource(tz=settings.timezone, horizon_hours=settings.horizon_hours, clock=clock),
        notifier=notifier or ConsoleNotifier(),
        scheduler=scheduler
        or ThreadScheduler(max_retries=settings.max_retries, backoff_seconds=settings.retry_backoff_seconds),
        clock=clock,
    )


def print_status(monitor: MonitoringLoop):
    now = monitor.clock()
    state = monitor.repository.load_state()
    ledger = monitor.repository.load_ledger()
    print(f"\nLaundry status:  {state.status.name}")
    duration = state.hanging_duration(now)
    if duration is not None:
        print(f"Hanging for:     {int(duration.total_seconds() // 60)} minutes")
    if ledger.last_alert_probability:
        print(
            f"Last alert:      {ledger.last_alert_time.strftime('%Y-%m-%d %H:%M %Z')} "
            f"({ledger.last_alert_probability}%, {describe_conditions(ledger.last_alert_probability)})"
        )
    else:
        print("Last alert:      none")
    print(f"Alert threshold: {monitor.settings.precipitation_threshold}%")


def print_report(report):
    line = f"\nCheck finished: {report.status.name}"
    if report.outcome is not None:
        line += f" ({report.outcome.name})"
    print(line)
    if report.analysis is not None:
        print(f"Risk level: {report.analysis.risk_level.name}, {report.analysis.recommended_action}")


def run_forecast(monitor: MonitoringLoop) -> int:
    now = monitor.clock()
    try:
        lat, lon = monitor.locator.resolve(now)
        samples = monitor.forecast_source.fetch_hourly_forecast(lat, lon, now=now)
    except TransientFetchError as e:
        print(f"\nForecast unavailable: {e}")
        return EXIT_RUNTIME_ERROR
    print(f"\nLocation: {lat:.4f}, {lon:.4f}")
    print_forecast_preview(samples, analyze(samples, monitor.settings.precipitation_threshold, now), now)
    return 0


def run_snooze(monitor: MonitoringLoop) -> int:
    """Dismiss the current alert and stay alive until the snooze re-check has run."""
    monitor.snooze()
    print(f"\nSnoozed. Re-checking in {monitor.settings.snooze_minutes} minutes (Ctrl-C to cancel).")
    try:
        while monitor.scheduler.is_scheduled(SNOOZE_JOB):
            time.sleep(1)
    except KeyboardInterrupt:
        monitor.shutdown()
        print("\nSnooze cancelled.")
    return 0


def handle_watch_command(monitor: MonitoringLoop, command: str) -> bool:
    """Apply one interactive command; returns False when the watch should stop."""
    if command in ("quit", "exit", "q"):
        return False
    try:
        if command == "hang":
            monitor.hang_laundry()
        elif command in ("in", "bring-in"):
            monitor.bring_in_laundry()
            monitor.start_periodic_checks(initial_delay=None)
        elif command == "snooze":
            monitor.snooze()
        elif command == "check":
            print_report(monitor.run_cycle(CheckMode.PERIODIC))
        elif command == "status":
            print_status(monitor)
        elif command:
            print(WATCH_HELP)
    except InvalidTransition as e:
        print(f"\n{e}")
    except PersistenceError as e:
        logger.error(f"Storage failure: {e}")
        print(f"\nCould not access stored state: {e}")
    return True


def run_watch(monitor: MonitoringLoop) -> int:
    """
    Keep checking on the configured interval until interrupted.

    Periodic cycles skip themselves while no laundry is hanging, so the loop also
    picks up status changes made by other invocations.
    """
    if not monitor.resume():
        monitor.start_periodic_checks(initial_delay=None)
    print(f"\n=== Laundry Watchdog – watching every {monitor.settings.check_interval_minutes} minutes ===")
    print(WATCH_HELP)
    try:
        while True:
            try:
                command = input("> ").strip().lower()
            except EOFError:
                # Non-interactive: just keep the timers alive
                while True:
                    time.sleep(60)
            if not handle_watch_command(monitor, command):
                break
    except KeyboardInterrupt:
        print()
    finally:
        monitor.shutdown()
    print("Stopped watching.")
    return 0


def run_command(args, monitor: MonitoringLoop) -> int:
    if args.command == "status":
        print_status(monitor)
    elif args.command == "hang":
        monitor.hang_laundry(start_checks=False)
        print("\nLaundry marked as hanging. Run 'laundry-watchdog watch' to monitor the rain.")
    elif args.command == "bring-in":
        monitor.bring_in_laundry()
    elif args.command == "reset":
        monitor.reset()
        print("\nLaundry status reset.")
    elif args.command == "snooze":
        return run_snooze(monitor)
    elif args.command == "check":
        report = monitor.run_cycle(CheckMode.SNOOZE if args.snooze else CheckMode.PERIODIC)
        print_report(report)
        return 0 if report.status is CycleStatus.SUCCESS else EXIT_RUNTIME_ERROR
    elif args.command == "forecast":
        return run_forecast(monitor)
    elif args.command == "history":
        entries = monitor.repository.history()
        print_history(entries)
        if args.excel:
            path = export_history_excel(entries, args.excel)
            print(f"\nHistory saved:\n{path}")
    elif args.command == "watch":
        return run_watch(monitor)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Rain alerts for laundry hanging outside")
    parser.add_argument("--config", default=None, help="Path to Settings.json (default: ./Settings.json if present)")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")
    subparsers.add_parser("status", help="Show laundry status and the last alert")
    subparsers.add_parser("hang", help="Mark laundry as hanging outside")
    subparsers.add_parser("bring-in", help="Mark laundry as brought in")
    subparsers.add_parser("reset", help="Reset status to not hanging")
    subparsers.add_parser("snooze", help="Dismiss the alert and re-check once after the snooze delay")
    check_parser = subparsers.add_parser("check", help="Run one rain check now")
    check_parser.add_argument("--snooze", action="store_true", help="Use the snooze re-check rules")
    subparsers.add_parser("forecast", help="Print the analysed hourly forecast")
    history_parser = subparsers.add_parser("history", help="Show laundry and alert history")
    history_parser.add_argument("--excel", default=None, help="Also export the history to this .xlsx file")
    subparsers.add_parser("watch", help="Monitor continuously until interrupted")
    return parser


def main(argv=None) -> int:
    """Main entry point for the Laundry Watchdog application."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 1

    try:
        settings = load_settings(args.config)
    except ConfigError as e:
        error_msg = ERROR_MESSAGES.get(e.code, f"Unknown error occurred (code: {e.code})")
        print(f"\n{error_msg}: {e}")
        return e.code

    try:
        return run_command(args, build_monitor(settings))
    except InvalidTransition as e:
        print(f"\n{e}")
        return EXIT_RUNTIME_ERROR
    except PersistenceError as e:
        logger.error(f"Storage failure: {e}")
        print(f"\nCould not access stored state: {e}")
        return EXIT_RUNTIME_ERROR


if __name__ == "__main__":
    sys.exit(main())
