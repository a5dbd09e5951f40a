"""Shared fakes and fixtures for the Laundry Watchdog tests."""

from datetime import datetime, timedelta, timezone

import pytest

from laundry_watchdog.config import WatchdogSettings
from laundry_watchdog.location import LocationResolver
from laundry_watchdog.models import ForecastSample
from laundry_watchdog.monitor import MonitoringLoop
from laundry_watchdog.state_store import MemoryStore, StateRepository

NOW = datetime(2025, 6, 1, 9, 0, tzinfo=timezone.utc)


def forecast(*probabilities, temperature=22):
    """Hourly samples starting at offset 0 with the given probabilities."""
    return [ForecastSample(i, temperature, p) for i, p in enumerate(probabilities)]


class FakeForecastSource:
    def __init__(self, samples=None, error=None):
        self.samples = samples if samples is not None else []
        self.error = error
        self.calls = []
        self.anchors = []

    def fetch_hourly_forecast(self, latitude, longitude, now=None):
        self.calls.append((latitude, longitude))
        self.anchors.append(now)
        if self.error is not None:
            raise self.error
        return list(self.samples)


class RecordingNotifier:
    def __init__(self):
        self.rain_alerts = []
        self.general = []
        self.cancelled = 0

    def notify_rain_alert(self, minutes_until_rain):
        self.rain_alerts.append(minutes_until_rain)

    def notify_general(self, title, message):
        self.general.append((title, message))

    def cancel_rain_alert(self):
        self.cancelled += 1


class FakeScheduler:
    def __init__(self):
        self.periodic = {}
        self.once = {}
        self.cancelled = []

    def schedule_periodic(self, name, interval_seconds, job, initial_delay=None):
        self.periodic[name] = (interval_seconds, job, initial_delay)

    def schedule_once(self, name, delay_seconds, job):
        self.once[name] = (delay_seconds, job)

    def cancel(self, name):
        self.cancelled.append(name)
        self.periodic.pop(name, None)
        self.once.pop(name, None)


class Clock:
    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def settings():
    return WatchdogSettings(storage={"backend": "memory"})


@pytest.fixture
def repository():
    return StateRepository(MemoryStore())


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def source():
    return FakeForecastSource(forecast(50, 80, 20))


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def monitor(settings, repository, source, notifier, scheduler, clock):
    return MonitoringLoop(
        settings=settings,
        repository=repository,
        locator=LocationResolver(repository, default=settings.default_location),
        forecast_source=source,
        notifier=notifier,
        scheduler=scheduler,
        clock=clock,
    )
