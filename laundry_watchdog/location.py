"""Coordinate resolution with last-known and default fallbacks."""

from datetime import datetime, timedelta
from typing import Optional, Tuple

from laundry_watchdog.config import DEFAULT_COORDINATES
from laundry_watchdog.errors import PermissionDenied, PersistenceError
from laundry_watchdog.helpers import as_utc
from laundry_watchdog.log_util import app_logger

logger = app_logger(__name__)


class FixedLocationProvider:
    """Provider for a coordinate taken from settings."""

    def __init__(self, lat: float, lon: float):
        self.lat = lat
        self.lon = lon

    def get_coordinates(self) -> Optional[Tuple[float, float]]:
        return self.lat, self.lon


class LocationResolver:
    """
    Pick the coordinate a check cycle uses.

    Order: fresh stored location, then the provider (saving what it returns),
    then the stored location however old, then the default coordinate.
    PermissionDenied from the provider never fails the cycle; TransientFetchError
    is left to the caller.
    """

    def __init__(
        self,
        repository,
        provider=None,
        default: Tuple[float, float] = DEFAULT_COORDINATES,
        max_age_minutes: int = 60,
    ):
        self.repository = repository
        self.provider = provider
        self.default = default
        self.max_age = timedelta(minutes=max_age_minutes)

    def _fallback(self, stored) -> Tuple[float, float]:
        if stored is not None:
            return stored[0], stored[1]
        logger.info(f"No known location, using default {self.default}")
        return self.default

    def resolve(self, now: datetime) -> Tuple[float, float]:
        stored = self.repository.stored_location()
        if stored is not None and as_utc(now) - as_utc(stored[2]) <= self.max_age:
            return stored[0], stored[1]

        if self.provider is None:
            return self._fallback(stored)

        try:
            coords = self.provider.get_coordinates()
        except PermissionDenied as e:
            logger.warning(f"Location permission denied ({e}); using last known location")
            return self._fallback(stored)

        if coords is None:
            return self._fallback(stored)

        lat, lon = float(coords[0]), float(coords[1])
        try:
            self.repository.save_location(lat, lon, now)
        except PersistenceError as e:
            logger.warning(f"Could not cache location: {e}")
        return lat, lon
