"""
Unit tests for coordinate resolution and its fallbacks.
"""

from datetime import timedelta
from unittest import mock

import pytest

from conftest import NOW
from laundry_watchdog.errors import PermissionDenied, PersistenceError, TransientFetchError
from laundry_watchdog.location import FixedLocationProvider, LocationResolver
from laundry_watchdog.state_store import MemoryStore, StateRepository

DEFAULT = (35.6762, 139.6503)


@pytest.fixture
def repo():
    return StateRepository(MemoryStore())


class TestLocationResolver:
    def test_fresh_stored_location_skips_provider(self, repo):
        repo.save_location(48.1, 11.6, NOW - timedelta(minutes=20))
        provider = mock.Mock()
        resolver = LocationResolver(repo, provider=provider, default=DEFAULT)
        assert resolver.resolve(NOW) == (48.1, 11.6)
        provider.get_coordinates.assert_not_called()

    def test_stale_location_refreshed_and_saved(self, repo):
        repo.save_location(48.1, 11.6, NOW - timedelta(hours=3))
        resolver = LocationResolver(repo, provider=FixedLocationProvider(52.5, 13.4), default=DEFAULT)
        assert resolver.resolve(NOW) == (52.5, 13.4)
        assert repo.stored_location() == (52.5, 13.4, NOW)

    def test_permission_denied_uses_stale_location(self, repo):
        repo.save_location(48.1, 11.6, NOW - timedelta(hours=3))
        provider = mock.Mock()
        provider.get_coordinates.side_effect = PermissionDenied("denied")
        resolver = LocationResolver(repo, provider=provider, default=DEFAULT)
        assert resolver.resolve(NOW) == (48.1, 11.6)

    def test_permission_denied_without_history_uses_default(self, repo):
        provider = mock.Mock()
        provider.get_coordinates.side_effect = PermissionDenied("denied")
        resolver = LocationResolver(repo, provider=provider, default=DEFAULT)
        assert resolver.resolve(NOW) == DEFAULT

    def test_unavailable_location_uses_default(self, repo):
        provider = mock.Mock()
        provider.get_coordinates.return_value = None
        assert LocationResolver(repo, provider=provider, default=DEFAULT).resolve(NOW) == DEFAULT

    def test_no_provider_uses_default(self, repo):
        assert LocationResolver(repo, default=DEFAULT).resolve(NOW) == DEFAULT

    def test_transient_error_propagates(self, repo):
        provider = mock.Mock()
        provider.get_coordinates.side_effect = TransientFetchError("gps timeout")
        with pytest.raises(TransientFetchError):
            LocationResolver(repo, provider=provider, default=DEFAULT).resolve(NOW)

    def test_cache_write_failure_still_returns_coordinates(self, repo):
        resolver = LocationResolver(repo, provider=FixedLocationProvider(1.0, 2.0), default=DEFAULT)
        with mock.patch.object(repo, "save_location", side_effect=PersistenceError("read-only")):
            assert resolver.resolve(NOW) == (1.0, 2.0)

    def test_naive_stored_timestamp_read_as_utc(self, repo):
        naive = NOW.replace(tzinfo=None) - timedelta(minutes=10)
        repo.save_location(48.1, 11.6, naive)
        provider = mock.Mock()
        resolver = LocationResolver(repo, provider=provider, default=DEFAULT)
        assert resolver.resolve(NOW) == (48.1, 11.6)
        provider.get_coordinates.assert_not_called()
