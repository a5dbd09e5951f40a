"""
Unit tests for the Open-Meteo forecast fetch and horizon slicing.
HTTP is mocked; no network access.
"""

from datetime import datetime, timezone
from unittest import mock

import pytest
import requests

from laundry_watchdog.errors import TransientFetchError
from laundry_watchdog.weather import OpenMeteoForecastSource, forecast_frame, get_hourly_forecast

# 00:30 UTC is 09:30 in Tokyo, so the current-hour slice starts at local 09:00 (index 9)
NOW = datetime(2025, 6, 1, 0, 30, tzinfo=timezone.utc)


def tokyo_payload(hours=48, probabilities=None):
    times = [f"2025-06-{1 + h // 24:02d}T{h % 24:02d}:00" for h in range(hours)]
    return {
        "utc_offset_seconds": 32400,
        "hourly": {
            "time": times,
            "temperature_2m": [20.0 + (h % 5) for h in range(hours)],
            "precipitation_probability": probabilities or [h % 100 for h in range(hours)],
        },
    }


def mock_response(payload):
    response = mock.Mock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


class TestForecastFrame:
    def test_slice_starts_at_current_hour(self):
        df = forecast_frame(tokyo_payload(), NOW, 24)
        assert len(df) == 24
        assert df["Time"].iloc[0] == datetime(2025, 6, 1, 0, 0, tzinfo=timezone.utc)
        assert df["Precipitation (%)"].iloc[0] == 9

    def test_short_payload_returns_what_is_left(self):
        df = forecast_frame(tokyo_payload(hours=12), NOW, 24)
        assert len(df) == 3

    def test_missing_values_read_as_zero(self):
        probs = [None] * 48
        probs[9] = 55
        df = forecast_frame(tokyo_payload(probabilities=probs), NOW, 4)
        assert list(df["Precipitation (%)"]) == [55, 0, 0, 0]

    def test_mismatched_arrays_rejected(self):
        payload = tokyo_payload()
        payload["hourly"]["temperature_2m"] = payload["hourly"]["temperature_2m"][:-1]
        with pytest.raises(ValueError):
            forecast_frame(payload, NOW, 24)


class TestGetHourlyForecast:
    @mock.patch("laundry_watchdog.weather.requests.get")
    def test_returns_samples_with_offsets(self, mock_get):
        mock_get.return_value = mock_response(tokyo_payload())
        samples = get_hourly_forecast(35.0, 139.0, NOW, horizon_hours=24)

        assert len(samples) == 24
        assert [s.offset_hours for s in samples[:3]] == [0, 1, 2]
        assert [s.precipitation_probability for s in samples[:3]] == [9, 10, 11]
        assert samples[0].temperature == 24

        url = mock_get.call_args[0][0]
        assert "latitude=35.0" in url
        assert "hourly=temperature_2m,precipitation_probability" in url
        assert mock_get.call_args[1]["timeout"] == 20

    @mock.patch("laundry_watchdog.weather.requests.get")
    def test_connection_error_is_transient(self, mock_get):
        mock_get.side_effect = requests.ConnectionError("unreachable")
        with pytest.raises(TransientFetchError):
            get_hourly_forecast(35.0, 139.0, NOW)

    @mock.patch("laundry_watchdog.weather.requests.get")
    def test_http_error_is_transient(self, mock_get):
        response = mock_response({})
        response.raise_for_status.side_effect = requests.HTTPError("503 Service Unavailable")
        mock_get.return_value = response
        with pytest.raises(TransientFetchError):
            get_hourly_forecast(35.0, 139.0, NOW)

    @mock.patch("laundry_watchdog.weather.requests.get")
    def test_malformed_payload_is_transient(self, mock_get):
        mock_get.return_value = mock_response({"error": True, "reason": "bad request"})
        with pytest.raises(TransientFetchError):
            get_hourly_forecast(35.0, 139.0, NOW)

    @mock.patch("laundry_watchdog.weather.requests.get")
    def test_stale_payload_is_transient(self, mock_get):
        mock_get.return_value = mock_response(tokyo_payload())
        later = datetime(2025, 6, 10, 0, 0, tzinfo=timezone.utc)
        with pytest.raises(TransientFetchError):
            get_hourly_forecast(35.0, 139.0, later)


class TestOpenMeteoForecastSource:
    @mock.patch("laundry_watchdog.weather.requests.get")
    def test_uses_injected_clock(self, mock_get):
        mock_get.return_value = mock_response(tokyo_payload())
        source = OpenMeteoForecastSource(tz="Asia/Tokyo", horizon_hours=6, clock=lambda: NOW)
        samples = source.fetch_hourly_forecast(35.6762, 139.6503)
        assert len(samples) == 6
        assert samples[0].precipitation_probability == 9
        assert "timezone=Asia/Tokyo" in mock_get.call_args[0][0]

    @mock.patch("laundry_watchdog.weather.requests.get")
    def test_explicit_now_overrides_clock(self, mock_get):
        mock_get.return_value = mock_response(tokyo_payload())

        def stale_clock():
            return datetime(2025, 6, 10, 0, 0, tzinfo=timezone.utc)

        source = OpenMeteoForecastSource(horizon_hours=4, clock=stale_clock)
        samples = source.fetch_hourly_forecast(35.6762, 139.6503, now=NOW)
        assert [s.precipitation_probability for s in samples] == [9, 10, 11, 12]
