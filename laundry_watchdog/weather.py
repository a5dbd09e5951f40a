"""Weather forecast module for fetching and processing hourly precipitation forecasts."""

from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

import pandas as pd
import requests

from laundry_watchdog.errors import TransientFetchError
from laundry_watchdog.log_util import app_logger
from laundry_watchdog.models import ForecastSample
from laundry_watchdog.url_builder import build_open_meteo_url

logger = app_logger(__name__)

REQUEST_TIMEOUT_SECONDS = 20


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc_timestamp(now: datetime) -> pd.Timestamp:
    ts = pd.Timestamp(now)
    return ts.tz_localize("UTC") if ts.tzinfo is None else ts.tz_convert("UTC")


def forecast_frame(data: Dict, now: datetime, horizon_hours: int) -> pd.DataFrame:
    """
    Turn an Open-Meteo JSON payload into the horizon slice starting at the current hour.

    Open-Meteo returns wall-clock times for the requested timezone together with
    `utc_offset_seconds`; times are shifted back to UTC here.

    Args:
        data (dict): decoded API response
        now (datetime): reference time
        horizon_hours (int): maximum number of rows kept

    Returns:
        pd.DataFrame with columns Time (UTC), Temperature (°C), Precipitation (%)

    Raises:
        KeyError: if the hourly block is missing
        ValueError: if the hourly arrays are inconsistent
    """
    hourly = data["hourly"]
    times = hourly["time"]
    temps_c = hourly["temperature_2m"]
    probabilities = hourly["precipitation_probability"]
    if not len(times) == len(temps_c) == len(probabilities):
        raise ValueError(
            f"hourly arrays differ in length: time={len(times)}, "
            f"temperature_2m={len(temps_c)}, precipitation_probability={len(probabilities)}"
        )

    df = pd.DataFrame(
        {
            "Time": pd.to_datetime(pd.Series(times)),
            "Temperature (°C)": pd.to_numeric(pd.Series(temps_c, dtype="object"), errors="coerce"),
            "Precipitation (%)": pd.to_numeric(pd.Series(probabilities, dtype="object"), errors="coerce"),
        }
    )
    df[["Temperature (°C)", "Precipitation (%)"]] = df[["Temperature (°C)", "Precipitation (%)"]].fillna(0)

    # Timezone handling: API wall clock -> UTC
    if df["Time"].dt.tz is None:
        offset = int(data.get("utc_offset_seconds", 0) or 0)
        df["Time"] = (df["Time"] - pd.to_timedelta(offset, unit="s")).dt.tz_localize("UTC")
    else:
        df["Time"] = df["Time"].dt.tz_convert("UTC")

    current_hour = _as_utc_timestamp(now).floor("h")
    df_horizon = df[df["Time"] >= current_hour].iloc[: max(0, int(horizon_hours))]
    return df_horizon.reset_index(drop=True)


def frame_to_samples(df: pd.DataFrame) -> List[ForecastSample]:
    """Row position in the horizon slice becomes the sample's hour offset."""
    return [
        ForecastSample(
            offset_hours=i,
            temperature=int(round(float(row["Temperature (°C)"]))),
            precipitation_probability=int(round(float(row["Precipitation (%)"]))),
        )
        for i, (_, row) in enumerate(df.iterrows())
    ]


def get_hourly_forecast(
    lat: float,
    lon: float,
    now: datetime,
    tz: str = "auto",
    horizon_hours: int = 24,
    timeout: float = REQUEST_TIMEOUT_SECONDS,
) -> List[ForecastSample]:
    """
    Fetch the hourly forecast for a coordinate and return samples from the current hour on.

    Raises:
        TransientFetchError: on HTTP/network failure or a malformed payload
    """
    url = build_open_meteo_url(lat, lon, tz, horizon_hours)
    logger.debug(f"Open-Meteo URL: {url}")

    # Fetch
    try:
        r = requests.get(url, timeout=timeout)
        r.raise_for_status()
        data = r.json()
    except (requests.RequestException, ValueError) as e:
        logger.warning(f"Forecast request failed for ({lat}, {lon}): {e}")
        raise TransientFetchError(f"Forecast request failed: {e}") from e

    try:
        df_horizon = forecast_frame(data, now, horizon_hours)
    except (KeyError, TypeError, ValueError) as e:
        logger.warning(f"Malformed forecast payload for ({lat}, {lon}): {e}")
        raise TransientFetchError(f"Malformed forecast payload: {e}") from e

    if df_horizon.empty:
        raise TransientFetchError("Forecast contains no hours at or after the current hour")

    logger.debug(f"Next {len(df_horizon)} hours forecast:\n{df_horizon}")
    return frame_to_samples(df_horizon)


class OpenMeteoForecastSource:
    """Forecast source backed by the Open-Meteo hourly endpoint."""

    def __init__(
        self,
        tz: str = "auto",
        horizon_hours: int = 24,
        clock: Callable[[], datetime] = _utc_now,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
    ):
        self.tz = tz
        self.horizon_hours = horizon_hours
        self.clock = clock
        self.timeout = timeout

    def fetch_hourly_forecast(
        self, latitude: float, longitude: float, now: Optional[datetime] = None
    ) -> List[ForecastSample]:
        """Samples from the hour containing `now` (the source's clock when omitted)."""
        return get_hourly_forecast(
            latitude,
            longitude,
            now=now or self.clock(),
            tz=self.tz,
            horizon_hours=self.horizon_hours,
            timeout=self.timeout,
        )
