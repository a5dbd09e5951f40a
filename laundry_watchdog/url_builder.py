"""URL builder module for the Open-Meteo API."""

OPEN_METEO_FORECAST_URL = "https://api.open-meteo.com/v1/forecast"


def build_open_meteo_url(lat: float, lon: float, tz: str, horizon_hours: int) -> str:
    """
    Build an Open-Meteo URL sized just large enough for the requested horizon.
    1 day covers up to 24h, 2 days up to 48h, etc. One extra day is requested
    so the horizon still fits when the current hour is late in the day.

    Args:
        lat (float): Latitude of the location
        lon (float): Longitude of the location
        tz (str): Timezone string ("auto" or an IANA name)
        horizon_hours (int): Number of hours to forecast

    Returns:
        str: The complete Open-Meteo API URL (temperature in °C,
             precipitation probability in %)
    """
    safe_h = max(1, int(horizon_hours))
    forecast_days = max(1, (safe_h + 23) // 24) + 1  # ceil(h/24) without math.ceil

    return (
        f"{OPEN_METEO_FORECAST_URL}"
        f"?latitude={lat}&longitude={lon}"
        "&hourly=temperature_2m,precipitation_probability"
        "&temperature_unit=celsius"
        f"&timezone={tz}"
        f"&forecast_days={forecast_days}"
    )
