import json
import os
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

DEFAULT_CONFIG_NAME = "Settings.json"
DEFAULT_COORDINATES = (35.6762, 139.6503)


# Error codes and custom exception
class ConfigError(Exception):
    """Custom exception class for configuration errors"""
    SUCCESS = 0
    FILE_NOT_FOUND = 1
    INVALID_JSON = 2
    INVALID_THRESHOLD = 3
    INVALID_STORAGE = 4
    GENERAL_ERROR = 5

    def __init__(self, message: str, code: int):
        super().__init__(message)
        self.code = code


@dataclass(frozen=True)
class WatchdogSettings:
    precipitation_threshold: int = 30
    check_interval_minutes: int = 15
    snooze_minutes: int = 10
    alert_cooldown_minutes: int = 30
    fallback_minutes_until_rain: int = 30
    horizon_hours: int = 24
    timezone: str = "auto"
    default_location: Tuple[float, float] = DEFAULT_COORDINATES
    location: Optional[Tuple[float, float]] = None
    location_max_age_minutes: int = 60
    storage: Dict = field(default_factory=lambda: {"backend": "json", "path": "laundry_state.json"})
    max_retries: int = 3
    retry_backoff_seconds: int = 60

    @property
    def check_interval_seconds(self) -> int:
        return self.check_interval_minutes * 60

    @property
    def snooze_seconds(self) -> int:
        return self.snooze_minutes * 60

    @property
    def cooldown_seconds(self) -> int:
        return self.alert_cooldown_minutes * 60


STORAGE_BACKENDS = ("memory", "json", "postgres")


def _to_threshold(value) -> int:
    """
    Validate the precipitation threshold.

    Args:
        value: number in 0..100

    Returns:
        int: the threshold

    Raises:
        ValueError: if the value is not a number in 0..100
    """
    threshold = int(value)
    if not 0 <= threshold <= 100:
        raise ValueError(
            f"The 'precipitation_threshold' field must be between 0 and 100, but got: {value}"
        )
    return threshold


def _to_coordinates(block) -> Optional[Tuple[float, float]]:
    if block is None:
        return None
    return float(block["lat"]), float(block["lon"])


def _to_storage(block: Dict) -> Dict:
    backend = block.get("backend", "json")
    if backend not in STORAGE_BACKENDS:
        raise ValueError(
            f"The storage 'backend' must be one of {', '.join(STORAGE_BACKENDS)}, but got: {backend}"
        )
    return dict(block, backend=backend)


def settings_from_dict(cfg: Dict) -> WatchdogSettings:
    """
    Build settings from a parsed Settings.json document.

    Raises:
        ConfigError: INVALID_THRESHOLD, INVALID_STORAGE or GENERAL_ERROR
    """
    try:
        threshold = _to_threshold(cfg.get("precipitation_threshold", 30))
    except (TypeError, ValueError) as e:
        raise ConfigError(str(e), ConfigError.INVALID_THRESHOLD) from e

    try:
        storage = _to_storage(cfg.get("storage", {"backend": "json", "path": "laundry_state.json"}))
    except ValueError as e:
        raise ConfigError(str(e), ConfigError.INVALID_STORAGE) from e

    retry = cfg.get("retry", {})
    try:
        return WatchdogSettings(
            precipitation_threshold=threshold,
            check_interval_minutes=int(cfg.get("check_interval_minutes", 15)),
            snooze_minutes=int(cfg.get("snooze_minutes", 10)),
            alert_cooldown_minutes=int(cfg.get("alert_cooldown_minutes", 30)),
            fallback_minutes_until_rain=int(cfg.get("fallback_minutes_until_rain", 30)),
            horizon_hours=int(cfg.get("horizon_hours", 24)),
            timezone=cfg.get("timezone", "auto"),
            default_location=_to_coordinates(cfg.get("default_location")) or DEFAULT_COORDINATES,
            location=_to_coordinates(cfg.get("location")),
            location_max_age_minutes=int(cfg.get("location_max_age_minutes", 60)),
            storage=storage,
            max_retries=int(retry.get("max_retries", 3)),
            retry_backoff_seconds=int(retry.get("backoff_seconds", 60)),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigError(f"Failed to process settings: {e}", ConfigError.GENERAL_ERROR) from e


def load_settings(file_path: Optional[str] = None) -> WatchdogSettings:
    """
    Load Settings.json into WatchdogSettings.

    With no explicit path, Settings.json in the working directory is used when
    present and built-in defaults otherwise. An explicit path must exist.

    Args:
        file_path (str): Path to the configuration file, or None

    Returns:
        WatchdogSettings

    Raises:
        ConfigError: with one of the codes defined on the class
    """
    if file_path is None:
        file_path = os.path.join(os.getcwd(), DEFAULT_CONFIG_NAME)
        if not os.path.exists(file_path):
            return WatchdogSettings()

    # --- 1) Read JSON file into a Python dict ---
    try:
        with open(file_path, "r") as f:
            cfg = json.load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"Configuration file not found: {file_path}", ConfigError.FILE_NOT_FOUND) from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON format in {file_path}: {e}", ConfigError.INVALID_JSON) from e

    if not isinstance(cfg, dict):
        raise ConfigError(f"Expected a JSON object in {file_path}", ConfigError.INVALID_JSON)

    # --- 2) Validate and normalize ---
    return settings_from_dict(cfg)
