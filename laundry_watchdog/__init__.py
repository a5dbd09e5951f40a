"""
Laundry Watchdog Package
Rain alerts for laundry hanging outside, driven by the short-term hourly precipitation forecast.
"""

from .models import (
    AlertDecision,
    AlertLedger,
    ForecastSample,
    LaundryState,
    LaundryStatus,
    RainRiskAnalysis,
    RiskLevel,
)
from .risk_analysis import analyze
from .alert_policy import decide, decide_snooze
from .config import load_settings, WatchdogSettings
from .monitor import MonitoringLoop, CycleReport

__all__ = [
    'AlertDecision',
    'AlertLedger',
    'ForecastSample',
    'LaundryState',
    'LaundryStatus',
    'RainRiskAnalysis',
    'RiskLevel',
    'analyze',
    'decide',
    'decide_snooze',
    'load_settings',
    'WatchdogSettings',
    'MonitoringLoop',
    'CycleReport',
]
