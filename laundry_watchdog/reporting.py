"""History and forecast reports: console previews and Excel export."""

import os
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

import pandas as pd
from openpyxl.utils import get_column_letter

from laundry_watchdog.helpers import describe_conditions
from laundry_watchdog.log_util import app_logger
from laundry_watchdog.models import ForecastSample, HistoryEntry, RainRiskAnalysis

logger = app_logger(__name__)

MAX_COLUMN_WIDTH = 50


def history_frame(entries: Sequence[HistoryEntry]) -> pd.DataFrame:
    """
    One row per history entry with columns:
      Time, Event, Status, Max 4h Rain (%), Risk Level, Minutes Until Rain
    """
    rows = [
        {
            "Time": pd.Timestamp(e.time),
            "Event": e.event,
            "Status": e.status.name,
            "Max 4h Rain (%)": e.probability,
            "Risk Level": e.risk_level.name if e.risk_level is not None else None,
            "Minutes Until Rain": e.minutes_until_rain,
        }
        for e in entries
    ]
    columns = ["Time", "Event", "Status", "Max 4h Rain (%)", "Risk Level", "Minutes Until Rain"]
    return pd.DataFrame(rows, columns=columns)


def forecast_table(samples: Sequence[ForecastSample], now: datetime) -> pd.DataFrame:
    """Forecast samples with absolute times and a sky label."""
    rows = [
        {
            "Time": pd.Timestamp(now + timedelta(hours=s.offset_hours)),
            "Offset (h)": s.offset_hours,
            "Temperature (°C)": s.temperature,
            "Precipitation (%)": s.precipitation_probability,
            "Sky": describe_conditions(s.precipitation_probability),
        }
        for s in samples
    ]
    columns = ["Time", "Offset (h)", "Temperature (°C)", "Precipitation (%)", "Sky"]
    return pd.DataFrame(rows, columns=columns)


def _excel_safe(df: pd.DataFrame) -> pd.DataFrame:
    """Excel cannot store tz-aware datetimes; write them as UTC strings."""
    out = df.copy()
    if "Time" in out.columns and not out.empty:
        out["Time"] = pd.to_datetime(out["Time"], utc=True).dt.strftime("%Y-%m-%d %H:%M UTC")
    return out


def export_history_excel(
    entries: Sequence[HistoryEntry],
    path: Optional[str] = None,
    forecast: Optional[Sequence[ForecastSample]] = None,
    now: Optional[datetime] = None,
) -> str:
    """
    Write the history (and optionally a forecast) to an .xlsx workbook.

    Args:
        entries: history entries, oldest first
        path (str): target file; defaults to reports/Laundry_Watchdog_History_<stamp>.xlsx
        forecast: optional samples for a second "Forecast" sheet
        now (datetime): anchor for forecast times (required with forecast)

    Returns:
        str: the path written
    """
    if path is None:
        reports_dir = os.path.join(os.getcwd(), "reports")
        os.makedirs(reports_dir, exist_ok=True)
        path = os.path.join(
            reports_dir, f"Laundry_Watchdog_History_{datetime.now().strftime('%Y%m%d_%H%M')}.xlsx"
        )

    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        _excel_safe(history_frame(entries)).to_excel(writer, index=False, sheet_name="History")
        if forecast is not None:
            _excel_safe(forecast_table(forecast, now)).to_excel(writer, index=False, sheet_name="Forecast")

        # Auto-adjust column widths in every sheet
        for sheet_name in writer.sheets:
            worksheet = writer.sheets[sheet_name]
            for idx, col in enumerate(worksheet.columns, 1):
                max_length = max((len(str(cell.value)) for cell in col if cell.value is not None), default=0)
                worksheet.column_dimensions[get_column_letter(idx)].width = min(max_length + 2, MAX_COLUMN_WIDTH)

    logger.info(f"History exported to {path}")
    return path


def print_forecast_preview(samples: List[ForecastSample], analysis: RainRiskAnalysis, now: datetime):
    """
    Print the analysed forecast.

    Args:
        samples: forecast samples
        analysis: result of analyze() for the same samples
        now (datetime): reference time
    """
    if not samples:
        print("\nNo forecast hours available.")
        return
    print("\n=== Hourly Forecast (first 12 hours) ===")
    print(forecast_table(samples, now).head(12).to_string(index=False))
    onset = analysis.estimated_rain_onset
    print(f"\nRisk level:      {analysis.risk_level.name}")
    print(f"Max rain (4h):   {analysis.max_probability_next_4h}%")
    print(f"Rain onset:      {onset.strftime('%Y-%m-%d %H:%M %Z') if onset else 'none expected'}")
    print(f"Recommendation:  {analysis.recommended_action}")


def print_history(entries: Sequence[HistoryEntry], limit: int = 30):
    if not entries:
        print("\nNo history recorded yet.")
        return
    print(f"\n=== History (last {min(limit, len(entries))} entries) ===")
    print(history_frame(entries).tail(limit).to_string(index=False))
