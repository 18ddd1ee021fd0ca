# fitbit_sync/calendar_events.py
from __future__ import annotations

import datetime as dt
from typing import Any, Optional, Tuple

import structlog
from googleapiclient.discovery import build

from .config import get_settings
from .credentials import CALENDAR_SCOPE, service_account_credentials
from .models import DailyMetricsRecord

logger = structlog.get_logger()

MISSING = "n/a"


def _show(value: Any) -> str:
    return MISSING if value is None else str(value)


def build_annotation(record: DailyMetricsRecord) -> Tuple[str, str]:
    """Title and HTML description of the all-day summary event for ``record.date``."""
    day = dt.date.fromisoformat(record.date)
    title = f"Health Summary for {day.strftime('%m/%d')}"
    steps = MISSING if record.steps is None else str(round(float(record.steps)))
    description = "<br/>".join(
        [
            f"{_show(record.total_sleep_hours)} Hours Slept",
            f"{steps} Steps",
            f"{_show(record.bed_time)} Bed Time",
            f"{_show(record.wake_time)} Wake-up Time",
        ]
    )
    return title, description


class CalendarWriter:
    def __init__(self, calendar_id: Optional[str] = None, service: Any = None):
        self.calendar_id = calendar_id or get_settings().CALENDAR_ID
        self._service = service

    def _events(self):
        if self._service is None:
            self._service = build(
                "calendar", "v3", credentials=service_account_credentials([CALENDAR_SCOPE]), cache_discovery=False
            )
        return self._service.events()

    def create_all_day_annotation(self, date: str, title: str, description: str) -> dict:
        day = dt.date.fromisoformat(date)
        body = {
            "summary": title,
            "description": description,
            # end.date is exclusive for all-day events
            "start": {"date": day.isoformat()},
            "end": {"date": (day + dt.timedelta(days=1)).isoformat()},
        }
        event = self._events().insert(calendarId=self.calendar_id, body=body).execute()
        logger.info("calendar_event_created", date=date, calendar=self.calendar_id, event_id=event.get("id"))
        return event
