from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional


# Sheet header in exact column order of DailyMetricsRecord.as_row()
HEADERS: List[str] = [
    "Date", "Steps", "Resting HR", "Bed Time", "Wake Time", "Total Sleep Time",
    "Total Wake Minutes", "Light Sleep", "Deep Sleep", "REM Sleep", "Breathing Rate",
    "Heart Rate Variability", "Skin Temperature", "Oxygen Saturation",
    "Very Active Minutes", "Fairly Active Minutes", "Lightly Active Minutes", "Sedentary Minutes",
]


@dataclass(frozen=True)
class FetchTarget:
    key: str
    url_template: str  # "{date}" is replaced with an ISO date

    def path_for(self, day: dt.date) -> str:
        return self.url_template.format(date=day.isoformat())


class _Absent:
    """Marker for an endpoint whose fetch failed after all retries."""

    _instance: Optional["_Absent"] = None

    def __new__(cls) -> "_Absent":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False


ABSENT = _Absent()


@dataclass
class RawEndpointResult:
    health_date: dt.date
    sleep_date: dt.date
    payloads: Dict[str, Any] = field(default_factory=dict)

    def get(self, key: str) -> Any:
        """Payload for ``key``, or None when the endpoint was absent or never requested."""
        value = self.payloads.get(key, ABSENT)
        return None if value is ABSENT else value

    def is_absent(self, key: str) -> bool:
        return self.payloads.get(key, ABSENT) is ABSENT

    @property
    def absent_keys(self) -> List[str]:
        return [k for k, v in self.payloads.items() if v is ABSENT]


@dataclass(frozen=True)
class DailyMetricsRecord:
    date: str
    steps: Optional[int] = None
    resting_heart_rate: Optional[int] = None
    bed_time: Optional[str] = None
    wake_time: Optional[str] = None
    total_sleep_hours: Optional[str] = None
    total_wake_minutes: int = 0
    light_sleep_minutes: int = 0
    deep_sleep_minutes: int = 0
    rem_sleep_minutes: int = 0
    breathing_rate: Optional[float] = None
    heart_rate_variability: Optional[float] = None
    skin_temperature_delta: Optional[float] = None
    spo2_average: Optional[float] = None
    very_active_minutes: int = 0
    fairly_active_minutes: int = 0
    lightly_active_minutes: int = 0
    sedentary_minutes: int = 0

    @staticmethod
    def headers() -> List[str]:
        return HEADERS

    def as_row(self) -> List[Any]:
        # ORDER MUST MATCH headers()
        return [getattr(self, f.name) for f in fields(self)]
