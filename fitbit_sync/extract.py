from __future__ import annotations

import datetime as dt
from typing import Any, Dict, List, Optional

import structlog

from .models import DailyMetricsRecord, RawEndpointResult
from .utils import clock_12h, format_2dp, iso_date

logger = structlog.get_logger()

# Minute-level sleep codes: "1" asleep, "2" restless, "3" awake
WAKE_CODES = {"2", "3"}


def _dig(obj: Any, *path: Any) -> Any:
    """Walk dict keys / list indexes; None as soon as any level is missing."""
    cur = obj
    for step in path:
        if isinstance(step, int):
            if not isinstance(cur, list) or len(cur) <= step:
                return None
            cur = cur[step]
        else:
            if not isinstance(cur, dict):
                return None
            cur = cur.get(step)
        if cur is None:
            return None
    return cur


def _int_or_zero(value: Any) -> int:
    if value is None:
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


# --------------------------- Activity ---------------------------

def extract_steps(activities: Any) -> Optional[int]:
    """activities.summary.steps"""
    return _dig(activities, "summary", "steps")


def extract_activity_minutes(activities: Any) -> Dict[str, int]:
    """activities.summary.{very,fairly,lightly}ActiveMinutes / sedentaryMinutes, each 0 when absent."""
    return {
        "very_active": _int_or_zero(_dig(activities, "summary", "veryActiveMinutes")),
        "fairly_active": _int_or_zero(_dig(activities, "summary", "fairlyActiveMinutes")),
        "lightly_active": _int_or_zero(_dig(activities, "summary", "lightlyActiveMinutes")),
        "sedentary": _int_or_zero(_dig(activities, "summary", "sedentaryMinutes")),
    }


def extract_resting_heart_rate(heart_rate: Any) -> Optional[int]:
    """heart_rate["activities-heart"][0].value.restingHeartRate"""
    return _dig(heart_rate, "activities-heart", 0, "value", "restingHeartRate")


# --------------------------- Vitals ---------------------------

def extract_breathing_rate(breathing: Any) -> Optional[float]:
    """breathing_rate.br[0].value.breathingRate"""
    return _dig(breathing, "br", 0, "value", "breathingRate")


def extract_hrv(hrv: Any) -> Optional[float]:
    """hrv.hrv[0].value.dailyRmssd"""
    return _dig(hrv, "hrv", 0, "value", "dailyRmssd")


def extract_skin_temperature_delta(temperature: Any) -> Optional[float]:
    """temperature.tempSkin[0].value.nightlyRelative"""
    return _dig(temperature, "tempSkin", 0, "value", "nightlyRelative")


def extract_spo2_average(spo2: Any) -> Optional[float]:
    """spo2.value.avg"""
    return _dig(spo2, "value", "avg")


# --------------------------- Sleep ---------------------------

def select_main_sleep(sessions: List[dict]) -> Optional[dict]:
    """The session flagged isMainSleep, else the longest timeInBed (first one wins a tie)."""
    if not sessions:
        return None
    for s in sessions:
        if s.get("isMainSleep"):
            return s
    return max(sessions, key=lambda s: s.get("timeInBed") or 0)


def count_wake_minutes(minute_data: Optional[List[dict]]) -> Optional[int]:
    """Number of minute samples whose value is a wake code, None without samples."""
    if not minute_data:
        return None
    return sum(1 for m in minute_data if isinstance(m, dict) and str(m.get("value")) in WAKE_CODES)


def sleep_hours(minutes_asleep: Any) -> Optional[str]:
    if not minutes_asleep:
        return None
    try:
        return format_2dp(float(minutes_asleep) / 60)
    except (TypeError, ValueError):
        return None


def _sleep_fields(sleep: Any, tz: Optional[dt.tzinfo]) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "bed_time": None,
        "wake_time": None,
        "total_sleep_hours": None,
        "total_wake_minutes": 0,
        "light_sleep_minutes": 0,
        "deep_sleep_minutes": 0,
        "rem_sleep_minutes": 0,
    }
    sessions = _dig(sleep, "sleep")
    if not isinstance(sessions, list):
        return out
    sessions = [s for s in sessions if isinstance(s, dict)]
    if not sessions:
        return out

    main = select_main_sleep(sessions)
    out["bed_time"] = clock_12h(main.get("startTime"), tz)
    out["wake_time"] = clock_12h(main.get("endTime"), tz)
    out["total_sleep_hours"] = sleep_hours(main.get("minutesAsleep"))
    logger.info("sleep_session", bed_time=out["bed_time"], wake_time=out["wake_time"], sessions=len(sessions))

    minute_wake = count_wake_minutes(main.get("minuteData"))
    stages = _dig(sleep, "summary", "stages")
    summary_wake = _dig(stages, "wake")
    # summary-level stage totals take precedence over the per-minute count
    if summary_wake is not None:
        out["total_wake_minutes"] = _int_or_zero(summary_wake)
    elif minute_wake is not None:
        out["total_wake_minutes"] = minute_wake

    if isinstance(stages, dict):
        out["light_sleep_minutes"] = _int_or_zero(stages.get("light"))
        out["deep_sleep_minutes"] = _int_or_zero(stages.get("deep"))
        out["rem_sleep_minutes"] = _int_or_zero(stages.get("rem"))
    return out


# --------------------------- Record ---------------------------

def extract(raw: RawEndpointResult, tz: Optional[dt.tzinfo] = None) -> DailyMetricsRecord:
    """Flatten one day of endpoint payloads into a record. Never raises on missing data."""
    activities = raw.get("activities")
    minutes = extract_activity_minutes(activities)
    logger.info("activity_minutes", date=iso_date(raw.health_date), **minutes)

    vitals = {
        "breathing_rate": extract_breathing_rate(raw.get("breathing_rate")),
        "heart_rate_variability": extract_hrv(raw.get("hrv")),
        "skin_temperature_delta": extract_skin_temperature_delta(raw.get("temperature")),
        "spo2_average": extract_spo2_average(raw.get("spo2")),
    }
    logger.info("vitals", date=iso_date(raw.health_date), **vitals)

    return DailyMetricsRecord(
        date=iso_date(raw.health_date),
        steps=extract_steps(activities),
        resting_heart_rate=extract_resting_heart_rate(raw.get("heart_rate")),
        very_active_minutes=minutes["very_active"],
        fairly_active_minutes=minutes["fairly_active"],
        lightly_active_minutes=minutes["lightly_active"],
        sedentary_minutes=minutes["sedentary"],
        **vitals,
        **_sleep_fields(raw.get("sleep"), tz),
    )
