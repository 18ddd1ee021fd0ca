from __future__ import annotations

import datetime as dt
import json
from typing import Any, Protocol, Tuple

import structlog

from .errors import FetchError
from .models import ABSENT, FetchTarget, RawEndpointResult

logger = structlog.get_logger()

# Non-sleep metric families, requested for target date - 2 days
FETCH_TARGETS: Tuple[FetchTarget, ...] = (
    FetchTarget("activities", "/activities/date/{date}.json"),
    FetchTarget("heart_rate", "/activities/heart/date/{date}/1d.json"),
    FetchTarget("hrv", "/hrv/date/{date}.json"),
    FetchTarget("temperature", "/temp/skin/date/{date}.json"),
    FetchTarget("spo2", "/spo2/date/{date}.json"),
    FetchTarget("breathing_rate", "/br/date/{date}.json"),
)

# A night's sleep is logged under the following morning, so sleep uses target date - 1 day
SLEEP_TARGET = FetchTarget("sleep", "/sleep/date/{date}.json")

HEALTH_OFFSET = dt.timedelta(days=2)
SLEEP_OFFSET = dt.timedelta(days=1)


class Fetcher(Protocol):
    def fetch(self, endpoint: str) -> Any: ...


def health_date_for(target_date: dt.date) -> dt.date:
    return target_date - HEALTH_OFFSET


def sleep_date_for(target_date: dt.date) -> dt.date:
    return target_date - SLEEP_OFFSET


def _fetch_isolated(fetcher: Fetcher, target: FetchTarget, day: dt.date) -> Any:
    endpoint = target.path_for(day)
    try:
        payload = fetcher.fetch(endpoint)
    except FetchError as e:
        logger.error(
            "endpoint_failed",
            key=target.key,
            endpoint=endpoint,
            date=day.isoformat(),
            status=e.last_status,
            attempts=e.attempts,
            error=str(e),
        )
        return ABSENT
    logger.debug("raw_payload", key=target.key, date=day.isoformat(), raw=json.dumps(payload, default=str))
    return payload


def aggregate(fetcher: Fetcher, target_date: dt.date) -> RawEndpointResult:
    """Fetch every metric family for ``target_date``, one endpoint at a time.

    Never raises on a failed endpoint: it is recorded as ``ABSENT`` and the rest
    still run.
    """
    health_date = health_date_for(target_date)
    sleep_date = sleep_date_for(target_date)
    result = RawEndpointResult(health_date=health_date, sleep_date=sleep_date)

    logger.info("fetching_health_data", date=health_date.isoformat())
    for target in FETCH_TARGETS:
        result.payloads[target.key] = _fetch_isolated(fetcher, target, health_date)

    logger.info("fetching_sleep_data", date=sleep_date.isoformat())
    result.payloads[SLEEP_TARGET.key] = _fetch_isolated(fetcher, SLEEP_TARGET, sleep_date)

    if result.absent_keys:
        logger.warning("endpoints_absent", date=health_date.isoformat(), keys=result.absent_keys)
    return result
