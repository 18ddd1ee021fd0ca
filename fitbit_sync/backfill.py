from __future__ import annotations

import datetime as dt
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

import structlog

from .config import get_settings
from .errors import AuthRequired
from .pipeline import DailyPipeline
from .utils import iter_days, today

logger = structlog.get_logger()


@dataclass
class BackfillReport:
    processed: List[dt.date] = field(default_factory=list)
    failed: List[Tuple[dt.date, str]] = field(default_factory=list)

    @property
    def succeeded(self) -> List[dt.date]:
        bad = {d for d, _ in self.failed}
        return [d for d in self.processed if d not in bad]


def last_days_range(days: int = 14, end: Optional[dt.date] = None) -> Tuple[dt.date, dt.date]:
    """``days`` consecutive target dates ending yesterday (or ``end``)."""
    if days < 1:
        raise ValueError("days must be >= 1")
    end = end or (today() - dt.timedelta(days=1))
    return end - dt.timedelta(days=days - 1), end


class Backfill:
    """Run the daily pipeline once per target date in ``[start, end]``, oldest first.

    A failed day is logged, followed by ``error_delay`` seconds, and the run moves
    on. Only :class:`AuthRequired` stops the whole backfill.
    """

    def __init__(
        self,
        pipeline: DailyPipeline,
        day_delay: Optional[float] = None,
        error_delay: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        s = get_settings()
        self.pipeline = pipeline
        self.day_delay = s.BACKFILL_DAY_DELAY_SECONDS if day_delay is None else day_delay
        self.error_delay = s.BACKFILL_ERROR_DELAY_SECONDS if error_delay is None else error_delay
        self._sleep = sleep

    def run(self, start: dt.date, end: dt.date) -> BackfillReport:
        if start > end:
            raise ValueError(f"start date {start} is after end date {end}")

        self.pipeline.ensure_access()
        report = BackfillReport()
        logger.info("backfill_start", start=start.isoformat(), end=end.isoformat())

        for day in iter_days(start, end):
            logger.info("backfill_day", target_date=day.isoformat())
            report.processed.append(day)
            try:
                self.pipeline.run(day)
            except AuthRequired:
                raise
            except Exception as e:
                logger.error("backfill_day_failed", target_date=day.isoformat(), error=str(e))
                report.failed.append((day, str(e)))
                self._sleep(self.error_delay)
                continue
            logger.info("backfill_wait", seconds=self.day_delay)
            self._sleep(self.day_delay)

        logger.info(
            "backfill_done",
            processed=len(report.processed),
            failed=len(report.failed),
        )
        return report
