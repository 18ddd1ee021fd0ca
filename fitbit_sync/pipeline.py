from __future__ import annotations

import datetime as dt
from typing import Optional, Protocol

import structlog

from .aggregator import Fetcher, aggregate
from .calendar_events import build_annotation
from .errors import AuthRequired, SinkFailure
from .extract import extract
from .fetcher import TokenProvider
from .models import DailyMetricsRecord
from .utils import get_tz, today

logger = structlog.get_logger()


class RowSink(Protocol):
    def append_row(self, record: DailyMetricsRecord) -> None: ...


class AnnotationSink(Protocol):
    def create_all_day_annotation(self, date: str, title: str, description: str) -> object: ...


class DailyPipeline:
    """Fetch, normalize and write one day.

    ``run(target_date)`` writes the record for ``target_date - 2 days`` (sleep
    from ``target_date - 1 day``). The target date is always passed in; nothing
    is read from shared state.
    """

    def __init__(
        self,
        auth: TokenProvider,
        fetcher: Fetcher,
        rows: RowSink,
        annotations: Optional[AnnotationSink] = None,
        tz: Optional[dt.tzinfo] = None,
    ):
        self.auth = auth
        self.fetcher = fetcher
        self.rows = rows
        self.annotations = annotations
        self.tz = tz or get_tz()

    def ensure_access(self) -> None:
        if not self.auth.has_access():
            url = self.auth.authorization_url()
            logger.error("authorization_required", authorization_url=url)
            raise AuthRequired(url)

    def run(self, target_date: Optional[dt.date] = None) -> DailyMetricsRecord:
        self.ensure_access()
        target_date = target_date or today(self.tz)
        logger.info("pipeline_start", target_date=target_date.isoformat())

        raw = aggregate(self.fetcher, target_date)
        record = extract(raw, self.tz)

        try:
            self.rows.append_row(record)
        except Exception as e:
            raise SinkFailure(record.date, "sheet", e) from e

        if self.annotations is not None:
            title, description = build_annotation(record)
            try:
                self.annotations.create_all_day_annotation(record.date, title, description)
            except Exception as e:
                raise SinkFailure(record.date, "calendar", e) from e

        logger.info("pipeline_done", date=record.date)
        return record
