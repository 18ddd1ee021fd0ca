import datetime as dt
from unittest.mock import MagicMock

import pytest
import pytz
from conftest import FakeFetcher, FakeTokens, SCENARIO_PAYLOADS, TARGET

from fitbit_sync.backfill import Backfill, last_days_range
from fitbit_sync.errors import AuthRequired, SinkFailure
from fitbit_sync.pipeline import DailyPipeline

CHICAGO = pytz.timezone("America/Chicago")


def _pipeline(tokens=None, fetcher=None, rows=None, annotations=None) -> DailyPipeline:
    return DailyPipeline(
        auth=tokens or FakeTokens(),
        fetcher=fetcher or FakeFetcher(SCENARIO_PAYLOADS),
        rows=rows or MagicMock(),
        annotations=annotations,
        tz=CHICAGO,
    )


# --------------------------- DailyPipeline ---------------------------

def test_run_writes_row_and_annotation():
    rows, annotations = MagicMock(), MagicMock()
    rec = _pipeline(rows=rows, annotations=annotations).run(TARGET)

    assert rec.date == "2024-01-10"
    rows.append_row.assert_called_once_with(rec)
    annotations.create_all_day_annotation.assert_called_once_with(
        "2024-01-10",
        "Health Summary for 01/10",
        "6.50 Hours Slept<br/>8000 Steps<br/>11:30 PM Bed Time<br/>6:30 AM Wake-up Time",
    )


def test_no_access_raises_auth_required_before_fetching():
    fetcher = FakeFetcher()
    with pytest.raises(AuthRequired) as exc_info:
        _pipeline(tokens=FakeTokens(access=False), fetcher=fetcher).run(TARGET)
    assert "oauth2/authorize" in exc_info.value.authorization_url
    assert fetcher.calls == []


def test_sink_failure_is_wrapped():
    rows = MagicMock()
    rows.append_row.side_effect = RuntimeError("quota")
    with pytest.raises(SinkFailure) as exc_info:
        _pipeline(rows=rows).run(TARGET)
    assert exc_info.value.date == "2024-01-10"
    assert exc_info.value.sink == "sheet"


def test_annotation_failure_is_wrapped():
    annotations = MagicMock()
    annotations.create_all_day_annotation.side_effect = RuntimeError("forbidden")
    with pytest.raises(SinkFailure) as exc_info:
        _pipeline(annotations=annotations).run(TARGET)
    assert exc_info.value.sink == "calendar"


def test_endpoint_failures_still_emit_record():
    rows = MagicMock()
    fetcher = FakeFetcher(SCENARIO_PAYLOADS, failing=("/activities/date/2024-01-10.json",))
    rec = _pipeline(fetcher=fetcher, rows=rows).run(TARGET)
    assert rec.steps is None
    assert rec.very_active_minutes == 0
    assert rec.resting_heart_rate == 58
    rows.append_row.assert_called_once()


def test_same_day_twice_gives_identical_records():
    rows = MagicMock()
    p = _pipeline(rows=rows)
    first, second = p.run(TARGET), p.run(TARGET)
    assert first == second
    assert rows.append_row.call_count == 2


# --------------------------- Backfill ---------------------------

def _mock_pipeline():
    pipeline = MagicMock(spec=DailyPipeline)
    return pipeline


def test_backfill_runs_each_day_ascending(sleeper):
    pipeline = _mock_pipeline()
    report = Backfill(pipeline, day_delay=10, error_delay=15, sleep=sleeper).run(
        dt.date(2024, 1, 1), dt.date(2024, 1, 3)
    )

    days = [c.args[0] for c in pipeline.run.call_args_list]
    assert days == [dt.date(2024, 1, 1), dt.date(2024, 1, 2), dt.date(2024, 1, 3)]
    assert report.processed == days
    assert report.failed == []
    assert sleeper.calls == [10, 10, 10]


def test_backfill_isolates_a_failed_day(sleeper):
    pipeline = _mock_pipeline()
    pipeline.run.side_effect = [None, SinkFailure("2023-12-31", "sheet", RuntimeError("x")), None]

    report = Backfill(pipeline, day_delay=10, error_delay=15, sleep=sleeper).run(
        dt.date(2024, 1, 1), dt.date(2024, 1, 3)
    )

    assert pipeline.run.call_count == 3
    assert [d for d, _ in report.failed] == [dt.date(2024, 1, 2)]
    assert report.succeeded == [dt.date(2024, 1, 1), dt.date(2024, 1, 3)]
    assert sleeper.calls == [10, 15, 10]


def test_backfill_stops_on_auth_required(sleeper):
    pipeline = _mock_pipeline()
    pipeline.run.side_effect = [None, AuthRequired("https://example/auth")]

    with pytest.raises(AuthRequired):
        Backfill(pipeline, day_delay=0, error_delay=0, sleep=sleeper).run(dt.date(2024, 1, 1), dt.date(2024, 1, 5))
    assert pipeline.run.call_count == 2


def test_backfill_rejects_inverted_range():
    with pytest.raises(ValueError):
        Backfill(_mock_pipeline(), day_delay=0, error_delay=0).run(dt.date(2024, 1, 3), dt.date(2024, 1, 1))


def test_backfill_end_to_end_records_offset_dates(sleeper):
    rows = MagicMock()
    payloads = dict(SCENARIO_PAYLOADS)
    pipeline = _pipeline(fetcher=FakeFetcher(payloads), rows=rows)

    Backfill(pipeline, day_delay=0, error_delay=0, sleep=sleeper).run(dt.date(2024, 1, 11), dt.date(2024, 1, 13))

    written = [c.args[0].date for c in rows.append_row.call_args_list]
    assert written == ["2024-01-09", "2024-01-10", "2024-01-11"]


def test_last_days_range():
    start, end = last_days_range(14, end=dt.date(2024, 1, 31))
    assert (start, end) == (dt.date(2024, 1, 18), dt.date(2024, 1, 31))
    with pytest.raises(ValueError):
        last_days_range(0)
