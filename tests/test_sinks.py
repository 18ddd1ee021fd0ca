from unittest.mock import MagicMock

from fitbit_sync.calendar_events import CalendarWriter, build_annotation
from fitbit_sync.models import DailyMetricsRecord
from fitbit_sync.sheets import HEADER, SheetsWriter


def _service(titles):
    service = MagicMock()
    ss = service.spreadsheets.return_value
    ss.get.return_value.execute.return_value = {
        "sheets": [{"properties": {"title": t, "sheetId": i + 7}} for i, t in enumerate(titles)]
    }
    ss.batchUpdate.return_value.execute.return_value = {
        "replies": [{"addSheet": {"properties": {"sheetId": 99}}}]
    }
    return service, ss


def test_append_row_to_existing_tab():
    service, ss = _service(["Fitbit Data"])
    writer = SheetsWriter(spreadsheet_id="sid", sheet_name="Fitbit Data", service=service)

    writer.append_row(DailyMetricsRecord(date="2024-01-10", steps=8000, bed_time="11:30 PM"))

    ss.batchUpdate.assert_not_called()
    kwargs = ss.values.return_value.append.call_args.kwargs
    assert kwargs["spreadsheetId"] == "sid"
    assert kwargs["range"] == "Fitbit Data!A:R"
    assert kwargs["insertDataOption"] == "INSERT_ROWS"
    row = kwargs["body"]["values"][0]
    assert len(row) == len(HEADER)
    assert row[:4] == ["2024-01-10", 8000, "", "11:30 PM"]


def test_append_row_creates_missing_tab_with_header():
    service, ss = _service(["Sheet1"])
    writer = SheetsWriter(spreadsheet_id="sid", sheet_name="Fitbit Data", service=service)

    writer.append_row(DailyMetricsRecord(date="2024-01-10"))

    add = ss.batchUpdate.call_args.kwargs["body"]["requests"][0]
    assert add == {"addSheet": {"properties": {"title": "Fitbit Data"}}}
    header_call = ss.values.return_value.update.call_args.kwargs
    assert header_call["range"] == "Fitbit Data!A1"
    assert header_call["body"] == {"values": [HEADER]}


def test_reset_clears_writes_header_and_freezes():
    service, ss = _service(["Fitbit Data"])
    SheetsWriter(spreadsheet_id="sid", sheet_name="Fitbit Data", service=service).reset()

    values = ss.values.return_value
    values.clear.assert_called_once()
    assert values.update.call_args.kwargs["body"] == {"values": [HEADER]}
    req = ss.batchUpdate.call_args.kwargs["body"]["requests"][0]["updateSheetProperties"]
    assert req["properties"] == {"sheetId": 7, "gridProperties": {"frozenRowCount": 1}}


def test_build_annotation_with_missing_values():
    title, desc = build_annotation(DailyMetricsRecord(date="2024-03-05", steps=None))
    assert title == "Health Summary for 03/05"
    assert desc.split("<br/>") == ["n/a Hours Slept", "n/a Steps", "n/a Bed Time", "n/a Wake-up Time"]


def test_create_all_day_annotation():
    service = MagicMock()
    events = service.events.return_value
    events.insert.return_value.execute.return_value = {"id": "evt1"}

    event = CalendarWriter(calendar_id="cal", service=service).create_all_day_annotation(
        "2024-01-31", "Health Summary for 01/31", "x"
    )

    assert event == {"id": "evt1"}
    kwargs = events.insert.call_args.kwargs
    assert kwargs["calendarId"] == "cal"
    assert kwargs["body"]["start"] == {"date": "2024-01-31"}
    assert kwargs["body"]["end"] == {"date": "2024-02-01"}
    assert kwargs["body"]["summary"] == "Health Summary for 01/31"
