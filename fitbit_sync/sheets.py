# fitbit_sync/sheets.py
from __future__ import annotations

from typing import Any, Optional

import structlog
from googleapiclient.discovery import build

from .config import get_settings
from .credentials import SHEETS_SCOPE, service_account_credentials
from .models import DailyMetricsRecord

logger = structlog.get_logger()

HEADER = DailyMetricsRecord.headers()


def _col_letter(index_1_based: int) -> str:
    n = int(index_1_based)
    letters: list[str] = []
    while n > 0:
        n, rem = divmod(n - 1, 26)
        letters.append(chr(65 + rem))
    return "".join(reversed(letters))


def _cells(record: DailyMetricsRecord) -> list[object]:
    return ["" if v is None else v for v in record.as_row()]


class SheetsWriter:
    """Appends one row per record to a single tab. Rows are never updated or deduplicated."""

    def __init__(
        self,
        spreadsheet_id: Optional[str] = None,
        sheet_name: Optional[str] = None,
        service: Any = None,
    ):
        s = get_settings()
        self.spreadsheet_id = spreadsheet_id or s.SPREADSHEET_ID
        if not self.spreadsheet_id:
            raise RuntimeError("SPREADSHEET_ID is not set")
        self.sheet_name = sheet_name or s.SHEET_NAME
        self._service = service

    def _spreadsheets(self):
        if self._service is None:
            self._service = build(
                "sheets", "v4", credentials=service_account_credentials([SHEETS_SCOPE]), cache_discovery=False
            )
        return self._service.spreadsheets()

    def _sheet_id(self, meta: dict) -> Optional[int]:
        for sh in meta.get("sheets", []):
            props = sh.get("properties", {})
            if props.get("title") == self.sheet_name:
                return int(props["sheetId"])
        return None

    def _write_header(self, values) -> None:
        values.update(
            spreadsheetId=self.spreadsheet_id,
            range=f"{self.sheet_name}!A1",
            valueInputOption="RAW",
            body={"values": [HEADER]},
        ).execute()

    def _ensure_tab(self) -> int:
        spreadsheets = self._spreadsheets()
        meta = spreadsheets.get(spreadsheetId=self.spreadsheet_id).execute()
        sheet_id = self._sheet_id(meta)
        if sheet_id is not None:
            return sheet_id
        resp = spreadsheets.batchUpdate(
            spreadsheetId=self.spreadsheet_id,
            body={"requests": [{"addSheet": {"properties": {"title": self.sheet_name}}}]},
        ).execute()
        self._write_header(spreadsheets.values())
        logger.info("sheet_created", sheet=self.sheet_name)
        replies = resp.get("replies") or [{}]
        return int(replies[0].get("addSheet", {}).get("properties", {}).get("sheetId", 0))

    def append_row(self, record: DailyMetricsRecord) -> None:
        self._ensure_tab()
        self._spreadsheets().values().append(
            spreadsheetId=self.spreadsheet_id,
            range=f"{self.sheet_name}!A:{_col_letter(len(HEADER))}",
            valueInputOption="USER_ENTERED",
            insertDataOption="INSERT_ROWS",
            body={"values": [_cells(record)]},
        ).execute()
        logger.info("row_appended", sheet=self.sheet_name, date=record.date)

    def reset(self) -> None:
        """Clear the tab, write the header row and freeze it."""
        sheet_id = self._ensure_tab()
        spreadsheets = self._spreadsheets()
        values = spreadsheets.values()
        values.clear(spreadsheetId=self.spreadsheet_id, range=self.sheet_name, body={}).execute()
        self._write_header(values)
        spreadsheets.batchUpdate(
            spreadsheetId=self.spreadsheet_id,
            body={
                "requests": [
                    {
                        "updateSheetProperties": {
                            "properties": {"sheetId": sheet_id, "gridProperties": {"frozenRowCount": 1}},
                            "fields": "gridProperties.frozenRowCount",
                        }
                    }
                ]
            },
        ).execute()
        logger.info("sheet_reset", sheet=self.sheet_name)
