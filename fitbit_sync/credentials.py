# fitbit_sync/credentials.py
from __future__ import annotations

import json
import os
from typing import Optional, Sequence

from google.oauth2.service_account import Credentials

from .config import Settings, get_settings

SHEETS_SCOPE = "https://www.googleapis.com/auth/spreadsheets"
CALENDAR_SCOPE = "https://www.googleapis.com/auth/calendar.events"


def service_account_credentials(scopes: Sequence[str], settings: Optional[Settings] = None) -> Credentials:
    """
    Both ways are supported:
    - GOOGLE_SERVICE_ACCOUNT_FILE = path to the JSON key
    - GOOGLE_SERVICE_ACCOUNT_JSON = inline JSON string **or** a path (fallback)
    """
    s = settings or get_settings()
    file_path = s.GOOGLE_SERVICE_ACCOUNT_FILE
    raw = s.GOOGLE_SERVICE_ACCOUNT_JSON

    if file_path and os.path.exists(file_path):
        return Credentials.from_service_account_file(file_path, scopes=list(scopes))

    if raw:
        if os.path.exists(raw):
            return Credentials.from_service_account_file(raw, scopes=list(scopes))
        info = json.loads(raw)
        return Credentials.from_service_account_info(info, scopes=list(scopes))

    raise RuntimeError(
        "Service account not provided. Set GOOGLE_SERVICE_ACCOUNT_FILE (path) "
        "or GOOGLE_SERVICE_ACCOUNT_JSON (inline JSON or path)."
    )
