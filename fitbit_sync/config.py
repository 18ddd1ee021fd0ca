from __future__ import annotations
from dotenv import load_dotenv, find_dotenv; load_dotenv(find_dotenv(usecwd=True), override=True)

from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # General
    TZ: str = Field(default="America/Chicago")

    # Google Sheets / Calendar
    SPREADSHEET_ID: Optional[str] = Field(default=None, description="Google Spreadsheet ID")
    SHEET_NAME: str = Field(default="Fitbit Data")
    CALENDAR_ID: str = Field(default="primary")
    GOOGLE_SERVICE_ACCOUNT_FILE: Optional[str] = None
    # Accept GOOGLE_APPLICATION_CREDENTIALS as an alias
    GOOGLE_SERVICE_ACCOUNT_JSON: Optional[str] = Field(
        default=None,
        description="Either JSON string of service account or path to JSON file",
        validation_alias=AliasChoices("GOOGLE_SERVICE_ACCOUNT_JSON", "GOOGLE_APPLICATION_CREDENTIALS"),
    )

    # Fitbit OAuth
    FITBIT_CLIENT_ID: Optional[str] = None
    FITBIT_CLIENT_SECRET: Optional[str] = None
    FITBIT_REDIRECT_URI: str = Field(default="http://localhost:8000/callback")
    FITBIT_ACCESS_TOKEN: Optional[str] = None  # static token fallback
    FITBIT_TOKENS_PATH: str = Field(default="./state/fitbit_tokens.json")

    # Fitbit API
    FITBIT_API_BASE: str = Field(default="https://api.fitbit.com/1/user/-")
    FITBIT_LANGUAGE: str = Field(default="en_US")
    HTTP_TIMEOUT_SECONDS: float = Field(default=30.0)

    # Pacing and retry
    FETCH_PACING_SECONDS: float = Field(default=1.0, description="Sleep before every request attempt")
    FETCH_RETRY_SECONDS: float = Field(default=3.0, description="Sleep after a non-200 response")
    FETCH_RATE_LIMIT_SECONDS: float = Field(default=5.0, description="Sleep after a 429 response")
    FETCH_MAX_RETRIES: int = Field(default=3, description="Retries per endpoint (attempts = retries + 1)")

    # Backfill
    BACKFILL_DAY_DELAY_SECONDS: float = Field(default=10.0)
    BACKFILL_ERROR_DELAY_SECONDS: float = Field(default=15.0)


def get_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]
