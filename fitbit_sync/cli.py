# fitbit_sync/cli.py
from __future__ import annotations

import datetime as dt
from typing import Optional

import httpx
import structlog
import typer

from .auth import FitbitAuth
from .backfill import Backfill, last_days_range
from .calendar_events import CalendarWriter
from .config import get_settings
from .errors import AuthRequired, FitbitSyncError
from .fetcher import FitbitFetcher
from .pipeline import DailyPipeline
from .sheets import SheetsWriter
from .utils import redact

app = typer.Typer(no_args_is_help=True, help="fitbit-sync CLI")
log = structlog.get_logger()


# ---------- helpers ----------

def _parse_date(value: Optional[str], name: str) -> Optional[dt.date]:
    if value is None:
        return None
    try:
        return dt.date.fromisoformat(value.strip())
    except ValueError:
        raise typer.BadParameter(f"{name} must be YYYY-MM-DD, got {value!r}")


def _build_pipeline(client: httpx.Client, auth: FitbitAuth) -> tuple[DailyPipeline, SheetsWriter]:
    rows = SheetsWriter()
    pipeline = DailyPipeline(
        auth=auth,
        fetcher=FitbitFetcher(client, auth),
        rows=rows,
        annotations=CalendarWriter(),
    )
    return pipeline, rows


def _auth_required(e: AuthRequired) -> None:
    typer.echo(f"[AUTH] Authorization required. Open: {e.authorization_url}")
    raise typer.Exit(code=2)


# ---------- commands ----------

@app.command("diag")
def diag() -> None:
    """Quick diagnostics (.env, Fitbit tokens, Google config)."""
    s = get_settings()
    auth = FitbitAuth()
    typer.echo(f"TZ: {s.TZ}")
    typer.echo(f"SPREADSHEET_ID: {s.SPREADSHEET_ID}  SHEET_NAME: {s.SHEET_NAME}")
    typer.echo(f"CALENDAR_ID: {s.CALENDAR_ID}")
    typer.echo(f"GOOGLE_SERVICE_ACCOUNT_FILE: {s.GOOGLE_SERVICE_ACCOUNT_FILE}")
    typer.echo(f"GOOGLE_SERVICE_ACCOUNT_JSON set: {bool(s.GOOGLE_SERVICE_ACCOUNT_JSON)}")
    typer.echo(f"FITBIT_CLIENT_ID: {redact(s.FITBIT_CLIENT_ID)}")
    typer.echo(f"FITBIT_TOKENS_PATH: {auth.tokens_path}  (exists={auth.tokens_path.exists()})")
    typer.echo(f"Fitbit access: {auth.has_access()}")


@app.command("auth-url")
def auth_url() -> None:
    """Print the Fitbit authorization URL."""
    typer.echo(FitbitAuth().authorization_url())


@app.command("auth-server")
def auth_server(port: int = typer.Option(8000, help="Port for the OAuth callback")) -> None:
    """Run the local OAuth callback app (open http://localhost:<port>/)."""
    from .oauth_server import create_app

    create_app(FitbitAuth()).run(port=port)


@app.command("reset-auth")
def reset_auth() -> None:
    """Clear stored tokens and print a fresh authorization URL."""
    auth = FitbitAuth()
    auth.reset()
    typer.echo(f"Authorization URL: {auth.authorization_url()}")


@app.command()
def fetch(
    date: Optional[str] = typer.Option(None, help="Target date YYYY-MM-DD (default: today)"),
) -> None:
    """Fetch one day (target date - 2) and write it to the sheet and calendar."""
    target = _parse_date(date, "date")
    s = get_settings()
    auth = FitbitAuth()
    with httpx.Client(timeout=s.HTTP_TIMEOUT_SECONDS) as client:
        pipeline, _ = _build_pipeline(client, auth)
        try:
            record = pipeline.run(target)
        except AuthRequired as e:
            _auth_required(e)
        except FitbitSyncError as e:
            log.error("fetch_failed", date=str(target), error=str(e))
            typer.echo(f"[ERR] {e}")
            raise typer.Exit(code=1)
    typer.echo(f"OK: wrote {record.date}")


@app.command()
def backfill(
    start: Optional[str] = typer.Option(None, help="First target date YYYY-MM-DD"),
    end: Optional[str] = typer.Option(None, help="Last target date YYYY-MM-DD (inclusive)"),
    days: int = typer.Option(14, help="Without --start/--end: this many days ending yesterday"),
    reset_sheet: bool = typer.Option(False, "--reset-sheet", help="Clear the tab and rewrite the header first"),
) -> None:
    """Backfill a range of target dates (inclusive)."""
    start_date = _parse_date(start, "start")
    end_date = _parse_date(end, "end")
    if (start_date is None) != (end_date is None):
        raise typer.BadParameter("--start and --end must be given together")
    if start_date is None or end_date is None:
        start_date, end_date = last_days_range(days)
    if start_date > end_date:
        raise typer.BadParameter("start date is after end date")

    s = get_settings()
    auth = FitbitAuth()
    with httpx.Client(timeout=s.HTTP_TIMEOUT_SECONDS) as client:
        pipeline, rows = _build_pipeline(client, auth)
        if reset_sheet:
            rows.reset()
        try:
            report = Backfill(pipeline).run(start_date, end_date)
        except AuthRequired as e:
            _auth_required(e)

    typer.echo(f"Processed {len(report.processed)} day(s), {len(report.failed)} failed.")
    for day, error in report.failed:
        typer.echo(f"[ERR] {day}: {error}")


if __name__ == "__main__":
    app()
