# scripts/fitbit_debug_day.py
# Print raw endpoint payloads and the extracted record for one target date, without writing anywhere.
from __future__ import annotations

import argparse
import datetime as dt
import json

import httpx
from dotenv import load_dotenv, find_dotenv

load_dotenv(find_dotenv(), override=True)

from fitbit_sync.aggregator import aggregate
from fitbit_sync.auth import FitbitAuth
from fitbit_sync.config import get_settings
from fitbit_sync.extract import extract
from fitbit_sync.fetcher import FitbitFetcher
from fitbit_sync.utils import get_tz


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--date", required=True, help="Target date YYYY-MM-DD (metrics are for date - 2)")
    args = ap.parse_args()

    target = dt.date.fromisoformat(args.date)
    auth = FitbitAuth()
    if not auth.has_access():
        print("Authorization required:", auth.authorization_url())
        return

    with httpx.Client(timeout=get_settings().HTTP_TIMEOUT_SECONDS) as client:
        raw = aggregate(FitbitFetcher(client, auth), target)

    for key, payload in raw.payloads.items():
        print(f"{key.upper()} RAW:")
        print(json.dumps(payload, indent=2, default=str))
        print()

    print("RECORD:")
    print(extract(raw, get_tz()))


if __name__ == "__main__":
    main()
