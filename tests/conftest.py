from __future__ import annotations

import datetime as dt
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

from fitbit_sync.errors import EndpointFetchExhausted
from fitbit_sync.fetcher import FitbitFetcher

BASE = "https://api.fitbit.com/1/user/-"


class FakeTokens:
    def __init__(self, token: str = "tok-123", access: bool = True):
        self.token = token
        self.access = access
        self.calls = 0

    def get_access_token(self) -> str:
        self.calls += 1
        return self.token

    def has_access(self) -> bool:
        return self.access

    def authorization_url(self) -> str:
        return "https://www.fitbit.com/oauth2/authorize?client_id=x"


class FakeFetcher:
    """Serves canned payloads by endpoint; endpoints in ``failing`` raise EndpointFetchExhausted."""

    def __init__(self, payloads: Optional[Dict[str, Any]] = None, failing: tuple = ()):
        self.payloads = payloads or {}
        self.failing = set(failing)
        self.calls: List[str] = []

    def fetch(self, endpoint: str) -> Any:
        self.calls.append(endpoint)
        if endpoint in self.failing:
            raise EndpointFetchExhausted(endpoint, 500, 4, '{"errors":[]}')
        return self.payloads.get(endpoint, {})


class RecordingSleep:
    def __init__(self):
        self.calls: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def sleeper() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def tokens() -> FakeTokens:
    return FakeTokens()


@pytest.fixture
def make_fetcher(tokens, sleeper) -> Callable[..., tuple[FitbitFetcher, List[httpx.Request]]]:
    """Build a fetcher over httpx.MockTransport. ``script`` items are responses or exceptions, last one repeats."""

    def _make(script: list, **kwargs) -> tuple[FitbitFetcher, List[httpx.Request]]:
        seen: List[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            item = script[min(len(seen), len(script)) - 1]
            if isinstance(item, Exception):
                raise item
            return item

        client = httpx.Client(transport=httpx.MockTransport(handler))
        opts = dict(
            base_url=BASE,
            language="en_US",
            pacing_seconds=1.0,
            retry_seconds=3.0,
            rate_limit_seconds=5.0,
            max_retries=3,
            sleep=sleeper,
        )
        opts.update(kwargs)
        return FitbitFetcher(client, tokens, **opts), seen

    return _make


TARGET = dt.date(2024, 1, 12)

SCENARIO_PAYLOADS: Dict[str, Any] = {
    "/activities/date/2024-01-10.json": {"summary": {"steps": 8000, "veryActiveMinutes": 20}},
    "/activities/heart/date/2024-01-10/1d.json": {"activities-heart": [{"value": {"restingHeartRate": 58}}]},
    "/sleep/date/2024-01-11.json": {
        "sleep": [
            {
                "isMainSleep": True,
                "startTime": "2024-01-10T23:30:00",
                "endTime": "2024-01-11T06:30:00",
                "minutesAsleep": 390,
            }
        ]
    },
}
