from __future__ import annotations

import json
import time
from functools import partial
from typing import Any, Callable, Optional, Protocol

import httpx
import structlog
from tenacity import RetryCallState, Retrying, retry_if_exception_type, stop_after_attempt

from .config import get_settings
from .errors import EndpointFetchExhausted, InvalidPayload, TransportError

logger = structlog.get_logger()


class TokenProvider(Protocol):
    def get_access_token(self) -> str: ...

    def has_access(self) -> bool: ...

    def authorization_url(self) -> str: ...


class _BadStatus(Exception):
    def __init__(self, status: int, body: str):
        self.status = status
        self.body = body
        super().__init__(f"HTTP {status}")


def _error_detail(body: str) -> str:
    """Pull ``errorType: message`` out of a Fitbit error body, falling back to the raw text."""
    try:
        js = json.loads(body)
    except ValueError:
        return body[:300]
    errors = js.get("errors") if isinstance(js, dict) else None
    if isinstance(errors, list) and errors:
        first = errors[0] if isinstance(errors[0], dict) else {}
        return f"{first.get('errorType', 'error')}: {first.get('message', '')}".strip()
    return body[:300]


class FitbitFetcher:
    """One authenticated GET per call with pacing, 429 handling and a bounded retry budget.

    Every attempt sleeps ``pacing_seconds`` first. A 429 waits ``rate_limit_seconds``
    before the next attempt; any other non-200 or transport failure waits
    ``retry_seconds``. After ``max_retries`` retries the call fails with
    :class:`EndpointFetchExhausted` (HTTP errors) or :class:`TransportError`.
    A 401 is just another non-200; tokens are never refreshed here.
    """

    def __init__(
        self,
        client: httpx.Client,
        tokens: TokenProvider,
        *,
        base_url: Optional[str] = None,
        language: Optional[str] = None,
        pacing_seconds: Optional[float] = None,
        retry_seconds: Optional[float] = None,
        rate_limit_seconds: Optional[float] = None,
        max_retries: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        s = get_settings()
        self.client = client
        self.tokens = tokens
        self.base_url = (base_url or s.FITBIT_API_BASE).rstrip("/")
        self.language = language or s.FITBIT_LANGUAGE
        self.pacing_seconds = s.FETCH_PACING_SECONDS if pacing_seconds is None else pacing_seconds
        self.retry_seconds = s.FETCH_RETRY_SECONDS if retry_seconds is None else retry_seconds
        self.rate_limit_seconds = s.FETCH_RATE_LIMIT_SECONDS if rate_limit_seconds is None else rate_limit_seconds
        self.max_retries = s.FETCH_MAX_RETRIES if max_retries is None else max_retries
        self._sleep = sleep

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    # ---------- tenacity hooks ----------

    def _pace(self, retry_state: RetryCallState) -> None:
        if self.pacing_seconds:
            self._sleep(self.pacing_seconds)

    def _wait(self, retry_state: RetryCallState) -> float:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(exc, _BadStatus) and exc.status == 429:
            return self.rate_limit_seconds
        return self.retry_seconds

    def _log_retry(self, endpoint: str, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else None
        if isinstance(exc, _BadStatus) and exc.status == 429:
            logger.warning("rate_limited", endpoint=endpoint, attempt=retry_state.attempt_number, wait_s=delay)
        elif isinstance(exc, _BadStatus):
            logger.warning(
                "fetch_retry",
                endpoint=endpoint,
                status=exc.status,
                detail=_error_detail(exc.body),
                attempt=retry_state.attempt_number,
                wait_s=delay,
            )
        else:
            logger.warning(
                "fetch_retry",
                endpoint=endpoint,
                error=str(exc),
                attempt=retry_state.attempt_number,
                wait_s=delay,
            )

    # ---------- HTTP ----------

    def url_for(self, endpoint: str) -> str:
        return f"{self.base_url}{endpoint}"

    def _get_once(self, endpoint: str) -> httpx.Response:
        headers = {
            "Authorization": f"Bearer {self.tokens.get_access_token()}",
            "Accept-Language": self.language,
        }
        r = self.client.get(self.url_for(endpoint), headers=headers)
        if r.status_code != 200:
            raise _BadStatus(r.status_code, r.text)
        return r

    def fetch(self, endpoint: str) -> Any:
        """GET ``endpoint`` (e.g. ``/sleep/date/2024-01-11.json``) and return the parsed JSON."""
        retrying = Retrying(
            reraise=True,
            stop=stop_after_attempt(self.max_attempts),
            wait=self._wait,
            retry=retry_if_exception_type((_BadStatus, httpx.TransportError)),
            before=self._pace,
            before_sleep=partial(self._log_retry, endpoint),
            sleep=self._sleep,
        )
        attempts = 0
        try:
            for attempt in retrying:
                attempts = attempt.retry_state.attempt_number
                with attempt:
                    response = self._get_once(endpoint)
        except _BadStatus as exc:
            logger.error("fetch_exhausted", endpoint=endpoint, status=exc.status, attempts=attempts)
            raise EndpointFetchExhausted(endpoint, exc.status, attempts, exc.body) from exc
        except httpx.TransportError as exc:
            logger.error("fetch_transport_failed", endpoint=endpoint, error=str(exc), attempts=attempts)
            raise TransportError(endpoint, attempts, str(exc)) from exc

        try:
            return response.json()
        except ValueError as exc:
            raise InvalidPayload(endpoint, response.status_code, attempts, response.text[:300]) from exc
