from __future__ import annotations

from typing import Optional


class FitbitSyncError(Exception):
    """Base class for everything this package raises on purpose."""


class AuthRequired(FitbitSyncError):
    """No usable Fitbit token. Fatal for the run; the user has to authorize again."""

    def __init__(self, authorization_url: Optional[str] = None):
        self.authorization_url = authorization_url
        msg = "Fitbit authorization required"
        if authorization_url:
            msg += f": {authorization_url}"
        super().__init__(msg)


class FetchError(FitbitSyncError):
    def __init__(self, endpoint: str, last_status: Optional[int], attempts: int, detail: str = ""):
        self.endpoint = endpoint
        self.last_status = last_status
        self.attempts = attempts
        self.detail = detail
        msg = f"{endpoint}: failed after {attempts} attempt(s) (last status {last_status})"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class EndpointFetchExhausted(FetchError):
    """Every attempt got a non-200 response. ``body`` is the last response body."""

    def __init__(self, endpoint: str, last_status: Optional[int], attempts: int, body: str = ""):
        self.body = body
        super().__init__(endpoint, last_status, attempts, body)


class TransportError(FetchError):
    """Every attempt failed below HTTP (DNS, connect, timeout)."""

    def __init__(self, endpoint: str, attempts: int, reason: str = ""):
        self.reason = reason
        super().__init__(endpoint, None, attempts, reason)


class InvalidPayload(FetchError):
    """A 200 response whose body is not JSON."""


class SinkFailure(FitbitSyncError):
    def __init__(self, date: str, sink: str, cause: BaseException):
        self.date = date
        self.sink = sink
        self.cause = cause
        super().__init__(f"{sink} write failed for {date}: {cause}")
