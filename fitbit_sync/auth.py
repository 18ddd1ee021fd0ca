# fitbit_sync/auth.py
from __future__ import annotations

import json
import time
import urllib.parse
from pathlib import Path
from typing import Any, Dict, Optional

import requests
import structlog

from .config import get_settings
from .errors import AuthRequired
from .utils import redact

logger = structlog.get_logger()

AUTHORIZE_URL = "https://www.fitbit.com/oauth2/authorize"
TOKEN_URL = "https://api.fitbit.com/oauth2/token"
SCOPES = [
    "activity",
    "sleep",
    "heartrate",
    "temperature",
    "oxygen_saturation",
    "cardio_fitness",
    "respiratory_rate",
]
# refresh this many seconds before the stored expiry
EXPIRY_MARGIN_SECONDS = 60


class FitbitAuth:
    """
    Fitbit OAuth2 (authorization code) token provider.
    - Tokens live in a JSON file (FITBIT_TOKENS_PATH) with created_at/expires_at
    - FITBIT_ACCESS_TOKEN, when set, is used as-is and never refreshed
    - get_access_token() refreshes shortly before expiry
    """

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        redirect_uri: Optional[str] = None,
        tokens_path: Optional[str | Path] = None,
        static_token: Optional[str] = None,
        timeout_seconds: float = 30,
    ):
        s = get_settings()
        self.client_id = client_id or s.FITBIT_CLIENT_ID
        self.client_secret = client_secret or s.FITBIT_CLIENT_SECRET
        self.redirect_uri = redirect_uri or s.FITBIT_REDIRECT_URI
        self.tokens_path = Path(tokens_path or s.FITBIT_TOKENS_PATH)
        self.static_token = static_token if static_token is not None else s.FITBIT_ACCESS_TOKEN
        self.timeout = timeout_seconds

    # ---------- token store ----------

    def _load_tokens(self) -> dict:
        if not self.tokens_path.exists():
            return {}
        with self.tokens_path.open("r", encoding="utf-8") as f:
            tokens = json.load(f)
        now = int(time.time())
        tokens.setdefault("created_at", now)
        if "expires_at" not in tokens:
            tokens["expires_at"] = tokens["created_at"] + int(tokens.get("expires_in", 3600))
        return tokens

    def _save_tokens(self, tokens: dict) -> dict:
        tokens.setdefault("created_at", int(time.time()))
        tokens.setdefault("expires_at", tokens["created_at"] + int(tokens.get("expires_in", 3600)))
        self.tokens_path.parent.mkdir(parents=True, exist_ok=True)
        with self.tokens_path.open("w", encoding="utf-8") as f:
            json.dump(tokens, f, ensure_ascii=False, indent=2)
        return tokens

    # ---------- OAuth ----------

    def authorization_url(self, state: Optional[str] = None) -> str:
        q = {
            "response_type": "code",
            "client_id": self.client_id or "",
            "redirect_uri": self.redirect_uri or "",
            "scope": " ".join(SCOPES),
        }
        if state:
            q["state"] = state
        return f"{AUTHORIZE_URL}?{urllib.parse.urlencode(q)}"

    def _token_request(self, data: Dict[str, Any]) -> dict:
        if not self.client_id or not self.client_secret:
            raise RuntimeError("FITBIT_CLIENT_ID / FITBIT_CLIENT_SECRET are not set")
        r = requests.post(
            TOKEN_URL,
            data=data,
            auth=(self.client_id, self.client_secret),
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            timeout=self.timeout,
        )
        r.raise_for_status()
        return r.json()

    def exchange_code(self, code: str) -> dict:
        tokens = self._token_request(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.redirect_uri,
                "client_id": self.client_id,
            }
        )
        tokens["created_at"] = int(time.time())
        logger.info("fitbit_authorized", user_id=tokens.get("user_id"))
        return self._save_tokens(tokens)

    def refresh(self) -> dict:
        stored = self._load_tokens()
        refresh_token = stored.get("refresh_token")
        if not refresh_token:
            raise AuthRequired(self.authorization_url())
        try:
            tokens = self._token_request({"grant_type": "refresh_token", "refresh_token": refresh_token})
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            if status not in (400, 401):
                raise
            # revoked or already-used refresh token: only a new authorization helps
            logger.error("fitbit_refresh_rejected", status=status, error=str(e))
            self.reset()
            raise AuthRequired(self.authorization_url()) from e
        tokens["created_at"] = int(time.time())
        # Fitbit rotates refresh tokens; keep the old one only if none came back
        tokens.setdefault("refresh_token", refresh_token)
        logger.info("fitbit_token_refreshed", access_token=redact(tokens.get("access_token")))
        return self._save_tokens(tokens)

    # ---------- provider interface ----------

    def has_access(self) -> bool:
        if self.static_token:
            return True
        tokens = self._load_tokens()
        return bool(tokens.get("access_token") or tokens.get("refresh_token"))

    def get_access_token(self) -> str:
        if self.static_token:
            return self.static_token
        tokens = self._load_tokens()
        if not tokens:
            raise AuthRequired(self.authorization_url())
        now = int(time.time())
        if not tokens.get("access_token") or now >= int(tokens.get("expires_at", now)) - EXPIRY_MARGIN_SECONDS:
            tokens = self.refresh()
        return tokens["access_token"]

    def reset(self) -> None:
        """Forget stored tokens so the next run has to authorize again."""
        if self.tokens_path.exists():
            self.tokens_path.unlink()
        logger.info("fitbit_tokens_cleared", path=str(self.tokens_path))
