from __future__ import annotations

from typing import Optional

import structlog
from flask import Flask, redirect, request

from .auth import FitbitAuth

logger = structlog.get_logger()


def create_app(auth: Optional[FitbitAuth] = None) -> Flask:
    """Tiny local app that completes the Fitbit authorization-code flow."""
    auth = auth or FitbitAuth()
    app = Flask(__name__)

    @app.route("/")
    def index():
        return redirect(auth.authorization_url())

    @app.route("/callback")
    def callback():
        code = request.args.get("code")
        if request.args.get("error") or not code:
            logger.warning("fitbit_authorization_denied", error=request.args.get("error"))
            return "Failed to authorize.", 400
        try:
            auth.exchange_code(code)
        except Exception as e:
            logger.error("fitbit_code_exchange_failed", error=str(e))
            return "Failed to authorize.", 400
        return "Success! You can close this tab."

    return app
