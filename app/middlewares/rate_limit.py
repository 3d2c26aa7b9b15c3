from __future__ import annotations

import logging

from flask import Flask, request

from utils import SimpleRateLimiter, err

log = logging.getLogger("api")

LOGIN_PATH = "/api/v1/auth/login"
PUBLIC_PREFIX = "/api/v1/public"


def _client_key() -> str:
    xff = request.headers.get("X-Forwarded-For", "")
    if xff:
        return xff.split(",")[0].strip()
    return request.remote_addr or ""


def init_rate_limiting(app: Flask) -> None:
    """
    Per-IP fixed-window limits on the unauthenticated surfaces.

    In-memory only, so each worker process counts separately.
    """
    cfg = app.config["CFG"]
    limiter = SimpleRateLimiter()
    app.extensions["rate_limiter"] = limiter

    @app.before_request
    def _limit():
        if not cfg.RATE_LIMIT_ENABLED or request.method == "OPTIONS":
            return None

        path = request.path
        if path == LOGIN_PATH:
            bucket, limit = "LOGIN", cfg.RATE_LIMIT_LOGIN_PER_MIN
        elif path.startswith(PUBLIC_PREFIX):
            bucket, limit = "PUBLIC", cfg.RATE_LIMIT_PUBLIC_PER_MIN
        else:
            return None

        key = _client_key()
        if limiter.allow(bucket, key, limit=limit, window_seconds=60):
            return None
        log.warning("rate_limited bucket=%s ip=%s", bucket, key)
        return err("RATE_LIMITED", "Too many requests. Please try again shortly.", http_status=429)
