from __future__ import annotations

import logging
import os

from flask import Flask, g, request

from utils import now_monotonic

log = logging.getLogger("api")


def init_request_context(app: Flask) -> None:
    """Request id, latency logging and the baseline security headers."""

    @app.before_request
    def _before():
        incoming = str(request.headers.get("X-Request-ID") or "").strip()
        g.request_id = incoming[:64] if incoming else os.urandom(8).hex()
        g.start_ts = now_monotonic()

    @app.after_request
    def _after(resp):
        resp.headers["X-Request-ID"] = str(getattr(g, "request_id", "") or "")
        resp.headers.setdefault("X-Content-Type-Options", "nosniff")
        resp.headers.setdefault("X-Frame-Options", "DENY")
        resp.headers.setdefault("Referrer-Policy", "no-referrer")
        resp.headers.setdefault("Cache-Control", "no-store")

        start = getattr(g, "start_ts", None)
        latency_ms = int((now_monotonic() - start) * 1000) if start is not None else -1
        log.info(
            "request_id=%s method=%s path=%s status=%s latency_ms=%s",
            getattr(g, "request_id", ""),
            request.method,
            request.path,
            resp.status_code,
            latency_ms,
        )
        return resp
