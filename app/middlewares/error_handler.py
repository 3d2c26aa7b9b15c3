from __future__ import annotations

import logging

from flask import Flask, g, request

from utils import err

log = logging.getLogger("api")


def init_error_handlers(app: Flask) -> None:
    @app.errorhandler(404)
    def not_found(_e):
        return err("NOT_FOUND", f"Unknown endpoint: {request.path}", http_status=404)

    @app.errorhandler(405)
    def method_not_allowed(_e):
        return err("INVALID_INPUT", f"Method {request.method} not allowed on {request.path}", http_status=405)

    @app.errorhandler(413)
    def too_large(_e):
        mb = app.config["CFG"].MAX_UPLOAD_MB
        return err("INVALID_INPUT", f"Request too large (max {mb} MB per file).", http_status=413)

    @app.errorhandler(500)
    def internal(_e):
        request_id = str(getattr(g, "request_id", "") or "")
        log.error("unhandled_500 request_id=%s path=%s", request_id, request.path)
        return err("INTERNAL", f"Unexpected error (requestId: {request_id})", http_status=500)
