from __future__ import annotations

import logging

from flask import Blueprint, current_app, jsonify

from cache_layer import cache_stats
from db import get_pool_stats, ping_db
from utils import iso_utc_now

core_bp = Blueprint("core", __name__)
log = logging.getLogger("db")


def _ping_redis(cfg) -> bool:
    """Redis only matters when renders go through Celery."""
    if cfg.RENDER_MODE != "celery" or not cfg.REDIS_URL:
        return True
    try:
        import redis

        r = redis.from_url(cfg.REDIS_URL, socket_connect_timeout=2)
        r.ping()
        return True
    except Exception:
        log.warning("redis_ping_failed", exc_info=True)
        return False


@core_bp.get("/health")
def health():
    """Lightweight health check (process alive)."""
    cfg = current_app.config["CFG"]
    return jsonify({"status": "ok", "time": iso_utc_now(), "version": cfg.APP_VERSION})


@core_bp.get("/ready")
def ready():
    """Readiness check for load balancers."""
    cfg = current_app.config["CFG"]
    db_ok = ping_db()
    redis_ok = _ping_redis(cfg)
    all_ok = db_ok and redis_ok

    return (
        jsonify(
            {
                "status": "ok" if all_ok else "degraded",
                "time": iso_utc_now(),
                "version": cfg.APP_VERSION,
                "checks": {
                    "db": "ok" if db_ok else "error",
                    "redis": "ok" if redis_ok else "error",
                },
                "pool": get_pool_stats(),
                "cache": cache_stats(),
            }
        ),
        200 if all_ok else 503,
    )


@core_bp.get("/version")
def version():
    cfg = current_app.config["CFG"]
    return jsonify({"version": cfg.APP_VERSION, "env": cfg.APP_ENV, "time": iso_utc_now()})
