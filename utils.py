from __future__ import annotations

import logging
import threading
import time
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Optional

from flask import jsonify


ERROR_HTTP_STATUS: dict[str, int] = {
    "INVALID_INPUT": 400,
    "AUTH_INVALID": 401,
    "SESSION_EXPIRED": 401,
    "SESSION_INVALID": 401,
    "FORBIDDEN": 403,
    "DISABLED": 403,
    "NOT_FOUND": 404,
    "CONFLICT": 409,
    "ALREADY_DELETED": 409,
    "LOCKED": 429,
    "RATE_LIMITED": 429,
    "INTERNAL": 500,
    "ALLOCATION_EXHAUSTED": 503,
}


class ApiError(Exception):
    def __init__(self, code: str, message: str, http_status: Optional[int] = None, details: Optional[dict] = None):
        super().__init__(message)
        self.code = str(code or "INTERNAL")
        self.message = str(message or "")
        self.http_status = int(http_status or ERROR_HTTP_STATUS.get(self.code, 400))
        self.details = dict(details or {})


@dataclass(frozen=True)
class AuthContext:
    valid: bool
    userId: str
    email: str
    role: str
    expiresAt: str


def ok(data: Any = None, http_status: int = 200):
    return jsonify({"ok": True, "data": data}), http_status


def err(code: str, message: str, http_status: int = 400, details: Optional[dict] = None):
    body: dict[str, Any] = {"code": code, "message": message}
    if details:
        body["details"] = details
    return jsonify({"ok": False, "error": body}), http_status


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex}"


def to_iso_utc(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def iso_utc_now() -> str:
    return to_iso_utc(datetime.now(timezone.utc))


def parse_iso_utc(value: Any) -> Optional[datetime]:
    s = str(value or "").strip()
    if not s:
        return None
    try:
        dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_day(value: Any) -> Optional[str]:
    """Reduce a date or timestamp to its calendar day as YYYY-MM-DD.

    Accepts `YYYY-MM-DD`, a full ISO timestamp (the date part is taken as
    written, before any timezone shift), or `DD/MM/YYYY`.
    """
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    s = str(value or "").strip()
    if not s:
        return None
    head = s[:10]
    try:
        return date.fromisoformat(head).isoformat()
    except ValueError:
        pass
    try:
        return datetime.strptime(s, "%d/%m/%Y").date().isoformat()
    except ValueError:
        return None


def format_day_dmy(value: Any) -> str:
    day = parse_day(value)
    if not day:
        return "N/A"
    y, m, d = day.split("-")
    return f"{d}/{m}/{y}"


def clean_str(value: Any) -> str:
    return str(value or "").strip()


def mask_email(email: str) -> str:
    e = str(email or "").strip()
    if "@" not in e:
        return "****"
    local, domain = e.rsplit("@", 1)
    if len(local) <= 2:
        return (local[:1] or "*") + "***@" + domain
    return local[:2] + "***@" + domain


def now_monotonic() -> float:
    return time.monotonic()


class SimpleRateLimiter:
    """Fixed-window in-process counter keyed by (bucket, caller).

    Only bounds a single process; multi-node deployments rate-limit at the proxy.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._hits: dict[tuple[str, str], tuple[float, int]] = {}

    def allow(self, bucket: str, key: str, *, limit: int, window_seconds: int = 60) -> bool:
        now = now_monotonic()
        k = (str(bucket or ""), str(key or ""))
        with self._lock:
            started, count = self._hits.get(k, (now, 0))
            if now - started >= window_seconds:
                started, count = now, 0
            if count >= limit:
                self._hits[k] = (started, count)
                return False
            self._hits[k] = (started, count + 1)
            if len(self._hits) > 50_000:
                cutoff = now - window_seconds
                for stale in [key_ for key_, (ts, _c) in self._hits.items() if ts < cutoff]:
                    del self._hits[stale]
            return True

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
