from __future__ import annotations

import os


def _env_str(name: str, default: str = "") -> str:
    return str(os.getenv(name, default) or default).strip()


def _env_int(name: str, default: int) -> int:
    try:
        return int(str(os.getenv(name, "") or "").strip() or default)
    except Exception:
        return default


def _env_bool(name: str, default: bool = False) -> bool:
    raw = str(os.getenv(name, "") or "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "y", "on"}


def _env_list(name: str, default: list[str] | None = None) -> list[str]:
    raw = str(os.getenv(name, "") or "").strip()
    if not raw:
        return list(default or [])
    return [x.strip() for x in raw.split(",") if x.strip()]


DEV_JWT_SECRET = "dev-only-jwt-secret-change-me"
RENDER_MODES = {"celery", "thread", "inline", "off"}


class Config:
    def __init__(self):
        self.APP_ENV = _env_str("APP_ENV", "development").lower()
        self.APP_VERSION = _env_str("APP_VERSION", "1.0.0")
        self.HOST = _env_str("HOST", "0.0.0.0")
        self.PORT = _env_int("PORT", 5002)
        self.LOG_LEVEL = _env_str("LOG_LEVEL", "INFO").upper()

        self.DATABASE_URL = _env_str("DATABASE_URL", "sqlite:///./visa_tracker.db")
        self.REDIS_URL = _env_str("REDIS_URL", "")
        self.ALLOWED_ORIGINS = _env_list("ALLOWED_ORIGINS", ["http://localhost:5173"])

        self.JWT_SECRET = _env_str("JWT_SECRET", DEV_JWT_SECRET)
        self.JWT_ALGORITHM = _env_str("JWT_ALGORITHM", "HS256")
        self.SESSION_TTL_MINUTES_OWNER = max(1, _env_int("SESSION_TTL_MINUTES_OWNER", 60))
        self.SESSION_TTL_MINUTES_ADMIN = max(1, _env_int("SESSION_TTL_MINUTES_ADMIN", 480))
        self.SESSION_TTL_MINUTES_USER = max(1, _env_int("SESSION_TTL_MINUTES_USER", 480))

        self.LOCKOUT_THRESHOLD = max(1, _env_int("LOCKOUT_THRESHOLD", 5))
        self.LOCKOUT_MINUTES = max(1, _env_int("LOCKOUT_MINUTES", 15))

        self.VISA_NUMBER_PREFIX = _env_str("VISA_NUMBER_PREFIX", "VN").upper()
        self.VISA_ALLOCATION_MAX_ATTEMPTS = max(1, _env_int("VISA_ALLOCATION_MAX_ATTEMPTS", 10))
        self.ISSUANCE_STATUSES = tuple(_env_list("ISSUANCE_STATUSES", ["Approved", "Issued"]))

        self.RENDER_MODE = _env_str("RENDER_MODE", "thread").lower()
        self.ARTIFACT_DIR = _env_str("ARTIFACT_DIR", "./generated-visas")
        self.UPLOAD_DIR = _env_str("UPLOAD_DIR", "./uploads")
        self.MAX_UPLOAD_MB = max(1, _env_int("MAX_UPLOAD_MB", 5))
        self.ISSUER_NAME = _env_str("ISSUER_NAME", "Visa Immigration Services")

        self.RATE_LIMIT_ENABLED = _env_bool("RATE_LIMIT_ENABLED", True)
        self.RATE_LIMIT_LOGIN_PER_MIN = max(1, _env_int("RATE_LIMIT_LOGIN_PER_MIN", 20))
        self.RATE_LIMIT_PUBLIC_PER_MIN = max(1, _env_int("RATE_LIMIT_PUBLIC_PER_MIN", 30))

    @property
    def IS_PRODUCTION(self) -> bool:
        return self.APP_ENV in {"prod", "production"}

    def session_ttl_minutes(self, tier: str) -> int:
        t = str(tier or "").upper().strip()
        if t == "OWNER":
            return self.SESSION_TTL_MINUTES_OWNER
        if t == "ADMIN":
            return self.SESSION_TTL_MINUTES_ADMIN
        return self.SESSION_TTL_MINUTES_USER

    def validate(self) -> None:
        if not self.DATABASE_URL:
            raise RuntimeError("DATABASE_URL is required")
        if self.RENDER_MODE not in RENDER_MODES:
            raise RuntimeError(f"RENDER_MODE must be one of {sorted(RENDER_MODES)}")
        if self.IS_PRODUCTION and (not self.JWT_SECRET or self.JWT_SECRET == DEV_JWT_SECRET):
            raise RuntimeError("JWT_SECRET must be set in production")
        if self.IS_PRODUCTION and len(self.JWT_SECRET) < 32:
            raise RuntimeError("JWT_SECRET must be at least 32 characters in production")
        if not self.ISSUANCE_STATUSES:
            raise RuntimeError("ISSUANCE_STATUSES must name at least one status")
        from actions.candidate_repo import STATUSES

        unknown = [s for s in self.ISSUANCE_STATUSES if s not in STATUSES]
        if unknown:
            raise RuntimeError(f"ISSUANCE_STATUSES has unknown status(es) {unknown}; allowed: {list(STATUSES)}")
