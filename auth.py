from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt
from sqlalchemy import or_, select, update

from models import Principal
from passwords import verify_password
from utils import ApiError, AuthContext, mask_email, parse_iso_utc, to_iso_utc


GENERIC_LOGIN_FAILURE = "Invalid email or password."

log = logging.getLogger("auth")


@dataclass(frozen=True)
class SessionClaims:
    principalId: str
    expiresAt: str


def normalize_email(value: Any) -> str:
    return str(value or "").strip().lower()


def lock_minutes_left(locked_until: datetime, now: datetime) -> int:
    remaining_ms = (locked_until - now).total_seconds() * 1000
    return max(1, math.ceil(remaining_ms / 60000))


def _locked_error(locked_until: datetime, now: datetime) -> ApiError:
    minutes = lock_minutes_left(locked_until, now)
    return ApiError(
        "LOCKED",
        f"Account locked. Try again in {minutes} minute(s).",
        details={"minutesLeft": minutes},
    )


def issue_session_token(principal_id: str, *, tier: str, cfg, now: Optional[datetime] = None) -> dict[str, str]:
    now = now or datetime.now(timezone.utc)
    expires = now + timedelta(minutes=cfg.session_ttl_minutes(tier))
    payload = {
        "sub": str(principal_id),
        "iat": int(now.timestamp()),
        "exp": int(expires.timestamp()),
    }
    token = jwt.encode(payload, cfg.JWT_SECRET, algorithm=cfg.JWT_ALGORITHM)
    return {"sessionToken": token, "expiresAt": to_iso_utc(expires.replace(microsecond=0))}


def verify_session(token: Any, *, cfg) -> SessionClaims:
    """Check signature and expiry only; the token carries no other authority."""
    if not token or not isinstance(token, str):
        raise ApiError("SESSION_INVALID", "Invalid session")
    try:
        payload = jwt.decode(
            token,
            cfg.JWT_SECRET,
            algorithms=[cfg.JWT_ALGORITHM],
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise ApiError("SESSION_EXPIRED", "Session expired. Please log in again.")
    except jwt.InvalidTokenError:
        raise ApiError("SESSION_INVALID", "Invalid session")

    principal_id = str(payload.get("sub") or "").strip()
    if not principal_id:
        raise ApiError("SESSION_INVALID", "Invalid session")
    expires_at = to_iso_utc(datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc))
    return SessionClaims(principalId=principal_id, expiresAt=expires_at)


def load_session_principal(db, token: Any, *, cfg) -> tuple[AuthContext, Principal]:
    claims = verify_session(token, cfg=cfg)
    principal = db.execute(select(Principal).where(Principal.principalId == claims.principalId)).scalar_one_or_none()
    if not principal:
        raise ApiError("SESSION_INVALID", "Invalid session")
    if not principal.isActive:
        raise ApiError("DISABLED", "Account is disabled. Contact your administrator.")
    auth = AuthContext(
        valid=True,
        userId=principal.principalId,
        email=principal.email,
        role=principal.tier,
        expiresAt=claims.expiresAt,
    )
    return auth, principal


def end_session() -> dict[str, bool]:
    """Stateless logout.

    There is no server-side revocation list: the client discards the token and a
    captured token stays valid until its natural expiry.
    """
    return {"loggedOut": True}


def _register_failure(db, principal_id: str, *, cfg, now: datetime) -> ApiError:
    now_iso = to_iso_utc(now)
    lock_until = to_iso_utc(now + timedelta(minutes=cfg.LOCKOUT_MINUTES))

    db.execute(
        update(Principal)
        .where(Principal.principalId == principal_id)
        .values(failedAttempts=Principal.failedAttempts + 1)
        .execution_options(synchronize_session=False)
    )
    # The counter is not reset when a lock lapses, so the next miss relocks.
    db.execute(
        update(Principal)
        .where(Principal.principalId == principal_id)
        .where(Principal.failedAttempts >= cfg.LOCKOUT_THRESHOLD)
        .where(or_(Principal.lockedUntil == "", Principal.lockedUntil <= now_iso))
        .values(lockedUntil=lock_until)
        .execution_options(synchronize_session=False)
    )
    attempts, locked_until = db.execute(
        select(Principal.failedAttempts, Principal.lockedUntil).where(Principal.principalId == principal_id)
    ).one()
    db.commit()

    if attempts >= cfg.LOCKOUT_THRESHOLD:
        until = parse_iso_utc(locked_until) or (now + timedelta(minutes=cfg.LOCKOUT_MINUTES))
        log.warning("login_locked principal=%s attempts=%s", principal_id, attempts)
        return _locked_error(until, now)

    attempts_left = max(0, cfg.LOCKOUT_THRESHOLD - int(attempts))
    log.info("login_failed principal=%s attempts=%s", principal_id, attempts)
    return ApiError("AUTH_INVALID", GENERIC_LOGIN_FAILURE, details={"attemptsLeft": attempts_left})


def authenticate(db, email: Any, password: Any, *, cfg, now: Optional[datetime] = None) -> dict[str, Any]:
    now = now or datetime.now(timezone.utc)
    email_n = normalize_email(email)
    pwd = str(password or "")
    if not email_n or not pwd:
        raise ApiError("INVALID_INPUT", "Email and password are required.")

    # Row lock: a concurrent miss must not slip in between the lock check and the reset.
    principal = db.execute(select(Principal).where(Principal.email == email_n).with_for_update()).scalar_one_or_none()
    if not principal:
        log.info("login_unknown email=%s", mask_email(email_n))
        raise ApiError("AUTH_INVALID", GENERIC_LOGIN_FAILURE)

    locked_until = parse_iso_utc(principal.lockedUntil)
    if locked_until and locked_until > now:
        raise _locked_error(locked_until, now)

    if not principal.isActive:
        raise ApiError("DISABLED", "Account is disabled. Contact your administrator.")

    if not verify_password(pwd, principal.passwordHash):
        raise _register_failure(db, principal.principalId, cfg=cfg, now=now)

    db.execute(
        update(Principal)
        .where(Principal.principalId == principal.principalId)
        .values(failedAttempts=0, lockedUntil="", lastLoginAt=to_iso_utc(now))
        .execution_options(synchronize_session=False)
    )
    db.refresh(principal)

    ses = issue_session_token(principal.principalId, tier=principal.tier, cfg=cfg, now=now)
    log.info("login_ok principal=%s tier=%s", principal.principalId, principal.tier)
    return {"sessionToken": ses["sessionToken"], "expiresAt": ses["expiresAt"], "principal": principal}
