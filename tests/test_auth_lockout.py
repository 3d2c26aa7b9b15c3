from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from auth import GENERIC_LOGIN_FAILURE, authenticate, issue_session_token, load_session_principal, verify_session
from db import SessionLocal
from models import AuditLog, Principal
from tests.helpers import STRONG_PASSWORD, locks_table, seed_principal, selects_as_postgres
from utils import ApiError


# Token iat must not lie in the future, so simulated clocks start in the past.
BASE = datetime.now(timezone.utc).replace(microsecond=0) - timedelta(hours=2)


def _login_fail(cfg, email: str, *, now: datetime, password: str = "wrong-password") -> ApiError:
    with SessionLocal() as db:
        with pytest.raises(ApiError) as exc:
            authenticate(db, email, password, cfg=cfg, now=now)
        db.rollback()
    return exc.value


def _principal(principal_id: str) -> Principal:
    with SessionLocal() as db:
        return db.execute(select(Principal).where(Principal.principalId == principal_id)).scalar_one()


def test_five_failures_lock_the_account(cfg):
    seed_principal(principal_id="ADM-L", email="lock@example.com", tier="ADMIN")

    for i in range(4):
        e = _login_fail(cfg, "lock@example.com", now=BASE)
        assert e.code == "AUTH_INVALID"
        assert e.message == GENERIC_LOGIN_FAILURE
        assert e.details["attemptsLeft"] == 4 - i

    e = _login_fail(cfg, "lock@example.com", now=BASE)
    assert e.code == "LOCKED"
    assert e.details["minutesLeft"] == 15
    assert _principal("ADM-L").failedAttempts == 5

    # Correct password is refused while locked.
    e = _login_fail(cfg, "lock@example.com", now=BASE + timedelta(minutes=10), password=STRONG_PASSWORD)
    assert e.code == "LOCKED"
    assert e.details["minutesLeft"] == 5


def test_lock_expires_and_success_resets_counter(cfg):
    seed_principal(principal_id="ADM-L", email="lock@example.com", tier="ADMIN")
    for _ in range(5):
        _login_fail(cfg, "lock@example.com", now=BASE)

    later = BASE + timedelta(minutes=16)
    with SessionLocal() as db:
        res = authenticate(db, "LOCK@example.com ", STRONG_PASSWORD, cfg=cfg, now=later)
        db.commit()
    assert res["sessionToken"]

    p = _principal("ADM-L")
    assert p.failedAttempts == 0
    assert p.lockedUntil == ""
    assert p.lastLoginAt


def test_miss_after_lock_lapses_relocks_immediately(cfg):
    seed_principal(principal_id="ADM-L", email="lock@example.com", tier="ADMIN")
    for _ in range(5):
        _login_fail(cfg, "lock@example.com", now=BASE)

    e = _login_fail(cfg, "lock@example.com", now=BASE + timedelta(minutes=20))
    assert e.code == "LOCKED"
    assert _principal("ADM-L").failedAttempts == 6


def test_success_resets_counter_below_threshold(cfg):
    seed_principal(principal_id="ADM-L", email="lock@example.com", tier="ADMIN")
    for _ in range(3):
        _login_fail(cfg, "lock@example.com", now=BASE)
    assert _principal("ADM-L").failedAttempts == 3
    assert _principal("ADM-L").lockedUntil == ""

    with SessionLocal() as db:
        authenticate(db, "lock@example.com", STRONG_PASSWORD, cfg=cfg, now=BASE)
        db.commit()
    assert _principal("ADM-L").failedAttempts == 0

    # The next miss starts a fresh count.
    e = _login_fail(cfg, "lock@example.com", now=BASE)
    assert e.details["attemptsLeft"] == 4


def test_login_lookup_holds_a_row_lock(cfg):
    seed_principal(principal_id="ADM-L", email="lock@example.com", tier="ADMIN")
    with selects_as_postgres() as seen:
        with SessionLocal() as db:
            authenticate(db, "lock@example.com", STRONG_PASSWORD, cfg=cfg, now=BASE)
            db.commit()
    assert locks_table(seen, "principals")


def test_unknown_email_and_wrong_password_share_the_message(cfg):
    seed_principal(principal_id="ADM-L", email="lock@example.com", tier="ADMIN")
    unknown = _login_fail(cfg, "nobody@example.com", now=BASE)
    wrong = _login_fail(cfg, "lock@example.com", now=BASE)
    assert unknown.code == wrong.code == "AUTH_INVALID"
    assert unknown.message == wrong.message


def test_disabled_principal_cannot_log_in(cfg):
    seed_principal(principal_id="ADM-OFF", email="off@example.com", tier="ADMIN", active=False)
    e = _login_fail(cfg, "off@example.com", now=BASE, password=STRONG_PASSWORD)
    assert e.code == "DISABLED"


def test_concurrent_failures_count_every_attempt(cfg):
    from concurrent.futures import ThreadPoolExecutor

    seed_principal(principal_id="ADM-L", email="lock@example.com", tier="ADMIN")
    with ThreadPoolExecutor(max_workers=4) as pool:
        codes = list(pool.map(lambda _i: _login_fail(cfg, "lock@example.com", now=BASE).code, range(4)))

    assert codes.count("AUTH_INVALID") == 4
    assert _principal("ADM-L").failedAttempts == 4


def test_session_expiry_and_tampering(cfg):
    seed_principal(principal_id="ADM-S", email="s@example.com", tier="ADMIN")

    old = issue_session_token("ADM-S", tier="ADMIN", cfg=cfg, now=BASE - timedelta(days=2))
    with pytest.raises(ApiError) as exc:
        verify_session(old["sessionToken"], cfg=cfg)
    assert exc.value.code == "SESSION_EXPIRED"

    fresh = issue_session_token("ADM-S", tier="ADMIN", cfg=cfg)["sessionToken"]
    with pytest.raises(ApiError) as exc:
        verify_session(fresh[:-2] + ("AA" if not fresh.endswith("AA") else "BB"), cfg=cfg)
    assert exc.value.code == "SESSION_INVALID"

    with SessionLocal() as db:
        auth, principal = load_session_principal(db, fresh, cfg=cfg)
    assert auth.userId == "ADM-S"
    assert auth.role == "ADMIN"
    assert principal.email == "s@example.com"


def test_session_for_disabled_principal_is_refused(cfg):
    seed_principal(principal_id="ADM-S", email="s@example.com", tier="ADMIN")
    token = issue_session_token("ADM-S", tier="ADMIN", cfg=cfg)["sessionToken"]
    with SessionLocal() as db:
        db.execute(Principal.__table__.update().where(Principal.principalId == "ADM-S").values(isActive=False))
        db.commit()
        with pytest.raises(ApiError) as exc:
            load_session_principal(db, token, cfg=cfg)
    assert exc.value.code == "DISABLED"


def test_login_route_returns_token_and_audits(app_client):
    _app, client = app_client
    seed_principal(principal_id="ADM-R", email="r@example.com", tier="ADMIN")

    res = client.post("/api/v1/auth/login", json={"email": "r@example.com", "password": STRONG_PASSWORD})
    assert res.status_code == 200
    body = res.get_json()
    assert body["ok"] is True
    assert body["data"]["me"]["tier"] == "ADMIN"
    token = body["data"]["sessionToken"]

    res = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 200
    assert res.get_json()["data"]["scope"] == ["ADM-R"]

    res = client.post("/api/v1/auth/login", json={"email": "r@example.com", "password": "nope"})
    assert res.status_code == 401
    assert res.get_json()["error"]["code"] == "AUTH_INVALID"

    with SessionLocal() as db:
        actions = set(db.execute(select(AuditLog.action).where(AuditLog.entityId == "ADM-R")).scalars().all())
    assert "LOGIN" in actions


def test_missing_token_is_rejected(app_client):
    _app, client = app_client
    res = client.get("/api/v1/candidates")
    assert res.status_code == 401
    assert res.get_json()["error"]["code"] == "SESSION_INVALID"
