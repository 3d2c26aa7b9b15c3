from __future__ import annotations

from contextlib import contextmanager

from sqlalchemy import event, select
from sqlalchemy.dialects import postgresql

from auth import issue_session_token
from db import SessionLocal
from models import Principal
from passwords import hash_password
from tenancy import build_caller_context
from utils import AuthContext, iso_utc_now

STRONG_PASSWORD = "Str0ng!Pass"
USER_PASSWORD = "secret1"


def seed_principal(
    *,
    principal_id: str,
    email: str,
    tier: str,
    password: str = STRONG_PASSWORD,
    created_by: str | None = None,
    country: str = "",
    active: bool = True,
    **flags,
) -> None:
    now = iso_utc_now()
    with SessionLocal() as db:
        p = Principal(
            principalId=principal_id,
            email=email,
            name=f"{tier.title()} {principal_id}",
            phone="",
            country=country,
            passwordHash=hash_password(password, strong=False),
            tier=tier,
            createdBy=created_by,
            canCreate=bool(flags.get("canCreate", False)),
            canModify=bool(flags.get("canModify", False)),
            canDelete=bool(flags.get("canDelete", False)),
            canExport=bool(flags.get("canExport", False)),
            canDownload=bool(flags.get("canDownload", False)),
            canView=True,
            isActive=active,
            failedAttempts=0,
            lockedUntil="",
            lastLoginAt="",
            createdAt=now,
            updatedAt=now,
            updatedBy="TEST",
        )
        db.add(p)
        db.commit()


def seed_tenancy() -> None:
    """One owner, two admins, and a few users under ADM-A."""
    seed_principal(principal_id="PRN-OWNER", email="owner@example.com", tier="OWNER")
    seed_principal(principal_id="ADM-A", email="a@example.com", tier="ADMIN", created_by="PRN-OWNER", country="UAE")
    seed_principal(principal_id="ADM-B", email="b@example.com", tier="ADMIN", created_by="PRN-OWNER", country="Qatar")
    seed_principal(
        principal_id="USR-EDIT",
        email="editor@example.com",
        tier="USER",
        password=USER_PASSWORD,
        created_by="ADM-A",
        canCreate=True,
        canModify=True,
        canDelete=True,
        canExport=True,
        canDownload=True,
    )
    seed_principal(principal_id="USR-VIEW", email="viewer@example.com", tier="USER", password=USER_PASSWORD, created_by="ADM-A")


def token_for(cfg, principal_id: str, tier: str) -> str:
    return issue_session_token(principal_id, tier=tier, cfg=cfg)["sessionToken"]


def auth_headers(cfg, principal_id: str, tier: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token_for(cfg, principal_id, tier)}"}


def caller(db, principal_id: str, *, target_tenant_id: str | None = None):
    p = db.execute(select(Principal).where(Principal.principalId == principal_id)).scalar_one()
    auth = AuthContext(valid=True, userId=p.principalId, email=p.email, role=p.tier, expiresAt="")
    return build_caller_context(p, auth, target_tenant_id=target_tenant_id)


def candidate_payload(**overrides) -> dict:
    data = {
        "fullName": "Amina Rahman",
        "dateOfBirth": "1990-05-14",
        "passportNumber": "p1234567",
        "applicationNumber": "app-001",
        "visaType": "Work",
        "country": "UAE",
        "profession": "Engineer",
        "companyName": "Acme LLC",
    }
    data.update(overrides)
    return data


@contextmanager
def selects_as_postgres():
    """Collect every ORM SELECT run through SessionLocal, compiled for PostgreSQL.

    SQLite drops FOR UPDATE when compiling, so row locks are checked on the
    PostgreSQL rendering of the statement.
    """
    seen: list[str] = []

    def _on_execute(state):
        if state.is_select:
            seen.append(str(state.statement.compile(dialect=postgresql.dialect())))

    event.listen(SessionLocal, "do_orm_execute", _on_execute)
    try:
        yield seen
    finally:
        event.remove(SessionLocal, "do_orm_execute", _on_execute)


def locks_table(statements: list[str], table: str) -> bool:
    return any(f"FROM {table}" in s and "FOR UPDATE" in s for s in statements)
