from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError

from actions.candidate_repo import STATUSES, compute_stats
from actions.helpers import append_audit, as_bool, paging_out, parse_paging
from auth import normalize_email
from cache_layer import PLATFORM_NAMESPACE, cache_get_or_set, invalidate_candidate_stats, make_cache_key
from db import add_post_commit_hook
from models import Candidate, Principal
from passwords import hash_password, validate_password_policy
from tenancy import CAPABILITIES, CallerContext, TenantScope, capabilities_for
from utils import ApiError, clean_str, iso_utc_now, new_id


log = logging.getLogger("api")

_USER_FLAGS = ("canCreate", "canModify", "canDelete", "canExport", "canDownload")


def principal_out(p: Principal) -> dict[str, Any]:
    return {
        "principalId": p.principalId,
        "email": p.email,
        "name": p.name or "",
        "phone": p.phone or "",
        "country": p.country or "",
        "tier": p.tier,
        "createdBy": p.createdBy or "",
        "isActive": bool(p.isActive),
        "capabilities": capabilities_for(p).as_dict(),
        "locked": bool(p.lockedUntil),
        "lastLoginAt": p.lastLoginAt or "",
        "createdAt": p.createdAt or "",
        "updatedAt": p.updatedAt or "",
    }


def _email_taken(db, email: str, *, exclude_id: str = "") -> bool:
    q = select(Principal.principalId).where(Principal.email == email)
    if exclude_id:
        q = q.where(Principal.principalId != exclude_id)
    return db.execute(q).first() is not None


def _insert_principal(db, p: Principal) -> None:
    try:
        with db.begin_nested():
            db.add(p)
            db.flush()
    except IntegrityError:
        raise ApiError("CONFLICT", "Email already registered.", details={"field": "email", "value": p.email})


def _after_principal_change(db) -> None:
    add_post_commit_hook(db, invalidate_candidate_stats)


def _flush_principal(db, email: str) -> None:
    try:
        with db.begin_nested():
            db.flush()
    except IntegrityError:
        raise ApiError("CONFLICT", "Email already registered.", details={"field": "email", "value": email})


def _apply_common_updates(db, p: Principal, data: dict, *, strong_password: bool) -> list[str]:
    changed = []
    for field in ("name", "phone", "country"):
        if field in data:
            value = clean_str(data.get(field))
            if field == "name" and not value:
                raise ApiError("INVALID_INPUT", "name cannot be empty.")
            if (getattr(p, field) or "") != value:
                setattr(p, field, value)
                changed.append(field)
    if "email" in data:
        email = normalize_email(data.get("email"))
        if not email or "@" not in email:
            raise ApiError("INVALID_INPUT", "A valid email is required.")
        if email != p.email:
            if _email_taken(db, email, exclude_id=p.principalId):
                raise ApiError("CONFLICT", "Email already registered.", details={"field": "email", "value": email})
            p.email = email
            changed.append("email")
    if clean_str(data.get("password")):
        p.passwordHash = hash_password(str(data.get("password")), strong=strong_password)
        # A reset also clears any lockout.
        p.failedAttempts = 0
        p.lockedUntil = ""
        changed.append("password")
    return changed


# ── Owner: admin management ──────────────────────────────────────


def _load_admin(db, admin_id: Any) -> Principal:
    p = db.execute(
        select(Principal).where(Principal.principalId == clean_str(admin_id)).where(Principal.tier == "ADMIN")
    ).scalar_one_or_none()
    if not p:
        raise ApiError("NOT_FOUND", "Admin not found.")
    return p


def owner_admins_list(data, ctx: CallerContext, db, cfg):
    ctx.require_tier("OWNER")
    page, limit = parse_paging(data)

    q = select(Principal).where(Principal.tier == "ADMIN")
    search = clean_str(data.get("search"))[:100]
    if search:
        pattern = f"%{search}%"
        q = q.where(or_(Principal.name.ilike(pattern), Principal.email.ilike(pattern), Principal.country.ilike(pattern)))
    if clean_str(data.get("isActive")):
        q = q.where(Principal.isActive.is_(as_bool(data.get("isActive"))))

    total = db.execute(select(func.count()).select_from(q.subquery())).scalar_one()
    admins = (
        db.execute(q.order_by(Principal.createdAt.desc()).offset((page - 1) * limit).limit(limit)).scalars().all()
    )

    ids = [a.principalId for a in admins]
    counts: dict[str, int] = {}
    if ids:
        rows = db.execute(
            select(Candidate.tenantId, func.count())
            .where(Candidate.tenantId.in_(ids))
            .where(Candidate.isDeleted.is_(False))
            .group_by(Candidate.tenantId)
        ).all()
        counts = {tid: int(n) for tid, n in rows}

    items = []
    for a in admins:
        out = principal_out(a)
        out["candidateCount"] = counts.get(a.principalId, 0)
        items.append(out)
    return {"items": items, "pagination": paging_out(page, limit, int(total))}


def owner_admin_create(data, ctx: CallerContext, db, cfg):
    ctx.require_tier("OWNER")
    name = clean_str(data.get("name"))
    email = normalize_email(data.get("email"))
    country = clean_str(data.get("country"))
    if not name or not email or not clean_str(data.get("password")) or not country:
        raise ApiError("INVALID_INPUT", "Name, email, password and country are required.")
    if "@" not in email:
        raise ApiError("INVALID_INPUT", "A valid email is required.")
    password_hash = hash_password(str(data.get("password")), strong=True)
    if _email_taken(db, email):
        raise ApiError("CONFLICT", "Email already registered.", details={"field": "email", "value": email})

    now = iso_utc_now()
    p = Principal(
        principalId=new_id("PRN"),
        email=email,
        name=name,
        phone=clean_str(data.get("phone")),
        country=country,
        passwordHash=password_hash,
        tier="ADMIN",
        createdBy=ctx.actor_id,
        canCreate=True,
        canModify=True,
        canDelete=True,
        canExport=True,
        canDownload=True,
        canView=True,
        isActive=True,
        failedAttempts=0,
        lockedUntil="",
        createdAt=now,
        updatedAt=now,
        updatedBy=ctx.actor_id,
    )
    _insert_principal(db, p)
    _after_principal_change(db)
    append_audit(db, entityType="PRINCIPAL", entityId=p.principalId, action="ADMIN_CREATE", actor=ctx.auth, meta={"country": country})
    log.info("admin_created id=%s", p.principalId)
    return principal_out(p)


def owner_admin_update(data, ctx: CallerContext, db, cfg):
    ctx.require_tier("OWNER")
    p = _load_admin(db, data.get("principalId"))
    changed = _apply_common_updates(db, p, data, strong_password=True)
    if changed:
        p.updatedAt = iso_utc_now()
        p.updatedBy = ctx.actor_id
        _flush_principal(db, p.email)
        append_audit(db, entityType="PRINCIPAL", entityId=p.principalId, action="ADMIN_UPDATE", actor=ctx.auth, meta={"fields": changed})
    return principal_out(p)


def owner_admin_toggle(data, ctx: CallerContext, db, cfg):
    ctx.require_tier("OWNER")
    p = _load_admin(db, data.get("principalId"))
    p.isActive = not bool(p.isActive)
    p.updatedAt = iso_utc_now()
    p.updatedBy = ctx.actor_id
    append_audit(
        db,
        entityType="PRINCIPAL",
        entityId=p.principalId,
        action="ADMIN_ENABLE" if p.isActive else "ADMIN_DISABLE",
        actor=ctx.auth,
    )
    _after_principal_change(db)
    db.flush()
    return principal_out(p)


def owner_admin_detail(data, ctx: CallerContext, db, cfg):
    ctx.require_tier("OWNER")
    p = _load_admin(db, data.get("principalId"))
    users = (
        db.execute(
            select(Principal)
            .where(Principal.tier == "USER")
            .where(Principal.createdBy == p.principalId)
            .order_by(Principal.createdAt.desc())
        )
        .scalars()
        .all()
    )
    out = principal_out(p)
    out["users"] = [principal_out(u) for u in users]
    out["stats"] = compute_stats(db, TenantScope.only(p.principalId))
    return out


def _platform_stats(db) -> dict[str, Any]:
    def count(q) -> int:
        return int(db.execute(q).scalar_one())

    live = select(func.count()).select_from(Candidate).where(Candidate.isDeleted.is_(False))
    by_status = {s: 0 for s in STATUSES}
    for status, n in db.execute(
        select(Candidate.status, func.count()).where(Candidate.isDeleted.is_(False)).group_by(Candidate.status)
    ).all():
        by_status[status] = int(n)

    return {
        "totalAdmins": count(select(func.count()).select_from(Principal).where(Principal.tier == "ADMIN")),
        "activeAdmins": count(
            select(func.count()).select_from(Principal).where(Principal.tier == "ADMIN").where(Principal.isActive.is_(True))
        ),
        "totalUsers": count(select(func.count()).select_from(Principal).where(Principal.tier == "USER")),
        "totalCandidates": count(live),
        "issuedVisas": by_status.get("Issued", 0),
        "byStatus": by_status,
    }


def owner_platform_stats(data, ctx: CallerContext, db, cfg):
    ctx.require_tier("OWNER")
    return cache_get_or_set(make_cache_key(PLATFORM_NAMESPACE), lambda: _platform_stats(db))


# ── Admin: restricted user management ───────────────────────────


def _load_own_user(db, ctx: CallerContext, user_id: Any) -> Principal:
    p = db.execute(
        select(Principal)
        .where(Principal.principalId == clean_str(user_id))
        .where(Principal.tier == "USER")
        .where(Principal.createdBy == ctx.actor_id)
    ).scalar_one_or_none()
    if not p:
        raise ApiError("NOT_FOUND", "User not found.")
    return p


def _apply_flags(p: Principal, data: dict) -> list[str]:
    changed = []
    for flag in _USER_FLAGS:
        if flag in data:
            value = as_bool(data.get(flag))
            if bool(getattr(p, flag)) != value:
                setattr(p, flag, value)
                changed.append(flag)
    p.canView = True
    return changed


def users_list(data, ctx: CallerContext, db, cfg):
    ctx.require_tier("ADMIN")
    users = (
        db.execute(
            select(Principal)
            .where(Principal.tier == "USER")
            .where(Principal.createdBy == ctx.actor_id)
            .order_by(Principal.createdAt.desc())
        )
        .scalars()
        .all()
    )
    return {"items": [principal_out(u) for u in users]}


def user_create(data, ctx: CallerContext, db, cfg):
    ctx.require_tier("ADMIN")
    name = clean_str(data.get("name"))
    email = normalize_email(data.get("email"))
    if not name or not email or not clean_str(data.get("password")):
        raise ApiError("INVALID_INPUT", "Name, email and password are required.")
    if "@" not in email:
        raise ApiError("INVALID_INPUT", "A valid email is required.")
    password_hash = hash_password(str(data.get("password")), strong=False)
    if _email_taken(db, email):
        raise ApiError("CONFLICT", "Email already registered.", details={"field": "email", "value": email})

    admin = db.execute(select(Principal).where(Principal.principalId == ctx.actor_id)).scalar_one()
    now = iso_utc_now()
    p = Principal(
        principalId=new_id("PRN"),
        email=email,
        name=name,
        phone=clean_str(data.get("phone")),
        country=admin.country or "",
        passwordHash=password_hash,
        tier="USER",
        createdBy=admin.principalId,
        isActive=True,
        failedAttempts=0,
        lockedUntil="",
        createdAt=now,
        updatedAt=now,
        updatedBy=ctx.actor_id,
    )
    for flag in _USER_FLAGS:
        setattr(p, flag, False)
    _apply_flags(p, data)
    _insert_principal(db, p)
    _after_principal_change(db)
    append_audit(
        db,
        entityType="PRINCIPAL",
        entityId=p.principalId,
        action="USER_CREATE",
        actor=ctx.auth,
        meta={cap: bool(getattr(p, cap)) for cap in CAPABILITIES},
    )
    return principal_out(p)


def user_update(data, ctx: CallerContext, db, cfg):
    ctx.require_tier("ADMIN")
    p = _load_own_user(db, ctx, data.get("principalId"))
    # Country is inherited from the admin and not editable per user.
    payload = {k: v for k, v in data.items() if k != "country"}
    changed = _apply_common_updates(db, p, payload, strong_password=False)
    changed += _apply_flags(p, data)
    if "isActive" in data:
        active = as_bool(data.get("isActive"))
        if bool(p.isActive) != active:
            p.isActive = active
            changed.append("isActive")
    if changed:
        p.updatedAt = iso_utc_now()
        p.updatedBy = ctx.actor_id
        _flush_principal(db, p.email)
        append_audit(db, entityType="PRINCIPAL", entityId=p.principalId, action="USER_UPDATE", actor=ctx.auth, meta={"fields": changed})
    return principal_out(p)


def user_delete(data, ctx: CallerContext, db, cfg):
    ctx.require_tier("ADMIN")
    p = _load_own_user(db, ctx, data.get("principalId"))
    append_audit(db, entityType="PRINCIPAL", entityId=p.principalId, action="USER_DELETE", actor=ctx.auth, meta={"email": p.email})
    db.delete(p)
    db.flush()
    _after_principal_change(db)
    return {"principalId": p.principalId, "deleted": True}


# ── Bootstrap ────────────────────────────────────────────────────


def create_owner(db, *, name: str, email: str, password: str) -> Principal:
    """Create the single platform owner. Used by the `create-owner` CLI command."""
    email = normalize_email(email)
    name = clean_str(name)
    if not name or not email or "@" not in email:
        raise ApiError("INVALID_INPUT", "A name and a valid email are required.")
    validate_password_policy(password, strong=True)
    existing = db.execute(select(Principal.principalId).where(Principal.tier == "OWNER")).first()
    if existing is not None:
        raise ApiError("CONFLICT", "An owner account already exists.")
    if _email_taken(db, email):
        raise ApiError("CONFLICT", "Email already registered.", details={"field": "email", "value": email})

    now = iso_utc_now()
    p = Principal(
        principalId=new_id("PRN"),
        email=email,
        name=name,
        passwordHash=hash_password(password, strong=True),
        tier="OWNER",
        createdBy=None,
        canCreate=True,
        canModify=True,
        canDelete=True,
        canExport=True,
        canDownload=True,
        canView=True,
        isActive=True,
        failedAttempts=0,
        lockedUntil="",
        createdAt=now,
        updatedAt=now,
        updatedBy="SYSTEM",
    )
    try:
        with db.begin_nested():
            db.add(p)
            db.flush()
    except IntegrityError:
        raise ApiError("CONFLICT", "An owner account already exists.")
    append_audit(db, entityType="PRINCIPAL", entityId=p.principalId, action="OWNER_CREATE", actor=None)
    log.info("owner_created id=%s", p.principalId)
    return p
