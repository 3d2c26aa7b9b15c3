from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import partial
from typing import Any, Optional

from sqlalchemy import false, func, or_, select, update
from sqlalchemy.exc import IntegrityError

from actions.helpers import append_audit, append_status_history, as_bool, paging_out, parse_paging, record_download
from cache_layer import STATS_NAMESPACE, cache_get_or_set, invalidate_candidate_stats, make_cache_key
from db import add_post_commit_hook, add_post_rollback_hook
from models import Candidate, CandidateDownloadLog, CandidateStatusHistory, Principal
from services.export import candidates_to_csv
from services.file_storage import (
    ALLOWED_DOCUMENT_EXTENSIONS,
    ALLOWED_PHOTO_EXTENSIONS,
    read_upload,
    remove_stored_file,
    resolve_stored_path,
    store_upload,
)
from services.rendering import schedule_render
from services.visa_numbers import allocate_visa_number
from tenancy import CallerContext, CandidateFilter, TenantScope, apply_scope
from utils import ApiError, clean_str, iso_utc_now, new_id, parse_day


log = logging.getLogger("ledger")

STATUS_PENDING = "Pending"
STATUS_UNDER_REVIEW = "Under Review"
STATUS_APPROVED = "Approved"
STATUS_REJECTED = "Rejected"
STATUS_ISSUED = "Issued"
STATUSES = (STATUS_PENDING, STATUS_UNDER_REVIEW, STATUS_APPROVED, STATUS_REJECTED, STATUS_ISSUED)

# Rejected sits outside this order: reachable only before approval, and terminal.
_FORWARD_RANK = {STATUS_PENDING: 0, STATUS_UNDER_REVIEW: 1, STATUS_APPROVED: 2, STATUS_ISSUED: 3}
_TERMINAL = {STATUS_REJECTED, STATUS_ISSUED}

IDENTITY_KINDS = ("PASSPORT", "CONTROL")

_REQUIRED_FIELDS = ("fullName", "dateOfBirth", "applicationNumber", "visaType", "country")
_OPTIONAL_FIELDS = ("applicationDate", "profession", "companyName", "visaIssueDate", "visaExpiryDate", "remarks")
_DATE_FIELDS = {"dateOfBirth", "applicationDate", "visaIssueDate", "visaExpiryDate"}
_RENDERED_FIELDS = {
    "fullName",
    "dateOfBirth",
    "applicationNumber",
    "visaType",
    "country",
    "profession",
    "companyName",
    "visaIssueDate",
    "visaExpiryDate",
    "remarks",
    "identityNumber",
}

NOT_FOUND_MESSAGE = "Candidate not found."


@dataclass(frozen=True)
class IdentityProof:
    kind: str
    number: str


def normalize_identifier(value: Any) -> str:
    return clean_str(value).upper()


def parse_identity_proof(data: dict) -> Optional[IdentityProof]:
    """Read `identityProof: {kind, number}` or the flat passportNumber/controlNumber pair."""
    proof = data.get("identityProof")
    if isinstance(proof, dict):
        kind = clean_str(proof.get("kind")).upper()
        if kind not in IDENTITY_KINDS:
            raise ApiError("INVALID_INPUT", "identityProof.kind must be PASSPORT or CONTROL.")
        number = normalize_identifier(proof.get("number"))
        return IdentityProof(kind, number) if number else None

    passport = normalize_identifier(data.get("passportNumber"))
    control = normalize_identifier(data.get("controlNumber"))
    if passport and control:
        raise ApiError("INVALID_INPUT", "Provide either a passport number or a control number, not both.")
    if passport:
        return IdentityProof("PASSPORT", passport)
    if control:
        return IdentityProof("CONTROL", control)
    return None


def _has_identity_keys(data: dict) -> bool:
    return any(k in data for k in ("identityProof", "passportNumber", "controlNumber"))


def normalize_status(value: Any) -> str:
    key = clean_str(value).replace("_", "").replace(" ", "").lower()
    for s in STATUSES:
        if s.replace(" ", "").lower() == key:
            return s
    raise ApiError("INVALID_INPUT", f"Invalid status. Allowed: {', '.join(STATUSES)}.")


def can_transition(current: str, new: str) -> bool:
    if current == new:
        return True
    if current in _TERMINAL:
        return False
    if new == STATUS_REJECTED:
        return current in (STATUS_PENDING, STATUS_UNDER_REVIEW)
    if current not in _FORWARD_RANK or new not in _FORWARD_RANK:
        return False
    return _FORWARD_RANK[new] > _FORWARD_RANK[current]


def is_issuance_eligible(status: str, cfg) -> bool:
    return status in cfg.ISSUANCE_STATUSES


def _parse_date_field(field: str, value: Any) -> str:
    day = parse_day(value)
    if not day:
        raise ApiError("INVALID_INPUT", f"{field} must be a date (YYYY-MM-DD).")
    return day


def candidate_out(c: Candidate, *, history: Optional[list] = None, downloads: Optional[list] = None) -> dict[str, Any]:
    out: dict[str, Any] = {
        "candidateId": c.candidateId,
        "tenantId": c.tenantId,
        "fullName": c.fullName,
        "dateOfBirth": c.dateOfBirth,
        "identityProof": {"kind": c.identityType, "number": c.identityNumber},
        "applicationNumber": c.applicationNumber,
        "applicationDate": c.applicationDate or "",
        "country": c.country or "",
        "visaType": c.visaType or "",
        "profession": c.profession or "",
        "companyName": c.companyName or "",
        "visaIssueDate": c.visaIssueDate or "",
        "visaExpiryDate": c.visaExpiryDate or "",
        "remarks": c.remarks or "",
        "status": c.status,
        "visaNumber": c.visaNumber or "",
        "visaIssuedAt": c.visaIssuedAt or "",
        "hasArtifact": bool(c.artifactPath),
        "hasPhoto": bool(c.photoPath),
        "hasDocument": bool(c.documentPath),
        "documentName": c.documentName or "",
        "isDeleted": bool(c.isDeleted),
        "deletedAt": c.deletedAt or "",
        "createdAt": c.createdAt or "",
        "createdBy": c.createdBy or "",
        "updatedAt": c.updatedAt or "",
        "updatedBy": c.updatedBy or "",
    }
    if history is not None:
        out["statusHistory"] = [{"status": h.status, "actor": h.actor, "at": h.at, "note": h.note} for h in history]
    if downloads is not None:
        out["downloadLogs"] = [{"at": d.at, "origin": d.origin, "channel": d.channel} for d in downloads]
    return out


def _history(db, candidate_id: str) -> list[CandidateStatusHistory]:
    return (
        db.execute(
            select(CandidateStatusHistory)
            .where(CandidateStatusHistory.candidateId == candidate_id)
            .order_by(CandidateStatusHistory.id.asc())
        )
        .scalars()
        .all()
    )


def _downloads(db, candidate_id: str) -> list[CandidateDownloadLog]:
    return (
        db.execute(
            select(CandidateDownloadLog)
            .where(CandidateDownloadLog.candidateId == candidate_id)
            .order_by(CandidateDownloadLog.id.asc())
        )
        .scalars()
        .all()
    )


def apply_filter(q, f: CandidateFilter):
    if f.tenant_ids is not None:
        if not f.tenant_ids:
            q = q.where(false())
        else:
            q = q.where(Candidate.tenantId.in_(sorted(f.tenant_ids)))
    q = q.where(Candidate.isDeleted.is_(bool(f.deleted)))
    if f.status:
        q = q.where(Candidate.status == f.status)
    if f.search:
        term = f.search.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        pattern = f"%{term}%"
        q = q.where(
            or_(
                Candidate.fullName.ilike(pattern, escape="\\"),
                Candidate.identityNumber.ilike(pattern, escape="\\"),
                Candidate.applicationNumber.ilike(pattern, escape="\\"),
                Candidate.visaNumber.ilike(pattern, escape="\\"),
            )
        )
    return q


def _load_in_scope(
    db, ctx: CallerContext, candidate_id: Any, *, allow_deleted: bool = False, for_update: bool = False
) -> Candidate:
    cid = clean_str(candidate_id)
    if not cid:
        raise ApiError("INVALID_INPUT", "candidateId is required.")
    q = select(Candidate).where(Candidate.candidateId == cid)
    if for_update:
        # Writers validate against the row they hold, so status checks cannot interleave.
        q = q.with_for_update()
    c = db.execute(q).scalar_one_or_none()
    # Out-of-scope and missing are indistinguishable to the caller.
    if not c or not ctx.scope.allows(c.tenantId):
        raise ApiError("NOT_FOUND", NOT_FOUND_MESSAGE)
    if c.isDeleted and not allow_deleted:
        raise ApiError("NOT_FOUND", NOT_FOUND_MESSAGE)
    return c


def _application_conflict(number: str) -> ApiError:
    return ApiError(
        "CONFLICT",
        f'Application "{number}" already exists.',
        details={"field": "applicationNumber", "value": number},
    )


def _passport_conflict(number: str) -> ApiError:
    return ApiError(
        "CONFLICT",
        f'Passport number "{number}" already exists.',
        details={"field": "passportNumber", "value": number},
    )


def _check_unique(db, *, tenant_id: str, application_number: str, proof: Optional[IdentityProof], exclude_id: str = "") -> None:
    q = select(Candidate.candidateId).where(Candidate.tenantId == tenant_id)
    if exclude_id:
        q = q.where(Candidate.candidateId != exclude_id)
    if application_number and db.execute(q.where(Candidate.applicationNumber == application_number)).first():
        raise _application_conflict(application_number)
    if proof and proof.kind == "PASSPORT":
        hit = db.execute(q.where(Candidate.identityType == "PASSPORT").where(Candidate.identityNumber == proof.number)).first()
        if hit:
            raise _passport_conflict(proof.number)


def _translate_integrity(e: IntegrityError, *, application_number: str, identity_number: str) -> ApiError:
    msg = str(getattr(e, "orig", e) or "")
    if "identityNumber" in msg or "uq_candidates_tenant_passport" in msg:
        return _passport_conflict(identity_number)
    if "visaNumber" in msg:
        return ApiError("CONFLICT", "Visa number already assigned.", details={"field": "visaNumber"})
    return _application_conflict(application_number)


def _after_mutation(db) -> None:
    add_post_commit_hook(db, invalidate_candidate_stats)


def _resolve_create_tenant(db, ctx: CallerContext) -> str:
    if ctx.scope.is_empty:
        raise ApiError("FORBIDDEN", "Your account is not linked to an admin.")
    tenant_id = ctx.scope.single_tenant()
    if not tenant_id:
        raise ApiError("INVALID_INPUT", "Select the admin (tenantId) that owns this record.")
    if ctx.tier == "OWNER":
        admin = db.execute(
            select(Principal.principalId).where(Principal.principalId == tenant_id).where(Principal.tier == "ADMIN")
        ).first()
        if not admin:
            raise ApiError("INVALID_INPUT", "Unknown tenant.")
    return tenant_id


def candidate_create(data, ctx: CallerContext, db, cfg):
    ctx.require("canCreate")
    tenant_id = _resolve_create_tenant(db, ctx)

    full_name = clean_str(data.get("fullName"))
    raw_dob = clean_str(data.get("dateOfBirth"))
    dob = _parse_date_field("dateOfBirth", raw_dob) if raw_dob else ""
    proof = parse_identity_proof(data)
    if not full_name or not dob or not proof:
        raise ApiError("INVALID_INPUT", "Personal details incomplete.", details={"group": "personal"})

    app_no = normalize_identifier(data.get("applicationNumber"))
    visa_type = clean_str(data.get("visaType"))
    country = clean_str(data.get("country"))
    if not app_no or not visa_type or not country:
        raise ApiError("INVALID_INPUT", "Application details incomplete.", details={"group": "application"})

    status = normalize_status(data.get("status")) if clean_str(data.get("status")) else STATUS_PENDING

    optional: dict[str, str] = {}
    for field in _OPTIONAL_FIELDS:
        raw = clean_str(data.get(field))
        optional[field] = _parse_date_field(field, raw) if (raw and field in _DATE_FIELDS) else raw
    if not optional["applicationDate"]:
        optional["applicationDate"] = datetime.now(timezone.utc).date().isoformat()

    _check_unique(db, tenant_id=tenant_id, application_number=app_no, proof=proof)

    now = iso_utc_now()
    c = Candidate(
        candidateId=new_id("CAN"),
        tenantId=tenant_id,
        fullName=full_name,
        dateOfBirth=dob,
        identityType=proof.kind,
        identityNumber=proof.number,
        applicationNumber=app_no,
        visaType=visa_type,
        country=country,
        status=status,
        visaNumber=None,
        isDeleted=False,
        createdAt=now,
        createdBy=ctx.actor_id,
        updatedAt=now,
        updatedBy=ctx.actor_id,
        **optional,
    )
    try:
        with db.begin_nested():
            db.add(c)
            db.flush()
    except IntegrityError as e:
        log.info("candidate_create_conflict tenant=%s application=%s", tenant_id, app_no)
        raise _translate_integrity(e, application_number=app_no, identity_number=proof.number)

    append_status_history(db, candidate_id=c.candidateId, status=status, actor=ctx.actor_id, note=clean_str(data.get("note")), at=now)

    if is_issuance_eligible(status, cfg):
        allocate_visa_number(db, c.candidateId, cfg=cfg)
        schedule_render(db, c.candidateId, cfg=cfg)

    append_audit(
        db,
        entityType="CANDIDATE",
        entityId=c.candidateId,
        action="CANDIDATE_CREATE",
        actor=ctx.auth,
        meta={"tenantId": tenant_id, "applicationNumber": app_no, "status": status},
    )
    _after_mutation(db)
    db.flush()
    db.refresh(c)
    log.info("candidate_created id=%s tenant=%s status=%s", c.candidateId, tenant_id, status)
    return candidate_out(c, history=_history(db, c.candidateId))


def candidate_update(data, ctx: CallerContext, db, cfg):
    ctx.require("canModify")
    c = _load_in_scope(db, ctx, data.get("candidateId"), for_update=True)

    changed: dict[str, str] = {}
    for field in _REQUIRED_FIELDS + _OPTIONAL_FIELDS:
        if field not in data:
            continue
        value = clean_str(data.get(field))
        if field == "applicationNumber":
            value = value.upper()
        if not value and field in _REQUIRED_FIELDS:
            raise ApiError("INVALID_INPUT", f"{field} cannot be empty.")
        if value and field in _DATE_FIELDS:
            value = _parse_date_field(field, value)
        if (getattr(c, field) or "") != value:
            changed[field] = value

    proof: Optional[IdentityProof] = None
    if _has_identity_keys(data):
        proof = parse_identity_proof(data)
        if not proof:
            raise ApiError("INVALID_INPUT", "Identity proof cannot be empty.")
        if proof.kind != c.identityType or proof.number != c.identityNumber:
            changed["identityType"] = proof.kind
            changed["identityNumber"] = proof.number
        else:
            proof = None

    old_status = c.status
    new_status = old_status
    if "status" in data:
        if not clean_str(data.get("status")):
            raise ApiError("INVALID_INPUT", "status cannot be empty.")
        new_status = normalize_status(data.get("status"))
        if new_status != old_status and not can_transition(old_status, new_status):
            raise ApiError("INVALID_INPUT", f'Cannot change status from "{old_status}" to "{new_status}".')
    status_changed = new_status != old_status

    if not changed and not status_changed:
        return candidate_out(c, history=_history(db, c.candidateId))

    app_no = changed.get("applicationNumber", "")
    if app_no or proof:
        _check_unique(db, tenant_id=c.tenantId, application_number=app_no, proof=proof, exclude_id=c.candidateId)

    now = iso_utc_now()
    for field, value in changed.items():
        setattr(c, field, value)
    c.status = new_status
    c.updatedAt = now
    c.updatedBy = ctx.actor_id
    try:
        with db.begin_nested():
            db.flush()
    except IntegrityError as e:
        raise _translate_integrity(
            e,
            application_number=changed.get("applicationNumber", c.applicationNumber),
            identity_number=changed.get("identityNumber", c.identityNumber),
        )

    eligible = is_issuance_eligible(new_status, cfg)
    if status_changed:
        append_status_history(
            db, candidate_id=c.candidateId, status=new_status, actor=ctx.actor_id, note=clean_str(data.get("note")), at=now
        )
        if eligible and not c.visaNumber:
            allocate_visa_number(db, c.candidateId, cfg=cfg)

    if eligible and (status_changed or _RENDERED_FIELDS.intersection(changed)):
        schedule_render(db, c.candidateId, cfg=cfg)

    append_audit(
        db,
        entityType="CANDIDATE",
        entityId=c.candidateId,
        action="CANDIDATE_UPDATE",
        actor=ctx.auth,
        meta={"fields": sorted(changed), "fromStatus": old_status, "toStatus": new_status},
    )
    _after_mutation(db)
    db.flush()
    db.refresh(c)
    if status_changed:
        log.info("candidate_status id=%s from=%s to=%s", c.candidateId, old_status, new_status)
    return candidate_out(c, history=_history(db, c.candidateId))


def candidate_delete(data, ctx: CallerContext, db, cfg):
    ctx.require("canDelete")
    c = _load_in_scope(db, ctx, data.get("candidateId"), allow_deleted=True, for_update=True)
    if c.isDeleted:
        raise ApiError("ALREADY_DELETED", "Candidate is already deleted.")

    now = iso_utc_now()
    res = db.execute(
        update(Candidate)
        .where(Candidate.candidateId == c.candidateId)
        .where(Candidate.isDeleted.is_(False))
        .values(isDeleted=True, deletedAt=now, deletedBy=ctx.actor_id, updatedAt=now, updatedBy=ctx.actor_id)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount == 0:
        raise ApiError("ALREADY_DELETED", "Candidate is already deleted.")

    append_audit(db, entityType="CANDIDATE", entityId=c.candidateId, action="CANDIDATE_DELETE", actor=ctx.auth, at=now)
    _after_mutation(db)
    log.info("candidate_deleted id=%s", c.candidateId)
    return {"candidateId": c.candidateId, "deleted": True, "deletedAt": now}


def _requested_filter(data: dict, ctx: CallerContext) -> CandidateFilter:
    deleted = as_bool(data.get("showDeleted"))
    if deleted and ctx.tier not in ("OWNER", "ADMIN"):
        raise ApiError("FORBIDDEN", "You do not have permission to view deleted records.")
    status = normalize_status(data.get("status")) if clean_str(data.get("status")) else ""
    return CandidateFilter(deleted=deleted, status=status, search=clean_str(data.get("search"))[:100])


def candidate_list(data, ctx: CallerContext, db, cfg):
    page, limit = parse_paging(data)
    f = apply_scope(ctx.scope, _requested_filter(data, ctx))
    base = apply_filter(select(Candidate), f)

    total = db.execute(select(func.count()).select_from(base.subquery())).scalar_one()
    rows = (
        db.execute(
            base.order_by(Candidate.createdAt.desc(), Candidate.candidateId.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        .scalars()
        .all()
    )
    return {"items": [candidate_out(c) for c in rows], "pagination": paging_out(page, limit, int(total))}


def candidate_get(data, ctx: CallerContext, db, cfg):
    allow_deleted = as_bool(data.get("showDeleted")) and ctx.tier in ("OWNER", "ADMIN")
    c = _load_in_scope(db, ctx, data.get("candidateId"), allow_deleted=allow_deleted)
    return candidate_out(c, history=_history(db, c.candidateId), downloads=_downloads(db, c.candidateId))


def compute_stats(db, scope: TenantScope) -> dict[str, Any]:
    live = apply_scope(scope, CandidateFilter())
    by_status = {s: 0 for s in STATUSES}
    q = apply_filter(select(Candidate.status, func.count()), live).group_by(Candidate.status)
    for status, n in db.execute(q).all():
        by_status[status] = int(n)

    deleted = db.execute(
        apply_filter(select(func.count()).select_from(Candidate), apply_scope(scope, CandidateFilter(deleted=True)))
    ).scalar_one()

    month_start = datetime.now(timezone.utc).strftime("%Y-%m-01T00:00:00.000Z")
    this_month = db.execute(
        apply_filter(select(func.count()).select_from(Candidate), live).where(Candidate.createdAt >= month_start)
    ).scalar_one()

    return {
        "total": sum(by_status.values()),
        "byStatus": by_status,
        "deleted": int(deleted),
        "thisMonth": int(this_month),
    }


def candidate_stats(data, ctx: CallerContext, db, cfg):
    key = make_cache_key(STATS_NAMESPACE, scope=ctx.scope.cache_scope())
    return cache_get_or_set(key, lambda: compute_stats(db, ctx.scope))


def candidate_export(data, ctx: CallerContext, db, cfg):
    ctx.require("canExport")
    req = _requested_filter(data, ctx)
    f = apply_scope(ctx.scope, CandidateFilter(status=req.status, search=req.search))
    rows = db.execute(apply_filter(select(Candidate), f).order_by(Candidate.createdAt.desc())).scalars().all()

    append_audit(db, entityType="CANDIDATE", entityId="*", action="CANDIDATE_EXPORT", actor=ctx.auth, meta={"count": len(rows)})
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d")
    return {"filename": f"candidates_{stamp}.csv", "content": candidates_to_csv(rows), "count": len(rows)}


def candidate_artifact(data, ctx: CallerContext, db, cfg):
    ctx.require("canDownload")
    c = _load_in_scope(db, ctx, data.get("candidateId"))
    if not is_issuance_eligible(c.status, cfg) or not c.artifactPath:
        raise ApiError("NOT_FOUND", "Document not generated yet.")
    path = resolve_stored_path(c.artifactPath, base_dir=cfg.ARTIFACT_DIR)
    record_download(db, candidate_id=c.candidateId, origin=clean_str(data.get("origin")), channel="STAFF", actor=ctx.actor_id)
    return {"path": path, "downloadName": f"visa_{c.applicationNumber}.html"}


def candidate_render(data, ctx: CallerContext, db, cfg):
    ctx.require("canModify")
    c = _load_in_scope(db, ctx, data.get("candidateId"), for_update=True)
    if not is_issuance_eligible(c.status, cfg):
        raise ApiError("INVALID_INPUT", f"Document can only be generated for {' / '.join(cfg.ISSUANCE_STATUSES)} records.")
    if not c.visaNumber:
        allocate_visa_number(db, c.candidateId, cfg=cfg)
    schedule_render(db, c.candidateId, cfg=cfg)
    append_audit(db, entityType="CANDIDATE", entityId=c.candidateId, action="CANDIDATE_RENDER", actor=ctx.auth)
    return {"candidateId": c.candidateId, "queued": True}


def candidate_files_attach(data, ctx: CallerContext, db, cfg):
    ctx.require("canModify")
    c = _load_in_scope(db, ctx, data.get("candidateId"), for_update=True)
    photo = data.get("photo")
    document = data.get("document")
    if not photo and not document:
        raise ApiError("INVALID_INPUT", "No file uploaded.")

    # Both files are validated before either is written.
    max_bytes = int(cfg.MAX_UPLOAD_MB) * 1024 * 1024
    photo_in = read_upload(photo, allowed=ALLOWED_PHOTO_EXTENSIONS, max_bytes=max_bytes) if photo else None
    document_in = read_upload(document, allowed=ALLOWED_DOCUMENT_EXTENSIONS, max_bytes=max_bytes) if document else None

    superseded: list[str] = []
    if photo_in:
        saved = store_upload(photo_in, upload_dir=cfg.UPLOAD_DIR)
        add_post_rollback_hook(db, partial(remove_stored_file, saved["path"]))
        superseded.append(c.photoPath or "")
        c.photoPath = saved["path"]
    if document_in:
        saved = store_upload(document_in, upload_dir=cfg.UPLOAD_DIR)
        add_post_rollback_hook(db, partial(remove_stored_file, saved["path"]))
        superseded.append(c.documentPath or "")
        c.documentPath = saved["path"]
        c.documentName = saved["originalName"]
    for old in superseded:
        if old:
            add_post_commit_hook(db, partial(remove_stored_file, old))
    c.updatedAt = iso_utc_now()
    c.updatedBy = ctx.actor_id

    append_audit(
        db,
        entityType="CANDIDATE",
        entityId=c.candidateId,
        action="CANDIDATE_FILES_ATTACH",
        actor=ctx.auth,
        meta={"photo": bool(photo), "document": bool(document)},
    )
    db.flush()
    return candidate_out(c)


def candidate_file(data, ctx: CallerContext, db, cfg):
    ctx.require("canDownload")
    c = _load_in_scope(db, ctx, data.get("candidateId"))
    kind = clean_str(data.get("kind")).lower()
    if kind == "photo":
        path = c.photoPath
    elif kind == "document":
        path = c.documentPath
    else:
        raise ApiError("INVALID_INPUT", "kind must be photo or document.")
    full = resolve_stored_path(path, base_dir=cfg.UPLOAD_DIR)
    return {"path": full, "downloadName": (c.documentName if kind == "document" and c.documentName else os.path.basename(full))}
