"""
Unauthenticated applicant lookup.

Every failed match returns the same NOT_FOUND message, whichever field was
wrong, so the endpoint cannot be used to confirm a passport number.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy import or_, select

from actions.candidate_repo import is_issuance_eligible, normalize_identifier
from actions.helpers import record_download
from models import Candidate
from services.file_storage import resolve_stored_path
from utils import ApiError, clean_str, parse_day


log = logging.getLogger("ledger")

PUBLIC_NOT_FOUND = "No record found. Please check your information."
PUBLIC_NOT_AVAILABLE = "Document not available yet."


def _references(data: dict) -> list[str]:
    refs = []
    proof = data.get("identityProof")
    if isinstance(proof, dict):
        refs.append(normalize_identifier(proof.get("number")))
    for key in ("identityNumber", "passportNumber", "controlNumber", "applicationNumber"):
        refs.append(normalize_identifier(data.get(key)))
    return sorted({r for r in refs if r})


def _match(db, data: dict, *, candidate_id: str = "") -> Optional[Candidate]:
    day = parse_day(data.get("dateOfBirth"))
    refs = _references(data)
    if not day or not refs:
        return None

    q = (
        select(Candidate)
        .where(Candidate.isDeleted.is_(False))
        .where(Candidate.dateOfBirth == day)
        .where(or_(Candidate.applicationNumber.in_(refs), Candidate.identityNumber.in_(refs)))
    )
    if candidate_id:
        q = q.where(Candidate.candidateId == candidate_id)
    # Identifiers are only tenant-unique; the newest record wins.
    return db.execute(q.order_by(Candidate.createdAt.desc()).limit(1)).scalars().first()


def _downloadable(c: Candidate, cfg) -> bool:
    return is_issuance_eligible(c.status, cfg) and bool(c.artifactPath)


def public_track(data, auth, db, cfg):
    c = _match(db, data or {})
    if not c:
        raise ApiError("NOT_FOUND", PUBLIC_NOT_FOUND)

    eligible = is_issuance_eligible(c.status, cfg)
    return {
        "candidateId": c.candidateId,
        "fullName": c.fullName,
        "applicationNumber": c.applicationNumber,
        "applicationDate": c.applicationDate or "",
        "visaType": c.visaType or "",
        "country": c.country or "",
        "status": c.status,
        "remarks": c.remarks or "",
        "visaIssueDate": c.visaIssueDate or "",
        "visaExpiryDate": c.visaExpiryDate or "",
        "visaNumber": (c.visaNumber or "") if eligible else "",
        "canDownload": _downloadable(c, cfg),
    }


def public_artifact(data, auth, db, cfg) -> dict[str, Any]:
    candidate_id = clean_str((data or {}).get("candidateId"))
    if not candidate_id:
        raise ApiError("NOT_FOUND", PUBLIC_NOT_FOUND)

    c = _match(db, data, candidate_id=candidate_id)
    if not c:
        raise ApiError("NOT_FOUND", PUBLIC_NOT_FOUND)
    if not _downloadable(c, cfg):
        raise ApiError("FORBIDDEN", PUBLIC_NOT_AVAILABLE)

    try:
        path = resolve_stored_path(c.artifactPath, base_dir=cfg.ARTIFACT_DIR)
    except ApiError:
        log.error("artifact_missing_on_disk candidate=%s", c.candidateId)
        raise ApiError("FORBIDDEN", PUBLIC_NOT_AVAILABLE)

    record_download(db, candidate_id=c.candidateId, origin=clean_str(data.get("origin")), channel="PUBLIC")
    db.flush()
    log.info("public_download candidate=%s", c.candidateId)
    return {"path": path, "downloadName": f"visa_{c.applicationNumber}.html"}
