from __future__ import annotations

import json
import os
from typing import Any, Optional

from flask import g, has_request_context

from models import AuditLog, CandidateDownloadLog, CandidateStatusHistory
from utils import ApiError, AuthContext, iso_utc_now


DEFAULT_PAGE_SIZE = 15
MAX_PAGE_SIZE = 100


def _correlation_id() -> str:
    if has_request_context():
        return str(getattr(g, "request_id", "") or "")
    return ""


def append_audit(
    db,
    *,
    entityType: str,
    entityId: str,
    action: str,
    actor: Optional[AuthContext],
    remark: str = "",
    meta: Optional[dict[str, Any]] = None,
    at: str = "",
) -> None:
    db.add(
        AuditLog(
            logId=f"LOG-{os.urandom(16).hex()}",
            entityType=str(entityType or ""),
            entityId=str(entityId or ""),
            action=str(action or "").upper(),
            remark=str(remark or ""),
            actorUserId=str(actor.userId) if actor else "PUBLIC",
            actorRole=str(actor.role) if actor else "PUBLIC",
            at=at or iso_utc_now(),
            correlationId=_correlation_id(),
            metaJson=json.dumps(meta or {}, default=str),
        )
    )


def append_status_history(db, *, candidate_id: str, status: str, actor: str, note: str = "", at: str = "") -> None:
    db.add(
        CandidateStatusHistory(
            candidateId=candidate_id,
            status=status,
            actor=str(actor or ""),
            at=at or iso_utc_now(),
            note=str(note or "").strip(),
        )
    )


def record_download(db, *, candidate_id: str, origin: str, channel: str, actor: str = "") -> None:
    db.add(
        CandidateDownloadLog(
            candidateId=candidate_id,
            at=iso_utc_now(),
            origin=str(origin or "")[:64],
            channel=channel,
            actor=str(actor or ""),
        )
    )


def parse_paging(data: dict) -> tuple[int, int]:
    try:
        page = int(data.get("page") or 1)
        limit = int(data.get("limit") or DEFAULT_PAGE_SIZE)
    except (TypeError, ValueError):
        raise ApiError("INVALID_INPUT", "page and limit must be integers")
    return max(1, page), max(1, min(MAX_PAGE_SIZE, limit))


def paging_out(page: int, limit: int, total: int) -> dict[str, int]:
    return {"current": page, "limit": limit, "total": total, "pages": (total + limit - 1) // limit}


def as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in {"1", "true", "yes", "y", "on"}
