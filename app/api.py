"""Shared request handling for the REST blueprints.

Each route builds an explicit `data` dict and calls `rest_handle`, which opens
the DB session, authenticates, builds the caller context, dispatches the
action, commits, and maps every failure to the JSON error envelope.
"""
from __future__ import annotations

import json
import logging
import os
from typing import Any, Callable, Optional

from flask import current_app, g, request
from sqlalchemy.exc import IntegrityError

from actions import dispatch, is_public_action
from auth import load_session_principal
from db import SessionLocal
from models import AuditLog
from tenancy import CallerContext, build_caller_context
from utils import ApiError, err, iso_utc_now, ok


log = logging.getLogger("api")

# Error codes that also get an audit row.
_AUDITED_ERRORS = {"FORBIDDEN", "LOCKED", "DISABLED", "AUTH_INVALID", "ALLOCATION_EXHAUSTED"}


def rest_token() -> str:
    authz = str(request.headers.get("Authorization") or "").strip()
    if authz.lower().startswith("bearer "):
        return authz.split(" ", 1)[1].strip()
    return str(request.headers.get("X-Session-Token") or "").strip() or str(request.args.get("token") or "").strip()


def get_client_ip() -> str:
    xff = request.headers.get("X-Forwarded-For", "")
    if xff:
        return xff.split(",")[0].strip()
    return request.remote_addr or ""


def json_body() -> dict[str, Any]:
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


def target_tenant(data: dict) -> str:
    return str(request.args.get("adminId") or data.get("tenantId") or data.get("adminId") or "").strip()


def rest_handle(
    action: str,
    data: dict,
    *,
    respond: Optional[Callable[[Any], Any]] = None,
    target_tenant_id: str = "",
):
    cfg = current_app.config["CFG"]
    action_u = str(action or "").upper().strip()

    db = None
    ctx: Optional[CallerContext] = None
    try:
        db = SessionLocal()

        if not is_public_action(action_u):
            auth, principal = load_session_principal(db, rest_token(), cfg=cfg)
            ctx = build_caller_context(principal, auth, target_tenant_id=target_tenant_id or None)

        out = dispatch(action_u, data or {}, ctx, db, cfg)
        db.commit()
        if respond is not None:
            return respond(out)
        return ok(out)
    except ApiError as e:
        if db is not None:
            db.rollback()
        if e.code in _AUDITED_ERRORS:
            _write_error_audit(action_u, ctx, e)
        return err(e.code, e.message, http_status=e.http_status, details=e.details or None)
    except IntegrityError:
        if db is not None:
            db.rollback()
        log.warning("rest_integrity_error request_id=%s action=%s", getattr(g, "request_id", ""), action_u, exc_info=True)
        return err("CONFLICT", "A record with the same unique value already exists.", http_status=409)
    except Exception:
        if db is not None:
            db.rollback()
        request_id = str(getattr(g, "request_id", "") or "")
        log.exception("rest_unhandled request_id=%s action=%s", request_id, action_u)
        message = f"Unexpected error (requestId: {request_id})" if cfg.IS_PRODUCTION else "Unexpected error"
        return err("INTERNAL", message, http_status=500)
    finally:
        if db is not None:
            db.close()


def _write_error_audit(action: str, ctx: Optional[CallerContext], e: ApiError) -> None:
    db2 = SessionLocal()
    try:
        db2.add(
            AuditLog(
                logId=f"LOG-{os.urandom(16).hex()}",
                entityType="API",
                entityId=ctx.actor_id if ctx else "PUBLIC",
                action=action or "UNKNOWN",
                remark=f"{e.code}: {e.message}",
                actorUserId=ctx.actor_id if ctx else "PUBLIC",
                actorRole=ctx.tier if ctx else "PUBLIC",
                at=iso_utc_now(),
                correlationId=str(getattr(g, "request_id", "") or ""),
                metaJson=json.dumps({"origin": get_client_ip(), "error": {"code": e.code}}),
            )
        )
        db2.commit()
    except Exception:
        db2.rollback()
        log.warning("error_audit_failed action=%s code=%s", action, e.code, exc_info=True)
    finally:
        db2.close()
