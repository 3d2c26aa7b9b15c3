"""
Visa document rendering.

Rendering runs after the status-transition commit and never affects it: a
failure is logged and the record stays in its new status without an artifact
until someone re-triggers the render.
"""
from __future__ import annotations

import logging
import os
import threading
import uuid
from typing import Any, Optional

from jinja2 import Environment
from sqlalchemy import select

from db import SessionLocal, add_post_commit_hook
from models import Candidate
from utils import format_day_dmy, iso_utc_now


log = logging.getLogger("render")


class RenderingFailed(Exception):
    pass


class RenderingRefused(RenderingFailed):
    """The record can never be rendered as it stands; retrying is pointless."""


_env = Environment(autoescape=True)
_env.filters["dmy"] = format_day_dmy

VISA_TEMPLATE = _env.from_string(
    """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>Visa {{ c.visaNumber }}</title>
<style>
  body { font-family: Arial, Helvetica, sans-serif; margin: 24px; color: #1a1a1a; }
  header { border-bottom: 3px solid #0b3d91; margin-bottom: 16px; }
  h1 { font-size: 20px; margin: 0 0 4px; }
  table { border-collapse: collapse; width: 100%; }
  td { border: 1px solid #ccc; padding: 6px 8px; font-size: 13px; }
  td.k { width: 35%; background: #f3f5f9; font-weight: bold; }
</style>
</head>
<body>
<header>
  <h1>{{ issuer_name }}</h1>
  <div>Electronic Visa &middot; {{ c.status|upper }}</div>
</header>
<table>
  <tr><td class="k">Applicant</td><td>{{ c.fullName|upper }}</td></tr>
  <tr><td class="k">Application No.</td><td>{{ c.applicationNumber }}</td></tr>
  <tr><td class="k">{{ "Passport No." if is_passport else "Control No." }}</td><td>{{ c.identityNumber }}</td></tr>
  <tr><td class="k">Visa No.</td><td>{{ c.visaNumber }}</td></tr>
  <tr><td class="k">Date of Birth</td><td>{{ c.dateOfBirth|dmy }}</td></tr>
  <tr><td class="k">Profession</td><td>{{ c.profession|upper }}</td></tr>
  <tr><td class="k">Company</td><td>{{ c.companyName|upper }}</td></tr>
  <tr><td class="k">Visa Type</td><td>{{ c.visaType|upper }}</td></tr>
  <tr><td class="k">Country</td><td>{{ c.country|upper }}</td></tr>
  <tr><td class="k">Issue Date</td><td>{{ c.visaIssueDate|dmy }}</td></tr>
  <tr><td class="k">Expiry Date</td><td>{{ c.visaExpiryDate|dmy }}</td></tr>
  <tr><td class="k">Remarks</td><td>{{ c.remarks|upper }}</td></tr>
</table>
</body>
</html>
"""
)

SNAPSHOT_FIELDS = (
    "candidateId",
    "fullName",
    "applicationNumber",
    "identityType",
    "identityNumber",
    "visaNumber",
    "dateOfBirth",
    "profession",
    "companyName",
    "visaIssueDate",
    "visaExpiryDate",
    "visaType",
    "country",
    "status",
    "remarks",
)


def candidate_snapshot(c: Candidate) -> dict[str, Any]:
    return {k: getattr(c, k) or "" for k in SNAPSHOT_FIELDS}


def render_visa_html(snapshot: dict[str, Any], out_dir: str, *, issuer_name: str = "") -> str:
    """Fill the visa template from a snapshot and write it under `out_dir`; returns the path."""
    if not snapshot.get("visaNumber"):
        raise RenderingRefused("visa number not allocated")

    fields = {k: str(snapshot.get(k) or "") for k in SNAPSHOT_FIELDS}
    doc = VISA_TEMPLATE.render(
        c=fields,
        issuer_name=issuer_name or "Visa Immigration Services",
        is_passport=fields["identityType"].upper() == "PASSPORT",
    )

    try:
        os.makedirs(out_dir, exist_ok=True)
        path = os.path.join(out_dir, f"visa_{uuid.uuid4().hex}.html")
        with open(path, "w", encoding="utf-8") as fh:
            fh.write(doc)
    except OSError as e:
        raise RenderingFailed(f"write failed: {e}") from e
    return path


def render_candidate_document(candidate_id: str, *, cfg, raise_refusal: bool = False) -> Optional[str]:
    """Render and attach the artifact for one candidate. Returns the path, or None on failure.

    With `raise_refusal`, a record that cannot be rendered at all (gone, or not
    issuance-eligible) raises RenderingRefused instead of returning None.
    """
    db = SessionLocal()
    try:
        c = db.execute(select(Candidate).where(Candidate.candidateId == candidate_id)).scalar_one_or_none()
        if not c or c.isDeleted:
            raise RenderingRefused("candidate missing or deleted")
        if c.status not in cfg.ISSUANCE_STATUSES:
            raise RenderingRefused(f"status {c.status!r} is not issuance-eligible")

        path = render_visa_html(candidate_snapshot(c), cfg.ARTIFACT_DIR, issuer_name=cfg.ISSUER_NAME)
        c.artifactPath = path
        c.renderedAt = iso_utc_now()
        db.commit()
        log.info("render_ok candidate=%s", candidate_id)
        return path
    except RenderingRefused as e:
        db.rollback()
        log.warning("render_refused candidate=%s reason=%s", candidate_id, e)
        if raise_refusal:
            raise
        return None
    except RenderingFailed as e:
        db.rollback()
        log.warning("render_failed candidate=%s reason=%s", candidate_id, e)
        return None
    except Exception:
        db.rollback()
        log.exception("render_failed candidate=%s", candidate_id)
        return None
    finally:
        db.close()


def dispatch_render(candidate_id: str, *, cfg) -> None:
    mode = cfg.RENDER_MODE
    if mode == "off":
        return
    if mode == "inline":
        render_candidate_document(candidate_id, cfg=cfg)
        return
    if mode == "thread":
        threading.Thread(
            target=render_candidate_document,
            args=(candidate_id,),
            kwargs={"cfg": cfg},
            name=f"render-{candidate_id}",
            daemon=True,
        ).start()
        return

    from app.tasks.render_task import render_candidate_task

    try:
        render_candidate_task.apply_async(kwargs={"candidate_id": candidate_id})
    except Exception:
        log.exception("render_enqueue_failed candidate=%s", candidate_id)


def schedule_render(db, candidate_id: str, *, cfg) -> None:
    """Queue a render that only fires once the caller's transaction has committed."""

    def _render_after_commit():
        dispatch_render(candidate_id, cfg=cfg)

    add_post_commit_hook(db, _render_after_commit)
