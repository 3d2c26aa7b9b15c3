from __future__ import annotations

import io
import os
from unittest.mock import patch

from sqlalchemy import select

from db import SessionLocal
from models import AuditLog, Candidate, CandidateDownloadLog
from tests.helpers import auth_headers, candidate_payload, seed_tenancy

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def _create(client, cfg, principal_id: str = "ADM-A", tier: str = "ADMIN", **overrides):
    return client.post("/api/v1/candidates", json=candidate_payload(**overrides), headers=auth_headers(cfg, principal_id, tier))


def test_health_and_unknown_endpoint(app_client):
    _app, client = app_client
    res = client.get("/health")
    assert res.status_code == 200
    assert res.get_json()["status"] == "ok"
    assert res.headers["X-Request-ID"]
    assert res.headers["X-Content-Type-Options"] == "nosniff"

    res = client.get("/api/v1/nope")
    assert res.status_code == 404
    assert res.get_json()["error"]["code"] == "NOT_FOUND"


def test_ready_ok(app_client):
    _app, client = app_client
    with patch("app.routes.core._ping_redis", return_value=True):
        res = client.get("/ready")
    assert res.status_code == 200
    body = res.get_json()
    assert body["status"] == "ok"
    assert body["checks"] == {"db": "ok", "redis": "ok"}
    assert body["pool"]["initialized"] is True


def test_ready_degraded_when_redis_down(app_client):
    _app, client = app_client
    with patch("app.routes.core._ping_redis", return_value=False):
        res = client.get("/ready")
    assert res.status_code == 503
    assert res.get_json()["checks"]["redis"] == "error"


def test_create_update_get_over_http(app_client, cfg):
    _app, client = app_client
    seed_tenancy()

    res = _create(client, cfg)
    assert res.status_code == 200
    cid = res.get_json()["data"]["candidateId"]

    res = _create(client, cfg)
    assert res.status_code == 409
    body = res.get_json()
    assert body["error"] == {
        "code": "CONFLICT",
        "message": 'Application "APP-001" already exists.',
        "details": {"field": "applicationNumber", "value": "APP-001"},
    }

    headers = auth_headers(cfg, "ADM-A", "ADMIN")
    res = client.put(f"/api/v1/candidates/{cid}", json={"status": "Approved"}, headers=headers)
    assert res.status_code == 200
    assert res.get_json()["data"]["visaNumber"]

    res = client.put(f"/api/v1/candidates/{cid}", json={"status": "Pending"}, headers=headers)
    assert res.status_code == 400

    res = client.get(f"/api/v1/candidates/{cid}", headers=headers)
    data = res.get_json()["data"]
    assert [h["status"] for h in data["statusHistory"]] == ["Pending", "Approved"]
    assert data["hasArtifact"] is True

    res = client.get(f"/api/v1/candidates/{cid}", headers=auth_headers(cfg, "ADM-B", "ADMIN"))
    assert res.status_code == 404


def test_owner_targets_tenant_with_admin_id(app_client, cfg):
    _app, client = app_client
    seed_tenancy()

    res = _create(client, cfg, "PRN-OWNER", "OWNER")
    assert res.status_code == 400

    res = client.post(
        "/api/v1/candidates",
        query_string={"adminId": "ADM-B"},
        json=candidate_payload(),
        headers=auth_headers(cfg, "PRN-OWNER", "OWNER"),
    )
    assert res.status_code == 200
    assert res.get_json()["data"]["tenantId"] == "ADM-B"

    res = client.get("/api/v1/candidates", query_string={"adminId": "ADM-A"}, headers=auth_headers(cfg, "PRN-OWNER", "OWNER"))
    assert res.get_json()["data"]["items"] == []
    res = client.get("/api/v1/candidates", headers=auth_headers(cfg, "PRN-OWNER", "OWNER"))
    assert res.get_json()["data"]["pagination"]["total"] == 1


def test_export_returns_csv_and_guards_formulas(app_client, cfg):
    _app, client = app_client
    seed_tenancy()
    assert _create(client, cfg, fullName="=HYPERLINK(1)").status_code == 200

    res = client.get("/api/v1/candidates/export", headers=auth_headers(cfg, "USR-EDIT", "USER"))
    assert res.status_code == 200
    assert res.mimetype == "text/csv"
    assert "attachment" in res.headers["Content-Disposition"]
    lines = res.get_data(as_text=True).splitlines()
    assert lines[0].startswith("Application No.,Full Name")
    assert "'=HYPERLINK(1)" in lines[1]

    res = client.get("/api/v1/candidates/export", headers=auth_headers(cfg, "USR-VIEW", "USER"))
    assert res.status_code == 403
    with SessionLocal() as db:
        denied = db.execute(select(AuditLog).where(AuditLog.actorUserId == "USR-VIEW")).scalars().all()
    assert [a.action for a in denied] == ["CANDIDATE_EXPORT"]
    assert denied[0].remark.startswith("FORBIDDEN")


def test_staff_artifact_download_is_logged(app_client, cfg):
    _app, client = app_client
    seed_tenancy()
    cid = _create(client, cfg, status="Issued").get_json()["data"]["candidateId"]

    res = client.get(f"/api/v1/candidates/{cid}/artifact", headers=auth_headers(cfg, "USR-EDIT", "USER"))
    assert res.status_code == 200
    assert res.headers["Content-Disposition"].startswith("attachment")

    res = client.get(f"/api/v1/candidates/{cid}/artifact", headers=auth_headers(cfg, "USR-VIEW", "USER"))
    assert res.status_code == 403

    with SessionLocal() as db:
        logs = db.execute(select(CandidateDownloadLog).where(CandidateDownloadLog.candidateId == cid)).scalars().all()
    assert [(log.channel, log.actor) for log in logs] == [("STAFF", "USR-EDIT")]


def test_render_requires_an_eligible_status(app_client, cfg):
    _app, client = app_client
    seed_tenancy()
    headers = auth_headers(cfg, "ADM-A", "ADMIN")
    cid = _create(client, cfg).get_json()["data"]["candidateId"]

    res = client.post(f"/api/v1/candidates/{cid}/render", headers=headers)
    assert res.status_code == 400

    client.put(f"/api/v1/candidates/{cid}", json={"status": "Approved"}, headers=headers)
    res = client.post(f"/api/v1/candidates/{cid}/render", headers=headers)
    assert res.status_code == 200
    assert res.get_json()["data"]["queued"] is True


def test_upload_photo_and_document(app_client, cfg):
    _app, client = app_client
    seed_tenancy()
    headers = auth_headers(cfg, "ADM-A", "ADMIN")
    cid = _create(client, cfg).get_json()["data"]["candidateId"]

    res = client.post(
        f"/api/v1/candidates/{cid}/files",
        data={"photo": (io.BytesIO(PNG_BYTES), "face.png", "image/png"), "document": (io.BytesIO(b"%PDF-1.4 test"), "passport scan.pdf", "application/pdf")},
        content_type="multipart/form-data",
        headers=headers,
    )
    assert res.status_code == 200
    data = res.get_json()["data"]
    assert data["hasPhoto"] is True
    assert data["documentName"] == "passport scan.pdf"

    res = client.get(f"/api/v1/candidates/{cid}/files/photo", headers=headers)
    assert res.status_code == 200
    assert res.data == PNG_BYTES

    res = client.post(
        f"/api/v1/candidates/{cid}/files",
        data={"photo": (io.BytesIO(b"MZ..."), "payload.exe", "application/octet-stream")},
        content_type="multipart/form-data",
        headers=headers,
    )
    assert res.status_code == 400
    assert res.get_json()["error"]["code"] == "INVALID_INPUT"

    res = client.post(f"/api/v1/candidates/{cid}/files", data={}, content_type="multipart/form-data", headers=headers)
    assert res.status_code == 400


def test_stats_endpoint_reflects_commits(app_client, cfg):
    _app, client = app_client
    seed_tenancy()
    headers = auth_headers(cfg, "ADM-A", "ADMIN")

    assert client.get("/api/v1/candidates/stats", headers=headers).get_json()["data"]["total"] == 0
    _create(client, cfg)
    stats = client.get("/api/v1/candidates/stats", headers=headers).get_json()["data"]
    assert stats["total"] == 1
    assert stats["byStatus"]["Pending"] == 1


def test_logout_is_stateless(app_client, cfg):
    _app, client = app_client
    seed_tenancy()
    headers = auth_headers(cfg, "ADM-A", "ADMIN")
    res = client.post("/api/v1/auth/logout", headers=headers)
    assert res.get_json()["data"] == {"loggedOut": True}
    # No revocation list: the token keeps working until it expires.
    assert client.get("/api/v1/auth/session", headers=headers).status_code == 200


def test_rejected_upload_writes_nothing_to_disk(app_client, cfg):
    _app, client = app_client
    seed_tenancy()
    headers = auth_headers(cfg, "ADM-A", "ADMIN")
    cid = _create(client, cfg).get_json()["data"]["candidateId"]

    res = client.post(
        f"/api/v1/candidates/{cid}/files",
        data={"photo": (io.BytesIO(PNG_BYTES), "face.png", "image/png"), "document": (io.BytesIO(b"MZ..."), "x.exe", "application/octet-stream")},
        content_type="multipart/form-data",
        headers=headers,
    )
    assert res.status_code == 400
    assert not os.path.isdir(cfg.UPLOAD_DIR) or os.listdir(cfg.UPLOAD_DIR) == []
    assert client.get(f"/api/v1/candidates/{cid}", headers=headers).get_json()["data"]["hasPhoto"] is False


def test_failed_attach_removes_the_written_file(app_client, cfg):
    _app, client = app_client
    seed_tenancy()
    headers = auth_headers(cfg, "ADM-A", "ADMIN")
    cid = _create(client, cfg).get_json()["data"]["candidateId"]

    with patch("actions.candidate_repo.append_audit", side_effect=RuntimeError("audit store down")):
        res = client.post(
            f"/api/v1/candidates/{cid}/files",
            data={"photo": (io.BytesIO(PNG_BYTES), "face.png", "image/png")},
            content_type="multipart/form-data",
            headers=headers,
        )
    assert res.status_code == 500
    assert os.listdir(cfg.UPLOAD_DIR) == []


def test_replacing_a_photo_removes_the_old_file(app_client, cfg):
    _app, client = app_client
    seed_tenancy()
    headers = auth_headers(cfg, "ADM-A", "ADMIN")
    cid = _create(client, cfg).get_json()["data"]["candidateId"]

    for name in ("first.png", "second.png"):
        res = client.post(
            f"/api/v1/candidates/{cid}/files",
            data={"photo": (io.BytesIO(PNG_BYTES), name, "image/png")},
            content_type="multipart/form-data",
            headers=headers,
        )
        assert res.status_code == 200

    with SessionLocal() as db:
        photo_path = db.execute(select(Candidate.photoPath).where(Candidate.candidateId == cid)).scalar_one()
    assert os.listdir(cfg.UPLOAD_DIR) == [os.path.basename(photo_path)]
