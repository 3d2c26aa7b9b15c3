from __future__ import annotations

from flask import Blueprint, Response, request, send_file

from app.api import get_client_ip, json_body, rest_handle, target_tenant

candidates_bp = Blueprint("candidates", __name__)


def _send(out):
    return send_file(out["path"], as_attachment=True, download_name=out["downloadName"])


@candidates_bp.get("")
def candidate_list():
    data = dict(request.args)
    return rest_handle("CANDIDATE_LIST", data, target_tenant_id=target_tenant(data))


@candidates_bp.post("")
def candidate_create():
    data = json_body()
    return rest_handle("CANDIDATE_CREATE", data, target_tenant_id=target_tenant(data))


@candidates_bp.get("/stats")
def candidate_stats():
    return rest_handle("CANDIDATE_STATS", {}, target_tenant_id=target_tenant({}))


@candidates_bp.get("/export")
def candidate_export():
    data = dict(request.args)

    def _csv(out):
        return Response(
            out["content"],
            mimetype="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{out["filename"]}"'},
        )

    return rest_handle("CANDIDATE_EXPORT", data, respond=_csv, target_tenant_id=target_tenant(data))


@candidates_bp.get("/<candidate_id>")
def candidate_get(candidate_id: str):
    return rest_handle("CANDIDATE_GET", {**request.args, "candidateId": candidate_id})


@candidates_bp.put("/<candidate_id>")
def candidate_update(candidate_id: str):
    return rest_handle("CANDIDATE_UPDATE", {**json_body(), "candidateId": candidate_id})


@candidates_bp.delete("/<candidate_id>")
def candidate_delete(candidate_id: str):
    return rest_handle("CANDIDATE_DELETE", {"candidateId": candidate_id})


@candidates_bp.post("/<candidate_id>/render")
def candidate_render(candidate_id: str):
    return rest_handle("CANDIDATE_RENDER", {"candidateId": candidate_id})


@candidates_bp.get("/<candidate_id>/artifact")
def candidate_artifact(candidate_id: str):
    data = {"candidateId": candidate_id, "origin": get_client_ip()}
    return rest_handle("CANDIDATE_ARTIFACT", data, respond=_send)


@candidates_bp.post("/<candidate_id>/files")
def candidate_files_attach(candidate_id: str):
    data = {
        "candidateId": candidate_id,
        "photo": request.files.get("photo"),
        "document": request.files.get("document"),
    }
    return rest_handle("CANDIDATE_FILES_ATTACH", data)


@candidates_bp.get("/<candidate_id>/files/<kind>")
def candidate_file(candidate_id: str, kind: str):
    return rest_handle("CANDIDATE_FILE", {"candidateId": candidate_id, "kind": kind}, respond=_send)
