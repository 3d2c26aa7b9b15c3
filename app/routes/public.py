from __future__ import annotations

from flask import Blueprint, request, send_file

from app.api import get_client_ip, json_body, rest_handle

public_bp = Blueprint("public", __name__)

_LOOKUP_KEYS = (
    "dateOfBirth",
    "identityNumber",
    "passportNumber",
    "controlNumber",
    "applicationNumber",
)


def _send(out):
    return send_file(out["path"], as_attachment=True, download_name=out["downloadName"])


@public_bp.post("/track")
def track():
    return rest_handle("PUBLIC_TRACK", json_body())


@public_bp.get("/artifact/<candidate_id>")
def artifact_get(candidate_id: str):
    lookup = {k: request.args.get(k) for k in _LOOKUP_KEYS if request.args.get(k)}
    return rest_handle("PUBLIC_ARTIFACT", {**lookup, "candidateId": candidate_id, "origin": get_client_ip()}, respond=_send)


@public_bp.post("/artifact/<candidate_id>")
def artifact_post(candidate_id: str):
    data = {**json_body(), "candidateId": candidate_id, "origin": get_client_ip()}
    return rest_handle("PUBLIC_ARTIFACT", data, respond=_send)
