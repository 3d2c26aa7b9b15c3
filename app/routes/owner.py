from __future__ import annotations

from flask import Blueprint, request

from app.api import json_body, rest_handle

owner_bp = Blueprint("owner", __name__)


@owner_bp.get("/admins")
def admins_list():
    return rest_handle("OWNER_ADMINS_LIST", dict(request.args))


@owner_bp.post("/admins")
def admin_create():
    return rest_handle("OWNER_ADMIN_CREATE", json_body())


@owner_bp.get("/admins/<admin_id>")
def admin_detail(admin_id: str):
    return rest_handle("OWNER_ADMIN_DETAIL", {"principalId": admin_id})


@owner_bp.put("/admins/<admin_id>")
def admin_update(admin_id: str):
    return rest_handle("OWNER_ADMIN_UPDATE", {**json_body(), "principalId": admin_id})


@owner_bp.post("/admins/<admin_id>/toggle")
def admin_toggle(admin_id: str):
    return rest_handle("OWNER_ADMIN_TOGGLE", {"principalId": admin_id})


@owner_bp.get("/stats")
def platform_stats():
    return rest_handle("OWNER_PLATFORM_STATS", {})
