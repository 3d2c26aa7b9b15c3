from __future__ import annotations

from flask import Blueprint

from app.api import json_body, rest_handle

users_bp = Blueprint("users", __name__)


@users_bp.get("")
def users_list():
    return rest_handle("USERS_LIST", {})


@users_bp.post("")
def user_create():
    return rest_handle("USER_CREATE", json_body())


@users_bp.put("/<user_id>")
def user_update(user_id: str):
    return rest_handle("USER_UPDATE", {**json_body(), "principalId": user_id})


@users_bp.delete("/<user_id>")
def user_delete(user_id: str):
    return rest_handle("USER_DELETE", {"principalId": user_id})
