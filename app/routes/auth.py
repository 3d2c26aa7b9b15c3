from __future__ import annotations

from flask import Blueprint

from app.api import json_body, rest_handle

auth_bp = Blueprint("auth", __name__)


@auth_bp.post("/login")
def login():
    body = json_body()
    return rest_handle("LOGIN", {"email": body.get("email"), "password": body.get("password")})


@auth_bp.post("/logout")
def logout():
    return rest_handle("LOGOUT", {})


@auth_bp.get("/me")
def me():
    return rest_handle("GET_ME", {})


@auth_bp.get("/session")
def session_validate():
    return rest_handle("SESSION_VALIDATE", {})
