"""
Local-disk storage for candidate uploads.

Files are stored under server-generated opaque names; the client filename is
only kept as display metadata.
"""
from __future__ import annotations

import os
import uuid
from typing import Any

from utils import ApiError


ALLOWED_PHOTO_EXTENSIONS = {".jpg", ".jpeg", ".png"}
ALLOWED_DOCUMENT_EXTENSIONS = {".jpg", ".jpeg", ".png", ".pdf"}

ALLOWED_MIME_TYPES = {
    ".jpg": {"image/jpeg"},
    ".jpeg": {"image/jpeg"},
    ".png": {"image/png"},
    ".pdf": {"application/pdf"},
}


def _extension(filename: str) -> str:
    return os.path.splitext(str(filename or "").strip().lower())[1]


def validate_upload(filename: str, content_type: str, size: int, *, allowed: set[str], max_bytes: int) -> str:
    ext = _extension(filename)
    if ext not in allowed:
        raise ApiError("INVALID_INPUT", f"Unsupported file type. Allowed: {', '.join(sorted(allowed))}")
    ct = str(content_type or "").lower().split(";")[0].strip()
    if ct and ct != "application/octet-stream" and ct not in ALLOWED_MIME_TYPES.get(ext, set()):
        raise ApiError("INVALID_INPUT", "File content type does not match its extension")
    if size <= 0:
        raise ApiError("INVALID_INPUT", "Empty file")
    if size > max_bytes:
        raise ApiError("INVALID_INPUT", f"File too large (max {max_bytes // (1024 * 1024)} MB)")
    return ext


def generate_storage_name(ext: str) -> str:
    return f"{uuid.uuid4().hex}{ext}"


def read_upload(upload, *, allowed: set[str], max_bytes: int) -> dict[str, Any]:
    """Read and validate a werkzeug FileStorage without touching the disk."""
    content = upload.read()
    ext = validate_upload(upload.filename or "", upload.mimetype or "", len(content), allowed=allowed, max_bytes=max_bytes)
    return {"content": content, "ext": ext, "originalName": os.path.basename(str(upload.filename or ""))}


def store_upload(checked: dict[str, Any], *, upload_dir: str) -> dict[str, Any]:
    """Write an upload accepted by read_upload; returns {path, storedName, originalName}."""
    os.makedirs(upload_dir, exist_ok=True)
    stored = generate_storage_name(checked["ext"])
    path = os.path.join(upload_dir, stored)
    with open(path, "wb") as fh:
        fh.write(checked["content"])
    return {"path": path, "storedName": stored, "originalName": checked["originalName"]}


def remove_stored_file(path: str) -> None:
    if not path:
        return
    try:
        os.remove(path)
    except FileNotFoundError:
        pass


def resolve_stored_path(path: str, *, base_dir: str) -> str:
    """Return an absolute path only if it exists and stays inside `base_dir`."""
    if not path:
        raise ApiError("NOT_FOUND", "File not found")
    base = os.path.realpath(base_dir)
    full = os.path.realpath(path)
    if os.path.commonpath([base, full]) != base or not os.path.isfile(full):
        raise ApiError("NOT_FOUND", "File not found")
    return full
