from __future__ import annotations

import re

from werkzeug.security import check_password_hash, generate_password_hash

from utils import ApiError


_HAS_LOWER = re.compile(r"[a-z]")
_HAS_UPPER = re.compile(r"[A-Z]")
_HAS_DIGIT = re.compile(r"\d")
_HAS_SPECIAL = re.compile(r"[^A-Za-z0-9]")

STRONG_MIN_LENGTH = 8
BASIC_MIN_LENGTH = 6


def validate_password_policy(password: str, *, strong: bool = True) -> str:
    """Owner/admin passwords must be strong; restricted users only need a minimum length."""
    pwd = str(password or "")
    if not pwd:
        raise ApiError("INVALID_INPUT", "Missing password")
    if len(pwd) > 256:
        raise ApiError("INVALID_INPUT", "Password is too long")
    if not strong:
        if len(pwd) < BASIC_MIN_LENGTH:
            raise ApiError("INVALID_INPUT", f"Password must be at least {BASIC_MIN_LENGTH} characters")
        return pwd
    if len(pwd) < STRONG_MIN_LENGTH:
        raise ApiError("INVALID_INPUT", f"Password must be at least {STRONG_MIN_LENGTH} characters")
    if not _HAS_LOWER.search(pwd) or not _HAS_UPPER.search(pwd) or not _HAS_DIGIT.search(pwd) or not _HAS_SPECIAL.search(pwd):
        raise ApiError(
            "INVALID_INPUT",
            "Password must include uppercase, lowercase, number, and special character",
        )
    return pwd


def hash_password(password: str, *, strong: bool = True) -> str:
    pwd = validate_password_policy(password, strong=strong)
    # Werkzeug 3 defaults to scrypt; pin explicitly for stability.
    return generate_password_hash(pwd, method="scrypt", salt_length=16)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return check_password_hash(str(password_hash or ""), str(password or ""))
    except ValueError:
        # Unknown or malformed hash format.
        return False
