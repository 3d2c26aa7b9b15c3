from __future__ import annotations

from typing import Any, Callable

from actions import auth_actions, candidate_repo, principal_actions, public_track
from utils import ApiError


PUBLIC_ACTIONS = {
    "LOGIN",
    "PUBLIC_TRACK",
    "PUBLIC_ARTIFACT",
}


ACTIONS: dict[str, Callable[..., Any]] = {
    # Session
    "LOGIN": auth_actions.login,
    "LOGOUT": auth_actions.logout,
    "SESSION_VALIDATE": auth_actions.session_validate,
    "GET_ME": auth_actions.get_me,
    # Candidate ledger
    "CANDIDATE_CREATE": candidate_repo.candidate_create,
    "CANDIDATE_UPDATE": candidate_repo.candidate_update,
    "CANDIDATE_DELETE": candidate_repo.candidate_delete,
    "CANDIDATE_LIST": candidate_repo.candidate_list,
    "CANDIDATE_GET": candidate_repo.candidate_get,
    "CANDIDATE_STATS": candidate_repo.candidate_stats,
    "CANDIDATE_EXPORT": candidate_repo.candidate_export,
    "CANDIDATE_ARTIFACT": candidate_repo.candidate_artifact,
    "CANDIDATE_RENDER": candidate_repo.candidate_render,
    "CANDIDATE_FILES_ATTACH": candidate_repo.candidate_files_attach,
    "CANDIDATE_FILE": candidate_repo.candidate_file,
    # Public tracking
    "PUBLIC_TRACK": public_track.public_track,
    "PUBLIC_ARTIFACT": public_track.public_artifact,
    # Owner
    "OWNER_ADMINS_LIST": principal_actions.owner_admins_list,
    "OWNER_ADMIN_CREATE": principal_actions.owner_admin_create,
    "OWNER_ADMIN_UPDATE": principal_actions.owner_admin_update,
    "OWNER_ADMIN_TOGGLE": principal_actions.owner_admin_toggle,
    "OWNER_ADMIN_DETAIL": principal_actions.owner_admin_detail,
    "OWNER_PLATFORM_STATS": principal_actions.owner_platform_stats,
    # Admin
    "USERS_LIST": principal_actions.users_list,
    "USER_CREATE": principal_actions.user_create,
    "USER_UPDATE": principal_actions.user_update,
    "USER_DELETE": principal_actions.user_delete,
}


def is_public_action(action: str) -> bool:
    return str(action or "").upper() in PUBLIC_ACTIONS


def dispatch(action: str, data: dict, ctx, db, cfg):
    fn = ACTIONS.get(str(action or "").upper().strip())
    if fn is None:
        raise ApiError("INVALID_INPUT", f"Unknown action: {action}")
    return fn(data or {}, ctx, db, cfg)
