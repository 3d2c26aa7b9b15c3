from __future__ import annotations

from sqlalchemy import select

from actions.helpers import append_audit
from actions.principal_actions import principal_out
from auth import authenticate, end_session
from models import Principal
from tenancy import CallerContext
from utils import AuthContext


def login(data, auth, db, cfg):
    res = authenticate(db, (data or {}).get("email"), (data or {}).get("password"), cfg=cfg)
    p = res["principal"]
    append_audit(
        db,
        entityType="AUTH",
        entityId=p.principalId,
        action="LOGIN",
        actor=AuthContext(valid=True, userId=p.principalId, email=p.email, role=p.tier, expiresAt=res["expiresAt"]),
    )
    return {"sessionToken": res["sessionToken"], "expiresAt": res["expiresAt"], "me": principal_out(p)}


def session_validate(data, ctx: CallerContext, db, cfg):
    return {"valid": True, "principalId": ctx.actor_id, "tier": ctx.tier, "expiresAt": ctx.auth.expiresAt}


def get_me(data, ctx: CallerContext, db, cfg):
    p = db.execute(select(Principal).where(Principal.principalId == ctx.actor_id)).scalar_one()
    out = principal_out(p)
    out["scope"] = ctx.scope.cache_scope()
    return out


def logout(data, ctx: CallerContext, db, cfg):
    append_audit(db, entityType="AUTH", entityId=ctx.actor_id, action="LOGOUT", actor=ctx.auth)
    return end_session()
