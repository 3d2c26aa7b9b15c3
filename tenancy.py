"""Tenant scope and capability resolution.

A tenant is an ADMIN principal plus the candidate records and restricted users
it owns. Every ledger call receives an explicit `CallerContext`; nothing here
reads request state.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Optional

from utils import ApiError, AuthContext


CAPABILITIES = ("canCreate", "canModify", "canDelete", "canExport", "canDownload", "canView")


@dataclass(frozen=True)
class TenantScope:
    # None means every tenant; an empty set means no access.
    tenant_ids: Optional[frozenset[str]]

    @classmethod
    def unrestricted(cls) -> "TenantScope":
        return cls(tenant_ids=None)

    @classmethod
    def only(cls, tenant_id: str) -> "TenantScope":
        return cls(tenant_ids=frozenset({tenant_id}))

    @classmethod
    def empty(cls) -> "TenantScope":
        return cls(tenant_ids=frozenset())

    @property
    def is_unrestricted(self) -> bool:
        return self.tenant_ids is None

    @property
    def is_empty(self) -> bool:
        return self.tenant_ids is not None and not self.tenant_ids

    def allows(self, tenant_id: str) -> bool:
        if self.tenant_ids is None:
            return True
        return tenant_id in self.tenant_ids

    def single_tenant(self) -> Optional[str]:
        if self.tenant_ids is not None and len(self.tenant_ids) == 1:
            return next(iter(self.tenant_ids))
        return None

    def cache_scope(self) -> list[str]:
        if self.tenant_ids is None:
            return ["ALL"]
        return sorted(self.tenant_ids) or ["NONE"]


@dataclass(frozen=True)
class Capabilities:
    canCreate: bool = False
    canModify: bool = False
    canDelete: bool = False
    canExport: bool = False
    canDownload: bool = False
    canView: bool = True

    @classmethod
    def full(cls) -> "Capabilities":
        return cls(True, True, True, True, True, True)

    def has(self, capability: str) -> bool:
        if capability not in CAPABILITIES:
            raise ValueError(f"Unknown capability: {capability}")
        return bool(getattr(self, capability))

    def as_dict(self) -> dict[str, bool]:
        return {name: bool(getattr(self, name)) for name in CAPABILITIES}


def _tier(principal: Any) -> str:
    return str(getattr(principal, "tier", "") or "").upper().strip()


def capabilities_for(principal: Any) -> Capabilities:
    if _tier(principal) in {"OWNER", "ADMIN"}:
        return Capabilities.full()
    return Capabilities(
        canCreate=bool(getattr(principal, "canCreate", False)),
        canModify=bool(getattr(principal, "canModify", False)),
        canDelete=bool(getattr(principal, "canDelete", False)),
        canExport=bool(getattr(principal, "canExport", False)),
        canDownload=bool(getattr(principal, "canDownload", False)),
        canView=True,
    )


def authorize(principal: Any, capability: str) -> bool:
    return capabilities_for(principal).has(capability)


def resolve_scope(principal: Any, target_tenant_id: Optional[str] = None) -> TenantScope:
    tier = _tier(principal)
    if tier == "OWNER":
        target = str(target_tenant_id or "").strip()
        return TenantScope.only(target) if target else TenantScope.unrestricted()
    if tier == "ADMIN":
        return TenantScope.only(str(principal.principalId))
    if tier == "USER":
        creator = str(getattr(principal, "createdBy", "") or "").strip()
        return TenantScope.only(creator) if creator else TenantScope.empty()
    return TenantScope.empty()


@dataclass(frozen=True)
class CallerContext:
    auth: AuthContext
    scope: TenantScope
    capabilities: Capabilities

    @property
    def actor_id(self) -> str:
        return self.auth.userId

    @property
    def tier(self) -> str:
        return self.auth.role

    def can(self, capability: str) -> bool:
        return self.capabilities.has(capability)

    def require(self, capability: str) -> None:
        if not self.can(capability):
            raise ApiError("FORBIDDEN", "You do not have permission to perform this action.")

    def require_tier(self, *tiers: str) -> None:
        if self.tier not in tiers:
            raise ApiError("FORBIDDEN", "You do not have permission to perform this action.")


def build_caller_context(principal: Any, auth: AuthContext, *, target_tenant_id: Optional[str] = None) -> CallerContext:
    return CallerContext(
        auth=auth,
        scope=resolve_scope(principal, target_tenant_id),
        capabilities=capabilities_for(principal),
    )


@dataclass(frozen=True)
class CandidateFilter:
    tenant_ids: Optional[frozenset[str]] = None
    # False selects live records, True selects the soft-deleted set.
    deleted: bool = False
    status: str = ""
    search: str = ""


def apply_scope(scope: TenantScope, base: CandidateFilter) -> CandidateFilter:
    """Intersect a requested filter with the caller's scope (pure)."""
    if scope.tenant_ids is None:
        tenants = base.tenant_ids
    elif base.tenant_ids is None:
        tenants = scope.tenant_ids
    else:
        tenants = base.tenant_ids & scope.tenant_ids
    return replace(base, tenant_ids=tenants)
