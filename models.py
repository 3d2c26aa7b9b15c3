from __future__ import annotations

from sqlalchemy import Boolean, Column, Index, Integer, String, Text, UniqueConstraint, text

from db import Base


class Principal(Base):
    __tablename__ = "principals"
    __table_args__ = (
        # At most one platform owner.
        Index(
            "uq_principals_single_owner",
            "tier",
            unique=True,
            sqlite_where=text("tier = 'OWNER'"),
            postgresql_where=text("tier = 'OWNER'"),
        ),
    )

    principalId = Column(String, primary_key=True)
    email = Column(String, nullable=False, unique=True, index=True)
    name = Column(Text, nullable=False, default="")
    phone = Column(String, nullable=False, default="")
    country = Column(String, nullable=False, default="")
    passwordHash = Column(Text, nullable=False)
    tier = Column(String, nullable=False, index=True)
    createdBy = Column(String, nullable=True, index=True)

    canCreate = Column(Boolean, nullable=False, default=False)
    canModify = Column(Boolean, nullable=False, default=False)
    canDelete = Column(Boolean, nullable=False, default=False)
    canExport = Column(Boolean, nullable=False, default=False)
    canDownload = Column(Boolean, nullable=False, default=False)
    canView = Column(Boolean, nullable=False, default=True)

    isActive = Column(Boolean, nullable=False, default=True, index=True)
    failedAttempts = Column(Integer, nullable=False, default=0)
    # ISO-8601 UTC with milliseconds; "" means not locked.
    lockedUntil = Column(String, nullable=False, default="")
    lastLoginAt = Column(Text, nullable=False, default="")

    createdAt = Column(Text, nullable=False, default="")
    updatedAt = Column(Text, nullable=False, default="")
    updatedBy = Column(String, nullable=False, default="")


class Candidate(Base):
    __tablename__ = "candidates"
    __table_args__ = (
        UniqueConstraint("tenantId", "applicationNumber", name="uq_candidates_tenant_application"),
        Index(
            "uq_candidates_tenant_passport",
            "tenantId",
            "identityNumber",
            unique=True,
            sqlite_where=text("\"identityType\" = 'PASSPORT'"),
            postgresql_where=text("\"identityType\" = 'PASSPORT'"),
        ),
        Index("ix_candidates_tenant_created", "tenantId", "createdAt"),
    )

    candidateId = Column(String, primary_key=True)
    tenantId = Column(String, nullable=False, index=True)

    fullName = Column(Text, nullable=False)
    # YYYY-MM-DD
    dateOfBirth = Column(String, nullable=False, index=True)
    # PASSPORT | CONTROL; exactly one identity number per record.
    identityType = Column(String, nullable=False)
    identityNumber = Column(String, nullable=False, index=True)

    applicationNumber = Column(String, nullable=False, index=True)
    applicationDate = Column(String, nullable=False, default="")
    country = Column(String, nullable=False, default="")
    visaType = Column(String, nullable=False, default="")
    profession = Column(Text, nullable=False, default="")
    companyName = Column(Text, nullable=False, default="")
    visaIssueDate = Column(String, nullable=False, default="")
    visaExpiryDate = Column(String, nullable=False, default="")
    remarks = Column(Text, nullable=False, default="")

    status = Column(String, nullable=False, default="Pending", index=True)

    visaNumber = Column(String, nullable=True, unique=True)
    visaIssuedAt = Column(Text, nullable=False, default="")
    artifactPath = Column(Text, nullable=False, default="")
    renderedAt = Column(Text, nullable=False, default="")

    photoPath = Column(Text, nullable=False, default="")
    documentPath = Column(Text, nullable=False, default="")
    documentName = Column(Text, nullable=False, default="")

    isDeleted = Column(Boolean, nullable=False, default=False, index=True)
    deletedAt = Column(Text, nullable=False, default="")
    deletedBy = Column(String, nullable=False, default="")

    createdAt = Column(Text, nullable=False, default="")
    createdBy = Column(String, nullable=False, default="")
    updatedAt = Column(Text, nullable=False, default="")
    updatedBy = Column(String, nullable=False, default="")


class CandidateStatusHistory(Base):
    __tablename__ = "candidate_status_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    candidateId = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False)
    actor = Column(String, nullable=False, default="")
    at = Column(Text, nullable=False, default="")
    note = Column(Text, nullable=False, default="")


class CandidateDownloadLog(Base):
    __tablename__ = "candidate_download_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    candidateId = Column(String, nullable=False, index=True)
    at = Column(Text, nullable=False, default="")
    origin = Column(String, nullable=False, default="")
    # PUBLIC | STAFF
    channel = Column(String, nullable=False, default="PUBLIC")
    actor = Column(String, nullable=False, default="")


class AuditLog(Base):
    __tablename__ = "audit_log"

    logId = Column(String, primary_key=True)
    entityType = Column(String, nullable=False, default="", index=True)
    entityId = Column(String, nullable=False, default="", index=True)
    action = Column(String, nullable=False, default="", index=True)
    remark = Column(Text, nullable=False, default="")
    actorUserId = Column(String, nullable=False, default="", index=True)
    actorRole = Column(String, nullable=False, default="")
    at = Column(Text, nullable=False, default="", index=True)
    correlationId = Column(String, nullable=False, default="")
    metaJson = Column(Text, nullable=False, default="")
