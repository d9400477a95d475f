from sqlmodel import SQLModel, Field
from sqlalchemy import UniqueConstraint, Text, Column
from typing import Optional
from datetime import datetime, timezone
from enum import Enum


class AccessLevel(str, Enum):
    LIMITED = "limited"
    FULL = "full"


class FullAccessStatus(str, Enum):
    NONE = "none"
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Connection(SQLModel, table=True):
    """
    One row per (patient, provider) pair.

    access_level / full_access_status transitions:
        request_full_access  -> status pending (level unchanged)
        approve_full_access  -> full / approved
        deny_full_access     -> limited / denied
        revoke_access        -> limited / none
    """
    __tablename__ = "connections"
    __table_args__ = (
        UniqueConstraint("patient_id", "provider_id", name="uq_connections_patient_provider"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    patient_id: int = Field(foreign_key="users.id", index=True)
    provider_id: int = Field(foreign_key="users.id", index=True)

    access_level: AccessLevel = Field(default=AccessLevel.LIMITED)
    full_access_status: FullAccessStatus = Field(default=FullAccessStatus.NONE)
    full_access_status_updated_at: Optional[datetime] = None

    initiated_by: Optional[int] = Field(default=None, foreign_key="users.id")
    initiated_at: datetime = Field(default_factory=_now)
    notes: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    patient_notified: bool = Field(default=False)
    patient_notified_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    last_accessed_at: Optional[datetime] = None

    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    def _set(self, access_level: Optional[AccessLevel], status: FullAccessStatus):
        if access_level is not None:
            self.access_level = access_level
        self.full_access_status = status
        self.full_access_status_updated_at = _now()
        self.updated_at = self.full_access_status_updated_at

    def request_full_access(self):
        self._set(None, FullAccessStatus.PENDING)

    def approve_full_access(self):
        self._set(AccessLevel.FULL, FullAccessStatus.APPROVED)

    def deny_full_access(self):
        self._set(AccessLevel.LIMITED, FullAccessStatus.DENIED)

    def revoke_access(self):
        self._set(AccessLevel.LIMITED, FullAccessStatus.NONE)

    def mark_patient_notified(self):
        self.patient_notified = True
        self.patient_notified_at = _now()

    @property
    def can_request_full_access(self) -> bool:
        return self.access_level == AccessLevel.LIMITED and self.full_access_status != FullAccessStatus.PENDING
