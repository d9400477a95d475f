from sqlmodel import SQLModel, Field, JSON, Column
from sqlalchemy import Text
from typing import Optional, Dict
from datetime import datetime, timezone
from enum import Enum


class NotificationStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class Notification(SQLModel, table=True):
    """Outgoing email, stored before it is queued (outbox row)."""
    __tablename__ = "notifications"

    id: Optional[int] = Field(default=None, primary_key=True)
    recipient: str = Field(max_length=320)
    subject: str = Field(max_length=255)
    body: str = Field(sa_column=Column(Text, nullable=False))
    template: str = Field(max_length=64, index=True)
    template_data: Dict = Field(default_factory=dict, sa_column=Column(JSON))

    status: NotificationStatus = Field(default=NotificationStatus.PENDING, index=True)
    attempts: int = Field(default=0)
    max_attempts: int = Field(default=3)
    last_attempt_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    error: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))

    user_id: Optional[int] = Field(default=None, foreign_key="users.id", index=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def can_retry(self) -> bool:
        return self.attempts < self.max_attempts
