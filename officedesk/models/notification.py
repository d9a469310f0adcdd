"""
Notification Model Module

In-app notifications sent from one user to another. Content may embed a
"[taskId: <id>]" token that links the notification back to a task.
"""
from typing import Optional
from sqlmodel import SQLModel, Field
import uuid
from datetime import datetime

from officedesk.models.base import UtcDateTime, utcnow


class Notification(SQLModel, table=True):
    __tablename__ = "notifications"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)

    title: str = Field(nullable=False)
    content: str = Field(nullable=False)
    is_read: bool = False

    task_id: Optional[str] = Field(default=None, foreign_key="tasks.id")
    sent_by_id: str = Field(foreign_key="users.id")
    sent_to_id: str = Field(foreign_key="users.id", index=True)

    created_at: datetime = Field(default_factory=utcnow, sa_type=UtcDateTime, index=True)
