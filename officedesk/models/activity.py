"""
Activity Model Module

Append-only audit trail of mutating actions. Rows are written alongside the
action they describe and are never updated.
"""
from typing import Any, Dict, Optional
from sqlmodel import SQLModel, Field, JSON, Column
import uuid
from datetime import datetime

from officedesk.models.base import UtcDateTime, utcnow


class Activity(SQLModel, table=True):
    """
    Attributes:
        type: Category of the target, e.g. "task", "client", "user"
        action: What happened, e.g. "created", "reassigned", "status_changed"
        target: Human readable description of the target (usually its title)
        details: Structured payload stored as JSON
        user_id: The acting user
    """
    __tablename__ = "activities"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)

    type: str = Field(nullable=False, index=True)
    action: str = Field(nullable=False)
    target: str = Field(nullable=False)
    details: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))

    user_id: str = Field(foreign_key="users.id", index=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UtcDateTime, index=True)
