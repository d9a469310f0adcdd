"""
Client Model Module

This module defines the Client model representing the office's clients.
All staff can view clients, but only administrators can create, update or
delete them.
"""
from typing import Any, Dict, Optional
from sqlmodel import SQLModel, Field, JSON, Column
import uuid
from datetime import datetime

from officedesk.models.base import UtcDateTime, utcnow


class ClientBase(SQLModel):
    """
    Attributes:
        contact_person: Name of the person the office deals with (required)
        company_name: Company or organisation name
        email: Contact e-mail address
        phone: Contact phone number
        notes: Free-form notes
        is_guest: Guest clients only have access until access_expiry
        access_expiry: When a guest client's access ends
    """
    contact_person: str = Field(nullable=False)
    company_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None
    is_guest: bool = False
    access_expiry: Optional[datetime] = Field(default=None, sa_type=UtcDateTime)


class Client(ClientBase, table=True):
    __tablename__ = "clients"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    created_by_id: Optional[str] = Field(default=None, foreign_key="users.id")
    created_at: datetime = Field(default_factory=utcnow, sa_type=UtcDateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UtcDateTime)


class ClientHistoryType:
    GENERAL = "general"
    TASK_COMPLETED = "task_completed"


class ClientHistory(SQLModel, table=True):
    """
    Timeline entry on a client record.

    "general" entries are notes added by administrators. "task_completed"
    entries are written when billing of one of the client's tasks is approved
    and keep a copy of the task, so the history survives the task itself.
    """
    __tablename__ = "client_history"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    client_id: str = Field(foreign_key="clients.id", index=True)
    type: str = Field(default=ClientHistoryType.GENERAL, nullable=False, index=True)
    content: str = Field(nullable=False)
    pinned: bool = False
    created_by_id: str = Field(foreign_key="users.id")

    task_id: Optional[str] = None
    task_title: Optional[str] = None
    task_description: Optional[str] = None
    task_completed_date: Optional[datetime] = Field(default=None, sa_type=UtcDateTime)
    billing_details: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))

    created_at: datetime = Field(default_factory=utcnow, sa_type=UtcDateTime)
