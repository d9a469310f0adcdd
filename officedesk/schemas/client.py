from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field, field_validator

from officedesk.models.base import as_utc
from officedesk.models.client import ClientBase


class ClientCreate(ClientBase):
    @field_validator("access_expiry")
    @classmethod
    def _expiry_utc(cls, value):
        return as_utc(value)


class ClientUpdate(BaseModel):
    contact_person: Optional[str] = None
    company_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None
    is_guest: Optional[bool] = None
    access_expiry: Optional[datetime] = None

    @field_validator("access_expiry")
    @classmethod
    def _expiry_utc(cls, value):
        return as_utc(value)

    @field_validator("contact_person", "is_guest")
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value


class ClientRead(ClientBase):
    id: str
    created_by_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ClientHistoryCreate(BaseModel):
    description: str = Field(min_length=1)


class ClientHistoryPin(BaseModel):
    pinned: bool


class ClientHistoryRead(BaseModel):
    id: str
    client_id: str
    type: str
    content: str
    pinned: bool
    created_by_id: str
    created_by_name: Optional[str] = None
    task_id: Optional[str] = None
    task_title: Optional[str] = None
    task_description: Optional[str] = None
    task_completed_date: Optional[datetime] = None
    billing_details: Optional[Dict[str, Any]] = None
    created_at: datetime
