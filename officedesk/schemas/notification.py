from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel


class NotificationRead(BaseModel):
    id: str
    title: str
    content: str
    is_read: bool
    task_id: Optional[str] = None
    sent_by_id: str
    sent_by_name: Optional[str] = None
    created_at: datetime


class NotificationPage(BaseModel):
    data: List[NotificationRead]
    total: int
    page: int
    limit: int
    pages: int
    unread_count: int


class NotificationBulkAction(BaseModel):
    """Either a list of ids or all=True."""
    ids: List[str] = []
    all: bool = False
