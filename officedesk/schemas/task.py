"""
Task request/response schemas.

Assignees are always sent and returned as a list of user ids. The singular
`assigned_to_id` in TaskRead is derived from that list (earliest assignment)
for clients that only show one assignee; it is never accepted as input.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from officedesk.models.base import as_utc
from officedesk.models.task import BillingStatus, Task, TaskPriority, TaskStatus
from officedesk.models.user import UserRole

_ASSIGNEE_ALIASES = AliasChoices("assigned_to_ids", "assignedToIds")


class TaskCreate(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    priority: TaskPriority = TaskPriority.medium
    status: TaskStatus = TaskStatus.pending
    due_date: Optional[datetime] = None
    client_id: Optional[str] = None
    assigned_to_ids: List[str] = Field(default_factory=list, validation_alias=_ASSIGNEE_ALIASES)

    @field_validator("due_date")
    @classmethod
    def _due_date_utc(cls, value):
        return as_utc(value)


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[datetime] = None
    client_id: Optional[str] = None
    # None leaves assignees untouched, [] unassigns everyone
    assigned_to_ids: Optional[List[str]] = Field(default=None, validation_alias=_ASSIGNEE_ALIASES)

    @field_validator("due_date")
    @classmethod
    def _due_date_utc(cls, value):
        return as_utc(value)

    @field_validator("title", "priority")
    @classmethod
    def _not_null(cls, value):
        # the columns are NOT NULL; leave the field out to keep its value
        if value is None:
            raise ValueError("may not be null")
        return value


class TaskReassign(BaseModel):
    model_config = ConfigDict(extra="ignore")

    assigned_to_ids: List[str] = Field(validation_alias=_ASSIGNEE_ALIASES)
    note: Optional[str] = None


class TaskStatusUpdate(BaseModel):
    status: TaskStatus


class CommentCreate(BaseModel):
    content: str = Field(min_length=1)


class CommentRead(BaseModel):
    id: str
    task_id: str
    user_id: str
    user_name: Optional[str] = None
    content: str
    created_at: datetime


class AssigneeRead(BaseModel):
    id: str
    name: str
    email: str
    role: UserRole
    avatar_url: Optional[str] = None


class TaskRead(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    priority: TaskPriority
    status: TaskStatus
    due_date: Optional[datetime] = None
    client_id: Optional[str] = None
    assigned_by_id: str
    last_status_updated_by_id: Optional[str] = None
    last_status_updated_at: Optional[datetime] = None
    billing_status: BillingStatus
    billing_approved_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    assignees: List[AssigneeRead] = []
    assignee_ids: List[str] = []
    assigned_to_id: Optional[str] = None

    @classmethod
    def from_task(cls, task: Task) -> "TaskRead":
        rows = sorted(task.task_assignees, key=lambda a: (as_utc(a.created_at), a.user_id))
        assignees = [
            AssigneeRead(
                id=row.user.id,
                name=row.user.name,
                email=row.user.email,
                role=row.user.role,
                avatar_url=row.user.avatar_url,
            )
            for row in rows
            if row.user is not None
        ]
        ids = [row.user_id for row in rows]
        data = task.model_dump()
        return cls(
            **data,
            assignees=assignees,
            assignee_ids=ids,
            assigned_to_id=ids[0] if ids else None,
        )
