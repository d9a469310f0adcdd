"""
Task Model Module

This module defines the Task model, the TaskAssignee junction table for the
many-to-many task assignment relationship, and task comments. The set of
TaskAssignee rows for a task is the only record of who the task is assigned to.
"""
from enum import Enum
from typing import Optional, List
from sqlmodel import SQLModel, Field, Relationship, AutoString
from datetime import datetime
import uuid

from officedesk.models.base import UtcDateTime, utcnow
from officedesk.models.user import User


class TaskPriority(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


class TaskStatus(str, Enum):
    pending = "pending"
    in_progress = "in_progress"
    review = "review"
    completed = "completed"
    cancelled = "cancelled"


class BillingStatus(str, Enum):
    not_billed = "not_billed"
    pending_billing = "pending_billing"
    billed = "billed"


class TaskAssignee(SQLModel, table=True):
    """
    Junction table for many-to-many relationship between Tasks and Users.

    The composite primary key (task_id, user_id) keeps each user at most once
    per task.

    Attributes:
        task_id: Foreign key to the task being assigned
        user_id: Foreign key to the user being assigned the task
        created_at: When the assignment was made; used to derive the primary assignee
    """
    __tablename__ = "task_assignees"

    task_id: str = Field(foreign_key="tasks.id", primary_key=True)
    user_id: str = Field(foreign_key="users.id", primary_key=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UtcDateTime)

    user: Optional[User] = Relationship()


class TaskBase(SQLModel):
    """
    Base Task model containing common fields.
    """
    title: str = Field(nullable=False)
    description: Optional[str] = None

    priority: TaskPriority = Field(default=TaskPriority.medium, sa_type=AutoString)
    status: TaskStatus = Field(default=TaskStatus.pending, sa_type=AutoString)
    due_date: Optional[datetime] = Field(default=None, sa_type=UtcDateTime)

    client_id: Optional[str] = Field(default=None, foreign_key="clients.id")


class Task(TaskBase, table=True):
    """
    Task table model.

    assigned_by_id is the task's creator. Ownership of a task moves to the
    deleting admin when its creator's account is removed.
    """
    __tablename__ = "tasks"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)

    assigned_by_id: str = Field(foreign_key="users.id", nullable=False, index=True)

    last_status_updated_by_id: Optional[str] = Field(default=None, foreign_key="users.id")
    last_status_updated_at: Optional[datetime] = Field(default=None, sa_type=UtcDateTime)

    billing_status: BillingStatus = Field(default=BillingStatus.not_billed, sa_type=AutoString)
    billing_approved_at: Optional[datetime] = Field(default=None, sa_type=UtcDateTime)

    created_at: datetime = Field(default_factory=utcnow, sa_type=UtcDateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UtcDateTime)

    # Relationship to access assignees through the junction table
    task_assignees: List["TaskAssignee"] = Relationship()

    @property
    def assignee_ids(self) -> List[str]:
        return [a.user_id for a in self.task_assignees]


class TaskComment(SQLModel, table=True):
    __tablename__ = "task_comments"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    task_id: str = Field(foreign_key="tasks.id", index=True)
    user_id: str = Field(foreign_key="users.id")
    content: str = Field(nullable=False)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UtcDateTime)
