"""
Task Endpoints Module

CRUD, reassignment, status, billing approval and comments for tasks. Tasks are
assigned to users through the TaskAssignee junction table, which is only ever
written through officedesk.services.task_assignment.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends
from sqlalchemy import or_
from sqlmodel import Session, select, col

from officedesk.api import deps
from officedesk.core.cache import DashboardCache
from officedesk.core.errors import ValidationError
from officedesk.core.permissions import Action, require
from officedesk.db.session import get_db
from officedesk.models.base import utcnow
from officedesk.models.client import Client
from officedesk.models.notification import Notification
from officedesk.models.task import BillingStatus, Task, TaskAssignee, TaskComment, TaskPriority, TaskStatus
from officedesk.models.user import User
from officedesk.schemas.task import (
    CommentCreate,
    CommentRead,
    TaskCreate,
    TaskRead,
    TaskStatusUpdate,
    TaskUpdate,
)
from officedesk.services import task_events
from officedesk.services.activity import log_activity
from officedesk.services.client_history import record_task_completion
from officedesk.services.dashboard import invalidate_task_dashboards
from officedesk.services.notifications import NotificationDispatcher
from officedesk.services.reassignment import ensure_users_exist, get_task_or_404, reassign_task
from officedesk.services.task_assignment import assignment_transaction, sync_task_assignments

logger = logging.getLogger(__name__)

router = APIRouter()


def _ensure_client_exists(db: Session, client_id: Optional[str]) -> None:
    if client_id and db.get(Client, client_id) is None:
        raise ValidationError("Selected client does not exist")


@router.get("", response_model=List[TaskRead])
def list_tasks(
    skip: int = 0,
    limit: int = 100,
    status: Optional[TaskStatus] = None,
    priority: Optional[TaskPriority] = None,
    client_id: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_user),
):
    """
    Retrieve a paginated list of tasks.

    Admins see all tasks. Everyone else sees the tasks they created or are
    assigned to.
    """
    statement = select(Task)
    if not current_user.is_admin:
        assigned_task_ids = select(TaskAssignee.task_id).where(TaskAssignee.user_id == current_user.id)
        statement = statement.where(
            or_(Task.assigned_by_id == current_user.id, col(Task.id).in_(assigned_task_ids))
        )

    if status:
        statement = statement.where(Task.status == status)
    if priority:
        statement = statement.where(Task.priority == priority)
    if client_id:
        statement = statement.where(Task.client_id == client_id)

    statement = statement.order_by(col(Task.created_at).desc()).offset(skip).limit(limit)
    return [TaskRead.from_task(task) for task in db.exec(statement).all()]


@router.post("", response_model=TaskRead, status_code=201)
def create_task(
    task_in: TaskCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.PermissionChecker(Action.CREATE_TASK)),
    dispatcher: NotificationDispatcher = Depends(deps.get_dispatcher),
    cache: DashboardCache = Depends(deps.get_cache),
):
    """
    Create a task together with its initial assignees.

    Every assignee must exist; nothing is written otherwise. Assignees (other
    than the creator) and the other admins are notified afterwards.
    """
    ensure_users_exist(db, task_in.assigned_to_ids)
    _ensure_client_exists(db, task_in.client_id)

    task = Task(
        **task_in.model_dump(exclude={"assigned_to_ids"}),
        assigned_by_id=current_user.id,
    )
    with assignment_transaction(db):
        db.add(task)
        db.flush()
        diff = sync_task_assignments(db, task.id, task_in.assigned_to_ids).diff
    db.refresh(task)

    logger.info("Task %s created by %s with %d assignee(s)", task.id, current_user.id, len(diff.added))
    log_activity(db, "task", "created", task.title, current_user.id,
                 {"taskId": task.id, "assigneeIds": diff.added})
    task_events.notify_task_assigned(dispatcher, task, current_user, diff.added)
    task_events.notify_admins_task_created(dispatcher, task, current_user)
    invalidate_task_dashboards(db, cache, diff.added + [current_user.id])

    db.refresh(task)
    return TaskRead.from_task(task)


@router.get("/{task_id}", response_model=TaskRead)
def read_task(
    task_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_user),
):
    task = get_task_or_404(db, task_id)
    require(current_user, Action.VIEW_TASK, task, detail="Not authorized to view this task")
    return TaskRead.from_task(task)


@router.patch("/{task_id}", response_model=TaskRead)
def update_task(
    task_id: str,
    task_update: TaskUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_user),
    dispatcher: NotificationDispatcher = Depends(deps.get_dispatcher),
    cache: DashboardCache = Depends(deps.get_cache),
):
    """
    Update task fields and, when `assigned_to_ids` is given, its assignees.

    Admins can update any task; partners only the tasks they created.
    """
    task = get_task_or_404(db, task_id)
    require(current_user, Action.EDIT_TASK, task, detail="Not authorized to update this task")

    update_data = task_update.model_dump(exclude_unset=True)
    assignee_ids = update_data.pop("assigned_to_ids", None)
    if assignee_ids is not None:
        ensure_users_exist(db, assignee_ids)
    if "client_id" in update_data:
        _ensure_client_exists(db, update_data["client_id"])

    previous_ids = list(task.assignee_ids)
    with assignment_transaction(db):
        for key, value in update_data.items():
            setattr(task, key, value)
        task.updated_at = utcnow()
        db.add(task)
        diff = None
        if assignee_ids is not None:
            diff = sync_task_assignments(db, task.id, assignee_ids).diff
    db.refresh(task)

    log_activity(db, "task", "updated", task.title, current_user.id,
                 {"taskId": task.id, "fields": sorted(update_data)})
    if diff is not None:
        task_events.notify_task_assigned(dispatcher, task, current_user, diff.added)
        task_events.notify_task_unassigned(dispatcher, task, current_user, diff.removed)
    task_events.notify_admins_task_updated(dispatcher, task, current_user)
    invalidate_task_dashboards(db, cache, previous_ids + task.assignee_ids + [task.assigned_by_id])

    db.refresh(task)
    return TaskRead.from_task(task)


@router.delete("/{task_id}")
def delete_task(
    task_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_user),
    cache: DashboardCache = Depends(deps.get_cache),
):
    """
    Delete a task together with its assignments, comments and notifications.

    Admins can delete any task; partners only the tasks they created.
    """
    task = get_task_or_404(db, task_id)
    require(current_user, Action.DELETE_TASK, task, detail="Not authorized to delete this task")

    title = task.title
    touched = list(task.assignee_ids) + [task.assigned_by_id]
    with assignment_transaction(db):
        sync_task_assignments(db, task.id, [])
        for model, column in ((TaskComment, TaskComment.task_id), (Notification, Notification.task_id)):
            for row in db.exec(select(model).where(column == task.id)).all():
                db.delete(row)
        db.delete(task)

    logger.info("Task %s deleted by %s", task_id, current_user.id)
    log_activity(db, "task", "deleted", title, current_user.id, {"taskId": task_id})
    invalidate_task_dashboards(db, cache, touched)
    return {"status": "success", "detail": "Task deleted"}


@router.patch("/{task_id}/reassign", response_model=TaskRead)
def reassign(
    task_id: str,
    payload: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_user),
    dispatcher: NotificationDispatcher = Depends(deps.get_dispatcher),
    cache: DashboardCache = Depends(deps.get_cache),
):
    """
    Replace the task's assignee set.

    Body: {"assignedToIds": [...], "note": "..."}. The body is validated after
    the permission check, so callers without rights get 403 whatever they send.
    """
    result = reassign_task(db, task_id, current_user, payload, dispatcher, cache)
    return TaskRead.from_task(result.task)


@router.patch("/{task_id}/status")
def update_task_status(
    task_id: str,
    status_in: TaskStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_user),
    dispatcher: NotificationDispatcher = Depends(deps.get_dispatcher),
    cache: DashboardCache = Depends(deps.get_cache),
):
    """
    Change a task's status.

    Moving a task into "completed" flags it for billing approval
    (billing_status = pending_billing). The creator is notified unless they
    made the change, and so are the other admins.
    """
    task = get_task_or_404(db, task_id)
    require(current_user, Action.UPDATE_TASK_STATUS, task, detail="Not authorized to update this task")

    old_status = str(TaskStatus(task.status).value)
    new_status = status_in.status
    if new_status == TaskStatus.completed and old_status != TaskStatus.completed.value:
        task.billing_status = BillingStatus.pending_billing

    now = utcnow()
    task.status = new_status
    task.last_status_updated_by_id = current_user.id
    task.last_status_updated_at = now
    task.updated_at = now
    db.add(task)
    db.commit()
    db.refresh(task)

    log_activity(db, "task", "status_changed", task.title, current_user.id,
                 {"taskId": task.id, "oldStatus": old_status, "newStatus": new_status.value})
    task_events.notify_status_changed(dispatcher, task, current_user, old_status, new_status.value)
    task_events.notify_admins_task_updated(dispatcher, task, current_user)
    invalidate_task_dashboards(db, cache, task.assignee_ids + [task.assigned_by_id])

    db.refresh(task)
    return {
        "message": f"Task status updated to {new_status.value}",
        "status": new_status.value,
        "billing_status": BillingStatus(task.billing_status).value,
        "last_status_updated_by": current_user.name,
    }


@router.post("/{task_id}/billing-approve", response_model=TaskRead)
def approve_billing(
    task_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.PermissionChecker(Action.APPROVE_BILLING)),
    cache: DashboardCache = Depends(deps.get_cache),
):
    """Mark a completed task as billed and record it in the client's history."""
    task = get_task_or_404(db, task_id)
    if task.billing_status != BillingStatus.pending_billing:
        raise ValidationError("Task is not pending billing approval")

    task.billing_status = BillingStatus.billed
    task.billing_approved_at = utcnow()
    task.updated_at = task.billing_approved_at
    db.add(task)
    record_task_completion(db, task, current_user)
    db.commit()
    db.refresh(task)

    log_activity(db, "task", "billing_approved", task.title, current_user.id,
                 {"taskId": task.id, "clientId": task.client_id})
    invalidate_task_dashboards(db, cache, [current_user.id, task.assigned_by_id])

    db.refresh(task)
    return TaskRead.from_task(task)


@router.get("/{task_id}/comments", response_model=List[CommentRead])
def list_comments(
    task_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_user),
):
    task = get_task_or_404(db, task_id)
    require(current_user, Action.VIEW_TASK, task, detail="Not authorized to view this task")

    rows = db.exec(
        select(TaskComment, User.name)
        .join(User, User.id == TaskComment.user_id)
        .where(TaskComment.task_id == task.id)
        .order_by(col(TaskComment.created_at))
    ).all()
    return [CommentRead(**comment.model_dump(), user_name=name) for comment, name in rows]


@router.post("/{task_id}/comments", response_model=CommentRead, status_code=201)
def add_comment(
    task_id: str,
    comment_in: CommentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_user),
    dispatcher: NotificationDispatcher = Depends(deps.get_dispatcher),
):
    task = get_task_or_404(db, task_id)
    require(current_user, Action.COMMENT_TASK, task, detail="Not authorized to comment on this task")

    comment = TaskComment(task_id=task.id, user_id=current_user.id, content=comment_in.content)
    db.add(comment)
    db.commit()
    db.refresh(comment)
    result = CommentRead(**comment.model_dump(), user_name=current_user.name)

    task_events.notify_comment_added(dispatcher, task, current_user, comment_in.content)
    return result
