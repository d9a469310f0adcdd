"""
Task Reassignment Workflow

Authorise, validate, replace a task's assignee set in one transaction, then
fan out notifications and the activity record. The fan-out runs after the
commit and cannot undo or fail the reassignment.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from pydantic import ValidationError as PydanticValidationError
from sqlmodel import Session, select, col

from officedesk.core.cache import DashboardCache
from officedesk.core.errors import NotFoundError, ValidationError
from officedesk.core.permissions import Action, require
from officedesk.models.task import Task
from officedesk.models.user import User
from officedesk.schemas.task import TaskReassign
from officedesk.services import task_events
from officedesk.services.activity import log_activity
from officedesk.services.dashboard import invalidate_task_dashboards
from officedesk.services.notifications import NotificationDispatcher
from officedesk.services.task_assignment import (
    AssignmentDiff,
    assignment_transaction,
    sync_task_assignments,
    unique_ids,
)

logger = logging.getLogger(__name__)

MISSING_USERS_DETAIL = "One or more selected users do not exist"


@dataclass
class ReassignResult:
    task: Task
    previous_ids: List[str]
    diff: AssignmentDiff = field(default_factory=AssignmentDiff)


def get_task_or_404(db: Session, task_id: str) -> Task:
    task = db.get(Task, task_id)
    if task is None:
        raise NotFoundError("Task not found")
    return task


def ensure_users_exist(db: Session, user_ids: Sequence[str]) -> List[User]:
    """Resolve every id or raise ValidationError before anything is written."""
    wanted = unique_ids(user_ids)
    if not wanted:
        return []
    found = db.exec(select(User).where(col(User.id).in_(wanted))).all()
    if len(found) != len(wanted):
        raise ValidationError(MISSING_USERS_DETAIL)
    return list(found)


def parse_reassign_payload(payload: Any) -> TaskReassign:
    if isinstance(payload, TaskReassign):
        return payload
    try:
        return TaskReassign.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError(e.errors(include_url=False)) from e


def reassign_task(
    db: Session,
    task_id: str,
    actor: User,
    payload: Any,
    dispatcher: NotificationDispatcher,
    cache: Optional[DashboardCache] = None,
) -> ReassignResult:
    task = get_task_or_404(db, task_id)
    previous_ids = list(task.assignee_ids)

    # judged against the assignees as they were when the request arrived
    require(
        actor, Action.REASSIGN_TASK, task,
        detail="You don't have permission to reassign this task",
        assignee_ids=previous_ids,
    )

    data = parse_reassign_payload(payload)
    ensure_users_exist(db, data.assigned_to_ids)

    with assignment_transaction(db):
        diff = sync_task_assignments(db, task.id, data.assigned_to_ids).diff
    db.refresh(task)

    # added/removed come from the diff computed inside the transaction, not
    # from previous_ids, so concurrent reassignments cannot skew who is notified
    logger.info(
        "Task %s reassigned by %s: added=%s removed=%s",
        task.id, actor.id, diff.added, diff.removed,
    )

    log_activity(
        db,
        "task",
        "reassigned",
        task.title,
        actor.id,
        {
            "taskId": task.id,
            "previousAssigneeIds": previous_ids,
            "newAssigneeIds": unique_ids(data.assigned_to_ids),
            "note": data.note,
        },
    )

    task_events.notify_task_assigned(dispatcher, task, actor, diff.added, note=data.note)
    task_events.notify_task_unassigned(dispatcher, task, actor, diff.removed)

    if cache is not None:
        invalidate_task_dashboards(db, cache, previous_ids + diff.added + [task.assigned_by_id])

    db.refresh(task)
    return ReassignResult(task=task, previous_ids=previous_ids, diff=diff)
