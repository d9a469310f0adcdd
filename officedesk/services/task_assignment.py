"""
Task Assignment Synchronisation

Reconciles the task_assignees rows of one task with a desired set of user ids
using the fewest inserts and deletes. Only junction rows are touched; no task
fields, notifications or activity records are written here.
"""
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional, Sequence, Set

from sqlmodel import Session, select, col

from officedesk.models.task import Task, TaskAssignee

logger = logging.getLogger(__name__)


@dataclass
class AssignmentDiff:
    """User ids inserted and removed by one synchronisation."""
    added: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed)


@dataclass
class AssignmentSync:
    """Result of `sync_task_assignments`."""
    task: Optional[Task]
    diff: AssignmentDiff

    @property
    def assignee_ids(self) -> List[str]:
        return self.task.assignee_ids if self.task is not None else []


def unique_ids(user_ids: Iterable[str]) -> List[str]:
    """De-duplicate while keeping first-seen order."""
    return list(dict.fromkeys(user_ids))


def current_assignee_ids(db: Session, task_id: str) -> Set[str]:
    rows = db.exec(select(TaskAssignee.user_id).where(TaskAssignee.task_id == task_id)).all()
    return set(rows)


def apply_assignment_diff(db: Session, task_id: str, user_ids: Sequence[str]) -> AssignmentDiff:
    """
    Write the minimal set of junction row changes so that the task's assignees
    equal `user_ids`. Flushes but does not commit.
    """
    desired = unique_ids(user_ids)
    current = current_assignee_ids(db, task_id)

    diff = AssignmentDiff(
        added=[uid for uid in desired if uid not in current],
        removed=sorted(current - set(desired)),
    )

    if diff.removed:
        stale = db.exec(
            select(TaskAssignee).where(
                TaskAssignee.task_id == task_id,
                col(TaskAssignee.user_id).in_(diff.removed),
            )
        ).all()
        for row in stale:
            db.delete(row)
        db.flush()

    if diff.added:
        for user_id in diff.added:
            db.add(TaskAssignee(task_id=task_id, user_id=user_id))
        db.flush()

    if diff.changed:
        logger.debug("Task %s assignees: +%s -%s", task_id, diff.added, diff.removed)
    return diff


def sync_task_assignments(db: Session, task_id: str, user_ids: Sequence[str]) -> AssignmentSync:
    """
    Make the task's assignee set exactly `user_ids` (duplicates ignored, an
    empty list unassigns everyone). Returns the task, with its assignees
    re-read on next access, together with the diff that was written.

    The caller must have verified that the task and every user exist, and owns
    the transaction boundary (see `assignment_transaction`).
    """
    diff = apply_assignment_diff(db, task_id, user_ids)

    task = db.get(Task, task_id)
    if task is not None:
        # drop any stale relationship collection loaded before the writes
        db.expire(task, ["task_assignees"])
    return AssignmentSync(task=task, diff=diff)


def unassign_user_everywhere(db: Session, user_id: str) -> List[str]:
    """Remove the user from every task they are assigned to; returns those task ids."""
    task_ids = db.exec(select(TaskAssignee.task_id).where(TaskAssignee.user_id == user_id)).all()
    for task_id in task_ids:
        remaining = current_assignee_ids(db, task_id) - {user_id}
        sync_task_assignments(db, task_id, sorted(remaining))
    return list(task_ids)


@contextmanager
def assignment_transaction(db: Session) -> Iterator[Session]:
    """
    Commit everything done inside the block, or roll all of it back and
    re-raise if any step fails.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
