"""
Client History

Timeline entries on client records, the task snapshot written when billing of
a client's task is approved, and removal of guest clients whose access has
expired.
"""
import logging
from datetime import datetime
from typing import List, Optional

from sqlmodel import Session, select, col

from officedesk.models.base import utcnow
from officedesk.models.client import Client, ClientHistory, ClientHistoryType
from officedesk.models.task import Task, TaskPriority
from officedesk.models.user import User
from officedesk.services.activity import log_activity

logger = logging.getLogger(__name__)


def _person(db: Session, user_id: Optional[str]) -> Optional[dict]:
    user = db.get(User, user_id) if user_id else None
    if user is None:
        return None
    return {"id": user.id, "name": user.name}


def record_task_completion(db: Session, task: Task, approved_by: User) -> Optional[ClientHistory]:
    """
    Add a "task_completed" entry to the task's client. Nothing is written for
    tasks without a client. The caller commits, so the entry lands together
    with the billing change.
    """
    if not task.client_id:
        return None

    approved_at = task.billing_approved_at or utcnow()
    assignees = [p for p in (_person(db, uid) for uid in task.assignee_ids) if p]
    entry = ClientHistory(
        client_id=task.client_id,
        type=ClientHistoryType.TASK_COMPLETED,
        content=f'Task "{task.title}" was completed and billing approved.',
        created_by_id=approved_by.id,
        task_id=task.id,
        task_title=task.title,
        task_description=task.description,
        task_completed_date=task.last_status_updated_at or approved_at,
        billing_details={
            "billedBy": approved_by.id,
            "billedByName": approved_by.name,
            "billedAt": approved_at.isoformat(),
            "priority": TaskPriority(task.priority).value,
            "dueDate": task.due_date.isoformat() if task.due_date else None,
            "assignedBy": _person(db, task.assigned_by_id),
            "assignees": assignees,
        },
    )
    db.add(entry)
    return entry


def list_general_entries(db: Session, client_id: str) -> List[ClientHistory]:
    """Notes on a client, pinned first, newest first."""
    statement = (
        select(ClientHistory)
        .where(ClientHistory.client_id == client_id, ClientHistory.type == ClientHistoryType.GENERAL)
        .order_by(col(ClientHistory.pinned).desc(), col(ClientHistory.created_at).desc())
    )
    return list(db.exec(statement).all())


def list_task_entries(db: Session, client_id: str) -> List[ClientHistory]:
    """Completed-task snapshots, most recently completed first."""
    statement = (
        select(ClientHistory)
        .where(ClientHistory.client_id == client_id, col(ClientHistory.task_id).is_not(None))
        .order_by(col(ClientHistory.task_completed_date).desc(), col(ClientHistory.created_at).desc())
    )
    return list(db.exec(statement).all())


def detach_client(db: Session, client_id: str) -> None:
    """Unlink the client's tasks and drop its history. Does not commit."""
    for task in db.exec(select(Task).where(Task.client_id == client_id)).all():
        task.client_id = None
        db.add(task)
    for entry in db.exec(select(ClientHistory).where(ClientHistory.client_id == client_id)).all():
        db.delete(entry)


def remove_expired_guest_clients(db: Session, now: Optional[datetime] = None) -> List[dict]:
    """
    Delete every guest client whose access_expiry has passed.

    Each removal is logged as an "auto_deleted" client activity on behalf of
    the user who created the client (when that user still exists). Returns
    one summary per removed client.
    """
    now = now or utcnow()
    expired = db.exec(
        select(Client).where(
            Client.is_guest == True,  # noqa: E712
            col(Client.access_expiry).is_not(None),
            col(Client.access_expiry) < now,
        )
    ).all()

    results = []
    for client in expired:
        summary = {
            "clientId": client.id,
            "name": client.contact_person,
            "expiredOn": client.access_expiry,
        }
        creator_id = client.created_by_id
        details = {
            "clientId": client.id,
            "reason": "access_expired",
            "expiredOn": client.access_expiry,
            "clientEmail": client.email,
            "clientPhone": client.phone,
        }
        name = client.contact_person
        try:
            detach_client(db, client.id)
            db.delete(client)
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("Failed to remove expired guest client %s", summary["clientId"])
            continue

        if creator_id:
            log_activity(db, "client", "auto_deleted", f"Guest client: {name} (expired)", creator_id, details)
        results.append(summary)

    if results:
        logger.info("Removed %d expired guest clients", len(results))
    return results
