"""
Dashboard aggregates per role, cached per user through DashboardCache.
"""
import logging
from datetime import timedelta
from typing import Any, Dict, Iterable

from sqlalchemy import func
from sqlmodel import Session, select, col

from officedesk.core.cache import DashboardCache
from officedesk.models.base import as_utc, utcnow
from officedesk.models.task import BillingStatus, Task, TaskAssignee, TaskStatus
from officedesk.models.user import User, UserRole

logger = logging.getLogger(__name__)

UPCOMING_DAYS = 7
OPEN_STATUSES = (TaskStatus.pending, TaskStatus.in_progress, TaskStatus.review)


def _status_counts(db: Session, condition=None) -> Dict[str, int]:
    statement = select(Task.status, func.count(Task.id)).group_by(Task.status)
    if condition is not None:
        statement = statement.where(condition)
    counts = {status.value: 0 for status in TaskStatus}
    for status, total in db.exec(statement).all():
        counts[TaskStatus(status).value] = total
    return counts


def _assigned_to(user_id: str):
    return col(Task.id).in_(select(TaskAssignee.task_id).where(TaskAssignee.user_id == user_id))


def admin_dashboard(db: Session) -> Dict[str, Any]:
    by_role = {role.value: 0 for role in UserRole}
    for role, total in db.exec(
        select(User.role, func.count(User.id)).where(User.is_active == True).group_by(User.role)  # noqa: E712
    ).all():
        by_role[UserRole(role).value] = total

    pending_billing = db.exec(
        select(func.count(Task.id)).where(Task.billing_status == BillingStatus.pending_billing)
    ).one()

    return {
        "tasks_by_status": _status_counts(db),
        "pending_billing": pending_billing,
        "users_by_role": by_role,
    }


def partner_dashboard(db: Session, user: User) -> Dict[str, Any]:
    return {
        "created_by_status": _status_counts(db, Task.assigned_by_id == user.id),
        "assigned_by_status": _status_counts(db, _assigned_to(user.id)),
    }


def junior_dashboard(db: Session, user: User) -> Dict[str, Any]:
    now = utcnow()
    upcoming = db.exec(
        select(Task)
        .where(
            _assigned_to(user.id),
            col(Task.status).in_([s.value for s in OPEN_STATUSES]),
            col(Task.due_date).is_not(None),
            col(Task.due_date) <= now + timedelta(days=UPCOMING_DAYS),
        )
        .order_by(col(Task.due_date))
    ).all()
    return {
        "assigned_by_status": _status_counts(db, _assigned_to(user.id)),
        "upcoming_deadlines": [
            {"id": t.id, "title": t.title, "due_date": t.due_date, "overdue": as_utc(t.due_date) < now}
            for t in upcoming
        ],
    }


def get_dashboard(db: Session, user: User, cache: DashboardCache) -> Dict[str, Any]:
    role = UserRole(user.role)
    kind = role.value.lower()

    cached = cache.get(user.id, kind)
    if cached is not None:
        return cached

    logger.debug("Dashboard cache miss for user %s (%s)", user.id, kind)
    if role == UserRole.ADMIN:
        data = admin_dashboard(db)
    elif role == UserRole.PARTNER:
        data = partner_dashboard(db, user)
    else:
        data = junior_dashboard(db, user)
    data["role"] = role.value

    cache.set(user.id, kind, data)
    # round-trip through the cache's JSON encoding so hits and misses look alike
    return cache.get(user.id, kind) or data


def invalidate_task_dashboards(db: Session, cache: DashboardCache, user_ids: Iterable[str]) -> None:
    """Drop cached dashboards of the given users and of every admin."""
    admin_ids = db.exec(select(User.id).where(User.role == UserRole.ADMIN)).all()
    cache.invalidate_users(list(user_ids) + list(admin_ids))
