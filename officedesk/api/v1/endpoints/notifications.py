"""
Notification Endpoints Module

Every endpoint acts on the caller's own notifications only.
"""
import math

from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlmodel import Session, select, col

from officedesk.api import deps
from officedesk.core.config import settings
from officedesk.core.errors import NotFoundError
from officedesk.db.session import get_db
from officedesk.models.notification import Notification
from officedesk.models.user import User
from officedesk.schemas.notification import NotificationBulkAction, NotificationPage, NotificationRead
from officedesk.services.notifications import parse_task_reference, prune_notifications

router = APIRouter()


def _to_read(notification: Notification, sender_name: str = None) -> NotificationRead:
    return NotificationRead(
        **notification.model_dump(exclude={"task_id"}),
        task_id=notification.task_id or parse_task_reference(notification.content),
        sent_by_name=sender_name,
    )


def _own(db: Session, user: User, notification_id: str) -> Notification:
    notification = db.get(Notification, notification_id)
    if not notification or notification.sent_to_id != user.id:
        raise NotFoundError("Notification not found")
    return notification


def _selected(current_user: User, action: NotificationBulkAction):
    statement = select(Notification).where(Notification.sent_to_id == current_user.id)
    if not action.all:
        statement = statement.where(col(Notification.id).in_(action.ids))
    return statement


@router.get("", response_model=NotificationPage)
def list_notifications(
    page: int = 1,
    limit: int = 10,
    unread_only: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_user),
):
    """Paginated inbox, newest first. Page size is capped at NOTIFICATION_LIMIT."""
    if prune_notifications(db, current_user.id, settings.NOTIFICATION_LIMIT):
        db.commit()

    limit = max(1, min(limit, settings.NOTIFICATION_LIMIT))
    page = max(1, page)

    condition = Notification.sent_to_id == current_user.id
    if unread_only:
        condition = condition & (Notification.is_read == False)  # noqa: E712

    rows = db.exec(
        select(Notification, User.name)
        .join(User, User.id == Notification.sent_by_id, isouter=True)
        .where(condition)
        .order_by(col(Notification.created_at).desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()
    total = db.exec(select(func.count(Notification.id)).where(condition)).one()
    unread = db.exec(
        select(func.count(Notification.id)).where(
            Notification.sent_to_id == current_user.id, Notification.is_read == False  # noqa: E712
        )
    ).one()

    return NotificationPage(
        data=[_to_read(n, name) for n, name in rows],
        total=total,
        page=page,
        limit=limit,
        pages=math.ceil(total / limit) if total else 0,
        unread_count=unread,
    )


@router.patch("")
def mark_read(
    action: NotificationBulkAction,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_user),
):
    """Mark the given notifications (or all of them) as read."""
    updated = 0
    for notification in db.exec(_selected(current_user, action)).all():
        if not notification.is_read:
            notification.is_read = True
            db.add(notification)
            updated += 1
    db.commit()
    return {"status": "success", "updated": updated}


@router.delete("")
def delete_notifications(
    action: NotificationBulkAction,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_user),
):
    deleted = 0
    for notification in db.exec(_selected(current_user, action)).all():
        db.delete(notification)
        deleted += 1
    db.commit()
    return {"status": "success", "deleted": deleted}


@router.patch("/{notification_id}", response_model=NotificationRead)
def mark_one_read(
    notification_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_user),
):
    notification = _own(db, current_user, notification_id)
    notification.is_read = True
    db.add(notification)
    db.commit()
    db.refresh(notification)
    return _to_read(notification)


@router.delete("/{notification_id}")
def delete_one(
    notification_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_user),
):
    db.delete(_own(db, current_user, notification_id))
    db.commit()
    return {"status": "success", "detail": "Notification deleted"}
