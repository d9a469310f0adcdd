"""
Notification Dispatch

Creates in-app notifications, keeps each recipient's inbox bounded, and
optionally e-mails the recipient. Nothing here raises to the caller: every
failure is logged and the calling workflow carries on.
"""
import logging
import re
from typing import Iterable, List, Optional

from sqlmodel import Session, select, col

from officedesk.core.config import settings
from officedesk.models.notification import Notification
from officedesk.models.user import User, UserRole
from officedesk.services.email import EmailSender

logger = logging.getLogger(__name__)

TASK_REF_RE = re.compile(r"\[taskId:\s*([^\]\s]+)\s*\]")


def task_reference(task_id: str) -> str:
    return f"[taskId: {task_id}]"


def parse_task_reference(content: Optional[str]) -> Optional[str]:
    """Return the task id embedded in notification content, if any."""
    if not content:
        return None
    match = TASK_REF_RE.search(content)
    return match.group(1) if match else None


def strip_task_reference(content: str) -> str:
    return TASK_REF_RE.sub("", content).strip()


def prune_notifications(db: Session, user_id: str, keep: int) -> int:
    """Delete everything but the `keep` most recent notifications of a user."""
    ids = db.exec(
        select(Notification.id)
        .where(Notification.sent_to_id == user_id)
        .order_by(col(Notification.created_at).desc(), col(Notification.id).desc())
        .offset(keep)
    ).all()
    if not ids:
        return 0
    for row in db.exec(select(Notification).where(col(Notification.id).in_(ids))).all():
        db.delete(row)
    logger.info("Cleaned up %d old notifications for user %s", len(ids), user_id)
    return len(ids)


class NotificationDispatcher:
    def __init__(self, db: Session, email_sender: Optional[EmailSender] = None, limit: Optional[int] = None):
        self.db = db
        self.email_sender = email_sender
        self.limit = limit or settings.NOTIFICATION_LIMIT

    def notify(
        self,
        recipient_id: str,
        title: str,
        content: str,
        *,
        sender_id: str,
        task_id: Optional[str] = None,
        email_subject: Optional[str] = None,
        email_html: Optional[str] = None,
    ) -> Optional[Notification]:
        """
        Persist one notification and, when an e-mail subject or body is given,
        e-mail the recipient as well. Returns None if the notification could
        not be stored.
        """
        try:
            notification = Notification(
                title=title,
                content=content,
                sent_by_id=sender_id,
                sent_to_id=recipient_id,
                task_id=task_id,
            )
            self.db.add(notification)
            self.db.flush()
            prune_notifications(self.db, recipient_id, self.limit)
            self.db.commit()
            self.db.refresh(notification)
        except Exception:
            self.db.rollback()
            logger.exception("Failed to create notification %r for user %s", title, recipient_id)
            return None

        if email_subject or email_html:
            self._send_email(recipient_id, email_subject or title, email_html or f"<p>{content}</p>")
        return notification

    def notify_many(self, recipient_ids: Iterable[str], title: str, content: str, **kwargs) -> List[Notification]:
        sent = []
        for recipient_id in recipient_ids:
            notification = self.notify(recipient_id, title, content, **kwargs)
            if notification is not None:
                sent.append(notification)
        return sent

    def notify_admins(self, title: str, content: str, *, exclude: Iterable[str] = (), **kwargs) -> List[Notification]:
        """Notify every active admin except the ids in `exclude`."""
        excluded = set(exclude)
        admin_ids = self.db.exec(
            select(User.id).where(User.role == UserRole.ADMIN, User.is_active == True)  # noqa: E712
        ).all()
        return self.notify_many([a for a in admin_ids if a not in excluded], title, content, **kwargs)

    def _send_email(self, recipient_id: str, subject: str, html_body: str) -> None:
        if self.email_sender is None:
            return
        try:
            recipient = self.db.get(User, recipient_id)
            if recipient is None or not recipient.email:
                return
            self.email_sender.send(recipient.email, subject, html_body)
        except Exception:
            logger.exception("Failed to send email notification to user %s", recipient_id)
