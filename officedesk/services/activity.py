"""Append-only activity log."""
import logging
from typing import Any, Dict, Optional

from fastapi.encoders import jsonable_encoder
from sqlmodel import Session

from officedesk.models.activity import Activity
from officedesk.models.user import User

logger = logging.getLogger(__name__)

SKIPPED_USER_ACTIONS = {"login", "logout"}


def log_activity(
    db: Session,
    type: str,
    action: str,
    target: str,
    user_id: str,
    details: Optional[Dict[str, Any]] = None,
) -> Optional[Activity]:
    """
    Record one activity. Failures are logged and swallowed so that the audit
    trail never breaks the action it describes.
    """
    if type == "user" and action in SKIPPED_USER_ACTIONS:
        return None

    try:
        if db.get(User, user_id) is None:
            logger.warning("Skipping activity logging: user %s not found", user_id)
            return None

        activity = Activity(
            type=type,
            action=action,
            target=target,
            user_id=user_id,
            details=jsonable_encoder(details) if details is not None else None,
        )
        db.add(activity)
        db.commit()
        db.refresh(activity)
        return activity
    except Exception:
        db.rollback()
        logger.exception("Failed to log activity %s/%s on %r", type, action, target)
        return None
