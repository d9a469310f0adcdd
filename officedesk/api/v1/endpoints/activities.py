"""
Activity Feed Endpoints Module

Admins see the whole office's activity; everyone else sees their own.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlmodel import Session, select, col

from officedesk.api import deps
from officedesk.db.session import get_db
from officedesk.models.activity import Activity
from officedesk.models.user import User
from officedesk.schemas.activity import ActivityRead

router = APIRouter()


@router.get("", response_model=List[ActivityRead])
def list_activities(
    limit: int = 20,
    type: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_user),
):
    statement = select(Activity, User.name).join(User, User.id == Activity.user_id, isouter=True)
    if not current_user.is_admin:
        statement = statement.where(Activity.user_id == current_user.id)
    if type:
        statement = statement.where(Activity.type == type)
    statement = statement.order_by(col(Activity.created_at).desc()).limit(max(1, min(limit, 100)))

    return [
        ActivityRead(**activity.model_dump(), user_name=name)
        for activity, name in db.exec(statement).all()
    ]
