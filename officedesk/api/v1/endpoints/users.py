"""
User Management Endpoints Module

All endpoints require administrative privileges except the /me endpoints,
which let users manage their own profile.
"""
import logging
from typing import Any, List

from fastapi import APIRouter, Depends
from sqlmodel import Session, select

from officedesk.api import deps
from officedesk.core.cache import DashboardCache
from officedesk.core.errors import NotFoundError, ValidationError
from officedesk.core.security import get_password_hash
from officedesk.db.session import get_db
from officedesk.models.activity import Activity
from officedesk.models.notification import Notification
from officedesk.models.task import Task, TaskComment
from officedesk.models.user import User
from officedesk.schemas.user import UserCreate, UserRead, UserSelfUpdate, UserStatusUpdate, UserUpdate
from officedesk.services.activity import log_activity
from officedesk.services.email import EmailSender
from officedesk.services.passwords import issue_password_token, send_password_email
from officedesk.services.task_assignment import unassign_user_everywhere

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_user_or_404(db: Session, user_id: str) -> User:
    user = db.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


def _ensure_email_free(db: Session, email: str, user_id: str = None) -> None:
    existing = db.exec(select(User).where(User.email == email)).first()
    if existing and existing.id != user_id:
        raise ValidationError("The user with this email already exists in the system.")


@router.get("", response_model=List[UserRead])
def read_users(
    db: Session = Depends(get_db),
    skip: int = 0,
    limit: int = 100,
    current_user: User = Depends(deps.get_current_admin),
) -> Any:
    return db.exec(select(User).offset(skip).limit(limit)).all()


@router.post("", response_model=UserRead, status_code=201)
def create_user(
    *,
    db: Session = Depends(get_db),
    user_in: UserCreate,
    current_user: User = Depends(deps.get_current_admin),
    email_sender: EmailSender = Depends(deps.get_email_sender),
) -> Any:
    """
    Create a new user. Only administrators can create users.

    When no password is given the account gets a set-up token and the user is
    e-mailed a link to choose one.

    Raises:
        ValidationError: a user with this e-mail already exists
    """
    _ensure_email_free(db, user_in.email)

    db_user = User(
        email=user_in.email,
        name=user_in.name,
        password=get_password_hash(user_in.password) if user_in.password else None,
        role=user_in.role,
        avatar_url=user_in.avatar_url,
        can_approve_billing=bool(user_in.can_approve_billing),
    )
    if not user_in.password:
        issue_password_token(db_user)
    db.add(db_user)
    db.commit()
    db.refresh(db_user)

    if not user_in.password:
        send_password_email(email_sender, db_user, reset=False)

    log_activity(db, "user", "created", db_user.name, current_user.id,
                 {"userId": db_user.id, "role": db_user.role})
    return db_user


@router.get("/me", response_model=UserRead)
def read_user_me(
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    return current_user


@router.put("/me", response_model=UserRead)
def update_user_me(
    *,
    db: Session = Depends(get_db),
    user_in: UserSelfUpdate,
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    """Update the caller's own name, e-mail, avatar or password."""
    update_data = user_in.model_dump(exclude_unset=True)
    if update_data.get("email"):
        _ensure_email_free(db, update_data["email"], current_user.id)
    if update_data.get("password"):
        update_data["password"] = get_password_hash(update_data["password"])

    for field, value in update_data.items():
        if value is not None:
            setattr(current_user, field, value)

    db.add(current_user)
    db.commit()
    db.refresh(current_user)
    return current_user


@router.get("/{user_id}", response_model=UserRead)
def read_user_by_id(
    user_id: str,
    current_user: User = Depends(deps.get_current_admin),
    db: Session = Depends(get_db),
) -> Any:
    return _get_user_or_404(db, user_id)


@router.put("/{user_id}", response_model=UserRead)
def update_user(
    *,
    db: Session = Depends(get_db),
    user_id: str,
    user_in: UserUpdate,
    current_user: User = Depends(deps.get_current_admin),
    cache: DashboardCache = Depends(deps.get_cache),
) -> Any:
    db_user = _get_user_or_404(db, user_id)

    update_data = user_in.model_dump(exclude_unset=True)
    if update_data.get("email"):
        _ensure_email_free(db, update_data["email"], db_user.id)
    if "password" in update_data and update_data["password"]:
        update_data["password"] = get_password_hash(update_data["password"])

    old_role = db_user.role
    for field, value in update_data.items():
        if value is not None:
            setattr(db_user, field, value)

    db.add(db_user)
    db.commit()
    db.refresh(db_user)

    if db_user.role != old_role:
        log_activity(db, "user", "role_changed", db_user.name, current_user.id,
                     {"userId": db_user.id, "oldRole": old_role, "newRole": db_user.role})
        cache.invalidate_user(db_user.id)
    return db_user


@router.patch("/{user_id}/status", response_model=UserRead)
def update_user_status(
    *,
    db: Session = Depends(get_db),
    user_id: str,
    status_in: UserStatusUpdate,
    current_user: User = Depends(deps.get_current_admin),
) -> Any:
    """Activate or deactivate an account. Admins cannot deactivate themselves."""
    db_user = _get_user_or_404(db, user_id)
    if db_user.id == current_user.id and not status_in.is_active:
        raise ValidationError("You cannot deactivate your own account")

    db_user.is_active = status_in.is_active
    db.add(db_user)
    db.commit()
    db.refresh(db_user)

    log_activity(db, "user", "updated", db_user.name, current_user.id,
                 {"userId": db_user.id, "isActive": db_user.is_active})
    return db_user


@router.delete("/{user_id}")
def delete_user(
    *,
    db: Session = Depends(get_db),
    user_id: str,
    current_user: User = Depends(deps.get_current_admin),
    cache: DashboardCache = Depends(deps.get_cache),
) -> Any:
    """
    Delete a user.

    Tasks the user created are handed over to the deleting admin rather than
    deleted. The user's assignments, comments, notifications and activity
    rows are removed with the account.
    """
    user = _get_user_or_404(db, user_id)
    if user.id == current_user.id:
        raise ValidationError("Users cannot delete themselves")

    name = user.name
    try:
        owned = db.exec(select(Task).where(Task.assigned_by_id == user.id)).all()
        for task in owned:
            task.assigned_by_id = current_user.id
            db.add(task)
        for task in db.exec(select(Task).where(Task.last_status_updated_by_id == user.id)).all():
            task.last_status_updated_by_id = None
            db.add(task)

        unassign_user_everywhere(db, user.id)
        for model, condition in (
            (TaskComment, TaskComment.user_id == user.id),
            (Notification, (Notification.sent_to_id == user.id) | (Notification.sent_by_id == user.id)),
            (Activity, Activity.user_id == user.id),
        ):
            for row in db.exec(select(model).where(condition)).all():
                db.delete(row)

        db.delete(user)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("User %s deleted by %s; %d tasks reassigned", user_id, current_user.id, len(owned))
    log_activity(db, "user", "deleted", name, current_user.id,
                 {"userId": user_id, "reassignedTaskIds": [t.id for t in owned]})
    cache.invalidate_users([user_id, current_user.id])
    return {"status": "success", "detail": "User deleted", "reassigned_tasks": len(owned)}
