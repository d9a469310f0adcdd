"""
Password set-up and reset.

New accounts and "forgot password" requests get a one-time token, e-mailed as
a link to the front end's /set-password page. Redeeming the token sets the
password and clears the token.
"""
import logging
import secrets
from datetime import timedelta
from typing import Optional

from sqlmodel import Session

from officedesk.core.config import settings
from officedesk.core.errors import AuthorizationError, NotFoundError, ValidationError
from officedesk.core.security import get_password_hash, verify_password
from officedesk.models.base import as_utc, utcnow
from officedesk.models.user import User
from officedesk.services.email import EmailSender, password_link_email

logger = logging.getLogger(__name__)

INVALID_TOKEN_DETAIL = "Invalid or expired token"


def issue_password_token(user: User) -> str:
    """Give the user a fresh token. The caller commits."""
    user.password_reset_token = secrets.token_urlsafe(32)
    user.password_reset_token_expiry = utcnow() + timedelta(hours=settings.PASSWORD_TOKEN_EXPIRE_HOURS)
    return user.password_reset_token


def password_link(user: User) -> str:
    return (
        f"{settings.FRONTEND_URL.rstrip('/')}/set-password"
        f"?token={user.password_reset_token}&id={user.id}"
    )


def send_password_email(sender: Optional[EmailSender], user: User, *, reset: bool) -> None:
    """E-mail the set-up or reset link. Failures are logged, never raised."""
    if sender is None:
        return
    if reset:
        subject, heading = "Reset your password", "Password reset"
        intro = "We received a request to reset your password. Use the link below to choose a new one."
    else:
        subject, heading = "Set up your account", "Welcome to Office Desk"
        intro = "An account has been created for you. Use the link below to choose your password."
    try:
        sender.send(
            user.email,
            subject,
            password_link_email(heading, user.name, password_link(user), intro,
                                settings.PASSWORD_TOKEN_EXPIRE_HOURS),
        )
    except Exception:
        logger.exception("Failed to send password e-mail to user %s", user.id)


def set_password_with_token(db: Session, user_id: str, token: str, password: str) -> User:
    user = db.get(User, user_id)
    expiry = as_utc(user.password_reset_token_expiry) if user else None
    if (
        user is None
        or not user.password_reset_token
        or not secrets.compare_digest(user.password_reset_token, token)
        or expiry is None
        or expiry < utcnow()
    ):
        raise ValidationError(INVALID_TOKEN_DETAIL)

    user.password = get_password_hash(password)
    user.password_reset_token = None
    user.password_reset_token_expiry = None
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Password set for user %s", user.id)
    return user


def change_password(
    db: Session,
    actor: User,
    new_password: str,
    current_password: Optional[str] = None,
    user_id: Optional[str] = None,
) -> User:
    """
    Change a password. Users change their own and must give the current one;
    admins may reset anyone else's without it.
    """
    target_id = user_id or actor.id
    if target_id != actor.id and not actor.is_admin:
        raise AuthorizationError("Only administrators can reset other users' passwords")

    user = db.get(User, target_id)
    if user is None:
        raise NotFoundError("User not found")

    if target_id == actor.id:
        if not current_password:
            raise ValidationError("Current password is required")
        if not user.password:
            raise ValidationError("User has no password set")
        if not verify_password(current_password, user.password):
            raise ValidationError("Current password is incorrect")

    user.password = get_password_hash(new_password)
    user.password_reset_token = None
    user.password_reset_token_expiry = None
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Password changed for user %s by %s", user.id, actor.id)
    return user
