"""
API Dependencies Module

FastAPI dependency functions for authentication, authorization and the
per-application collaborators (cache, e-mail sender, notification dispatcher).

Authentication accepts both bearer tokens (for API clients) and the HTTP-only
access_token cookie (for browser clients).
"""
from typing import Optional
from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError
from pydantic import ValidationError
from sqlmodel import Session, select

from officedesk.core.cache import DashboardCache
from officedesk.core.config import settings
from officedesk.core.errors import AuthenticationError, AuthorizationError
from officedesk.core.permissions import Action, can
from officedesk.db.session import get_db
from officedesk.models.user import User
from officedesk.schemas.auth import TokenData
from officedesk.services.email import EmailSender
from officedesk.services.notifications import NotificationDispatcher

# auto_error=False lets us fall back to the cookie
reusable_oauth2 = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_V1_STR}/auth/login",
    auto_error=False
)


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
    token: Optional[str] = Depends(reusable_oauth2)
) -> User:
    """
    Dependency that retrieves and validates the current authenticated user.

    Checks the Authorization header first, then the access_token cookie
    (stored as "Bearer <token>").

    Raises:
        AuthenticationError: no token, a token that does not validate, or a
            token for a user that no longer exists
        AuthorizationError: the account has been deactivated
    """
    if not token:
        token = request.cookies.get("access_token")
        if token and token.startswith("Bearer "):
            token = token.replace("Bearer ", "", 1)

    if not token:
        raise AuthenticationError("Not authenticated")

    try:
        payload = jwt.decode(
            token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM]
        )
        token_data = TokenData(email=payload.get("sub"))
    except (JWTError, ValidationError):
        raise AuthenticationError("Could not validate credentials")

    if not token_data.email:
        raise AuthenticationError("Could not validate credentials")

    user = db.exec(select(User).where(User.email == token_data.email)).first()
    if not user:
        raise AuthenticationError("User not found")
    if not user.is_active:
        raise AuthorizationError("Your account has been deactivated")
    return user


class PermissionChecker:
    """
    Dependency factory for actions that do not depend on a particular task.

    Usage: Depends(PermissionChecker(Action.MANAGE_USERS))
    """
    def __init__(self, action: Action):
        self.action = action

    def __call__(self, current_user: User = Depends(get_current_user)) -> User:
        if not can(current_user, self.action):
            raise AuthorizationError("The user doesn't have enough privileges")
        return current_user


get_current_admin = PermissionChecker(Action.MANAGE_USERS)


def get_cache(request: Request) -> DashboardCache:
    return request.app.state.dashboard_cache


def get_email_sender(request: Request) -> EmailSender:
    return request.app.state.email_sender


def get_dispatcher(
    db: Session = Depends(get_db),
    email_sender: EmailSender = Depends(get_email_sender),
) -> NotificationDispatcher:
    return NotificationDispatcher(db, email_sender)
