"""
Authentication Endpoints Module

Login, logout and password set-up / reset. The access token is returned in the body for API clients
and also set as an HTTP-only cookie for browser clients. Accounts are created
by administrators (see the users endpoints); there is no self-registration.
"""
from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordRequestForm
from sqlmodel import Session, select

from officedesk.core.config import settings
from officedesk.core.errors import AuthenticationError, AuthorizationError
from officedesk.api import deps
from officedesk.core.security import create_access_token, verify_password
from officedesk.db.session import get_db
from officedesk.models.user import User
from officedesk.schemas.auth import ForgotPassword, ResetPassword, SetPassword, Token
from officedesk.services.email import EmailSender
from officedesk.services.passwords import (
    change_password,
    issue_password_token,
    send_password_email,
    set_password_with_token,
)

router = APIRouter()


@router.post("/login", response_model=Token)
def login(response: Response, db: Session = Depends(get_db), form_data: OAuth2PasswordRequestForm = Depends()):
    """
    Authenticate a user and issue an access token.

    OAuth2PasswordRequestForm names the field "username"; it holds the e-mail.

    Raises:
        AuthenticationError: unknown e-mail or wrong password
        AuthorizationError: the account has been deactivated
    """
    user = db.exec(select(User).where(User.email == form_data.username)).first()

    if not user or not verify_password(form_data.password, user.password):
        raise AuthenticationError("Incorrect email or password")
    if not user.is_active:
        raise AuthorizationError("Your account has been deactivated")

    access_token = create_access_token(subject=user.email)

    response.set_cookie(
        key="access_token",
        value=f"Bearer {access_token}",
        httponly=True,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        samesite="lax"
    )
    return {"access_token": access_token, "token_type": "bearer"}


@router.get("/logout")
def logout():
    """Clear the authentication cookie. API clients simply discard their token."""
    response = JSONResponse({"status": "success", "detail": "Logged out"})
    response.delete_cookie("access_token")
    return response


@router.post("/set-password")
def set_password(body: SetPassword, db: Session = Depends(get_db)):
    """Redeem a set-up or reset token from the e-mailed link."""
    set_password_with_token(db, body.user_id, body.token, body.password)
    return {"status": "success", "detail": "Password set successfully"}


@router.post("/forgot-password")
def forgot_password(
    body: ForgotPassword,
    db: Session = Depends(get_db),
    email_sender: EmailSender = Depends(deps.get_email_sender),
):
    """
    E-mail a reset link. The answer is the same whether or not the account
    exists, so it does not reveal which e-mail addresses have accounts.
    """
    user = db.exec(select(User).where(User.email == body.email)).first()
    if user is not None and user.is_active:
        issue_password_token(user)
        db.add(user)
        db.commit()
        db.refresh(user)
        send_password_email(email_sender, user, reset=True)
    return {"status": "success", "detail": "Password reset email sent if account exists"}


@router.post("/reset-password")
def reset_password(
    body: ResetPassword,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_user),
):
    change_password(db, current_user, body.new_password, body.current_password, body.user_id)
    return {"status": "success", "detail": "Password updated successfully"}
