"""
User Model Module

This module defines the User model and UserRole enumeration for authentication
and authorization throughout the application.
"""
from enum import Enum
from typing import Optional
from sqlmodel import SQLModel, Field, AutoString
import uuid
from datetime import datetime

from officedesk.models.base import UtcDateTime, utcnow


class UserRole(str, Enum):
    """
    Closed set of roles known to the office.

    - ADMIN: full access to tasks, clients, users and billing
    - PARTNER: creates tasks and manages the ones they created or work on
    - BUSINESS_EXECUTIVE / BUSINESS_CONSULTANT: junior staff working assigned tasks
    - PERMANENT_CLIENT / GUEST_CLIENT: client logins with no access to tasks

    What each role may do is decided by the policy table in
    officedesk.core.permissions.
    """
    ADMIN = "ADMIN"
    PARTNER = "PARTNER"
    BUSINESS_EXECUTIVE = "BUSINESS_EXECUTIVE"
    BUSINESS_CONSULTANT = "BUSINESS_CONSULTANT"
    PERMANENT_CLIENT = "PERMANENT_CLIENT"
    GUEST_CLIENT = "GUEST_CLIENT"


class User(SQLModel, table=True):
    """
    User model representing authenticated users in the system.

    Attributes:
        id: Unique identifier (UUID) generated for each user
        name: Display name used in notifications and e-mails
        email: Login e-mail address (unique, indexed)
        password: bcrypt hash; None until a password has been set
        role: The user's single UserRole
        is_active: Inactive users cannot log in or act
        avatar_url: Optional profile picture URL
        can_approve_billing: Lets a PARTNER approve billing of completed tasks
        password_reset_token: One-time token for setting or resetting the password
        password_reset_token_expiry: When that token stops being accepted
        created_at: When the account was created
    """
    __tablename__ = "users"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)

    name: str = Field(nullable=False)
    email: str = Field(unique=True, index=True, nullable=False)
    password: Optional[str] = None

    role: UserRole = Field(default=UserRole.BUSINESS_EXECUTIVE, sa_type=AutoString)
    is_active: bool = True
    avatar_url: Optional[str] = None
    can_approve_billing: bool = False

    password_reset_token: Optional[str] = Field(default=None, index=True)
    password_reset_token_expiry: Optional[datetime] = Field(default=None, sa_type=UtcDateTime)

    created_at: datetime = Field(default_factory=utcnow, sa_type=UtcDateTime)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
