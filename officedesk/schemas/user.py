from pydantic import BaseModel, EmailStr
from typing import Optional
from datetime import datetime
from officedesk.models.user import UserRole


# Shared properties
class UserBase(BaseModel):
    email: Optional[EmailStr] = None
    name: Optional[str] = None
    role: Optional[UserRole] = None
    avatar_url: Optional[str] = None
    can_approve_billing: Optional[bool] = None


# Properties to receive via API on creation
class UserCreate(UserBase):
    email: EmailStr
    name: str
    # without one the user is e-mailed a link to choose it
    password: Optional[str] = None
    role: UserRole = UserRole.BUSINESS_EXECUTIVE


# Properties to receive via API on update
class UserUpdate(UserBase):
    password: Optional[str] = None


# Users may not change their own role or billing rights
class UserSelfUpdate(BaseModel):
    email: Optional[EmailStr] = None
    name: Optional[str] = None
    avatar_url: Optional[str] = None
    password: Optional[str] = None


class UserStatusUpdate(BaseModel):
    is_active: bool


# Properties to return to client
class UserRead(BaseModel):
    id: str
    email: str
    name: str
    role: UserRole
    is_active: bool
    avatar_url: Optional[str] = None
    can_approve_billing: bool = False
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
