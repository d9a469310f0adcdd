from typing import Optional
from pydantic import BaseModel, EmailStr, Field


class Token(BaseModel):
    access_token: str
    token_type: str


class TokenData(BaseModel):
    email: Optional[str] = None


class SetPassword(BaseModel):
    user_id: str
    token: str
    password: str = Field(min_length=8)


class ForgotPassword(BaseModel):
    email: EmailStr


class ResetPassword(BaseModel):
    new_password: str = Field(min_length=8)
    current_password: Optional[str] = None
    # admins only: reset someone else's password
    user_id: Optional[str] = None
