from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from core.settings import settings


class RegisterIn(BaseModel):
    username: str = Field(min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_.-]+$")
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)
    contact_number: Optional[str] = Field(default=None, pattern=r"^\+?[0-9 ()-]{6,20}$")


class LoginIn(BaseModel):
    username: str
    password: str


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int = settings.access_token_expire_minutes * 60


class RegisteredOut(BaseModel):
    message: str = "Registered"
    user_id: int


class UserOut(BaseModel):
    """Account view, including the subscription projection used for entitlement."""

    id: int
    username: str
    email: str
    contact_number: Optional[str] = None
    is_admin: bool
    is_active: bool
    subscription_status: str
    subscription_plan: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
