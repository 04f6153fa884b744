# File: manga_api/schemas/user.py

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr


class UserBase(BaseModel):
    email: EmailStr
    display_name: Optional[str] = None


class UserRead(UserBase):
    user_id: int
    role: str
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True  # Pydantic v2: replaces orm_mode


class UserUpdate(BaseModel):
    email: Optional[EmailStr] = None
    display_name: Optional[str] = None
    role: Optional[Literal["user", "admin"]] = None
    is_active: Optional[bool] = None


class PasswordChange(BaseModel):
    old_password: Optional[str] = None
    new_password: Optional[str] = None


class SessionCleanupResult(BaseModel):
    message: str
    deleted: int
