# File: manga_api/schemas/auth.py

"""
Request / response bodies for ``/api/auth``.

Required fields are declared optional so that a missing value produces
the API's own 400 message instead of a generic validation error.
"""

from typing import Optional

from pydantic import BaseModel, EmailStr


class RegisterRequest(BaseModel):
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    display_name: Optional[str] = None


class RegisterResponse(BaseModel):
    user_id: int
    email: str
    display_name: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class AuthUser(BaseModel):
    user_id: int
    email: str
    display_name: Optional[str] = None
    role: str


class LoginResponse(BaseModel):
    token: str
    user: AuthUser


class TokenRequest(BaseModel):
    token: Optional[str] = None


class VerifyResponse(BaseModel):
    valid: bool
    user: AuthUser


class MessageResponse(BaseModel):
    message: str
