# File: manga_api/api/v1/routes_auth.py

"""
Auth API routes: register, login, logout, verify.

Logout and verify take the token in the JSON body, not a header.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from manga_api.api.deps import get_db, get_session_store
from manga_api.core.errors import ValidationError
from manga_api.schemas.auth import (
    AuthUser,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    RegisterRequest,
    RegisterResponse,
    TokenRequest,
    VerifyResponse,
)
from manga_api.services import auth_service
from manga_api.services.session_store import SessionStore

router = APIRouter()


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a user account",
)
def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    if not payload.email or not payload.password:
        raise ValidationError("Email and password are required")

    user = auth_service.register_user(
        db,
        email=payload.email,
        password=payload.password,
        display_name=payload.display_name,
    )
    return RegisterResponse(
        user_id=user.user_id,
        email=user.email,
        display_name=user.display_name,
    )


@router.post("/login", response_model=LoginResponse, summary="Log in and receive a session token")
def login(payload: LoginRequest, store: SessionStore = Depends(get_session_store)):
    email = (payload.email or "").strip()
    if not email or not payload.password:
        raise ValidationError("Email and password are required")

    token, user = auth_service.login(store, email=email, password=payload.password)
    return LoginResponse(
        token=token,
        user=AuthUser(
            user_id=user.user_id,
            email=user.email,
            display_name=user.display_name,
            role=user.role,
        ),
    )


@router.post("/logout", response_model=MessageResponse, summary="End a session")
def logout(payload: TokenRequest, store: SessionStore = Depends(get_session_store)):
    if not payload.token:
        raise ValidationError("Token is required")

    store.invalidate(payload.token)
    return MessageResponse(message="Logged out successfully")


@router.post("/verify", response_model=VerifyResponse, summary="Check a session token")
def verify(payload: TokenRequest, store: SessionStore = Depends(get_session_store)):
    """
    401 ``{valid: false}`` for unknown or expired tokens, 403 for
    deactivated accounts. Expired sessions are deleted here.
    """
    if not payload.token:
        raise ValidationError("Token is required")

    view = auth_service.verify_session_token(store, payload.token, valid=False)
    return VerifyResponse(
        valid=True,
        user=AuthUser(
            user_id=view.user_id,
            email=view.email,
            display_name=view.display_name,
            role=view.role,
        ),
    )
