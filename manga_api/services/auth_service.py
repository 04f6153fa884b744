# File: manga_api/services/auth_service.py

"""
Authentication service.

Contains:
  - registration and login (password check + session issue)
  - token verification, shared by the auth guard and ``/auth/verify``
  - password change (invalidates every session of the user)
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from manga_api.core.errors import (
    Conflict,
    Forbidden,
    NotFound,
    Unauthenticated,
    ValidationError,
)
from manga_api.core.security import hash_password, verify_password
from manga_api.models.user import ROLE_USER, User
from manga_api.services.session_store import SessionStore, SessionView

logger = logging.getLogger(__name__)

# bcrypt ignores (newer releases reject) anything past 72 bytes
MAX_PASSWORD_BYTES = 72
MIN_PASSWORD_LENGTH = 6


@dataclass(frozen=True)
class CurrentUser:
    """Identity attached to a request once the auth guard passes."""

    user_id: int
    email: str
    display_name: Optional[str]
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @classmethod
    def from_session(cls, view: SessionView) -> "CurrentUser":
        return cls(
            user_id=view.user_id,
            email=view.email,
            display_name=view.display_name,
            role=view.role,
        )

    def as_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "email": self.email,
            "display_name": self.display_name,
            "role": self.role,
        }


def normalize_email(email: str) -> str:
    """Canonical stored form of an address; lookups must go through this too."""
    return email.strip().lower()


def check_new_password(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        )
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")


def register_user(
    db: Session,
    *,
    email: str,
    password: str,
    display_name: Optional[str] = None,
) -> User:
    """Create a regular (non-admin) user."""
    check_new_password(password)
    email = normalize_email(email)

    existing = db.scalar(select(User.user_id).where(User.email == email))
    if existing is not None:
        raise Conflict("Email already exists")

    user = User(
        email=email,
        password_hash=hash_password(password),
        display_name=display_name or None,
        role=ROLE_USER,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Registered user %s", user.user_id)
    return user


def login(store: SessionStore, *, email: str, password: str) -> tuple[str, User]:
    """
    Check credentials and open a session.

    Unknown e-mail and wrong password produce the same error.
    """
    user = store.db.scalar(select(User).where(User.email == normalize_email(email)))
    if user is None:
        raise Unauthenticated("Invalid email or password")

    if not user.is_active:
        raise Forbidden("Account is deactivated")

    if not verify_password(password, user.password_hash):
        logger.info("Failed login for user %s", user.user_id)
        raise Unauthenticated("Invalid email or password")

    token, _ = store.create(user.user_id)
    store.db.refresh(user)
    return token, user


def verify_session_token(store: SessionStore, token: str, **error_extra) -> SessionView:
    """
    Resolve ``token`` to a usable session.

    An expired session is deleted on the spot. A session of a deactivated
    user is kept, since it becomes usable again after reactivation.
    ``error_extra`` is merged into the raised error's response body.
    """
    try:
        view = store.resolve(token)
    except NotFound:
        raise Unauthenticated("Invalid token", **error_extra)

    if view.is_expired(store.clock()):
        store.invalidate(token)
        logger.info("Expired session removed for user %s", view.user_id)
        raise Unauthenticated("Token expired", **error_extra)

    if not view.is_active:
        raise Forbidden("Account is deactivated", **error_extra)

    return view


def change_password(
    store: SessionStore,
    *,
    user_id: int,
    old_password: str,
    new_password: str,
) -> int:
    """Replace the password and drop every session of the user."""
    user = store.db.get(User, user_id)
    if user is None:
        raise NotFound("User not found")

    if not verify_password(old_password, user.password_hash):
        raise Unauthenticated("Invalid old password")

    check_new_password(new_password)
    user.password_hash = hash_password(new_password)
    dropped = store.invalidate_all_for_user(user_id, commit=False)
    store.db.commit()
    logger.info("Password changed for user %s", user_id)
    return dropped
