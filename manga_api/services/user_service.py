# File: manga_api/services/user_service.py

from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from manga_api.core.errors import Conflict, NotFound, ValidationError
from manga_api.models.user import ROLES, User
from manga_api.services.auth_service import normalize_email
from manga_api.services.session_store import SessionStore


def list_users(db: Session) -> list[User]:
    return list(db.scalars(select(User).order_by(User.created_at.desc(), User.user_id.desc())))


def get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    return user


def update_user(store: SessionStore, user_id: int, changes: dict[str, Any]) -> User:
    """
    Apply a partial update.

    Deactivating a user also drops all of their sessions, in the same
    transaction as the flag change.
    """
    if not changes:
        raise ValidationError("No fields to update")

    db = store.db
    user = get_user(db, user_id)

    if "role" in changes and changes["role"] not in ROLES:
        raise ValidationError(f"Role must be one of: {', '.join(ROLES)}")

    if changes.get("email") is not None:
        changes = {**changes, "email": normalize_email(changes["email"])}
        new_email = changes["email"]
        if new_email != user.email:
            taken = db.scalar(
                select(User.user_id).where(User.email == new_email, User.user_id != user_id)
            )
            if taken is not None:
                raise Conflict("Email already exists")

    was_active = user.is_active
    for field, value in changes.items():
        setattr(user, field, value)
    if was_active and not user.is_active:
        store.invalidate_all_for_user(user_id, commit=False)
    db.commit()

    db.refresh(user)
    return user


def delete_user(store: SessionStore, user_id: int) -> None:
    user = get_user(store.db, user_id)
    store.invalidate_all_for_user(user_id, commit=False)
    store.db.delete(user)
    store.db.commit()
