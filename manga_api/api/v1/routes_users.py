# File: manga_api/api/v1/routes_users.py

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from manga_api.api.deps import (
    get_current_user,
    get_db,
    get_session_store,
    require_admin,
    require_user_or_admin,
)
from manga_api.core.errors import Forbidden, ValidationError
from manga_api.schemas.auth import MessageResponse
from manga_api.schemas.user import (
    PasswordChange,
    SessionCleanupResult,
    UserRead,
    UserUpdate,
)
from manga_api.services import auth_service, user_service
from manga_api.services.auth_service import CurrentUser
from manga_api.services.session_store import SessionStore

router = APIRouter()

owner_or_admin = require_user_or_admin("user_id")

ADMIN_ONLY_FIELDS = {"role", "is_active"}
NON_NULLABLE_FIELDS = {"email", "role", "is_active"}


@router.get(
    "",
    response_model=list[UserRead],
    dependencies=[Depends(require_admin)],
    summary="List users (admin)",
)
def list_users(db: Session = Depends(get_db)):
    return user_service.list_users(db)


@router.get("/me", response_model=UserRead, summary="Current user's profile")
def read_me(
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return user_service.get_user(db, user.user_id)


@router.post(
    "/sessions/cleanup",
    response_model=SessionCleanupResult,
    dependencies=[Depends(require_admin)],
    summary="Delete expired sessions (admin)",
)
def cleanup_sessions(store: SessionStore = Depends(get_session_store)):
    deleted = store.sweep_expired()
    return SessionCleanupResult(message="Cleanup completed", deleted=deleted)


@router.get("/{user_id}", response_model=UserRead, summary="Get a user's profile")
def read_user(
    user_id: int,
    _: CurrentUser = Depends(owner_or_admin),
    db: Session = Depends(get_db),
):
    return user_service.get_user(db, user_id)


@router.put(
    "/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Update a user's profile",
)
def update_user(
    user_id: int,
    payload: UserUpdate,
    user: CurrentUser = Depends(owner_or_admin),
    store: SessionStore = Depends(get_session_store),
):
    changes = payload.model_dump(exclude_unset=True)
    for field in NON_NULLABLE_FIELDS & changes.keys():
        if changes[field] is None:
            raise ValidationError(f"{field} cannot be null")
    if ADMIN_ONLY_FIELDS & changes.keys() and not user.is_admin:
        raise Forbidden("Only admins can change role or active status")

    user_service.update_user(store, user_id, changes)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{user_id}/change-password",
    response_model=MessageResponse,
    summary="Change password and log out everywhere",
)
def change_password(
    user_id: int,
    payload: PasswordChange,
    _: CurrentUser = Depends(owner_or_admin),
    store: SessionStore = Depends(get_session_store),
):
    if not payload.old_password or not payload.new_password:
        raise ValidationError("Old and new passwords are required")

    auth_service.change_password(
        store,
        user_id=user_id,
        old_password=payload.old_password,
        new_password=payload.new_password,
    )
    return MessageResponse(message="Password changed successfully. Please login again.")


@router.delete(
    "/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    dependencies=[Depends(require_admin)],
    summary="Delete a user (admin)",
)
def delete_user(user_id: int, store: SessionStore = Depends(get_session_store)):
    user_service.delete_user(store, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
