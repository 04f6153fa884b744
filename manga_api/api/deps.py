# File: manga_api/api/deps.py

"""
FastAPI dependencies: database session, shared services and the auth guard.

Guard chain for a protected route:

    token extracted -> session resolved -> expiry / active checks -> user attached

Every failure raises before the route handler runs. Credentials are read by
small extractor objects tried in order; the first one that yields a value
wins, so alternative header spellings and the static admin API key stay
independent of each other.
"""

import hmac
import logging
from collections.abc import Generator
from typing import Callable, Optional, Sequence

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from manga_api.core.errors import Forbidden, Unauthenticated
from manga_api.services.auth_service import CurrentUser, verify_session_token
from manga_api.services.metrics import MetricsRecorder
from manga_api.services.session_store import SessionStore
from manga_api.services.status_service import StatusReporter

logger = logging.getLogger(__name__)


def get_db(request: Request) -> Generator[Session, None, None]:
    """
    FastAPI dependency that provides a SQLAlchemy session.

    Usage in route functions:
        db: Session = Depends(get_db)
    """
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_session_store(db: Session = Depends(get_db)) -> SessionStore:
    return SessionStore(db)


def get_metrics(request: Request) -> MetricsRecorder:
    return request.app.state.metrics


def get_status_reporter(request: Request) -> StatusReporter:
    return request.app.state.status_reporter


# ---------- credential extractors ----------

class BearerToken:
    """``Authorization: Bearer <token>``"""

    def extract(self, request: Request) -> Optional[str]:
        header = request.headers.get("authorization")
        if not header:
            return None
        scheme, _, value = header.partition(" ")
        if scheme.lower() != "bearer":
            return None
        return value.strip() or None


class HeaderToken:
    """Raw token in a custom header, e.g. ``x-auth-token``."""

    def __init__(self, header: str):
        self.header = header

    def extract(self, request: Request) -> Optional[str]:
        value = request.headers.get(self.header)
        return value.strip() if value and value.strip() else None


TOKEN_EXTRACTORS: Sequence = (BearerToken(), HeaderToken("x-auth-token"))
API_KEY_EXTRACTORS: Sequence = (HeaderToken("x-api-key"),)


def first_credential(request: Request, extractors: Sequence) -> Optional[str]:
    for extractor in extractors:
        value = extractor.extract(request)
        if value:
            return value
    return None


# ---------- auth guard ----------

def _authorize(request: Request, store: SessionStore, token: str) -> CurrentUser:
    view = verify_session_token(store, token)
    user = CurrentUser.from_session(view)
    request.state.user = user
    return user


def get_current_user(
    request: Request,
    store: SessionStore = Depends(get_session_store),
) -> CurrentUser:
    token = first_credential(request, TOKEN_EXTRACTORS)
    if token is None:
        raise Unauthenticated("No token provided")
    return _authorize(request, store, token)


def get_optional_user(
    request: Request,
    store: SessionStore = Depends(get_session_store),
) -> Optional[CurrentUser]:
    """Like ``get_current_user`` but a missing token is not an error."""
    existing = getattr(request.state, "user", None)
    if existing is not None:
        return existing
    token = first_credential(request, TOKEN_EXTRACTORS)
    if token is None:
        return None
    return _authorize(request, store, token)


def has_admin_api_key(request: Request) -> bool:
    expected = request.app.state.settings.admin_api_key
    supplied = first_credential(request, API_KEY_EXTRACTORS)
    if not expected or not supplied:
        return False
    return hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8"))


def require_admin(
    request: Request,
    user: Optional[CurrentUser] = Depends(get_optional_user),
) -> Optional[CurrentUser]:
    """
    Admin session, or the static ``x-api-key`` for service-to-service calls.

    Returns the admin user, or None for API-key callers.
    """
    if user is not None and user.is_admin:
        return user
    if has_admin_api_key(request):
        logger.info("Admin access via API key: %s %s", request.method, request.url.path)
        return None
    raise Forbidden("Unauthorized - Admin access required")


def require_user_or_admin(param_name: str = "user_id") -> Callable[..., CurrentUser]:
    """Allow the owner of the resource named by ``param_name``, or any admin."""

    def dependency(
        request: Request,
        user: CurrentUser = Depends(get_current_user),
    ) -> CurrentUser:
        if user.is_admin:
            return user
        raw = request.path_params.get(param_name)
        try:
            owner_id = int(raw)
        except (TypeError, ValueError):
            owner_id = None
        if owner_id is not None and owner_id == user.user_id:
            return user
        raise Forbidden("Unauthorized - You can only access your own resources")

    return dependency
