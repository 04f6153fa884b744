# File: manga_api/services/session_store.py

"""
Session store: persistent mapping token -> (user, expiry).

Sessions are created on login, resolved on every authenticated request
and deleted on logout, password change, lazy expiry detection or bulk
cleanup. Nothing here decides whether a resolved session is acceptable;
that is the auth guard's job.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from manga_api.core.config import settings
from manga_api.core.errors import NotFound
from manga_api.core.security import generate_token
from manga_api.models.base import utcnow
from manga_api.models.session import AuthSession
from manga_api.models.user import User

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


@dataclass(frozen=True)
class SessionView:
    session_id: int
    user_id: int
    email: str
    display_name: str | None
    role: str
    is_active: bool
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at < now


class SessionStore:
    def __init__(
        self,
        db: Session,
        *,
        ttl: timedelta | None = None,
        clock: Clock = utcnow,
    ):
        self.db = db
        self.ttl = ttl or timedelta(days=settings.session_ttl_days)
        self.clock = clock

    def create(self, user_id: int) -> tuple[str, datetime]:
        """Open a session for ``user_id`` and stamp the user's last login."""
        now = self.clock()
        token = generate_token()
        expires_at = now + self.ttl

        self.db.add(AuthSession(user_id=user_id, token=token, expires_at=expires_at))
        self.db.execute(
            update(User).where(User.user_id == user_id).values(last_login=now)
        )
        self.db.commit()
        logger.info("Session created for user %s", user_id)
        return token, expires_at

    def resolve(self, token: str) -> SessionView:
        row = self.db.execute(
            select(
                AuthSession.session_id,
                AuthSession.expires_at,
                User.user_id,
                User.email,
                User.display_name,
                User.role,
                User.is_active,
            )
            .join(User, AuthSession.user_id == User.user_id)
            .where(AuthSession.token == token)
        ).first()
        if row is None:
            raise NotFound("Session not found")

        return SessionView(
            session_id=row.session_id,
            user_id=row.user_id,
            email=row.email,
            display_name=row.display_name,
            role=row.role,
            is_active=bool(row.is_active),
            expires_at=row.expires_at,
        )

    def invalidate(self, token: str) -> bool:
        """Delete one session. Returns False if it was already gone."""
        result = self.db.execute(delete(AuthSession).where(AuthSession.token == token))
        self.db.commit()
        return result.rowcount > 0

    def invalidate_all_for_user(self, user_id: int, *, commit: bool = True) -> int:
        """
        Delete every session of ``user_id``.

        With ``commit=False`` the delete joins the caller's transaction, so
        it lands together with whatever change triggered it.
        """
        result = self.db.execute(delete(AuthSession).where(AuthSession.user_id == user_id))
        if commit:
            self.db.commit()
        if result.rowcount:
            logger.info("Invalidated %d session(s) for user %s", result.rowcount, user_id)
        return result.rowcount

    def sweep_expired(self) -> int:
        result = self.db.execute(
            delete(AuthSession).where(AuthSession.expires_at < self.clock())
        )
        self.db.commit()
        logger.info("Expired session sweep removed %d row(s)", result.rowcount)
        return result.rowcount
