"""
Database initialization helpers.

Models are imported so their tables get registered on Base.metadata.
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from manga_api.core.security import hash_password
from manga_api.models.base import Base
from manga_api.models.session import AuthSession  # noqa: F401
from manga_api.models.user import ROLE_ADMIN, User
from manga_api.services.auth_service import normalize_email

logger = logging.getLogger(__name__)


def init_db(bind: Engine) -> None:
    """
    Create the users and sessions tables if they are missing.
    """
    Base.metadata.create_all(bind=bind)


def seed_admin(
    db: Session,
    *,
    email: str,
    password: str,
    display_name: Optional[str] = None,
) -> User:
    """
    Create an admin account, or promote and re-activate an existing one.

    The password is only set for newly created accounts.
    """
    email = normalize_email(email)
    user = db.scalar(select(User).where(User.email == email))
    if user is None:
        user = User(
            email=email,
            password_hash=hash_password(password),
            display_name=display_name,
            role=ROLE_ADMIN,
            is_active=True,
        )
        db.add(user)
        logger.info("Created admin account %s", email)
    else:
        user.role = ROLE_ADMIN
        user.is_active = True
        logger.info("Promoted %s to admin", email)
    db.commit()
    db.refresh(user)
    return user
