# File: manga_api/models/base.py

from datetime import datetime, timezone

from sqlalchemy.orm import DeclarativeBase


def utcnow() -> datetime:
    """Naive UTC timestamp; MySQL DATETIME and SQLite both drop tzinfo."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

    Only identity tables (users, sessions) are mapped here; catalog tables
    belong to the CRUD surface and are not modelled.
    """
    pass
