import logging
import time

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from manga_api.core.config import settings

logger = logging.getLogger(__name__)

# Query text kept on a SlowQueryEvent
SLOW_QUERY_TEXT_LIMIT = 200


def build_engine(url: str, *, pool_size: int = 10) -> Engine:
    """
    Create the SQLAlchemy engine.

    Server databases get a bounded pool (``pool_size`` connections, no
    overflow); requests beyond that queue inside the pool.
    """
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url.rstrip("/") == "sqlite:":
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)

    return create_engine(
        url,
        pool_size=pool_size,
        max_overflow=0,
        pool_pre_ping=True,
        pool_recycle=3600,
    )


def build_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=bind)


def install_query_timer(bind: Engine, metrics, threshold_ms: int) -> None:
    """Report statements slower than ``threshold_ms`` to ``metrics``."""

    @event.listens_for(bind, "before_cursor_execute")
    def _start_timer(conn, cursor, statement, parameters, context, executemany):
        conn.info.setdefault("query_start_time", []).append(time.perf_counter())

    @event.listens_for(bind, "after_cursor_execute")
    def _stop_timer(conn, cursor, statement, parameters, context, executemany):
        starts = conn.info.get("query_start_time")
        if not starts:
            return
        duration_ms = (time.perf_counter() - starts.pop()) * 1000
        if duration_ms > threshold_ms:
            query = " ".join(statement.split())[:SLOW_QUERY_TEXT_LIMIT]
            logger.warning("Slow query (%.0f ms): %s", duration_ms, query)
            metrics.record_slow_query(query=query, duration_ms=round(duration_ms))


engine = build_engine(settings.database_url, pool_size=settings.db_connection_limit)
