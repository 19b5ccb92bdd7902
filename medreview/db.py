# medreview/db.py
import logging
import threading
from typing import Optional

from sqlalchemy import JSON, create_engine
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from medreview.config import get_settings

logger = logging.getLogger(__name__)

# JSONB on Postgres, plain JSON on SQLite (local runs and tests).
JSONType = JSON().with_variant(JSONB(), "postgresql")

_engine: Optional[Engine] = None
_engine_lock = threading.Lock()

_session_factory = sessionmaker(
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
    future=True,
)


class Base(DeclarativeBase):
    """
    Base class for ORM models.
    """
    pass


def _build_engine(url: str) -> Engine:
    if url.startswith("sqlite") and (":memory:" in url or url.rstrip("/") in ("sqlite:", "sqlite+pysqlite:")):
        # One shared connection, otherwise every new connection is a fresh empty database.
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            future=True,
        )

    kwargs = {"echo": False, "future": True}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs["pool_pre_ping"] = True
    return create_engine(url, **kwargs)


def get_engine() -> Engine:
    """
    Return the process-wide engine, creating it on first use.
    The lock makes concurrent first callers share one engine.
    """
    global _engine
    if _engine is None:
        with _engine_lock:
            if _engine is None:
                settings = get_settings()
                _engine = _build_engine(settings.database_url)
                logger.info("Database engine initialised (%s)", _engine.url.get_backend_name())
    return _engine


def new_session() -> Session:
    return _session_factory(bind=get_engine())


def dispose_engine() -> None:
    """Close pooled connections. Only called at process shutdown."""
    global _engine
    with _engine_lock:
        if _engine is not None:
            _engine.dispose()
            _engine = None
