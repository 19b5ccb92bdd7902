# medreview/services/session.py
from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session

from medreview.db import Base, get_engine, new_session


@contextmanager
def db_session() -> Iterator[Session]:
    db = new_session()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db() -> None:
    """
    Create all tables.
    Call this once at startup.
    """
    # Importing registers the tables on Base.metadata.
    import medreview.models  # noqa: F401

    Base.metadata.create_all(bind=get_engine())
