"""
This is the canonical Unit of Work boundary for OnAir. All transactional changes
outside the runtime stores go through this.

The runtime stores (catalog and anchor) take a sessionmaker and open one short
session per operation; they share these commit/rollback semantics.
"""

from __future__ import annotations

import contextlib
from collections.abc import Callable, Generator

from sqlalchemy.orm import Session

from . import db as _db


@contextlib.contextmanager
def session(factory: Callable[[], Session] | None = None) -> Generator[Session, None, None]:
    """
    Database session context manager for CLI operations and store calls.

    Provides Unit of Work semantics:
    - Opens a DB session
    - Yields it for use
    - On success: commits the transaction
    - On exception: rolls back and re-raises the exception
    - Always closes the session

    Usage:
        with session() as db:
            db.add(some_object)
            # transaction will be committed automatically on success
    """
    db = (factory or _db.SessionLocal)()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
