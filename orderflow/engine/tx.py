"""
Transaction boundary shared by every durable engine step.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from orderflow.engine.errors import ConcurrentUpdateError, PersistenceError

logger = logging.getLogger(__name__)


@contextmanager
def atomic(db: Session, operation: str):
    """Commit everything done inside the block, or nothing.

    Uniqueness and version conflicts become ``ConcurrentUpdateError`` so the
    caller can retry; any other database failure becomes ``PersistenceError``.
    """
    try:
        yield db
        db.commit()
    except (IntegrityError, StaleDataError) as e:
        db.rollback()
        logger.warning("%s: concurrent update conflict: %s", operation, e)
        raise ConcurrentUpdateError(f"{operation}: concurrent update, retry") from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("%s: persistence failure: %s", operation, e, exc_info=True)
        raise PersistenceError(f"{operation}: persistence failure") from e
    except Exception:
        db.rollback()
        raise
