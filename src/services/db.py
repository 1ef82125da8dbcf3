"""Transaction helpers for write operations.

Every mutating settlement operation runs inside ``atomic``: either all of its
reads-then-writes commit together or none of them do.
"""

import logging
from contextlib import contextmanager
from typing import Generator

from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


@contextmanager
def atomic(db: Session) -> Generator[Session, None, None]:
    """
    Run a block as one database transaction.

    Commits when the block exits normally. Any exception rolls back every write
    made in the block and is re-raised unchanged.

    Example:
        ```python
        with atomic(db):
            db.add(entry)
        ```
    """
    try:
        yield db
        db.commit()
    except Exception:
        logger.debug("Rolling back transaction", exc_info=True)
        db.rollback()
        raise


__all__ = ["atomic"]
