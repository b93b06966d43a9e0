from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session


@contextmanager
def atomic(session: Session) -> Iterator:
    """
    Commit the session when the block exits cleanly; roll it back and re-raise
    otherwise, so writes staged inside the block land together or not at all.
    Usage:
        with atomic(db):
            ... DB work ...
    """
    try:
        yield
        session.commit()
    except Exception:
        session.rollback()
        raise
