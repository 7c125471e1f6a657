"""
No-tracking reads on top of the SQLAlchemy identity map.
"""

from contextlib import contextmanager
from sqlalchemy.orm import Session


@contextmanager
def untracked(session: Session):
    """
    Run reads with autoflush off, then detach every instance they loaded.

    Staged (unflushed) changes stay invisible to the reads. Instances that were
    already in the identity map before the block keep being tracked.
    """
    before = set(session.identity_map.keys())
    try:
        with session.no_autoflush:
            yield
    finally:
        for key in list(session.identity_map.keys()):
            if key in before:
                continue
            instance = session.identity_map.get(key)
            # expunge may cascade, so the instance can already be gone
            if instance is not None and instance in session:
                session.expunge(instance)
