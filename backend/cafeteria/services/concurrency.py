# Overview: Row locking for the local store and the in-flight guard for actions.

from __future__ import annotations

import threading
from contextlib import contextmanager

from ..extensions import db
from ..validation import ConflictError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


class InFlightGuard:
    """
    Rejects a second submission of the same action by the same user while
    the first one is still running (double-clicks, client retries).
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._active: set[tuple[str, str]] = set()

    @contextmanager
    def hold(self, user_id, action: str):
        key = (str(user_id), action)
        with self._lock:
            if key in self._active:
                raise ConflictError(f"A {action} request is already in progress")
            self._active.add(key)
        try:
            yield
        finally:
            with self._lock:
                self._active.discard(key)

    def is_active(self, user_id, action: str) -> bool:
        with self._lock:
            return (str(user_id), action) in self._active


@contextmanager
def atomic():
    """
    Commit the current session on success, roll back on any failure.

    Everything written inside the block lands together or not at all.
    """
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
