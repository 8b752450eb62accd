from __future__ import annotations

import logging
from threading import Lock
from time import monotonic

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from nazdeeki.core.config import settings

_LOG = logging.getLogger("nazdeeki.db_health")


class DatabaseHealth:
    """Caches the outcome of ``SELECT 1`` for a short interval."""

    def __init__(self, interval_seconds: float):
        self.interval_seconds = float(interval_seconds)
        self._healthy = True
        self._checked_at: float | None = None
        self._lock = Lock()

    def ping(self, db: Session) -> bool:
        with self._lock:
            now = monotonic()
            if self._checked_at is not None and now - self._checked_at < self.interval_seconds:
                return self._healthy
            self._checked_at = now
        try:
            db.execute(text("SELECT 1"))
            healthy = True
        except SQLAlchemyError:
            _LOG.warning("database ping failed", exc_info=True)
            healthy = False
        try:
            # Leave the session without an open transaction for the handler.
            db.rollback()
        except SQLAlchemyError:
            healthy = False
        with self._lock:
            self._healthy = healthy
        return healthy


_cached_health: DatabaseHealth | None = None


def get_database_health() -> DatabaseHealth:
    global _cached_health
    if _cached_health is None:
        _cached_health = DatabaseHealth(settings.DB_HEALTH_CHECK_INTERVAL_SECONDS)
    return _cached_health


def reset_database_health_for_tests() -> None:
    global _cached_health
    _cached_health = None
