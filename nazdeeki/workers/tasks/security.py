from __future__ import annotations

import logging

from nazdeeki.db.session import SessionLocal
from nazdeeki.models.auth_session import AuthSession
from nazdeeki.models.common import utcnow
from nazdeeki.models.otp_attempt import OtpAttempt
from nazdeeki.workers.celery_app import celery_app

_LOG = logging.getLogger("nazdeeki.workers.security")


def _purge_expired(model) -> dict[str, int]:
    now = utcnow()
    db = SessionLocal()
    try:
        total = db.query(model).count()
        deleted = db.query(model).filter(model.expires_at <= now).delete(synchronize_session=False)
        db.commit()
        _LOG.info("purged %s expired rows from %s", deleted, model.__tablename__)
        return {"checked": int(total), "deleted": int(deleted)}
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@celery_app.task(name="nazdeeki.workers.tasks.security.cleanup_expired_otps")
def cleanup_expired_otps():
    return _purge_expired(OtpAttempt)


@celery_app.task(name="nazdeeki.workers.tasks.security.cleanup_expired_sessions")
def cleanup_expired_sessions():
    return _purge_expired(AuthSession)
