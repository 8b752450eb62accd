from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from nazdeeki.models.auth_log import AuthLog
from nazdeeki.models.common import utcnow

logger = logging.getLogger("nazdeeki.auth.audit")

EVENT_OTP_REQUEST = "otp_request"
EVENT_OTP_SENT = "otp_sent"
EVENT_OTP_VERIFY = "otp_verify"
EVENT_SIGNUP = "signup"
EVENT_LOGIN = "login"
EVENT_LOGOUT = "logout"


def log_auth_event(
    db: Session,
    *,
    event_type: str,
    phone_number: str | None = None,
    seller_id: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    success: bool = True,
    error: str | None = None,
    persist_now: bool = False,
) -> None:
    """Append an audit row; with ``persist_now`` it is committed immediately.

    Without ``persist_now`` the row rides on the caller's commit. A failing
    audit write is logged and swallowed: it must never change the outcome of
    the request it describes.
    """
    logger.info(
        "auth_event=%s phone=%s seller=%s ip=%s success=%s error=%s",
        event_type,
        phone_number or "-",
        seller_id or "-",
        ip_address or "-",
        bool(success),
        error or "-",
    )
    try:
        db.add(
            AuthLog(
                seller_id=seller_id,
                phone_number=(str(phone_number)[:20] if phone_number else None),
                event_type=str(event_type),
                ip_address=ip_address,
                user_agent=user_agent,
                success=bool(success),
                error_message=(str(error)[:1000] if error is not None else None),
                created_at=utcnow(),
            )
        )
        if persist_now:
            db.commit()
    except SQLAlchemyError:
        logger.error("auth_audit_write_failed event=%s", event_type, exc_info=True)
        try:
            db.rollback()
        except SQLAlchemyError:
            logger.debug("auth_audit_rollback_failed", exc_info=True)
