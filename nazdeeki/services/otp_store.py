from __future__ import annotations

from datetime import datetime

from sqlalchemy import func
from sqlalchemy.orm import Session

from nazdeeki.models.otp_attempt import ACCOUNT_KIND_SELLER, OtpAttempt


def count_recent_attempts(db: Session, phone_number: str, *, since: datetime) -> int:
    # Counted per handset, whichever account kind asked for the code.
    return int(
        db.query(func.count(OtpAttempt.id))
        .filter(OtpAttempt.phone_number == phone_number, OtpAttempt.created_at > since)
        .scalar()
        or 0
    )


def record_attempt(
    db: Session,
    *,
    phone_number: str,
    otp_hash: str,
    expires_at: datetime,
    ip_address: str | None,
    is_signup: bool,
    session_id: str | None,
    sms_provider: str,
    sms_status: str,
    created_at: datetime,
    account_kind: str = ACCOUNT_KIND_SELLER,
) -> OtpAttempt:
    row = OtpAttempt(
        phone_number=phone_number,
        otp_hash=otp_hash,
        attempts=0,
        created_at=created_at,
        expires_at=expires_at,
        ip_address=ip_address,
        is_signup=bool(is_signup),
        account_kind=account_kind,
        session_id=session_id,
        sms_provider=sms_provider,
        sms_status=sms_status,
    )
    db.add(row)
    db.flush()
    return row


def most_recent_unexpired(
    db: Session, phone_number: str, *, now: datetime, account_kind: str = ACCOUNT_KIND_SELLER
) -> OtpAttempt | None:
    return (
        db.query(OtpAttempt)
        .filter(
            OtpAttempt.phone_number == phone_number,
            OtpAttempt.account_kind == account_kind,
            OtpAttempt.expires_at > now,
        )
        .order_by(OtpAttempt.created_at.desc(), OtpAttempt.id.desc())
        .first()
    )


def increment_failure(db: Session, attempt: OtpAttempt) -> None:
    db.query(OtpAttempt).filter(OtpAttempt.id == attempt.id).update(
        {OtpAttempt.attempts: OtpAttempt.attempts + 1},
        synchronize_session=False,
    )


def mark_verified(db: Session, attempt: OtpAttempt, *, method: str, now: datetime, max_failed: int) -> bool:
    """Claim the attempt for this request.

    The guard lives in the UPDATE itself, so of two requests racing with the
    same correct code only one sees a matched row; the caller must treat
    ``False`` as "no valid OTP".
    """
    claimed = (
        db.query(OtpAttempt)
        .filter(
            OtpAttempt.id == attempt.id,
            OtpAttempt.verified_at.is_(None),
            OtpAttempt.attempts < max_failed,
        )
        .update(
            {OtpAttempt.verified_at: now, OtpAttempt.sms_status: f"verified_{method}"},
            synchronize_session=False,
        )
    )
    return claimed == 1
