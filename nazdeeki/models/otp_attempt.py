from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from nazdeeki.db.session import Base
from nazdeeki.models.common import CreatedAtMixin

PROVIDER_TWOFACTOR = "2factor"
PROVIDER_CONSOLE = "console"

ACCOUNT_KIND_SELLER = "seller"
ACCOUNT_KIND_USER = "user"

STATUS_SENT = "sent"
STATUS_FALLBACK = "fallback"


class OtpAttempt(Base, CreatedAtMixin):
    __tablename__ = "otp_attempts"
    __table_args__ = (
        Index("idx_otp_attempts_phone", "phone_number", "expires_at"),
        Index("idx_otp_attempts_session", "session_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    phone_number: Mapped[str] = mapped_column(String(20), nullable=False)
    otp_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    is_signup: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    account_kind: Mapped[str] = mapped_column(String(10), default=ACCOUNT_KIND_SELLER, nullable=False)
    session_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    sms_provider: Mapped[str] = mapped_column(String(20), default=PROVIDER_CONSOLE, nullable=False)
    sms_status: Mapped[str] = mapped_column(String(30), default="pending", nullable=False)
