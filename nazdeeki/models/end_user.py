from datetime import date, datetime

from sqlalchemy import Boolean, CheckConstraint, Date, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from nazdeeki.db.session import Base
from nazdeeki.models.common import TimestampMixin


class EndUser(Base, TimestampMixin):
    """Diner account; the id is what orders, ratings, likes and collections store as ``user_id``."""

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(
            "account_status IN ('pending', 'active', 'suspended', 'deleted')",
            name="check_user_account_status",
        ),
    )

    user_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    phone: Mapped[str] = mapped_column(String(20), nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    gender: Mapped[str | None] = mapped_column(String(20), nullable=True)
    dob: Mapped[date | None] = mapped_column(Date, nullable=True)
    preference: Mapped[str | None] = mapped_column(String(255), nullable=True)

    phone_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    account_status: Mapped[str] = mapped_column(String(20), default="active", nullable=False)
    last_login: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
