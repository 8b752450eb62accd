from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, Boolean
from sqlalchemy.orm import Mapped, mapped_column

from nazdeeki.db.session import Base
from nazdeeki.models.common import TimestampMixin

ACCOUNT_STATUSES = ("pending", "active", "suspended", "deleted")


class Seller(Base, TimestampMixin):
    __tablename__ = "sellers"
    __table_args__ = (
        CheckConstraint(
            "account_status IN ('pending', 'active', 'suspended', 'deleted')",
            name="check_account_status",
        ),
    )

    seller_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    owner_name: Mapped[str] = mapped_column(String(200), nullable=False)
    restaurant_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    rest_phone: Mapped[str] = mapped_column(String(20), nullable=False, unique=True, index=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    address_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("addresses.address_id", ondelete="SET NULL"), nullable=True, index=True
    )
    menu_id: Mapped[str | None] = mapped_column(String(80), nullable=True, index=True)

    phone_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    account_status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)
    last_login: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    login_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    locked_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
