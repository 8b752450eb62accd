import uuid
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from nazdeeki.db.session import Base
from nazdeeki.models.common import CreatedAtMixin, utcnow


class AuthSession(Base, CreatedAtMixin):
    __tablename__ = "auth_sessions"
    __table_args__ = (
        Index("idx_auth_sessions_active", "is_active", "expires_at"),
        # Exactly one owner: a seller or an end user.
        CheckConstraint("(seller_id IS NULL) <> (user_id IS NULL)", name="check_session_owner"),
    )

    session_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    seller_id: Mapped[str | None] = mapped_column(
        String(64), ForeignKey("sellers.seller_id", ondelete="CASCADE"), nullable=True, index=True
    )
    user_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=True, index=True
    )
    refresh_token_hash: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    device_info: Mapped[str | None] = mapped_column(Text, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_used: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
