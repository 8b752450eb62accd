from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from nazdeeki.db.session import Base
from nazdeeki.models.common import TimestampMixin


class Address(Base, TimestampMixin):
    __tablename__ = "addresses"

    address_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # Seller that provisioned the row; several sellers may later share it via sellers.address_id.
    rest_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    address_type: Mapped[str] = mapped_column(String(30), default="restaurant", nullable=False)
    line1: Mapped[str | None] = mapped_column(String(255), nullable=True)
    city: Mapped[str | None] = mapped_column(String(120), nullable=True)
    pincode: Mapped[str | None] = mapped_column(String(12), nullable=True)
