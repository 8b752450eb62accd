from decimal import Decimal

from sqlalchemy import Boolean, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from nazdeeki.db.session import Base
from nazdeeki.models.common import TimestampMixin


class MenuItem(Base, TimestampMixin):
    __tablename__ = "menu"

    item_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    rest_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    menu_id: Mapped[str | None] = mapped_column(String(80), nullable=True, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0, nullable=False)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
