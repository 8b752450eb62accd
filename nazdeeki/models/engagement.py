from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from nazdeeki.db.session import Base
from nazdeeki.models.common import CreatedAtMixin


class Rating(Base, CreatedAtMixin):
    __tablename__ = "rating"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    rest_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    review: Mapped[str | None] = mapped_column(Text, nullable=True)


class Like(Base, CreatedAtMixin):
    __tablename__ = "likes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    rest_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)


class Collection(Base, CreatedAtMixin):
    __tablename__ = "collection"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    rest_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    name: Mapped[str | None] = mapped_column(String(120), nullable=True)
