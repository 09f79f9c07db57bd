"""User accounts, as far as notifications need them."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from addiscare.db.base import Base, TimestampMixin


class UserRow(Base, TimestampMixin):
    __tablename__ = "users"

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    avatar: Mapped[str | None] = mapped_column(String(500), nullable=True)
