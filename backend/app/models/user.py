"""ORM models backing permission resolution: users and named roles."""

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(200), primary_key=True)
    name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    role: Mapped[str | None] = mapped_column(String(100), nullable=True)
    # {"production": ["add", "delete"]}; overrides the role's permissions when set
    permissions: Mapped[dict | None] = mapped_column(JSON, nullable=True)


class Role(Base, TimestampMixin):
    __tablename__ = "roles"

    name: Mapped[str] = mapped_column(String(100), primary_key=True)
    # ["production:add", "productivity:add"]
    permissions: Mapped[list | None] = mapped_column(JSON, nullable=True)
