"""User model."""

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class User(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "users"

    username: str = Field(nullable=False)
    email: str = Field(unique=True, index=True, nullable=False)  # stored lower-cased
    password_hash: str = Field(nullable=False)
    role: str = Field(default="user", nullable=False, sa_type=sa.String(16))  # user | admin
