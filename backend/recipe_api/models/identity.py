"""
RecipeApp API - Identity SQLAlchemy Models
===========================================

What:  ORM models for the identity store: users, roles and their membership.
Why:   The identity layer (recipe_api.identity) persists accounts here; the
       seeding routine and the account routes only talk to the managers.
How:   Portable column types (String ids, DateTime with timezone) so the same
       models run on PostgreSQL in production and SQLite in tests.

Table Design Rationale:
    - String(36) UUID primary keys: the seeded administrator has a
      deterministic id derived from the issuer, so ids are assigned in Python.
    - normalized_* columns: lookups are case-insensitive without relying on
      database collations; normalization is upper-case, stripped.
    - normalized_user_name and normalized_email are both UNIQUE at the
      database level. The UserManager checks them first so callers get
      identity error codes, and maps a lost insert race to the same codes.
    - security_stamp / concurrency_stamp: regenerated on credential changes
      and on every update, respectively.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from recipe_api.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ApplicationUser(Base):
    """
    A user identity record.

    Lifecycle:
        Created by UserManager.create() on registration or by seeding.
        The bootstrap never constructs users directly.
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)

    user_name: Mapped[str] = mapped_column(String(256), nullable=False)
    normalized_user_name: Mapped[str] = mapped_column(
        String(256), nullable=False, unique=True
    )

    email: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    normalized_email: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    email_confirmed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # passlib hash string; NULL for accounts without a local password
    password_hash: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    security_stamp: Mapped[str] = mapped_column(String(36), nullable=False, default=_new_id)
    concurrency_stamp: Mapped[str] = mapped_column(String(36), nullable=False, default=_new_id)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (
        Index("ix_users_normalized_email", "normalized_email", unique=True),
    )

    def __repr__(self) -> str:
        return f"<ApplicationUser(id={self.id}, user_name='{self.user_name}')>"


class Role(Base):
    """A named authorization group, e.g. "Admin"."""

    __tablename__ = "roles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    normalized_name: Mapped[str] = mapped_column(String(256), nullable=False, unique=True)
    concurrency_stamp: Mapped[str] = mapped_column(String(36), nullable=False, default=_new_id)

    def __repr__(self) -> str:
        return f"<Role(id={self.id}, name='{self.name}')>"


class UserRole(Base):
    """Membership of a user in a role."""

    __tablename__ = "user_roles"

    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    role_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True
    )

    __table_args__ = (
        Index("ix_user_roles_role_id", "role_id"),
    )
