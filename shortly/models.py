"""SQLAlchemy ORM models for Shortly.

Data Model Layout
=================
::
    users table
    ├─ id (VARCHAR(32) PRIMARY KEY)
    ├─ email (VARCHAR(320) UNIQUE)
    ├─ is_premium (BOOLEAN DEFAULT FALSE)
    ├─ custom_domain_prefix (VARCHAR(63) UNIQUE, NULLABLE)
    ├─ premium_expires_at (TIMESTAMPTZ, NULLABLE)
    ├─ created_at / updated_at (TIMESTAMPTZ)

    links table
    ├─ id (VARCHAR(32) PRIMARY KEY)
    ├─ original_url (TEXT NOT NULL)
    ├─ short_id (VARCHAR(32) UNIQUE, INDEXED)
    ├─ custom_alias (VARCHAR(64) UNIQUE, NULLABLE)
    ├─ expires_at (TIMESTAMPTZ, NULLABLE)
    ├─ owner_user_id (FK users.id, NULLABLE, INDEXED)
    ├─ active (BOOLEAN DEFAULT TRUE)
    ├─ qr_code_image_url (TEXT, NULLABLE)
    └─ created_at / updated_at (TIMESTAMPTZ)

Key Behaviours
===============
- ``short_id`` and ``custom_alias`` carry unique indexes; the store is the
  final arbiter of uniqueness under concurrent inserts.
- A link with ``owner_user_id IS NULL`` is anonymous.
- ``Link.owner`` never lazy-loads; queries that need the owner join it.
- Timestamps read back from databases without timezone support are treated
  as UTC.

Classes:
    User:  An account that may own links and a custom domain prefix.
    Link:  A shortened URL.
"""

import datetime
import uuid
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shortly.database import Base

__all__ = ["User", "Link", "as_utc", "utcnow"]


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def as_utc(value: Optional[datetime.datetime]) -> Optional[datetime.datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value.astimezone(datetime.timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    is_premium: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    custom_domain_prefix: Mapped[Optional[str]] = mapped_column(String(63), unique=True, nullable=True)
    premium_expires_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    @property
    def has_custom_domain(self) -> bool:
        """A custom domain prefix only counts while the account is premium."""
        return bool(self.is_premium and self.custom_domain_prefix)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', premium={self.is_premium})>"


class Link(Base):
    __tablename__ = "links"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    original_url: Mapped[str] = mapped_column(Text, nullable=False)
    short_id: Mapped[str] = mapped_column(String(32), unique=True, index=True, nullable=False)
    custom_alias: Mapped[Optional[str]] = mapped_column(String(64), unique=True, nullable=True)
    expires_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    owner_user_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("users.id"), index=True, nullable=True
    )
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    qr_code_image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    owner: Mapped[Optional[User]] = relationship(lazy="raise")

    @property
    def is_anonymous(self) -> bool:
        return self.owner_user_id is None

    @property
    def path(self) -> str:
        """The resolvable path: ``alias/short_id`` or just ``short_id``."""
        if self.custom_alias:
            return f"{self.custom_alias}/{self.short_id}"
        return self.short_id

    def is_expired(self, now: Optional[datetime.datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        now = as_utc(now) if now is not None else utcnow()
        return now > as_utc(self.expires_at)

    def __repr__(self) -> str:
        return f"<Link(id={self.id}, short_id='{self.short_id}', active={self.active})>"
