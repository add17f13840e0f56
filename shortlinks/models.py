"""SQLAlchemy ORM models for the short link service.

This module defines the database schema using SQLAlchemy declarative models
with proper indexing and timestamp management for links and their visits.

Data Model Layout
=================
::
    links table
    ├─ id (VARCHAR(36) PRIMARY KEY, uuid4)
    ├─ short_code (VARCHAR(20) UNIQUE, INDEXED)
    ├─ target_url (TEXT NOT NULL)
    ├─ owner_id (VARCHAR(64), INDEXED)
    ├─ is_active (BOOLEAN DEFAULT TRUE)
    ├─ expires_at (TIMESTAMPTZ NULL)
    ├─ clicks (INTEGER DEFAULT 0)
    ├─ created_at (TIMESTAMPTZ)
    └─ updated_at (TIMESTAMPTZ, ON UPDATE)

    visits table
    ├─ id (VARCHAR(36) PRIMARY KEY, uuid4)
    ├─ link_id (FK → links.id, INDEXED)
    ├─ ip_address (VARCHAR(45))
    ├─ user_agent (TEXT NULL)
    ├─ referrer (TEXT NULL)
    └─ visited_at (TIMESTAMPTZ)

Key Behaviours
===============
- short_code uniqueness is enforced by the database, not only by the service.
- Timestamps are set application-side in UTC so ordering is precise on
  every backend.
- Visits are append-only; the service deletes them before their link.
- clicks is only ever changed through an atomic UPDATE ... SET clicks = clicks + 1.

Classes:
    Link:  A short code mapped to a target URL, owned by an external user.
    Visit:  One recorded resolution of a Link.
"""

import datetime
import uuid

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from shortlinks.database import Base

__all__ = ["Link", "Visit", "utcnow"]


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class Link(Base):
    __tablename__ = "links"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    short_code: Mapped[str] = mapped_column(String(20), unique=True, index=True, nullable=False)
    target_url: Mapped[str] = mapped_column(Text, nullable=False)
    owner_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    expires_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    clicks: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<Link(id={self.id}, short_code='{self.short_code}', clicks={self.clicks})>"


class Visit(Base):
    __tablename__ = "visits"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    link_id: Mapped[str] = mapped_column(String(36), ForeignKey("links.id"), index=True, nullable=False)
    ip_address: Mapped[str] = mapped_column(String(45), nullable=False)  # IPv6 max length
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    referrer: Mapped[str | None] = mapped_column(Text, nullable=True)
    visited_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        Index("ix_visits_link_id_visited_at", "link_id", "visited_at"),
    )

    def __repr__(self) -> str:
        return f"<Visit(id={self.id}, link_id={self.link_id}, visited_at={self.visited_at})>"
