"""SQLAlchemy ORM models for the short-link engine.

This module defines the database schema using SQLAlchemy declarative models
for short links, their append-only click log, QR descriptors, and the
read-only plan/subscription tables owned by the billing side.

Data Model Layout
=================
::
    short_links table
    ├─ id (UUID PRIMARY KEY)
    ├─ owner_id (UUID, INDEXED)
    ├─ original_url (TEXT NOT NULL)
    ├─ short_code (VARCHAR(32), UNIQUE WHERE is_deleted = false)
    ├─ is_active (BOOLEAN)
    ├─ is_deleted (BOOLEAN) / deleted_at (TIMESTAMPTZ NULL)
    ├─ total_clicks (BIGINT DEFAULT 0)
    └─ created_at (TIMESTAMPTZ)

    link_clicks table
    ├─ id (UUID PRIMARY KEY)
    ├─ short_link_id (FK → short_links.id, INDEXED)
    ├─ clicked_at (TIMESTAMPTZ)
    ├─ referrer (TEXT)
    └─ user_agent (TEXT)

    qr_codes table
    ├─ id (UUID PRIMARY KEY)
    ├─ short_link_id (FK → short_links.id, UNIQUE)
    ├─ format (VARCHAR(16))
    └─ file_url (TEXT)

    plans / subscriptions tables (read-only here)

Class Relationship Diagram
=========================
::
    ShortLink 1 ──── * LinkClick
        │
        └──── 0..1 QrCode

    Subscription * ──── 1 Plan

How to Use
===========
**Step 1 — Import**::
    from shortlinks.models import ShortLink, LinkClick

**Step 2 — Load a link with its clicks**::
    stmt = select(ShortLink).options(selectinload(ShortLink.clicks))
    link = (await db.execute(stmt)).scalar_one_or_none()

Key Behaviours
===============
- Relationships raise on lazy access; load them explicitly with selectinload.
- short_code is unique among live links only; soft-deleted codes may be reused.
- Links are never hard-deleted; soft delete also deactivates resolution.
- link_clicks rows are append-only.

Classes:
    ShortLink:  A short code mapping with denormalized click counter.
    LinkClick:  One recorded resolution of a short link.
    QrCode:  Externally rendered QR descriptor for a short link.
    Plan:  Billing plan limits (read-only).
    Subscription:  User-to-plan assignment (read-only).
"""

import datetime
import uuid
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shortlinks.database import Base

__all__ = ["ShortLink", "LinkClick", "QrCode", "Plan", "Subscription", "utcnow"]


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


class ShortLink(Base):
    __tablename__ = "short_links"
    __table_args__ = (
        Index(
            "uq_short_links_live_short_code",
            "short_code",
            unique=True,
            postgresql_where=text("is_deleted = false"),
            sqlite_where=text("is_deleted = 0"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True, nullable=False)
    original_url: Mapped[str] = mapped_column(Text, nullable=False)
    short_code: Mapped[str] = mapped_column(String(32), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    deleted_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    total_clicks: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, index=True, nullable=False
    )

    qr_code: Mapped["QrCode | None"] = relationship(
        back_populates="short_link", uselist=False, cascade="all, delete-orphan", lazy="raise"
    )
    clicks: Mapped[list["LinkClick"]] = relationship(
        back_populates="short_link", cascade="all, delete-orphan", lazy="raise"
    )

    def __repr__(self) -> str:
        return f"<ShortLink(id={self.id}, short_code='{self.short_code}', total_clicks={self.total_clicks})>"


class LinkClick(Base):
    __tablename__ = "link_clicks"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    short_link_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("short_links.id"), index=True, nullable=False)
    clicked_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    referrer: Mapped[str] = mapped_column(Text, default="", nullable=False)
    user_agent: Mapped[str] = mapped_column(Text, default="", nullable=False)

    short_link: Mapped[ShortLink] = relationship(back_populates="clicks", lazy="raise")

    def __repr__(self) -> str:
        return f"<LinkClick(id={self.id}, short_link_id={self.short_link_id}, clicked_at={self.clicked_at})>"


class QrCode(Base):
    __tablename__ = "qr_codes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    short_link_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("short_links.id"), unique=True, nullable=False)
    format: Mapped[str] = mapped_column(String(16), default="png", nullable=False)
    file_url: Mapped[str] = mapped_column(Text, nullable=False)

    short_link: Mapped[ShortLink] = relationship(back_populates="qr_code", lazy="raise")


class Plan(Base):
    __tablename__ = "plans"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    price_monthly: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    max_links_per_month: Mapped[int] = mapped_column(Integer, nullable=False)
    custom_alias_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    qr_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


class Subscription(Base):
    __tablename__ = "subscriptions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True, nullable=False)
    plan_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("plans.id"), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
