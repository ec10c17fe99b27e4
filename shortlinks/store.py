"""Persistence gateway for short links, click events and QR descriptors.

All SQL lives here. Callers receive fully loaded entities; relationships
that a caller needs (clicks, QR code) are loaded eagerly by the method that
returns them, never lazily afterwards.

Flow Diagram — record_click()
=============================
::
    ┌──────────────────────────┐
    │ UPDATE short_links        │
    │ SET total_clicks += 1     │
    │ WHERE id = ? AND live     │
    └──────────┬───────────────┘
    ROWS == 1?  │
    ┌─────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌──────────────┐
│ Rollback│  │ INSERT click │
│ → None  │  └──────┬───────┘
└─────────┘         ▼
             ┌──────────────┐
             │ COMMIT (one  │
             │ transaction) │
             └──────────────┘

Key Behaviours
===============
- The counter increment and the click row commit together or not at all.
- A unique-index violation on the live short code surfaces as
  AliasCollisionError; any other database failure as PersistenceError.
- The session is rolled back on failure and on cancellation.
- Monthly counts include soft-deleted links.
"""

import asyncio
import datetime
import uuid
from collections.abc import Sequence

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from shortlinks.errors import AliasCollisionError, PersistenceError
from shortlinks.models import LinkClick, ShortLink, utcnow

__all__ = ["LinkStore", "month_bounds"]


def month_bounds(now: datetime.datetime) -> tuple[datetime.datetime, datetime.datetime]:
    """Return the [start, end) UTC range of the calendar month containing ``now``."""
    now = now.astimezone(datetime.UTC)
    start = datetime.datetime(now.year, now.month, 1, tzinfo=datetime.UTC)
    if now.month == 12:
        end = datetime.datetime(now.year + 1, 1, 1, tzinfo=datetime.UTC)
    else:
        end = datetime.datetime(now.year, now.month + 1, 1, tzinfo=datetime.UTC)
    return start, end


def _is_alias_collision(exc: IntegrityError) -> bool:
    return "short_code" in str(exc.orig)


class LinkStore:
    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def code_exists(self, short_code: str) -> bool:
        stmt = select(ShortLink.id).where(ShortLink.short_code == short_code, ShortLink.is_deleted.is_(False)).limit(1)
        result = await self._db.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def count_created_in_month(self, owner_id: uuid.UUID, now: datetime.datetime) -> int:
        start, end = month_bounds(now)
        stmt = select(func.count(ShortLink.id)).where(
            ShortLink.owner_id == owner_id,
            ShortLink.created_at >= start,
            ShortLink.created_at < end,
        )
        result = await self._db.execute(stmt)
        return int(result.scalar_one())

    async def add(self, link: ShortLink) -> ShortLink:
        self._db.add(link)
        await self._commit()
        return link

    async def fetch_by_code(self, short_code: str) -> ShortLink | None:
        stmt = (
            select(ShortLink)
            .where(ShortLink.short_code == short_code, ShortLink.is_deleted.is_(False))
            .execution_options(populate_existing=True)
        )
        result = await self._db.execute(stmt)
        return result.scalar_one_or_none()

    async def fetch_by_id(self, link_id: uuid.UUID) -> ShortLink | None:
        stmt = (
            select(ShortLink)
            .where(ShortLink.id == link_id, ShortLink.is_deleted.is_(False))
            .execution_options(populate_existing=True)
        )
        result = await self._db.execute(stmt)
        return result.scalar_one_or_none()

    async def fetch_with_clicks(self, link_id: uuid.UUID) -> ShortLink | None:
        stmt = (
            select(ShortLink)
            .where(ShortLink.id == link_id, ShortLink.is_deleted.is_(False))
            .options(selectinload(ShortLink.clicks), selectinload(ShortLink.qr_code))
            .execution_options(populate_existing=True)
        )
        result = await self._db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_by_owner(self, owner_id: uuid.UUID) -> Sequence[ShortLink]:
        stmt = (
            select(ShortLink)
            .where(ShortLink.owner_id == owner_id, ShortLink.is_deleted.is_(False))
            .options(selectinload(ShortLink.qr_code))
            .order_by(ShortLink.created_at.desc())
            .execution_options(populate_existing=True)
        )
        result = await self._db.execute(stmt)
        return result.scalars().all()

    async def record_click(
        self,
        link_id: uuid.UUID,
        referrer: str,
        user_agent: str,
        clicked_at: datetime.datetime,
    ) -> LinkClick | None:
        """Increment the counter and append a click row in one transaction.

        Returns None without writing anything when the link is no longer
        live (deleted or deactivated).
        """
        try:
            result = await self._db.execute(
                update(ShortLink)
                .where(
                    ShortLink.id == link_id,
                    ShortLink.is_active.is_(True),
                    ShortLink.is_deleted.is_(False),
                )
                .values(total_clicks=ShortLink.total_clicks + 1)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                await self._db.rollback()
                return None

            click = LinkClick(
                id=uuid.uuid4(),
                short_link_id=link_id,
                clicked_at=clicked_at,
                referrer=referrer,
                user_agent=user_agent,
            )
            self._db.add(click)
            await self._db.commit()
            return click
        except SQLAlchemyError as exc:
            await self._db.rollback()
            raise PersistenceError("Error tracking click.") from exc
        except asyncio.CancelledError:
            await self._db.rollback()
            raise

    async def soft_delete(self, link: ShortLink) -> ShortLink:
        link.is_deleted = True
        link.is_active = False
        link.deleted_at = utcnow()
        await self._commit()
        return link

    async def _commit(self) -> None:
        try:
            await self._db.commit()
        except IntegrityError as exc:
            await self._db.rollback()
            if _is_alias_collision(exc):
                raise AliasCollisionError() from exc
            raise PersistenceError("Error saving short link.") from exc
        except SQLAlchemyError as exc:
            await self._db.rollback()
            raise PersistenceError("Error saving short link.") from exc
        except asyncio.CancelledError:
            await self._db.rollback()
            raise
