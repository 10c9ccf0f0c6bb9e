# givabit/crud/gated_links.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from givabit.models.gated_link import GatedLink


class DuplicateLinkHash(Exception):
    """Insert rejected: a record for this link hash already exists."""


class ShortCodeCollision(Exception):
    """Insert rejected by a short-code uniqueness constraint."""


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ---------- queries (caller owns the session/transaction) ----------
async def get_by_hash(db: AsyncSession, link_hash: str) -> Optional[GatedLink]:
    res = await db.execute(select(GatedLink).where(GatedLink.link_hash == link_hash))
    return res.scalar_one_or_none()


async def get_by_buy_short_code(db: AsyncSession, code: str) -> Optional[GatedLink]:
    res = await db.execute(select(GatedLink).where(GatedLink.buy_short_code == code))
    return res.scalar_one_or_none()


async def get_by_access_short_code(db: AsyncSession, code: str) -> Optional[GatedLink]:
    res = await db.execute(select(GatedLink).where(GatedLink.access_short_code == code))
    return res.scalar_one_or_none()


async def list_by_creator(db: AsyncSession, creator_address: str) -> List[GatedLink]:
    res = await db.execute(
        select(GatedLink)
        .where(GatedLink.creator_address == creator_address.lower())
        .order_by(GatedLink.created_at.desc(), GatedLink.id.desc())
    )
    return list(res.scalars().all())


async def update_activity(db: AsyncSession, link_hash: str, is_active: bool, tx_hash: str) -> int:
    res = await db.execute(
        update(GatedLink)
        .where(GatedLink.link_hash == link_hash)
        .values(is_active=is_active, status_update_tx_hash=tx_hash, updated_at=_now())
    )
    return res.rowcount


# ---------- store (one short session per operation) ----------
class GatedLinkStore:
    """Transactional access to ``gated_links``. Safe to share across requests."""

    def __init__(self, sessions: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = sessions

    async def get_by_hash(self, link_hash: str) -> Optional[GatedLink]:
        async with self._sessions() as db:
            return await get_by_hash(db, link_hash)

    async def get_by_buy_short_code(self, code: str) -> Optional[GatedLink]:
        async with self._sessions() as db:
            return await get_by_buy_short_code(db, code)

    async def get_by_access_short_code(self, code: str) -> Optional[GatedLink]:
        async with self._sessions() as db:
            return await get_by_access_short_code(db, code)

    async def list_by_creator(self, creator_address: str) -> List[GatedLink]:
        async with self._sessions() as db:
            return await list_by_creator(db, creator_address)

    async def insert(self, values: Dict[str, Any]) -> GatedLink:
        """
        Insert a complete record in one statement.

        Raises DuplicateLinkHash or ShortCodeCollision when a unique key is taken.
        """
        row = GatedLink(**values)
        row.creator_address = row.creator_address.lower()
        try:
            async with self._sessions() as db:
                async with db.begin():
                    db.add(row)
        except IntegrityError as exc:
            if await self.get_by_hash(values["link_hash"]) is not None:
                raise DuplicateLinkHash(values["link_hash"]) from exc
            raise ShortCodeCollision(str(exc.orig)) from exc
        return row

    async def update_activity(self, link_hash: str, is_active: bool, tx_hash: str) -> int:
        """Set is_active + status tx hash. Returns the number of rows touched."""
        async with self._sessions() as db:
            async with db.begin():
                return await update_activity(db, link_hash, is_active, tx_hash)

    async def replace(self, row: Dict[str, Any]) -> GatedLink:
        """
        Delete and reinsert the record for ``row["link_hash"]`` in one transaction.

        ``row`` must be a full record (see models.gated_link.as_row). Concurrent
        replaces of the same hash resolve as last writer wins.
        """
        values = dict(row)
        values["updated_at"] = _now()
        fresh = GatedLink(**values)
        async with self._sessions() as db:
            async with db.begin():
                await db.execute(delete(GatedLink).where(GatedLink.link_hash == values["link_hash"]))
                db.add(fresh)
        return fresh
