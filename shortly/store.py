"""Link and user record store.

Thin query layer over an ``AsyncSession``. Every mutation is a single
statement scoped to one record followed by a commit; nothing here holds a
lock across operations. Uniqueness violations surface as SQLAlchemy's
``IntegrityError`` after the session has been rolled back, so the caller can
decide whether to retry.
"""

import logging
from collections.abc import Sequence
from typing import Optional

from prometheus_client import Counter
from sqlalchemy import func, or_, select, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from shortly.models import Link, User

__all__ = ["LinkStore"]

DATABASE_READS_TOTAL = Counter(
    "shortly_database_reads_total",
    "Total database read operations",
)
DATABASE_WRITES_TOTAL = Counter(
    "shortly_database_writes_total",
    "Total database write operations",
)

logger = logging.getLogger("shortly")


class LinkStore:
    def __init__(self, db: AsyncSession):
        self._db = db

    async def ping(self) -> None:
        await self._db.execute(text("SELECT 1"))

    # ------------------------------------------------------------------
    # Existence checks
    # ------------------------------------------------------------------

    async def short_id_exists(self, short_id: str) -> bool:
        result = await self._db.execute(select(Link.id).where(Link.short_id == short_id).limit(1))
        DATABASE_READS_TOTAL.inc()
        return result.scalar_one_or_none() is not None

    async def alias_exists(self, alias: str) -> bool:
        result = await self._db.execute(select(Link.id).where(Link.custom_alias == alias).limit(1))
        DATABASE_READS_TOTAL.inc()
        return result.scalar_one_or_none() is not None

    # ------------------------------------------------------------------
    # Redirect lookups
    # ------------------------------------------------------------------

    async def get_link_with_owner(self, short_id: str) -> Optional[Link]:
        result = await self._db.execute(
            select(Link).options(joinedload(Link.owner)).where(Link.short_id == short_id)
        )
        DATABASE_READS_TOTAL.inc()
        return result.scalar_one_or_none()

    async def get_premium_user_by_prefix(self, prefix: str) -> Optional[User]:
        result = await self._db.execute(
            select(User).where(
                func.lower(User.custom_domain_prefix) == prefix.lower(),
                User.is_premium.is_(True),
            )
            .limit(1)
        )
        DATABASE_READS_TOTAL.inc()
        return result.scalar_one_or_none()

    async def get_link_for_owner(self, short_id: str, owner_user_id: str) -> Optional[Link]:
        result = await self._db.execute(
            select(Link).where(Link.short_id == short_id, Link.owner_user_id == owner_user_id)
        )
        DATABASE_READS_TOTAL.inc()
        return result.scalar_one_or_none()

    async def get_regular_link(self, short_id: str) -> Optional[Link]:
        """Find ``short_id`` among links not scoped to a premium custom domain."""
        result = await self._db.execute(
            select(Link)
            .outerjoin(User, Link.owner_user_id == User.id)
            .where(
                Link.short_id == short_id,
                or_(
                    Link.owner_user_id.is_(None),
                    User.is_premium.is_(False),
                    User.custom_domain_prefix.is_(None),
                    User.custom_domain_prefix == "",
                ),
            )
        )
        DATABASE_READS_TOTAL.inc()
        return result.scalar_one_or_none()

    # ------------------------------------------------------------------
    # Owner-scoped access
    # ------------------------------------------------------------------

    async def get_user(self, user_id: str) -> Optional[User]:
        result = await self._db.execute(select(User).where(User.id == user_id))
        DATABASE_READS_TOTAL.inc()
        return result.scalar_one_or_none()

    async def get_owned_link(self, link_id: str, owner_user_id: str) -> Optional[Link]:
        result = await self._db.execute(
            select(Link).where(Link.id == link_id, Link.owner_user_id == owner_user_id)
        )
        DATABASE_READS_TOTAL.inc()
        return result.scalar_one_or_none()

    async def list_links_for_owner(self, owner_user_id: str) -> Sequence[Link]:
        result = await self._db.execute(
            select(Link)
            .where(Link.owner_user_id == owner_user_id)
            .order_by(Link.created_at.desc(), Link.id)
        )
        DATABASE_READS_TOTAL.inc()
        return result.scalars().all()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def add_link(self, link: Link) -> Link:
        """Insert a link in one atomic statement.

        Raises:
            IntegrityError: ``short_id`` or ``custom_alias`` is already taken.
        """
        self._db.add(link)
        await self._commit()
        await self._db.refresh(link)
        return link

    async def save_link(self, link: Link) -> Link:
        await self._commit()
        await self._db.refresh(link)
        return link

    async def refresh(self, instance: Link | User) -> None:
        await self._db.refresh(instance)

    async def delete_link(self, link: Link) -> None:
        await self._db.delete(link)
        await self._commit()

    async def _commit(self) -> None:
        try:
            await self._db.commit()
        except IntegrityError:
            await self._db.rollback()
            raise
        DATABASE_WRITES_TOTAL.inc()
