"""Link store: the durable source of truth for links and visits.

Thin async repository over one SQLAlchemy session. Every write commits on
its own, so a caller composes multi-step flows out of independent commits.
Inserts and the click increment run inside a SAVEPOINT: a failed statement
discards only its own state and leaves other instances in the session
loaded.
Reads use ``populate_existing`` so rows already in the identity map are
refreshed from the database rather than served stale.
"""

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from shortlinks.errors import ConflictError
from shortlinks.models import Link, Visit

__all__ = ["LinkStore"]


class LinkStore:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @property
    def session(self) -> AsyncSession:
        return self._session

    async def get_by_code(self, short_code: str) -> Link | None:
        result = await self._session.execute(
            select(Link)
            .where(Link.short_code == short_code)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_id(self, link_id: str) -> Link | None:
        result = await self._session.execute(
            select(Link)
            .where(Link.id == link_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def add(self, link: Link) -> Link:
        """Insert ``link``.

        Raises:
            ConflictError: If the unique constraint on short_code rejects it.
        """
        short_code = link.short_code
        try:
            async with self._session.begin_nested():
                self._session.add(link)
        except IntegrityError as exc:
            raise ConflictError(f"Short code '{short_code}' is already taken") from exc
        await self._session.commit()
        await self._session.refresh(link)
        return link

    async def save(self, link: Link) -> Link:
        await self._session.commit()
        await self._session.refresh(link)
        return link

    async def list_by_owner(self, owner_id: str) -> list[Link]:
        result = await self._session.execute(
            select(Link)
            .where(Link.owner_id == owner_id)
            .order_by(Link.created_at.desc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def list_page(self, offset: int, limit: int) -> list[Link]:
        result = await self._session.execute(
            select(Link)
            .order_by(Link.created_at.desc())
            .offset(offset)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def count(self) -> int:
        result = await self._session.execute(select(func.count(Link.id)))
        return result.scalar() or 0

    async def recent_visits(self, link_id: str, limit: int) -> list[Visit]:
        result = await self._session.execute(
            select(Visit)
            .where(Visit.link_id == link_id)
            .order_by(Visit.visited_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def add_visit(self, visit: Visit) -> Visit:
        async with self._session.begin_nested():
            self._session.add(visit)
        await self._session.commit()
        return visit

    async def increment_clicks(self, link_id: str) -> None:
        async with self._session.begin_nested():
            await self._session.execute(
                update(Link)
                .where(Link.id == link_id)
                .values(clicks=Link.clicks + 1)
                .execution_options(synchronize_session=False)
            )
        await self._session.commit()

    async def delete_with_visits(self, link: Link) -> None:
        # Visits go first so no row ever references a missing link.
        await self._session.execute(
            delete(Visit)
            .where(Visit.link_id == link.id)
            .execution_options(synchronize_session=False)
        )
        await self._session.delete(link)
        await self._session.commit()
