from typing import Any, Dict
from uuid import UUID

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import TenantRequiredError


class BaseRepository:
    """Thin base class that holds the database session.

    Every concrete repository receives an ``AsyncSession`` at
    construction time so that multiple repositories can share the same
    unit-of-work within a single request.
    """

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def flush(self) -> None:
        """Flush pending changes without committing."""
        await self._db.flush()

    async def commit(self) -> None:
        """Commit the current transaction."""
        await self._db.commit()

    async def rollback(self) -> None:
        """Roll back the current transaction."""
        await self._db.rollback()

    def savepoint(self):
        """Return a SAVEPOINT context manager for partial rollback."""
        return self._db.begin_nested()


class TenantScopedRepository(BaseRepository):
    """Repository bound to one tenant.

    Every query issued by a subclass filters on ``tenant_id`` and every
    row it inserts is stamped with it, so callers cannot forget the
    tenant filter.
    """

    def __init__(self, db: AsyncSession, tenant_id: UUID) -> None:
        if tenant_id is None:
            raise TenantRequiredError()
        super().__init__(db)
        self._tenant_id = tenant_id

    @property
    def tenant_id(self) -> UUID:
        return self._tenant_id


def model_to_dict(instance: Any) -> Dict[str, Any]:
    """Flatten a mapped instance into ``{attribute: value}``."""
    mapper = sa_inspect(type(instance))
    return {attr.key: getattr(instance, attr.key) for attr in mapper.column_attrs}
