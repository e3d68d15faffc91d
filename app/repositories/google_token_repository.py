from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import delete, select

from app.models.google_token import GoogleToken
from app.repositories.base import BaseRepository


class GoogleTokenRepository(BaseRepository):
    """Per-user OAuth credentials in ``google_tokens``."""

    async def get_by_user(self, user_id: UUID) -> Optional[GoogleToken]:
        result = await self._db.execute(select(GoogleToken).where(GoogleToken.user_id == user_id))
        return result.scalar_one_or_none()

    async def save_tokens(self, user_id: UUID, **values: Any) -> GoogleToken:
        """Insert or update the user's token row and clear any refresh error."""
        row = await self.get_by_user(user_id)
        values.setdefault("refresh_error", None)
        values.setdefault("refresh_error_at", None)
        if row is None:
            row = GoogleToken(user_id=user_id, **values)
            self._db.add(row)
        else:
            for key, value in values.items():
                setattr(row, key, value)
        await self._db.flush()
        return row

    async def record_refresh_error(self, user_id: UUID, message: str) -> None:
        row = await self.get_by_user(user_id)
        if row is None:
            return
        row.refresh_error = message
        row.refresh_error_at = datetime.now(timezone.utc)
        await self._db.flush()

    async def delete_for_user(self, user_id: UUID) -> None:
        await self._db.execute(delete(GoogleToken).where(GoogleToken.user_id == user_id))
