"""Google OAuth access-token lifecycle for one user.

``GoogleTokenService.get_access_token`` returns a cached token while it is
fresh.  Otherwise exactly one acquisition runs at a time: concurrent
callers await the same in-flight task instead of each refreshing.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional, Protocol
from uuid import UUID

import httpx

from app.core.config import settings
from app.core.exceptions import TokenError
from app.repositories.google_token_repository import GoogleTokenRepository

logger = logging.getLogger(__name__)

TOKEN_EXPIRY_BUFFER_SECONDS = 60
TOKEN_VALIDITY_SECONDS = 3600
EXPIRING_SOON_SECONDS = 300
MAX_REFRESH_ATTEMPTS = 3
REFRESH_BACKOFF_BASE_SECONDS = 1.0


@dataclass
class GoogleSession:
    """What the auth backend knows about the user's Google sign-in."""

    provider_token: Optional[str] = None
    provider_refresh_token: Optional[str] = None
    expires_at: Optional[float] = None


@dataclass
class _TokenState:
    access_token: str
    refresh_token: Optional[str]
    expires_at: float


class SessionSource(Protocol):
    async def get_session(self) -> Optional[GoogleSession]: ...

    async def refresh_session(self, refresh_token: str) -> GoogleSession: ...


ErrorCallback = Callable[[TokenError], Any]
RefreshCallback = Callable[[str], Any]


class GoogleTokenService:
    def __init__(
        self,
        session_source: SessionSource,
        on_error: Optional[ErrorCallback] = None,
        on_refresh: Optional[RefreshCallback] = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._source = session_source
        self._on_error = on_error
        self._on_refresh = on_refresh
        self._clock = clock
        self._sleep = sleep
        self._state: Optional[_TokenState] = None
        self._inflight: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # State helpers
    # ------------------------------------------------------------------

    def initialize(self, session: Optional[GoogleSession]) -> None:
        """Seed the cache from a session that was just obtained (e.g. sign-in)."""
        if session is None or not session.provider_token:
            return
        self._state = _TokenState(
            access_token=session.provider_token,
            refresh_token=session.provider_refresh_token,
            expires_at=self._clock() + TOKEN_VALIDITY_SECONDS,
        )

    def clear_tokens(self) -> None:
        self._state = None

    def has_tokens(self) -> bool:
        return self._state is not None

    def _is_fresh(self) -> bool:
        return (
            self._state is not None
            and self._clock() < self._state.expires_at - TOKEN_EXPIRY_BUFFER_SECONDS
        )

    def is_token_expired(self) -> bool:
        return not self._is_fresh()

    def is_token_expiring_soon(self) -> bool:
        if self._state is None:
            return True
        return self._clock() >= self._state.expires_at - EXPIRING_SOON_SECONDS

    def get_token_expiry_time(self) -> Optional[float]:
        return self._state.expires_at if self._state else None

    # ------------------------------------------------------------------
    # Acquisition
    # ------------------------------------------------------------------

    async def get_access_token(self) -> str:
        if self._is_fresh():
            return self._state.access_token

        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.ensure_future(self._acquire())
        return await asyncio.shield(self._inflight)

    async def proactive_refresh(self) -> None:
        """Refresh ahead of expiry; failures are reported, not raised."""
        if self._state is None or not self.is_token_expiring_soon():
            return
        refresh_token = self._state.refresh_token
        if not refresh_token:
            return
        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.ensure_future(self._refresh(refresh_token))
        try:
            await asyncio.shield(self._inflight)
        except TokenError:
            logger.warning("Proactive Google token refresh failed")

    async def _fail(self, error: TokenError) -> TokenError:
        if self._on_error is not None:
            outcome = self._on_error(error)
            if asyncio.iscoroutine(outcome):
                await outcome
        return error

    async def _acquire(self) -> str:
        try:
            session = await self._source.get_session()
        except Exception:
            logger.warning("Failed to read Google session", exc_info=True)
            raise await self._fail(
                TokenError("no_session", "Failed to get session. Please sign in again.")
            )
        if session is None:
            raise await self._fail(TokenError("no_session", "No active session. Please sign in."))

        session_expiry = session.expires_at
        stale = session_expiry is not None and self._clock() >= session_expiry - TOKEN_EXPIRY_BUFFER_SECONDS
        if session.provider_token and not stale:
            self._state = _TokenState(
                access_token=session.provider_token,
                refresh_token=session.provider_refresh_token,
                expires_at=session_expiry or self._clock() + TOKEN_VALIDITY_SECONDS,
            )
            return session.provider_token

        refresh_token = session.provider_refresh_token or (
            self._state.refresh_token if self._state else None
        )
        if not refresh_token:
            raise await self._fail(
                TokenError(
                    "no_refresh_token",
                    "No refresh token available. Please sign in again with Google.",
                )
            )
        return await self._refresh(refresh_token)

    async def _refresh(self, refresh_token: str) -> str:
        for attempt in range(1, MAX_REFRESH_ATTEMPTS + 1):
            try:
                session = await self._source.refresh_session(refresh_token)
                if not session.provider_token:
                    raise ValueError("Refresh returned no access token")
            except Exception:
                logger.warning(
                    "Google token refresh attempt %d/%d failed",
                    attempt,
                    MAX_REFRESH_ATTEMPTS,
                    exc_info=True,
                )
                if attempt < MAX_REFRESH_ATTEMPTS:
                    await self._sleep(REFRESH_BACKOFF_BASE_SECONDS * 2 ** (attempt - 1))
                continue

            self._state = _TokenState(
                access_token=session.provider_token,
                refresh_token=session.provider_refresh_token or refresh_token,
                expires_at=session.expires_at or self._clock() + TOKEN_VALIDITY_SECONDS,
            )
            if self._on_refresh is not None:
                outcome = self._on_refresh(session.provider_token)
                if asyncio.iscoroutine(outcome):
                    await outcome
            return session.provider_token

        self.clear_tokens()
        raise await self._fail(
            TokenError("refresh_failed", "Failed to refresh authentication. Please sign in again.")
        )


class GoogleOAuthSessionSource:
    """Session source backed by the ``google_tokens`` table and Google's token endpoint."""

    def __init__(
        self,
        token_repo: GoogleTokenRepository,
        user_id: UUID,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._repo = token_repo
        self._user_id = user_id
        self._http = http_client

    async def get_session(self) -> Optional[GoogleSession]:
        row = await self._repo.get_by_user(self._user_id)
        if row is None:
            return None
        return GoogleSession(
            provider_token=row.access_token,
            provider_refresh_token=row.refresh_token,
            expires_at=row.expires_at.timestamp() if row.expires_at else None,
        )

    async def _post_refresh(self, client: httpx.AsyncClient, refresh_token: str) -> httpx.Response:
        return await client.post(
            settings.GOOGLE_TOKEN_URL,
            data={
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "client_id": settings.GOOGLE_CLIENT_ID,
                "client_secret": settings.GOOGLE_CLIENT_SECRET,
            },
        )

    async def refresh_session(self, refresh_token: str) -> GoogleSession:
        try:
            if self._http is not None:
                response = await self._post_refresh(self._http, refresh_token)
            else:
                async with httpx.AsyncClient(timeout=settings.GOOGLE_API_TIMEOUT_SECONDS) as client:
                    response = await self._post_refresh(client, refresh_token)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            await self._repo.record_refresh_error(self._user_id, str(exc))
            await self._repo.commit()
            raise

        data = response.json()
        now = time.time()
        expires_at = now + int(data.get("expires_in", TOKEN_VALIDITY_SECONDS))
        await self._repo.save_tokens(
            self._user_id,
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token", refresh_token),
            expires_at=datetime.fromtimestamp(expires_at, tz=timezone.utc),
            last_refreshed_at=datetime.fromtimestamp(now, tz=timezone.utc),
        )
        await self._repo.commit()
        return GoogleSession(
            provider_token=data["access_token"],
            provider_refresh_token=data.get("refresh_token", refresh_token),
            expires_at=expires_at,
        )
