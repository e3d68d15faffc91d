import asyncio
import json
import logging
import uuid
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from app.core.config import settings
from app.core.exceptions import GoogleApiError
from app.integrations.google.token_service import GoogleTokenService

logger = logging.getLogger(__name__)

MAX_RETRIES = 2
RETRY_BASE_DELAY_SECONDS = 1.0

_STATUS_ERRORS = {
    401: ("auth_error", "Authentication failed. Please sign in again.", False),
    403: ("permission_denied", "Access denied. You may need additional permissions.", False),
    404: ("not_found", "The requested resource was not found.", False),
    429: ("rate_limit", "Too many requests. Please wait a moment and try again.", True),
}


def _extract_message(body: str) -> str:
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, TypeError):
        return (body or "")[:200]
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return error["message"]
        if isinstance(error, str):
            return data.get("error_description") or error
    return (body or "")[:200]


def classify_google_api_error(status: int, body: str = "") -> GoogleApiError:
    """Turn an HTTP failure into a ``GoogleApiError`` with a user-facing message."""
    if status in _STATUS_ERRORS:
        error_type, message, retryable = _STATUS_ERRORS[status]
        return GoogleApiError(error_type, status, message, retryable=retryable)
    if status == 400:
        return GoogleApiError("bad_request", status, _extract_message(body) or "Bad request")
    if status >= 500:
        return GoogleApiError(
            "server_error",
            status,
            "Google servers are temporarily unavailable. Please try again.",
            retryable=True,
        )
    return GoogleApiError("unknown", status, _extract_message(body) or f"Request failed with status {status}")


def network_error() -> GoogleApiError:
    return GoogleApiError(
        "network_error", 0, "Network error. Please check your connection.", retryable=True
    )


def _retry_delay(error: GoogleApiError, retry_count: int) -> float:
    if error.error_type == "rate_limit":
        return RETRY_BASE_DELAY_SECONDS * 2 ** retry_count
    if error.error_type == "network_error":
        return RETRY_BASE_DELAY_SECONDS * retry_count
    return RETRY_BASE_DELAY_SECONDS


class GoogleApiClient:
    """Authenticated JSON client for the Google REST APIs.

    Retryable failures (rate limit, 5xx, transport) are retried up to
    ``MAX_RETRIES`` times.  A 401 clears the cached token and is raised
    immediately so the caller can prompt for sign-in.
    """

    def __init__(
        self,
        token_service: GoogleTokenService,
        http_client: Optional[httpx.AsyncClient] = None,
        base_url: Optional[str] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._tokens = token_service
        self._http = http_client or httpx.AsyncClient(timeout=settings.GOOGLE_API_TIMEOUT_SECONDS)
        self._base_url = (base_url or settings.GOOGLE_API_BASE_URL).rstrip("/")
        self._sleep = sleep

    async def aclose(self) -> None:
        await self._http.aclose()

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Any] = None,
        content: Optional[bytes] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        url = path if path.startswith("http") else f"{self._base_url}{path}"
        query = {k: v for k, v in (params or {}).items() if v is not None}
        retry_count = 0

        while True:
            token = await self._tokens.get_access_token()
            request_headers = {"Authorization": f"Bearer {token}", **(headers or {})}
            try:
                response = await self._http.request(
                    method,
                    url,
                    params=query,
                    json=json_body,
                    content=content,
                    headers=request_headers,
                )
            except httpx.TransportError:
                logger.warning("Google API %s %s transport failure", method, path, exc_info=True)
                error = network_error()
            else:
                if response.is_success:
                    if not response.content:
                        return {}
                    return response.json()
                error = classify_google_api_error(response.status_code, response.text)

            if error.error_type == "auth_error":
                self._tokens.clear_tokens()
                raise error

            if not error.retryable or retry_count >= MAX_RETRIES:
                logger.warning(
                    "Google API %s %s failed: %s (%s)", method, path, error.error_type, error.status
                )
                raise error

            retry_count += 1
            delay = _retry_delay(error, retry_count)
            logger.info(
                "Retrying Google API %s %s after %s (attempt %d, %.1fs)",
                method,
                path,
                error.error_type,
                retry_count,
                delay,
            )
            await self._sleep(delay)

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, body: Any = None, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("POST", path, params=params, json_body=body)

    async def patch(self, path: str, body: Any = None, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("PATCH", path, params=params, json_body=body)

    async def delete(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("DELETE", path, params=params)

    async def upload_multipart(
        self,
        path: str,
        metadata: Dict[str, Any],
        data: bytes,
        mime_type: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Send a ``multipart/related`` upload (JSON metadata part + media part)."""
        boundary = f"crm_upload_{uuid.uuid4().hex}"
        body = b"".join(
            [
                f"--{boundary}\r\n".encode(),
                b"Content-Type: application/json; charset=UTF-8\r\n\r\n",
                json.dumps(metadata).encode(),
                f"\r\n--{boundary}\r\n".encode(),
                f"Content-Type: {mime_type}\r\n\r\n".encode(),
                data,
                f"\r\n--{boundary}--".encode(),
            ]
        )
        return await self.request(
            "POST",
            path,
            params={"uploadType": "multipart", **(params or {})},
            content=body,
            headers={"Content-Type": f"multipart/related; boundary={boundary}"},
        )
