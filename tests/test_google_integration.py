import asyncio
import base64
import email
import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from app.core.exceptions import GoogleApiError, TokenError
from app.integrations.google.api_client import GoogleApiClient, classify_google_api_error
from app.integrations.google.calendar import build_event_body
from app.integrations.google.gmail import (
    GmailService,
    build_raw_message,
    decode_base64url,
    extract_email_address,
    parse_message,
)
from app.integrations.google.token_service import GoogleSession, GoogleTokenService


class FakeClock:
    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeSessionSource:
    """Counts calls; ``get_session`` yields to the loop so callers overlap."""

    def __init__(self, session=None, refreshed=None, refresh_error=None) -> None:
        self.session = session
        self.refreshed = refreshed
        self.refresh_error = refresh_error
        self.get_calls = 0
        self.refresh_calls = 0

    async def get_session(self):
        self.get_calls += 1
        await asyncio.sleep(0)
        return self.session

    async def refresh_session(self, refresh_token: str):
        self.refresh_calls += 1
        await asyncio.sleep(0)
        if self.refresh_error is not None:
            raise self.refresh_error
        return self.refreshed


# ---------------------------------------------------------------------------
# Token service
# ---------------------------------------------------------------------------


class TestGoogleTokenService:
    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_acquisition(self):
        clock = FakeClock()
        source = FakeSessionSource(GoogleSession("tok-1", "refresh-1", clock.now + 3600))
        service = GoogleTokenService(source, clock=clock)

        tokens = await asyncio.gather(*(service.get_access_token() for _ in range(5)))

        assert tokens == ["tok-1"] * 5
        assert source.get_calls == 1

    @pytest.mark.asyncio
    async def test_fresh_token_is_served_from_cache(self):
        clock = FakeClock()
        source = FakeSessionSource(GoogleSession("tok-1", "refresh-1", clock.now + 3600))
        service = GoogleTokenService(source, clock=clock)

        await service.get_access_token()
        clock.now += 1800
        await service.get_access_token()

        assert source.get_calls == 1
        assert service.is_token_expiring_soon() is False

    @pytest.mark.asyncio
    async def test_stale_session_is_refreshed(self):
        clock = FakeClock()
        on_refresh = MagicMock()
        source = FakeSessionSource(
            session=GoogleSession("old", "refresh-1", clock.now + 30),
            refreshed=GoogleSession("new", None, clock.now + 3600),
        )
        service = GoogleTokenService(source, on_refresh=on_refresh, clock=clock)

        assert await service.get_access_token() == "new"
        assert source.refresh_calls == 1
        on_refresh.assert_called_once_with("new")

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_refresh(self):
        clock = FakeClock()
        on_refresh = MagicMock()
        source = FakeSessionSource(
            session=GoogleSession("old", "refresh-1", clock.now + 30),
            refreshed=GoogleSession("new", None, clock.now + 3600),
        )
        service = GoogleTokenService(source, on_refresh=on_refresh, clock=clock)

        tokens = await asyncio.gather(*(service.get_access_token() for _ in range(5)))

        assert tokens == ["new"] * 5
        assert source.get_calls == 1
        assert source.refresh_calls == 1
        on_refresh.assert_called_once_with("new")

    @pytest.mark.asyncio
    async def test_proactive_refresh_joins_inflight_acquisition(self):
        clock = FakeClock()
        source = FakeSessionSource(
            session=GoogleSession("old", "refresh-1", clock.now + 30),
            refreshed=GoogleSession("new", None, clock.now + 3600),
        )
        service = GoogleTokenService(source, clock=clock)
        service.initialize(GoogleSession("seeded", "refresh-1", None))
        clock.now += 3500

        token, _ = await asyncio.gather(service.get_access_token(), service.proactive_refresh())

        assert token == "new"
        assert source.refresh_calls == 1

    @pytest.mark.asyncio
    async def test_no_session(self):
        on_error = MagicMock()
        service = GoogleTokenService(FakeSessionSource(session=None), on_error=on_error)

        with pytest.raises(TokenError) as exc_info:
            await service.get_access_token()

        assert exc_info.value.error_type == "no_session"
        assert exc_info.value.requires_reauth is True
        on_error.assert_called_once()

    @pytest.mark.asyncio
    async def test_expired_session_without_refresh_token(self):
        clock = FakeClock()
        source = FakeSessionSource(GoogleSession("old", None, clock.now - 10))
        service = GoogleTokenService(source, clock=clock)

        with pytest.raises(TokenError) as exc_info:
            await service.get_access_token()
        assert exc_info.value.error_type == "no_refresh_token"

    @pytest.mark.asyncio
    async def test_refresh_retries_with_backoff_then_fails(self):
        clock = FakeClock()
        sleep = AsyncMock()
        source = FakeSessionSource(
            session=GoogleSession(None, "refresh-1", None),
            refresh_error=RuntimeError("boom"),
        )
        service = GoogleTokenService(source, clock=clock, sleep=sleep)

        with pytest.raises(TokenError) as exc_info:
            await service.get_access_token()

        assert exc_info.value.error_type == "refresh_failed"
        assert source.refresh_calls == 3
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]
        assert service.has_tokens() is False

    @pytest.mark.asyncio
    async def test_initialize_seeds_cache(self):
        source = FakeSessionSource()
        service = GoogleTokenService(source, clock=FakeClock())
        service.initialize(GoogleSession("seeded", "r", None))

        assert await service.get_access_token() == "seeded"
        assert source.get_calls == 0


# ---------------------------------------------------------------------------
# API client
# ---------------------------------------------------------------------------


def _client(handler, sleep=None):
    tokens = MagicMock()
    tokens.get_access_token = AsyncMock(return_value="tok")
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    client = GoogleApiClient(tokens, http_client=http, base_url="https://google.test", sleep=sleep or AsyncMock())
    return client, tokens


class TestGoogleApiClient:
    @pytest.mark.asyncio
    async def test_server_errors_are_retried(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) < 3:
                return httpx.Response(503, text="unavailable")
            return httpx.Response(200, json={"ok": True})

        sleep = AsyncMock()
        client, _ = _client(handler, sleep)

        assert await client.get("/thing", params={"a": 1, "b": None}) == {"ok": True}
        assert len(calls) == 3
        assert calls[0].headers["Authorization"] == "Bearer tok"
        assert calls[0].url.params.get("a") == "1"
        assert "b" not in calls[0].url.params
        assert sleep.await_count == 2
        await client.aclose()

    @pytest.mark.asyncio
    async def test_rate_limit_gives_up_after_max_retries(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(429)

        sleep = AsyncMock()
        client, _ = _client(handler, sleep)

        with pytest.raises(GoogleApiError) as exc_info:
            await client.get("/thing")

        assert exc_info.value.error_type == "rate_limit"
        assert len(calls) == 3
        assert [c.args[0] for c in sleep.await_args_list] == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_auth_error_clears_tokens_without_retry(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(401)

        client, tokens = _client(handler)

        with pytest.raises(GoogleApiError) as exc_info:
            await client.get("/thing")

        assert exc_info.value.error_type == "auth_error"
        assert len(calls) == 1
        tokens.clear_tokens.assert_called_once()

    @pytest.mark.asyncio
    async def test_transport_errors_are_network_errors(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("down", request=request)

        client, _ = _client(handler)
        with pytest.raises(GoogleApiError) as exc_info:
            await client.get("/thing")
        assert exc_info.value.error_type == "network_error"
        assert exc_info.value.status == 0

    @pytest.mark.asyncio
    async def test_empty_success_body(self):
        client, _ = _client(lambda request: httpx.Response(204))
        assert await client.delete("/thing") == {}

    def test_classify_bad_request_uses_google_message(self):
        error = classify_google_api_error(400, json.dumps({"error": {"message": "Invalid field"}}))
        assert error.error_type == "bad_request"
        assert error.detail == "Invalid field"
        assert error.retryable is False

    @pytest.mark.parametrize(
        "status,error_type,retryable",
        [(403, "permission_denied", False), (404, "not_found", False), (502, "server_error", True), (418, "unknown", False)],
    )
    def test_classify_status(self, status, error_type, retryable):
        error = classify_google_api_error(status)
        assert (error.error_type, error.retryable) == (error_type, retryable)


# ---------------------------------------------------------------------------
# Gmail / Calendar helpers
# ---------------------------------------------------------------------------


def _b64(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode()).decode().rstrip("=")


class TestGmailParsing:
    def test_parse_multipart_message(self):
        raw = {
            "id": "m1",
            "threadId": "t1",
            "snippet": "Hello",
            "labelIds": ["INBOX", "UNREAD"],
            "payload": {
                "mimeType": "multipart/mixed",
                "headers": [
                    {"name": "From", "value": "Ada Lovelace <ada@example.com>"},
                    {"name": "To", "value": "bob@example.com, cy@example.com"},
                    {"name": "Subject", "value": "Proposal"},
                ],
                "parts": [
                    {
                        "mimeType": "multipart/alternative",
                        "parts": [
                            {"mimeType": "text/plain", "body": {"data": _b64("plain body")}},
                            {"mimeType": "text/html", "body": {"data": _b64("<p>html body</p>")}},
                        ],
                    },
                    {
                        "mimeType": "application/pdf",
                        "filename": "deck.pdf",
                        "body": {"attachmentId": "att-1", "size": 1234},
                    },
                ],
            },
        }

        message = parse_message(raw)

        assert message.from_email == "ada@example.com"
        assert message.to == ["bob@example.com", "cy@example.com"]
        assert message.subject == "Proposal"
        assert message.is_unread is True
        assert message.body_text == "plain body"
        assert message.body_html == "<p>html body</p>"
        assert message.attachments[0].filename == "deck.pdf"
        assert message.attachments[0].size == 1234

    def test_missing_subject(self):
        assert parse_message({"payload": {"headers": []}}).subject == "(No subject)"

    def test_extract_email_address(self):
        assert extract_email_address("Bob <bob@x.com>") == "bob@x.com"
        assert extract_email_address(" bob@x.com ") == "bob@x.com"

    def test_build_raw_message_round_trips_headers(self):
        raw = build_raw_message(
            ["bob@example.com"], "Hi", "Body", cc=["cy@example.com"], reply_to_message_id="<abc@mail>"
        )
        assert "=" not in raw
        parsed = email.message_from_string(decode_base64url(raw))
        assert parsed["To"] == "bob@example.com"
        assert parsed["Cc"] == "cy@example.com"
        assert parsed["In-Reply-To"] == "<abc@mail>"

    @pytest.mark.asyncio
    async def test_contact_search_query(self):
        client = MagicMock()
        client.get = AsyncMock(return_value={"threads": [], "resultSizeEstimate": 0})
        gmail = GmailService(client)

        result = await gmail.get_emails_for_contact("ada@example.com")

        assert result["threads"] == []
        assert client.get.await_args.kwargs["params"]["q"] == "from:ada@example.com OR to:ada@example.com"


class TestCalendarEventBody:
    def test_timed_event_with_meet(self):
        body = build_event_body(
            "Demo",
            datetime(2026, 10, 20, 9, 0),
            datetime(2026, 10, 20, 10, 0, tzinfo=timezone.utc),
            attendees=["ada@example.com"],
            time_zone="Europe/London",
            add_meet=True,
        )
        assert body["start"] == {"dateTime": "2026-10-20T09:00:00+00:00", "timeZone": "Europe/London"}
        assert body["attendees"] == [{"email": "ada@example.com"}]
        assert body["conferenceData"]["createRequest"]["conferenceSolutionKey"] == {"type": "hangoutsMeet"}

    def test_all_day_event_uses_dates(self):
        body = build_event_body("Offsite", datetime(2026, 10, 20, 9), datetime(2026, 10, 21, 9), all_day=True)
        assert body["start"] == {"date": "2026-10-20"}
        assert body["end"] == {"date": "2026-10-21"}
        assert "description" not in body
