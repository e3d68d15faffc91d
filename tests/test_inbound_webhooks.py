import hashlib
import hmac
import json
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from app.api.deps import get_inbound_webhook_processor, get_inbound_webhook_service
from app.core.exceptions import (
    InboundWebhookNotFoundError,
    UnknownFieldError,
    WebhookPayloadError,
    WebhookProcessingError,
    WebhookSignatureError,
)
from app.main import app
from app.services.inbound_webhook_service import (
    SLUG_LENGTH,
    InboundWebhookProcessor,
    InboundWebhookService,
    check_auth,
    extract_value,
    map_fields,
    redact_headers,
    verify_hmac,
)

API_KEY = "inwh_test-key"
HMAC_SECRET = "whsec_test-secret"


def _webhook(**overrides):
    values = {
        "id": uuid4(),
        "tenant_id": uuid4(),
        "name": "Zapier leads",
        "description": None,
        "endpoint_slug": "abc123def456",
        "auth_type": "api_key",
        "api_key": API_KEY,
        "hmac_secret": None,
        "hmac_header": "X-Webhook-Signature",
        "hmac_algorithm": "sha256",
        "target_entity": "lead",
        "field_mappings": {"email": "contact.email", "first_name": "contact.name"},
        "default_values": {"source": "zapier"},
        "create_if_not_exists": True,
        "update_if_exists": False,
        "lookup_field": "email",
        "is_active": True,
        "last_received_at": None,
        "success_count": 0,
        "error_count": 0,
        "created_at": datetime(2026, 10, 19, tzinfo=timezone.utc),
    }
    values.update(overrides)
    return SimpleNamespace(**values)


@asynccontextmanager
async def _savepoint():
    yield


def _processor(webhook, existing=None, create_error=None):
    endpoints = AsyncMock()
    endpoints.get_active_by_slug = AsyncMock(return_value=webhook)
    endpoints.add_log = AsyncMock(return_value=SimpleNamespace(id=uuid4()))
    endpoints.savepoint = MagicMock(side_effect=_savepoint)

    records = AsyncMock()
    records.find_by_field = AsyncMock(return_value=existing)
    if create_error is not None:
        records.create = AsyncMock(side_effect=create_error)
    else:
        records.create = AsyncMock(return_value=SimpleNamespace(id=uuid4()))
    factory = MagicMock(return_value=records)
    return InboundWebhookProcessor(endpoints, factory), endpoints, records, factory


def _body(**contact):
    return json.dumps({"contact": contact or {"email": "ada@example.com", "name": "Ada"}}).encode()


class TestFieldMapping:
    def test_extract_nested_path(self):
        assert extract_value({"data": {"contact": {"email": "a@b.co"}}}, "data.contact.email") == "a@b.co"

    def test_extract_missing_or_non_object_step(self):
        assert extract_value({"data": {"contact": None}}, "data.contact.email") is None
        assert extract_value({"data": "flat"}, "data.contact") is None

    def test_empty_values_are_not_mapped(self):
        mapped = map_fields(
            {"email": "", "name": "Ada", "phone": None},
            {"email": "email", "first_name": "name", "phone": "phone", "title": "missing"},
        )
        assert mapped == {"first_name": "Ada"}


class TestAuthentication:
    def test_hmac_accepts_bare_and_prefixed_hex(self):
        raw = b'{"a": 1}'
        digest = hmac.new(HMAC_SECRET.encode(), raw, hashlib.sha256).hexdigest()
        assert verify_hmac(raw, digest, HMAC_SECRET) is True
        assert verify_hmac(raw, f"sha256={digest.upper()}", HMAC_SECRET) is True
        assert verify_hmac(raw + b" ", digest, HMAC_SECRET) is False

    def test_hmac_sha1(self):
        raw = b"{}"
        digest = hmac.new(HMAC_SECRET.encode(), raw, hashlib.sha1).hexdigest()
        assert verify_hmac(raw, f"sha1={digest}", HMAC_SECRET, "sha1") is True

    def test_api_key_from_header_or_bearer(self):
        webhook = _webhook()
        assert check_auth(webhook, b"{}", {"X-API-Key": API_KEY}) is None
        assert check_auth(webhook, b"{}", {"Authorization": f"Bearer {API_KEY}"}) is None
        assert check_auth(webhook, b"{}", {"X-API-Key": "wrong"}) == "Invalid or missing API key"
        assert check_auth(webhook, b"{}", {}) == "Invalid or missing API key"

    def test_hmac_requires_configured_header(self):
        webhook = _webhook(auth_type="hmac", api_key=None, hmac_secret=HMAC_SECRET)
        raw = b'{"x": 1}'
        digest = hmac.new(HMAC_SECRET.encode(), raw, hashlib.sha256).hexdigest()

        assert check_auth(webhook, raw, {}) == "Missing signature header: X-Webhook-Signature"
        assert check_auth(webhook, raw, {"x-webhook-signature": digest}) is None
        assert check_auth(webhook, raw, {"x-webhook-signature": "00"}) == "Invalid webhook signature"

    def test_open_endpoint(self):
        assert check_auth(_webhook(auth_type="none"), b"{}", {}) is None

    def test_credentials_are_redacted_from_logs(self):
        headers = redact_headers(
            {"X-API-Key": API_KEY, "X-Webhook-Signature": "abc", "User-Agent": "zapier"},
            "X-Webhook-Signature",
        )
        assert headers == {
            "X-API-Key": "[redacted]",
            "X-Webhook-Signature": "[redacted]",
            "User-Agent": "zapier",
        }


class TestInboundWebhookProcessor:
    @pytest.mark.asyncio
    async def test_creates_record_with_defaults(self):
        webhook = _webhook()
        processor, endpoints, records, factory = _processor(webhook)

        result = await processor.process("abc123def456", _body(), {"X-API-Key": API_KEY}, ip="10.0.0.1")

        assert result["success"] is True
        assert result["operation"] == "create"
        factory.assert_called_once_with(webhook.tenant_id)
        records.find_by_field.assert_awaited_once_with("lead", "email", "ada@example.com")
        records.create.assert_awaited_once_with(
            "lead", {"source": "zapier", "email": "ada@example.com", "first_name": "Ada"}
        )
        log_kwargs = endpoints.add_log.await_args.kwargs
        assert log_kwargs["request_headers"] == {"X-API-Key": "[redacted]"}
        assert log_kwargs["request_ip"] == "10.0.0.1"
        assert endpoints.finish_log.await_args.kwargs["status"] == "success"
        endpoints.record_outcome.assert_awaited_once_with(webhook.id, success=True)
        endpoints.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_existing_record_is_updated_without_defaults(self):
        existing = SimpleNamespace(id=uuid4())
        processor, _, records, _ = _processor(_webhook(update_if_exists=True), existing=existing)

        result = await processor.process("abc123def456", _body(), {"X-API-Key": API_KEY})

        assert result == {"success": True, "operation": "update", "entity_id": existing.id}
        records.update.assert_awaited_once_with(existing, {"email": "ada@example.com", "first_name": "Ada"})
        records.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_existing_record_is_skipped_when_updates_disabled(self):
        existing = SimpleNamespace(id=uuid4())
        processor, _, records, _ = _processor(_webhook(), existing=existing)

        result = await processor.process("abc123def456", _body(), {"X-API-Key": API_KEY})

        assert result["operation"] == "skip"
        assert result["entity_id"] == existing.id
        records.update.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_record_is_skipped_when_creation_disabled(self):
        processor, _, records, _ = _processor(_webhook(create_if_not_exists=False))

        result = await processor.process("abc123def456", _body(), {"X-API-Key": API_KEY})

        assert result == {"success": True, "operation": "skip", "entity_id": None}
        records.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_bad_api_key_is_logged_and_counted(self):
        webhook = _webhook()
        processor, endpoints, records, _ = _processor(webhook)

        with pytest.raises(WebhookSignatureError):
            await processor.process("abc123def456", _body(), {"X-API-Key": "nope"})

        finish = endpoints.finish_log.await_args.kwargs
        assert finish["status"] == "auth_failed"
        assert finish["error_message"] == "Invalid or missing API key"
        endpoints.record_outcome.assert_awaited_once_with(webhook.id, success=False)
        endpoints.commit.assert_awaited_once()
        records.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_body_without_identifying_fields_fails_validation(self):
        processor, endpoints, records, _ = _processor(_webhook(default_values={}))

        with pytest.raises(WebhookPayloadError, match="Lead requires at least one of"):
            await processor.process("abc123def456", _body(phone="555"), {"X-API-Key": API_KEY})

        assert endpoints.finish_log.await_args.kwargs["status"] == "validation_failed"
        records.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_non_object_body_fails_validation(self):
        processor, endpoints, _, _ = _processor(_webhook())

        with pytest.raises(WebhookPayloadError):
            await processor.process("abc123def456", b"[1, 2]", {"X-API-Key": API_KEY})

        assert endpoints.add_log.await_args.kwargs["request_body"] is None
        assert endpoints.finish_log.await_args.kwargs["status"] == "validation_failed"

    @pytest.mark.asyncio
    async def test_database_error_is_logged_as_error(self):
        webhook = _webhook()
        error = IntegrityError("INSERT", {}, Exception("value too long"))
        processor, endpoints, _, _ = _processor(webhook, create_error=error)

        with pytest.raises(WebhookProcessingError, match="value too long"):
            await processor.process("abc123def456", _body(), {"X-API-Key": API_KEY})

        finish = endpoints.finish_log.await_args.kwargs
        assert finish["status"] == "error"
        assert finish["error_message"] == "value too long"
        endpoints.record_outcome.assert_awaited_once_with(webhook.id, success=False)
        endpoints.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unknown_slug(self):
        processor, endpoints, _, _ = _processor(None)

        with pytest.raises(InboundWebhookNotFoundError):
            await processor.process("missing", _body(), {})

        endpoints.add_log.assert_not_awaited()


class TestInboundWebhookService:
    def _service(self, stored=None):
        repo = AsyncMock()
        repo.add = AsyncMock(side_effect=lambda values: SimpleNamespace(id=uuid4(), **values))
        repo.get = AsyncMock(return_value=stored)
        user_id = uuid4()
        return InboundWebhookService(repo, user_id=user_id), repo, user_id

    @pytest.mark.asyncio
    async def test_create_issues_slug_and_api_key(self):
        service, repo, user_id = self._service()

        webhook = await service.create_webhook(
            {
                "name": "Zapier",
                "auth_type": "api_key",
                "target_entity": "Leads",
                "field_mappings": {"email": "contact.email"},
                "lookup_field": "email",
            }
        )

        assert webhook.target_entity == "lead"
        assert webhook.user_id == user_id
        assert len(webhook.endpoint_slug) == SLUG_LENGTH
        assert webhook.endpoint_slug.isalnum()
        assert webhook.api_key.startswith("inwh_")
        assert webhook.hmac_secret is None
        repo.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_create_hmac_issues_secret(self):
        service, _, _ = self._service()
        webhook = await service.create_webhook(
            {"name": "Signed", "auth_type": "hmac", "target_entity": "deal", "field_mappings": {"name": "title"}}
        )
        assert webhook.hmac_secret.startswith("whsec_")
        assert webhook.api_key is None

    @pytest.mark.asyncio
    async def test_mapping_to_unknown_field_is_rejected(self):
        service, repo, _ = self._service()
        with pytest.raises(UnknownFieldError):
            await service.create_webhook(
                {"name": "Bad", "target_entity": "account", "field_mappings": {"shoe_size": "size"}}
            )
        repo.add.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_changing_target_revalidates_stored_mapping(self):
        service, repo, _ = self._service(stored=_webhook())
        # "first_name" does not exist on deals
        with pytest.raises(UnknownFieldError):
            await service.update_webhook(uuid4(), {"target_entity": "deal"})
        repo.update.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_switching_to_hmac_issues_secret(self):
        service, repo, _ = self._service(stored=_webhook())

        await service.update_webhook(uuid4(), {"auth_type": "hmac"})

        _, values = repo.update.await_args.args
        assert values["auth_type"] == "hmac"
        assert values["hmac_secret"].startswith("whsec_")

    @pytest.mark.asyncio
    async def test_rotate_replaces_api_key(self):
        service, repo, _ = self._service(stored=_webhook())

        await service.rotate_credentials(uuid4())

        _, values = repo.update.await_args.args
        assert values["api_key"].startswith("inwh_")
        assert values["api_key"] != API_KEY

    @pytest.mark.asyncio
    async def test_rotate_open_endpoint_is_rejected(self):
        service, _, _ = self._service(stored=_webhook(auth_type="none"))
        with pytest.raises(WebhookPayloadError):
            await service.rotate_credentials(uuid4())

    @pytest.mark.asyncio
    async def test_missing_webhook(self):
        service, _, _ = self._service(stored=None)
        with pytest.raises(InboundWebhookNotFoundError):
            await service.get_logs(uuid4())


class TestInboundWebhookEndpoints:
    @pytest.mark.asyncio
    async def test_receive_passes_raw_body_and_headers(self, async_client):
        entity_id = uuid4()
        processor = MagicMock()
        processor.process = AsyncMock(
            return_value={"success": True, "operation": "create", "entity_id": entity_id}
        )
        app.dependency_overrides[get_inbound_webhook_processor] = lambda: processor

        response = await async_client.post(
            "/api/v1/webhooks/receive/abc123def456",
            content=_body(),
            headers={"X-API-Key": API_KEY, "Content-Type": "application/json"},
        )

        assert response.status_code == 200
        assert response.json() == {"success": True, "operation": "create", "entity_id": str(entity_id)}
        slug, raw, headers = processor.process.await_args.args
        assert slug == "abc123def456"
        assert raw == _body()
        assert headers["x-api-key"] == API_KEY

    @pytest.mark.asyncio
    async def test_receive_rejected_key_is_401(self, async_client):
        processor = MagicMock()
        processor.process = AsyncMock(side_effect=WebhookSignatureError("Invalid or missing API key"))
        app.dependency_overrides[get_inbound_webhook_processor] = lambda: processor

        response = await async_client.post("/api/v1/webhooks/receive/abc123def456", content=_body())

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid or missing API key"

    @pytest.mark.asyncio
    async def test_receive_unknown_slug_is_404(self, async_client):
        processor = MagicMock()
        processor.process = AsyncMock(side_effect=InboundWebhookNotFoundError())
        app.dependency_overrides[get_inbound_webhook_processor] = lambda: processor

        response = await async_client.post("/api/v1/webhooks/receive/nope", content=b"{}")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_create_returns_credentials_once(self, async_client):
        service = MagicMock()
        service.create_webhook = AsyncMock(return_value=_webhook())
        service.get_webhook = AsyncMock(return_value=_webhook())
        app.dependency_overrides[get_inbound_webhook_service] = lambda: service

        created = await async_client.post(
            "/api/v1/webhooks/inbound",
            json={"name": "Zapier leads", "target_entity": "lead", "field_mappings": {"email": "contact.email"}},
        )
        fetched = await async_client.get(f"/api/v1/webhooks/inbound/{uuid4()}")

        assert created.status_code == 201
        assert created.json()["api_key"] == API_KEY
        assert service.create_webhook.await_args.args[0]["auth_type"] == "api_key"
        assert fetched.status_code == 200
        assert "api_key" not in fetched.json()

    @pytest.mark.asyncio
    async def test_create_rejects_unknown_auth_type(self, async_client):
        app.dependency_overrides[get_inbound_webhook_service] = lambda: MagicMock()

        response = await async_client.post(
            "/api/v1/webhooks/inbound",
            json={"name": "x", "target_entity": "lead", "auth_type": "basic"},
        )

        assert response.status_code == 422
