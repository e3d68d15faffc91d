from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient

from app.api.deps import (
    get_gmail_service,
    get_google_token_repo,
    get_google_token_service,
    get_scoring_engine,
    get_workflow_service,
)
from app.core.exceptions import (
    CRMError,
    ExternalServiceError,
    GoogleApiError,
    LeadNotFoundError,
    RecordNotFoundError,
    TokenError,
    UnknownFieldError,
    WorkflowPersistenceError,
)
from app.main import app


class TestExceptionHierarchy:
    def test_not_found_errors_share_base(self):
        assert issubclass(LeadNotFoundError, RecordNotFoundError)
        assert issubclass(RecordNotFoundError, CRMError)

    def test_token_error_defaults_to_reauth(self):
        exc = TokenError("no_refresh_token", "No refresh token stored")
        assert exc.requires_reauth is True
        assert exc.detail == "No refresh token stored"


class TestTenantHeader:
    """Tenant-scoped routes refuse to run without a tenant."""

    @pytest.mark.asyncio
    async def test_missing_tenant_header(self):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/api/v1/scoring/rules")
        assert response.status_code == 400
        assert response.json()["type"] == "tenant_required"

    @pytest.mark.asyncio
    async def test_malformed_tenant_header(self):
        transport = ASGITransport(app=app)
        async with AsyncClient(
            transport=transport, base_url="http://test", headers={"X-Tenant-ID": "acme"}
        ) as client:
            response = await client.get("/api/v1/workflows")
        assert response.status_code == 400
        assert "acme" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_google_connection_requires_user(self):
        app.dependency_overrides[get_google_token_repo] = lambda: AsyncMock()
        transport = ASGITransport(app=app)
        try:
            async with AsyncClient(
                transport=transport, base_url="http://test", headers={"X-Tenant-ID": str(uuid4())}
            ) as client:
                response = await client.delete("/api/v1/google/connection")
        finally:
            app.dependency_overrides.clear()
        assert response.status_code == 400
        assert response.json()["detail"] == "X-User-ID header is required"


class TestDomainErrorResponses:
    @pytest.mark.asyncio
    async def test_unknown_field_is_422(self, async_client):
        service = MagicMock()
        service.create_workflow = AsyncMock(side_effect=UnknownFieldError("Unknown lead field: shoe_size"))
        app.dependency_overrides[get_workflow_service] = lambda: service

        response = await async_client.post(
            "/api/v1/workflows",
            json={"name": "x", "trigger_type": "manual", "entity_type": "lead"},
        )

        assert response.status_code == 422
        assert response.json() == {"detail": "Unknown lead field: shoe_size", "type": "unknown_field"}

    @pytest.mark.asyncio
    async def test_workflow_persistence_is_500(self, async_client):
        service = MagicMock()
        service.create_workflow = AsyncMock(side_effect=WorkflowPersistenceError())
        app.dependency_overrides[get_workflow_service] = lambda: service

        response = await async_client.post(
            "/api/v1/workflows",
            json={"name": "x", "trigger_type": "manual", "entity_type": "lead"},
        )

        assert response.status_code == 500
        assert response.json()["type"] == "workflow_persistence_error"

    @pytest.mark.asyncio
    async def test_lead_not_found(self, async_client):
        engine = MagicMock()
        engine.update_lead_score = AsyncMock(side_effect=LeadNotFoundError())
        app.dependency_overrides[get_scoring_engine] = lambda: engine

        response = await async_client.post(f"/api/v1/scoring/leads/{uuid4()}/recalculate")

        assert response.status_code == 404
        assert response.json() == {"detail": "Lead not found", "type": "not_found"}

    @pytest.mark.asyncio
    async def test_validation_error_format(self, async_client):
        app.dependency_overrides[get_scoring_engine] = lambda: MagicMock()

        response = await async_client.post("/api/v1/scoring/rules", json={})

        assert response.status_code == 422
        body = response.json()
        assert body["type"] == "validation_error"
        assert body["detail"] == "Request validation failed"
        assert body["errors"]

    @pytest.mark.asyncio
    async def test_model_validator_error_is_422(self, async_client):
        app.dependency_overrides[get_scoring_engine] = lambda: MagicMock()

        response = await async_client.put(
            "/api/v1/scoring/settings", json={"warm_threshold": 60, "hot_threshold": 50}
        )

        assert response.status_code == 422
        body = response.json()
        assert body["type"] == "validation_error"
        assert "Thresholds must be ordered" in body["errors"][0]["msg"]

    @pytest.mark.asyncio
    async def test_field_validator_error_is_422(self, async_client):
        app.dependency_overrides[get_scoring_engine] = lambda: MagicMock()

        response = await async_client.post("/api/v1/scoring/calculate", json={"lead": {"shoe_size": 9}})

        assert response.status_code == 422
        assert "shoe_size" in response.json()["errors"][0]["msg"]


class TestGoogleErrorResponses:
    @pytest.mark.asyncio
    async def test_token_error_asks_for_reauth(self, async_client):
        gmail = MagicMock()
        gmail.get_message = AsyncMock(side_effect=TokenError("no_session", "Google account not connected"))
        app.dependency_overrides[get_gmail_service] = lambda: gmail

        response = await async_client.get("/api/v1/google/gmail/messages/abc")

        assert response.status_code == 401
        body = response.json()
        assert body["type"] == "token_error"
        assert body["error_type"] == "no_session"
        assert body["requires_reauth"] is True

    @pytest.mark.asyncio
    async def test_api_error_keeps_google_status(self, async_client):
        gmail = MagicMock()
        gmail.get_message = AsyncMock(
            side_effect=GoogleApiError("not_found", 404, "Requested entity was not found.")
        )
        app.dependency_overrides[get_gmail_service] = lambda: gmail

        response = await async_client.get("/api/v1/google/gmail/messages/missing")

        assert response.status_code == 404
        assert response.json()["error_type"] == "not_found"
        assert response.json()["retryable"] is False

    @pytest.mark.asyncio
    async def test_network_error_maps_to_502(self, async_client):
        gmail = MagicMock()
        gmail.get_message = AsyncMock(
            side_effect=GoogleApiError("network_error", 0, "Connection reset", retryable=True)
        )
        app.dependency_overrides[get_gmail_service] = lambda: gmail

        response = await async_client.get("/api/v1/google/gmail/messages/abc")

        assert response.status_code == 502
        assert response.json()["retryable"] is True

    @pytest.mark.asyncio
    async def test_status_reports_disconnected(self, async_client):
        tokens = MagicMock()
        tokens.get_access_token = AsyncMock(side_effect=TokenError("no_session", "not connected"))
        app.dependency_overrides[get_google_token_service] = lambda: tokens

        response = await async_client.get("/api/v1/google/status")

        assert response.status_code == 200
        assert response.json()["connected"] is False


class TestUnhandledErrors:
    @pytest.mark.asyncio
    async def test_external_service_error_is_502(self, async_client):
        engine = MagicMock()
        engine.recalculate_all_scores = AsyncMock(side_effect=ExternalServiceError("Redis unavailable"))
        app.dependency_overrides[get_scoring_engine] = lambda: engine

        response = await async_client.post("/api/v1/scoring/recalculate")

        assert response.status_code == 502
        assert response.json()["type"] == "external_service_error"

    @pytest.mark.asyncio
    async def test_unexpected_exception_hides_details(self):
        engine = MagicMock()
        engine.list_rules = AsyncMock(side_effect=RuntimeError("secret stack detail"))
        app.dependency_overrides[get_scoring_engine] = lambda: engine
        transport = ASGITransport(app=app, raise_app_exceptions=False)
        try:
            async with AsyncClient(
                transport=transport, base_url="http://test", headers={"X-Tenant-ID": str(uuid4())}
            ) as client:
                response = await client.get("/api/v1/scoring/rules")
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 500
        assert response.json()["type"] == "internal_server_error"
        assert "secret" not in response.text
