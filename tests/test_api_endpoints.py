from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID, uuid4

import pytest
from httpx import ASGITransport, AsyncClient

from app.api.deps import (
    get_data_export_service,
    get_data_import_service,
    get_linkedin_service,
    get_record_repo,
    get_scoring_engine,
    get_workflow_engine,
    get_workflow_service,
)
from app.core.exceptions import WorkflowNotFoundError
from app.main import app
from app.services.data_export_service import ExportResult
from app.services.data_import_service import DataImportService, ImportResult
from app.services.lead_scoring import LeadScoreResult

TENANT_ID = UUID("11111111-1111-1111-1111-111111111111")


def _workflow(**overrides):
    values = {
        "id": uuid4(),
        "name": "Welcome new leads",
        "description": None,
        "trigger_type": "record_created",
        "trigger_config": {},
        "entity_type": "lead",
        "is_active": True,
        "run_once_per_record": False,
        "position": 0,
        "created_by": None,
        "created_at": datetime(2024, 1, 1, tzinfo=timezone.utc),
        "updated_at": None,
        "conditions": [],
        "actions": [],
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def _execution(workflow_id, entity_id, status="completed"):
    return SimpleNamespace(
        id=uuid4(),
        workflow_id=workflow_id,
        entity_type="lead",
        entity_id=entity_id,
        trigger_event="manual",
        status=status,
        started_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        completed_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        error_message=None,
    )


class TestCORSMiddleware:
    """Verify that CORS headers are present on responses."""

    @pytest.mark.asyncio
    async def test_cors_headers_on_preflight(self):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.options(
                "/api/v1/health",
                headers={
                    "Origin": "http://localhost:3000",
                    "Access-Control-Request-Method": "GET",
                },
            )
            assert response.headers.get("access-control-allow-origin") == "http://localhost:3000"

    @pytest.mark.asyncio
    async def test_unknown_origin_not_allowed(self):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/api/v1/health", headers={"Origin": "http://evil.test"})
            assert response.status_code == 200
            assert "access-control-allow-origin" not in response.headers


class TestHealthEndpoint:
    @pytest.mark.asyncio
    async def test_health_needs_no_tenant(self):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/api/v1/health")
            assert response.status_code == 200
            assert response.json() == {"status": "ok"}


class TestScoringEndpoints:
    @pytest.mark.asyncio
    async def test_calculate_returns_label_and_breakdown(self, async_client):
        engine = MagicMock()
        engine.calculate_score = AsyncMock(
            return_value=LeadScoreResult(
                score=60,
                label="hot",
                breakdown={"demographic": 20, "engagement": 40, "behavioral": 0, "fit": 0},
            )
        )
        app.dependency_overrides[get_scoring_engine] = lambda: engine

        response = await async_client.post(
            "/api/v1/scoring/calculate", json={"lead": {"title": "CEO", "activity_count": 12}}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["score"] == 60
        assert body["label"] == "hot"
        assert body["breakdown"]["engagement"] == 40
        engine.calculate_score.assert_awaited_once_with({"title": "CEO", "activity_count": 12})

    @pytest.mark.asyncio
    async def test_calculate_rejects_unknown_lead_field(self, async_client):
        app.dependency_overrides[get_scoring_engine] = lambda: MagicMock()

        response = await async_client.post("/api/v1/scoring/calculate", json={"lead": {"shoe_size": 9}})

        assert response.status_code == 422
        assert response.json()["type"] == "validation_error"

    @pytest.mark.asyncio
    async def test_rule_requires_operand(self, async_client):
        app.dependency_overrides[get_scoring_engine] = lambda: MagicMock()

        response = await async_client.post(
            "/api/v1/scoring/rules",
            json={
                "name": "Executive",
                "category": "demographic",
                "field_name": "title",
                "operator": "contains",
                "points": 20,
            },
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_settings_threshold_order(self, async_client):
        app.dependency_overrides[get_scoring_engine] = lambda: MagicMock()

        response = await async_client.put(
            "/api/v1/scoring/settings",
            json={"warm_threshold": 60, "hot_threshold": 50},
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_recalculate_lead(self, async_client):
        lead_id = uuid4()
        engine = MagicMock()
        engine.update_lead_score = AsyncMock(
            return_value=LeadScoreResult(score=10, label="cold", breakdown={"fit": 10})
        )
        app.dependency_overrides[get_scoring_engine] = lambda: engine

        response = await async_client.post(f"/api/v1/scoring/leads/{lead_id}/recalculate")

        assert response.status_code == 200
        assert response.json()["lead_id"] == str(lead_id)
        engine.update_lead_score.assert_awaited_once_with(lead_id, triggered_by="manual")


class TestWorkflowEndpoints:
    @pytest.mark.asyncio
    async def test_create_splits_conditions_and_actions(self, async_client):
        service = MagicMock()
        service.create_workflow = AsyncMock(return_value=_workflow())
        app.dependency_overrides[get_workflow_service] = lambda: service

        response = await async_client.post(
            "/api/v1/workflows",
            json={
                "name": "Welcome new leads",
                "trigger_type": "record_created",
                "entity_type": "lead",
                "conditions": [{"field_name": "email", "operator": "is_not_null"}],
                "actions": [{"action_type": "send_email", "action_config": {"subject": "Hi"}}],
            },
        )

        assert response.status_code == 201
        data, conditions, actions = service.create_workflow.await_args.args
        assert "conditions" not in data
        assert conditions[0]["operator"] == "is_not_null"
        assert actions[0]["action_type"] == "send_email"

    @pytest.mark.asyncio
    async def test_unknown_entity_type_rejected(self, async_client):
        app.dependency_overrides[get_workflow_service] = lambda: MagicMock()

        response = await async_client.post(
            "/api/v1/workflows",
            json={"name": "x", "trigger_type": "manual", "entity_type": "invoice"},
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_missing_workflow_is_404(self, async_client):
        service = MagicMock()
        service.get_workflow = AsyncMock(side_effect=WorkflowNotFoundError())
        app.dependency_overrides[get_workflow_service] = lambda: service

        response = await async_client.get(f"/api/v1/workflows/{uuid4()}")

        assert response.status_code == 404
        assert response.json() == {"detail": "Workflow not found", "type": "not_found"}

    @pytest.mark.asyncio
    async def test_run_builds_manual_context(self, async_client):
        workflow = _workflow()
        entity_id = uuid4()
        service = MagicMock()
        service.get_workflow = AsyncMock(return_value=workflow)
        record_repo = MagicMock()
        record_repo.get_as_dict = AsyncMock(return_value={"id": str(entity_id), "first_name": "Ada"})
        engine = MagicMock()
        engine.execute_workflow = AsyncMock(return_value=_execution(workflow.id, entity_id))
        app.dependency_overrides[get_workflow_service] = lambda: service
        app.dependency_overrides[get_record_repo] = lambda: record_repo
        app.dependency_overrides[get_workflow_engine] = lambda: engine

        response = await async_client.post(
            f"/api/v1/workflows/{workflow.id}/run", json={"entity_id": str(entity_id)}
        )

        assert response.status_code == 200
        assert response.json()["executed"] is True
        context = engine.execute_workflow.await_args.args[1]
        assert context.tenant_id == TENANT_ID
        assert context.trigger_event == "manual"
        assert context.record["first_name"] == "Ada"

    @pytest.mark.asyncio
    async def test_run_skipped_when_conditions_fail(self, async_client):
        workflow = _workflow()
        service = MagicMock()
        service.get_workflow = AsyncMock(return_value=workflow)
        record_repo = MagicMock()
        record_repo.get_as_dict = AsyncMock(return_value={"id": "x"})
        engine = MagicMock()
        engine.execute_workflow = AsyncMock(return_value=None)
        app.dependency_overrides[get_workflow_service] = lambda: service
        app.dependency_overrides[get_record_repo] = lambda: record_repo
        app.dependency_overrides[get_workflow_engine] = lambda: engine

        response = await async_client.post(
            f"/api/v1/workflows/{workflow.id}/run", json={"entity_id": str(uuid4())}
        )

        assert response.json() == {"executed": False, "execution": None}

    @pytest.mark.asyncio
    async def test_trigger_missing_record(self, async_client):
        record_repo = MagicMock()
        record_repo.get_as_dict = AsyncMock(return_value=None)
        app.dependency_overrides[get_record_repo] = lambda: record_repo
        app.dependency_overrides[get_workflow_engine] = lambda: MagicMock()

        response = await async_client.post(
            "/api/v1/workflows/trigger",
            json={"entity_type": "deal", "entity_id": str(uuid4()), "trigger_event": "record_updated"},
        )

        assert response.status_code == 404


class TestDataEndpoints:
    @pytest.mark.asyncio
    async def test_preview_upload(self, async_client):
        service = DataImportService(MagicMock(), MagicMock())
        app.dependency_overrides[get_data_import_service] = lambda: service

        response = await async_client.post(
            "/api/v1/data/import/preview",
            files={"file": ("leads.csv", b"First Name,Email\nAda,ada@example.com\n,bad\n", "text/csv")},
            data={"entity_type": "lead"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["headers"] == ["first name", "email"]
        assert body["total_rows"] == 2
        assert body["error_rows"] == 1
        assert {m["target_field"] for m in body["suggested_mappings"]} == {"first_name", "email"}

    @pytest.mark.asyncio
    async def test_import_rejects_non_csv(self, async_client):
        app.dependency_overrides[get_data_import_service] = lambda: MagicMock()

        response = await async_client.post(
            "/api/v1/data/import",
            files={"file": ("leads.xlsx", b"PK\x03\x04", "application/octet-stream")},
            data={"entity_type": "lead"},
        )

        assert response.status_code == 422
        assert response.json()["type"] == "invalid_import_file"

    @pytest.mark.asyncio
    async def test_import_with_explicit_mappings(self, async_client):
        service = MagicMock()
        service.execute_import = AsyncMock(
            return_value=ImportResult(job_id=None, total_rows=1, processed_rows=1, success_count=1)
        )
        app.dependency_overrides[get_data_import_service] = lambda: service

        response = await async_client.post(
            "/api/v1/data/import",
            files={"file": ("contacts.csv", b"Name\nAda\n", "text/csv")},
            data={
                "entity_type": "contact",
                "mappings": '[{"source_field": "Name", "target_field": "first_name"}]',
                "duplicate_handling": "update",
            },
        )

        assert response.status_code == 200
        assert response.json()["success_count"] == 1
        kwargs = service.execute_import.await_args.kwargs
        assert kwargs["entity_type"] == "contact"
        assert kwargs["duplicate_handling"] == "update"
        assert kwargs["mappings"][0].target_field == "first_name"

    @pytest.mark.asyncio
    async def test_import_bad_mappings_json(self, async_client):
        app.dependency_overrides[get_data_import_service] = lambda: MagicMock()

        response = await async_client.post(
            "/api/v1/data/import",
            files={"file": ("contacts.csv", b"Name\nAda\n", "text/csv")},
            data={"entity_type": "contact", "mappings": "not json"},
        )

        assert response.status_code == 422
        assert response.json()["type"] == "invalid_import_file"

    @pytest.mark.asyncio
    async def test_export_download_headers(self, async_client):
        service = MagicMock()
        service.export = AsyncMock(
            return_value=ExportResult(
                file_name="lead_export_2024-01-01.csv",
                content="First Name\nAda",
                record_count=1,
            )
        )
        app.dependency_overrides[get_data_export_service] = lambda: service

        response = await async_client.post(
            "/api/v1/data/export", json={"entity_type": "lead", "fields": ["first_name"]}
        )

        assert response.status_code == 200
        assert response.text == "First Name\nAda"
        assert response.headers["content-type"].startswith("text/csv")
        assert 'filename="lead_export_2024-01-01.csv"' in response.headers["content-disposition"]
        assert response.headers["x-record-count"] == "1"


class TestLinkedInEndpoints:
    @pytest.mark.asyncio
    async def test_lookup_without_match_still_returns_search_links(self, async_client):
        service = MagicMock()
        service.lookup_profile = AsyncMock(return_value=None)
        app.dependency_overrides[get_linkedin_service] = lambda: service

        response = await async_client.post(
            "/api/v1/linkedin/lookup", json={"first_name": "Ada", "last_name": "Lovelace"}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["linkedin_url"] is None
        assert body["search_url"].startswith("https://www.linkedin.com/search/results/people/")
        assert "Ada" in body["search_url"]
        assert body["sales_nav_search_url"].startswith("https://www.linkedin.com/sales/search/people")
