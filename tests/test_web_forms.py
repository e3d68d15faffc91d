from contextlib import asynccontextmanager
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from app.api.deps import get_web_form_service
from app.core.exceptions import FormNotFoundError
from app.main import app
from app.services.web_form_service import WebFormService, build_lead_data


def _field(name, mapping=None, field_type="text", required=False):
    return SimpleNamespace(
        id=uuid4(),
        field_type=field_type,
        label=name.replace("_", " ").title(),
        name=name,
        placeholder=None,
        is_required=required,
        options=None,
        lead_field_mapping=mapping,
    )


def _form(**overrides):
    values = {
        "id": uuid4(),
        "tenant_id": uuid4(),
        "name": "Contact us",
        "description": None,
        "submit_button_text": "Send",
        "success_message": "Thanks!",
        "redirect_url": None,
        "honeypot_enabled": True,
        "capture_utm_params": True,
        "default_lead_source": None,
        "default_owner_id": None,
        "fields": [
            _field("first", "first_name", required=True),
            _field("work_email", "email", field_type="email"),
            _field("budget", "custom:budget"),
            _field("notes"),
        ],
    }
    values.update(overrides)
    return SimpleNamespace(**values)


@asynccontextmanager
async def _savepoint():
    yield


def _service(form=None, lead_error=None):
    form_repo = AsyncMock()
    form_repo.get_active_form = AsyncMock(return_value=form)
    form_repo.add_submission = AsyncMock(return_value=SimpleNamespace(id=uuid4()))
    form_repo.savepoint = MagicMock(side_effect=_savepoint)

    lead_repo = AsyncMock()
    if lead_error is not None:
        lead_repo.create = AsyncMock(side_effect=lead_error)
    else:
        lead_repo.create = AsyncMock(return_value=SimpleNamespace(id=uuid4()))
    activity_repo = AsyncMock()
    lead_factory = MagicMock(return_value=lead_repo)

    service = WebFormService(form_repo, lead_factory, lambda tenant_id: activity_repo)
    return service, form_repo, lead_repo, activity_repo, lead_factory


class TestBuildLeadData:
    def test_only_lead_columns_are_mapped(self):
        data = build_lead_data(_form(), {"first": "  Ada ", "work_email": "", "budget": "10k", "notes": "hi"})
        assert data == {"first_name": "Ada", "email": None}


class TestWebFormService:
    @pytest.mark.asyncio
    async def test_unknown_form(self):
        service, *_ = _service(form=None)
        with pytest.raises(FormNotFoundError):
            await service.get_public_form("acme", "missing")

    @pytest.mark.asyncio
    async def test_public_payload_hides_mappings(self):
        service, *_ = _service(form=_form())
        payload = await service.get_public_form("acme", "contact")
        assert [f["name"] for f in payload["fields"]] == ["first", "work_email", "budget", "notes"]
        assert "lead_field_mapping" not in payload["fields"][0]

    @pytest.mark.asyncio
    async def test_submission_creates_lead_in_form_tenant(self):
        form = _form(default_lead_source="website")
        service, form_repo, lead_repo, activity_repo, lead_factory = _service(form=form)

        result = await service.submit(
            "acme",
            "contact",
            {"first": "Ada", "work_email": "ada@example.com", "_honeypot": ""},
            utm_params={"utm_source": "newsletter"},
            tracking={"ip_address": "10.0.0.1"},
        )

        lead_factory.assert_called_once_with(form.tenant_id)
        lead_values = lead_repo.create.await_args.kwargs
        assert lead_values["first_name"] == "Ada"
        assert lead_values["source"] == "website"
        stored = form_repo.add_submission.await_args.kwargs
        assert "_honeypot" not in stored["submission_data"]
        assert stored["utm_source"] == "newsletter"
        assert stored["ip_address"] == "10.0.0.1"
        assert stored["is_spam"] is False
        assert result["lead_id"] == lead_repo.create.return_value.id
        assert activity_repo.create.await_args.kwargs["activity_type"] == "form_submission"
        assert form_repo.update_submission.await_args.kwargs["converted_to_lead"] is True

    @pytest.mark.asyncio
    async def test_honeypot_marks_spam_and_skips_lead(self):
        service, form_repo, lead_repo, *_ = _service(form=_form())

        result = await service.submit("acme", "contact", {"first": "Bot", "_honeypot": "gotcha"})

        assert result["success"] is True
        assert result["lead_id"] is None
        assert form_repo.add_submission.await_args.kwargs["is_spam"] is True
        lead_repo.create.assert_not_awaited()
        form_repo.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_utm_ignored_when_capture_disabled(self):
        service, form_repo, *_ = _service(form=_form(capture_utm_params=False))

        await service.submit("acme", "contact", {"first": "Ada"}, utm_params={"utm_source": "x"})

        assert "utm_source" not in form_repo.add_submission.await_args.kwargs

    @pytest.mark.asyncio
    async def test_missing_first_name_defaults(self):
        service, _, lead_repo, *_ = _service(form=_form())
        await service.submit("acme", "contact", {"work_email": "x@example.com"})
        assert lead_repo.create.await_args.kwargs["first_name"] == "Unknown"
        assert lead_repo.create.await_args.kwargs["source"] == "web_form"

    @pytest.mark.asyncio
    async def test_lead_failure_keeps_submission(self):
        error = OperationalError("insert", {}, Exception("db"))
        service, form_repo, *_ = _service(form=_form(), lead_error=error)

        result = await service.submit("acme", "contact", {"first": "Ada"})

        assert result["success"] is True
        assert result["lead_id"] is None
        assert result["error"] == "Lead could not be created from submission"
        assert "conversion_error" in form_repo.update_submission.await_args.kwargs
        form_repo.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_track_view_defaults_to_impression(self):
        service, form_repo, *_ = _service(form=_form())
        await service.track_view("acme", "contact", {"session_id": "s1"})
        assert form_repo.add_view.await_args.kwargs["view_type"] == "impression"


class TestPublicFormEndpoints:
    @pytest.mark.asyncio
    async def test_get_form_not_found(self, async_client):
        service, *_ = _service(form=None)
        app.dependency_overrides[get_web_form_service] = lambda: service

        response = await async_client.get("/api/v1/forms/acme/missing")

        assert response.status_code == 404
        assert response.json()["type"] == "not_found"

    @pytest.mark.asyncio
    async def test_submit_passes_client_tracking(self, async_client):
        service = MagicMock()
        submission_id = uuid4()
        service.submit = AsyncMock(
            return_value={
                "success": True,
                "submission_id": submission_id,
                "lead_id": None,
                "redirect_url": None,
                "success_message": "Thanks!",
            }
        )
        app.dependency_overrides[get_web_form_service] = lambda: service

        response = await async_client.post(
            "/api/v1/forms/acme/contact/submit",
            json={"data": {"first": "Ada"}, "utm": {"utm_campaign": "spring"}},
            headers={"User-Agent": "pytest", "Referer": "https://acme.test/pricing"},
        )

        assert response.status_code == 200
        assert response.json()["submission_id"] == str(submission_id)
        kwargs = service.submit.await_args.kwargs
        assert kwargs["utm_params"]["utm_campaign"] == "spring"
        assert kwargs["tracking"]["user_agent"] == "pytest"
        assert kwargs["tracking"]["referrer_url"] == "https://acme.test/pricing"

    @pytest.mark.asyncio
    async def test_invalid_view_type(self, async_client):
        app.dependency_overrides[get_web_form_service] = lambda: MagicMock()

        response = await async_client.post("/api/v1/forms/acme/contact/views", json={"view_type": "scroll"})

        assert response.status_code == 422
        assert response.json()["type"] == "validation_error"
