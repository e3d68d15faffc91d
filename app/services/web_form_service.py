"""Public web-form lookup, view tracking and submission handling.

Forms are addressed anonymously by ``(tenant slug, form slug)``.  A
non-spam submission becomes a lead in the form's tenant.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from app.core.exceptions import FormNotFoundError
from app.models.web_form import WebForm
from app.repositories.activity_repository import ActivityRepository
from app.repositories.lead_repository import LeadRepository
from app.repositories.web_form_repository import WebFormRepository

logger = logging.getLogger(__name__)

HONEYPOT_FIELD = "_honeypot"
UTM_PARAMS = ("utm_source", "utm_medium", "utm_campaign", "utm_term", "utm_content")
TRACKING_FIELDS = ("ip_address", "user_agent", "referrer_url", "page_url")
LEAD_MAPPABLE_FIELDS = frozenset({"first_name", "last_name", "email", "phone", "company", "title"})


def public_form_payload(form: WebForm) -> Dict[str, Any]:
    """Serialise an active form for anonymous rendering."""
    return {
        "id": form.id,
        "name": form.name,
        "description": form.description,
        "submit_button_text": form.submit_button_text,
        "success_message": form.success_message,
        "redirect_url": form.redirect_url,
        "honeypot_enabled": form.honeypot_enabled,
        "fields": [
            {
                "id": f.id,
                "field_type": f.field_type,
                "label": f.label,
                "name": f.name,
                "placeholder": f.placeholder,
                "is_required": f.is_required,
                "options": f.options,
            }
            for f in form.fields
        ],
    }


def build_lead_data(form: WebForm, submission_data: Mapping[str, Any]) -> Dict[str, Any]:
    """Collect lead columns from fields carrying a ``lead_field_mapping``.

    Mappings outside the lead columns (``custom:*`` and the like) are ignored.
    """
    lead_data: Dict[str, Any] = {}
    for form_field in form.fields:
        target = form_field.lead_field_mapping
        if target not in LEAD_MAPPABLE_FIELDS:
            continue
        value = submission_data.get(form_field.name)
        lead_data[target] = str(value).strip() if value not in (None, "") else None
    return lead_data


class WebFormService:
    def __init__(
        self,
        form_repo: WebFormRepository,
        lead_repo_factory: Callable[[UUID], LeadRepository],
        activity_repo_factory: Callable[[UUID], ActivityRepository],
    ) -> None:
        self._forms = form_repo
        self._lead_repo_factory = lead_repo_factory
        self._activity_repo_factory = activity_repo_factory

    async def _require_form(self, tenant_slug: str, form_slug: str) -> WebForm:
        form = await self._forms.get_active_form(tenant_slug, form_slug)
        if form is None:
            raise FormNotFoundError(f"Form {tenant_slug}/{form_slug} not found or inactive")
        return form

    async def get_public_form(self, tenant_slug: str, form_slug: str) -> Dict[str, Any]:
        form = await self._require_form(tenant_slug, form_slug)
        return public_form_payload(form)

    async def track_view(
        self,
        tenant_slug: str,
        form_slug: str,
        tracking: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        tracking = tracking or {}
        form = await self._require_form(tenant_slug, form_slug)
        await self._forms.add_view(
            form_id=form.id,
            session_id=tracking.get("session_id"),
            ip_address=tracking.get("ip_address"),
            user_agent=tracking.get("user_agent"),
            referrer_url=tracking.get("referrer_url"),
            page_url=tracking.get("page_url"),
            utm_source=tracking.get("utm_source"),
            utm_medium=tracking.get("utm_medium"),
            utm_campaign=tracking.get("utm_campaign"),
            view_type=tracking.get("view_type") or "impression",
        )
        await self._forms.commit()
        return {"success": True}

    async def submit(
        self,
        tenant_slug: str,
        form_slug: str,
        submission_data: Mapping[str, Any],
        utm_params: Optional[Mapping[str, Any]] = None,
        tracking: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Store a submission and, unless it is spam, create a lead from it.

        A failure while creating the lead is recorded on the submission
        as ``conversion_error``; the submission itself is still kept.
        """
        utm_params = utm_params or {}
        tracking = tracking or {}
        form = await self._require_form(tenant_slug, form_slug)

        honeypot_triggered = bool(
            form.honeypot_enabled and submission_data.get(HONEYPOT_FIELD)
        )
        stored_data = {k: v for k, v in submission_data.items() if k != HONEYPOT_FIELD}
        utm_values = (
            {key: utm_params.get(key) for key in UTM_PARAMS} if form.capture_utm_params else {}
        )

        submission = await self._forms.add_submission(
            form_id=form.id,
            tenant_id=form.tenant_id,
            submission_data=stored_data,
            honeypot_triggered=honeypot_triggered,
            is_spam=honeypot_triggered,
            **utm_values,
            **{key: tracking.get(key) for key in TRACKING_FIELDS},
        )

        result: Dict[str, Any] = {
            "success": True,
            "submission_id": submission.id,
            "lead_id": None,
            "redirect_url": form.redirect_url,
            "success_message": form.success_message,
        }

        if honeypot_triggered:
            logger.info("Honeypot triggered on form %s; submission %s marked as spam", form.id, submission.id)
            await self._forms.commit()
            return result

        try:
            async with self._forms.savepoint():
                lead_id = await self._create_lead(form, stored_data)
        except SQLAlchemyError as exc:
            logger.error("Lead creation failed for submission %s", submission.id, exc_info=True)
            await self._forms.update_submission(
                submission,
                conversion_error=str(exc),
                processed_at=datetime.now(timezone.utc),
            )
            result["error"] = "Lead could not be created from submission"
        else:
            await self._forms.update_submission(
                submission,
                lead_id=lead_id,
                converted_to_lead=True,
                processed_at=datetime.now(timezone.utc),
            )
            result["lead_id"] = lead_id

        await self._forms.commit()
        return result

    async def _create_lead(self, form: WebForm, submission_data: Mapping[str, Any]) -> UUID:
        lead_data = build_lead_data(form, submission_data)
        lead_repo = self._lead_repo_factory(form.tenant_id)
        lead = await lead_repo.create(
            first_name=lead_data.get("first_name") or "Unknown",
            last_name=lead_data.get("last_name"),
            email=lead_data.get("email"),
            phone=lead_data.get("phone"),
            company=lead_data.get("company"),
            title=lead_data.get("title"),
            source=form.default_lead_source or "web_form",
            owner_id=form.default_owner_id,
            status="new",
        )

        activity_repo = self._activity_repo_factory(form.tenant_id)
        await activity_repo.create(
            entity_type="lead",
            entity_id=lead.id,
            activity_type="form_submission",
            subject="Lead created from web form",
            description=f"Lead was automatically created from form submission: {form.name}",
        )
        return lead.id
