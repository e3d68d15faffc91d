from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from app.models.tenant import Tenant
from app.models.web_form import WebForm, WebFormSubmission, WebFormView
from app.repositories.base import BaseRepository


class WebFormRepository(BaseRepository):
    """Public form lookups are addressed by slugs, not by an authenticated tenant."""

    async def get_active_form(self, tenant_slug: str, form_slug: str) -> Optional[WebForm]:
        result = await self._db.execute(
            select(WebForm)
            .join(Tenant, Tenant.id == WebForm.tenant_id)
            .options(selectinload(WebForm.fields))
            .where(
                Tenant.slug == tenant_slug,
                WebForm.slug == form_slug,
                WebForm.status == "active",
            )
        )
        return result.scalar_one_or_none()

    async def add_view(self, **kwargs: Any) -> WebFormView:
        view = WebFormView(**kwargs)
        self._db.add(view)
        await self._db.flush()
        return view

    async def add_submission(self, **kwargs: Any) -> WebFormSubmission:
        submission = WebFormSubmission(**kwargs)
        self._db.add(submission)
        await self._db.flush()
        return submission

    async def update_submission(self, submission: WebFormSubmission, **values: Any) -> None:
        for key, value in values.items():
            setattr(submission, key, value)
        await self._db.flush()
