from typing import Any

from app.models.import_job import ImportJob
from app.repositories.base import TenantScopedRepository


class ImportJobRepository(TenantScopedRepository):
    async def create(self, **kwargs: Any) -> ImportJob:
        job = ImportJob(tenant_id=self._tenant_id, **kwargs)
        self._db.add(job)
        await self._db.flush()
        return job

    async def update(self, job: ImportJob, **values: Any) -> ImportJob:
        for key, value in values.items():
            setattr(job, key, value)
        await self._db.flush()
        return job
