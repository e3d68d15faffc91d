import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from app.core.constants import DUPLICATE_HANDLING_MODES, IMPORT_BATCH_SIZE
from app.core.entity_fields import get_unique_fields, to_entity_type
from app.core.exceptions import CRMError
from app.repositories.import_job_repository import ImportJobRepository
from app.repositories.record_repository import RecordRepository
from app.services.csv_parser import (
    FieldMapping,
    ImportPreview,
    ProgressCallback,
    generate_import_preview,
    map_row_to_entity,
    parse_csv,
    validate_row,
)

logger = logging.getLogger(__name__)


@dataclass
class ImportRowError:
    row: int
    message: str


@dataclass
class ImportResult:
    job_id: Optional[UUID]
    total_rows: int
    processed_rows: int = 0
    success_count: int = 0
    failure_count: int = 0
    duplicate_count: int = 0
    errors: List[ImportRowError] = field(default_factory=list)


class DataImportService:
    """Runs CSV imports into the tenant's CRM tables.

    Rows are processed in batches of ``IMPORT_BATCH_SIZE``; each batch is
    committed on its own so a long import makes visible progress.  Invalid
    rows are reported, not raised.
    """

    def __init__(
        self,
        record_repo: RecordRepository,
        job_repo: ImportJobRepository,
        user_id: Optional[UUID] = None,
    ) -> None:
        self._records = record_repo
        self._jobs = job_repo
        self._user_id = user_id

    def preview(
        self,
        content: str,
        entity_type: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ImportPreview:
        return generate_import_preview(content, to_entity_type(entity_type), on_progress=on_progress)

    async def _find_duplicate(self, entity_type: str, record: Dict[str, Any]) -> Optional[Any]:
        for unique_field in get_unique_fields(entity_type):
            value = record.get(unique_field)
            if not value:
                continue
            existing = await self._records.find_by_field(entity_type, unique_field, value)
            if existing is not None:
                return existing
        return None

    async def execute_import(
        self,
        file_name: str,
        content: str,
        entity_type: str,
        mappings: Sequence[FieldMapping],
        duplicate_handling: str = "skip",
        on_progress: Optional[ProgressCallback] = None,
    ) -> ImportResult:
        if duplicate_handling not in DUPLICATE_HANDLING_MODES:
            raise ValueError(f"Unknown duplicate handling mode: {duplicate_handling}")
        entity = to_entity_type(entity_type).value

        _, rows = parse_csv(content)
        job = await self._jobs.create(
            user_id=self._user_id,
            entity_type=entity,
            file_name=file_name,
            total_rows=len(rows),
            status="processing",
            config={
                "mappings": [asdict(m) for m in mappings],
                "duplicate_handling": duplicate_handling,
            },
        )
        await self._jobs.commit()
        result = ImportResult(job_id=job.id, total_rows=len(rows))

        try:
            for start in range(0, len(rows), IMPORT_BATCH_SIZE):
                batch = rows[start:start + IMPORT_BATCH_SIZE]
                for offset, row in enumerate(batch):
                    await self._import_row(
                        entity, row, start + offset + 2, mappings, duplicate_handling, result
                    )
                    result.processed_rows += 1
                await self._jobs.update(
                    job,
                    processed_rows=result.processed_rows,
                    success_count=result.success_count,
                    failure_count=result.failure_count,
                    duplicate_count=result.duplicate_count,
                )
                await self._jobs.commit()
                if on_progress is not None:
                    on_progress(result.processed_rows, len(rows), "Importing records...")
        except Exception:
            logger.error("Import job %s failed", job.id, exc_info=True)
            await self._jobs.rollback()
            await self._jobs.update(
                job,
                status="failed",
                errors=[asdict(e) for e in result.errors],
                completed_at=datetime.now(timezone.utc),
            )
            await self._jobs.commit()
            raise

        await self._jobs.update(
            job,
            status="completed",
            errors=[asdict(e) for e in result.errors],
            completed_at=datetime.now(timezone.utc),
        )
        await self._jobs.commit()
        logger.info(
            "Import job %s finished: %d ok, %d failed, %d duplicates",
            job.id,
            result.success_count,
            result.failure_count,
            result.duplicate_count,
        )
        return result

    async def _import_row(
        self,
        entity_type: str,
        row: Dict[str, str],
        row_number: int,
        mappings: Sequence[FieldMapping],
        duplicate_handling: str,
        result: ImportResult,
    ) -> None:
        errors = validate_row(row, entity_type, mappings)
        if errors:
            result.failure_count += 1
            result.errors.append(ImportRowError(row=row_number, message="; ".join(errors)))
            return

        record = map_row_to_entity(row, mappings)
        try:
            async with self._records.savepoint():
                existing = None
                if duplicate_handling != "create_new":
                    existing = await self._find_duplicate(entity_type, record)
                if existing is None:
                    await self._records.create(entity_type, record)
                elif duplicate_handling == "update":
                    await self._records.update(existing, record)
        except (ValueError, CRMError) as exc:
            result.failure_count += 1
            result.errors.append(ImportRowError(row=row_number, message=str(exc)))
            return
        except SQLAlchemyError as exc:
            logger.warning("Import row %d rejected by the database: %s", row_number, exc)
            result.failure_count += 1
            result.errors.append(
                ImportRowError(row=row_number, message=str(getattr(exc, "orig", None) or exc))
            )
            return

        if existing is not None:
            result.duplicate_count += 1
            if duplicate_handling == "skip":
                return
        result.success_count += 1
