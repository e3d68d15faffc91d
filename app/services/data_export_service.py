import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from app.core.entity_fields import allowed_fields, to_entity_type
from app.core.exceptions import UnknownFieldError
from app.repositories.record_repository import RecordRepository
from app.services.csv_generator import (
    ExportConfig,
    ProgressCallback,
    generate_csv_content,
    generate_export_filename,
)

logger = logging.getLogger(__name__)


@dataclass
class ExportResult:
    file_name: str
    content: str
    record_count: int


class DataExportService:
    """Reads tenant records and renders them as CSV."""

    def __init__(self, record_repo: RecordRepository) -> None:
        self._records = record_repo

    async def export(
        self,
        config: ExportConfig,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ExportResult:
        entity_type = to_entity_type(config.entity_type).value
        allowed = set(allowed_fields(entity_type))
        unknown = [f for f in config.fields if f not in allowed]
        if unknown:
            raise UnknownFieldError(f"Cannot export unknown fields: {', '.join(unknown)}")

        filters: List[Tuple[str, str, object]] = [
            (f["field"], f["operator"], f.get("value")) for f in config.filters
        ]
        records = await self._records.list_records(
            entity_type,
            filters=filters,
            order_by=config.order_by,
            descending=config.order_desc,
            limit=config.limit,
        )
        content = generate_csv_content(records, config, on_progress=on_progress)
        logger.info("Exported %d %s record(s)", len(records), entity_type)
        return ExportResult(
            file_name=generate_export_filename(entity_type, config.format),
            content=content,
            record_count=len(records),
        )
