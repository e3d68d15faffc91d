import json
from dataclasses import asdict
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile
from pydantic import TypeAdapter, ValidationError

from app.core.entity_fields import EntityType
from app.core.exceptions import InvalidImportFileError
from app.schemas.data import (
    DuplicateHandling,
    ExportRequest,
    FieldMappingSchema,
    ImportPreviewOut,
    ImportResultOut,
)
from app.services.csv_generator import ExportConfig
from app.services.csv_parser import (
    FieldMapping,
    decode_import_file,
    parse_csv,
    suggest_field_mappings,
)
from app.services.data_export_service import DataExportService
from app.services.data_import_service import DataImportService
from app.api.deps import get_data_export_service, get_data_import_service

router = APIRouter(prefix="/data", tags=["Data Management"])

_mappings_adapter = TypeAdapter(List[FieldMappingSchema])


async def _read_upload(file: UploadFile) -> str:
    return decode_import_file(file.filename or "", await file.read())


def _parse_mappings(raw: Optional[str], content: str, entity_type: EntityType) -> List[FieldMapping]:
    """Explicit JSON mappings from the form, else the auto-suggested ones."""
    if not raw:
        headers, _ = parse_csv(content)
        return suggest_field_mappings(headers, entity_type)
    try:
        parsed = _mappings_adapter.validate_python(json.loads(raw))
    except (json.JSONDecodeError, ValidationError) as exc:
        raise InvalidImportFileError(f"Invalid field mappings: {exc}")
    return [FieldMapping(**m.model_dump()) for m in parsed]


@router.post("/import/preview", response_model=ImportPreviewOut)
async def preview_import(
    file: UploadFile = File(...),
    entity_type: EntityType = Form(...),
    service: DataImportService = Depends(get_data_import_service),
) -> ImportPreviewOut:
    """Parse an upload, suggest column mappings and validate the first rows."""
    content = await _read_upload(file)
    preview = service.preview(content, entity_type.value)
    return ImportPreviewOut(**asdict(preview))


@router.post("/import", response_model=ImportResultOut)
async def execute_import(
    file: UploadFile = File(...),
    entity_type: EntityType = Form(...),
    mappings: Optional[str] = Form(None, description="JSON list of field mappings"),
    duplicate_handling: DuplicateHandling = Form(DuplicateHandling.skip),
    service: DataImportService = Depends(get_data_import_service),
) -> ImportResultOut:
    content = await _read_upload(file)
    field_mappings = _parse_mappings(mappings, content, entity_type)
    result = await service.execute_import(
        file_name=file.filename or "import.csv",
        content=content,
        entity_type=entity_type.value,
        mappings=field_mappings,
        duplicate_handling=duplicate_handling.value,
    )
    return ImportResultOut(**asdict(result))


@router.post("/export")
async def export_records(
    body: ExportRequest,
    service: DataExportService = Depends(get_data_export_service),
) -> Response:
    """Render the selected records as a CSV download."""
    config = ExportConfig(
        entity_type=body.entity_type.value,
        fields=body.fields,
        format=body.format,
        filters=[f.model_dump(mode="json") for f in body.filters],
        order_by=body.order_by,
        order_desc=body.order_desc,
        limit=body.limit,
    )
    result = await service.export(config)
    return Response(
        content=result.content,
        media_type="text/csv",
        headers={
            "Content-Disposition": f'attachment; filename="{result.file_name}"',
            "X-Record-Count": str(result.record_count),
        },
    )
