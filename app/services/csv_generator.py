"""CSV export: escaping, header/row generation and export bookkeeping."""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from app.core.constants import EXPORT_PROGRESS_EVERY
from app.core.entity_fields import get_import_fields

ProgressCallback = Callable[[int, int, str], None]

_NEEDS_QUOTING = (",", '"', "\n", "\r")


@dataclass
class ExportConfig:
    entity_type: str
    fields: List[str]
    format: str = "csv"
    filters: List[Dict[str, Any]] = field(default_factory=list)
    order_by: Optional[str] = None
    order_desc: bool = False
    limit: Optional[int] = None


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def escape_csv_field(value: Any) -> str:
    """Quote a value when it contains a delimiter, quote, newline or edge whitespace."""
    text = _to_text(value)
    if any(ch in text for ch in _NEEDS_QUOTING) or text != text.strip():
        return '"' + text.replace('"', '""') + '"'
    return text


def generate_csv_header(entity_type: str, fields: Sequence[str]) -> str:
    labels = {f.name: f.label for f in get_import_fields(entity_type)}
    return ",".join(escape_csv_field(labels.get(name, name)) for name in fields)


def generate_csv_row(record: Mapping[str, Any], fields: Sequence[str]) -> str:
    return ",".join(escape_csv_field(record.get(name)) for name in fields)


def generate_csv_content(
    records: Sequence[Mapping[str, Any]],
    config: ExportConfig,
    on_progress: Optional[ProgressCallback] = None,
) -> str:
    lines = [generate_csv_header(config.entity_type, config.fields)]
    total = len(records)
    for i, record in enumerate(records):
        lines.append(generate_csv_row(record, config.fields))
        if on_progress is not None and i % EXPORT_PROGRESS_EVERY == 0:
            on_progress(i + 1, total, "Generating CSV...")
    return "\n".join(lines)


def generate_export_filename(entity_type: str, fmt: str = "csv", today: Optional[date] = None) -> str:
    stamp = (today or date.today()).strftime("%Y%m%d")
    return f"{entity_type}s_export_{stamp}.{fmt}"


def estimate_export_size(record_count: int, field_count: int) -> int:
    """Rough byte estimate: ~20 bytes per cell plus one delimiter per field."""
    return record_count * (field_count * 20 + field_count)


def format_file_size(size_bytes: int) -> str:
    if size_bytes < 1024:
        return f"{size_bytes} B"
    if size_bytes < 1024 * 1024:
        return f"{round(size_bytes / 1024)} KB"
    return f"{size_bytes / (1024 * 1024):.2f} MB"
