"""CSV parsing, column-mapping heuristics and row validation for imports."""

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from app.core.constants import PREVIEW_MAX_ROWS, PREVIEW_PROGRESS_EVERY
from app.core.entity_fields import (
    FieldDefinition,
    get_import_fields,
    get_required_fields,
)
from app.core.exceptions import InvalidImportFileError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, str], None]

# Normalised header spellings that map onto a target field
FIELD_ALIASES: Dict[str, List[str]] = {
    "first_name": ["firstname", "fname", "givenname"],
    "last_name": ["lastname", "lname", "surname", "familyname"],
    "email": ["emailaddress", "mail", "emailid"],
    "phone": ["telephone", "tel", "phonenumber", "workphone"],
    "company": ["organization", "org", "companyname", "employer"],
    "title": ["jobtitle", "position", "role"],
    "name": ["companyname", "accountname", "dealname"],
    "domain": ["website", "url", "websiteurl"],
    "amount": ["value", "dealvalue", "revenue"],
}

_NORMALISE_RE = re.compile(r"[_\s-]")
_MATCH_THRESHOLD = 50


@dataclass
class FieldMapping:
    source_field: str
    target_field: str
    transform: str = "trim"
    score: int = 0


@dataclass
class ParsedRow:
    row_number: int
    data: Dict[str, str]
    errors: List[str]
    is_valid: bool


@dataclass
class ImportPreview:
    headers: List[str]
    rows: List[ParsedRow]
    total_rows: int
    valid_rows: int
    error_rows: int
    duplicate_rows: int
    suggested_mappings: List[FieldMapping]


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _split_records(content: str) -> List[List[Tuple[str, bool]]]:
    """Tokenise *content* into records of ``(value, was_quoted)`` cells."""
    records: List[List[Tuple[str, bool]]] = []
    row: List[Tuple[str, bool]] = []
    buf: List[str] = []
    quoted = False
    in_quotes = False
    i = 0
    n = len(content)

    def end_cell() -> None:
        nonlocal buf, quoted
        row.append(("".join(buf), quoted))
        buf = []
        quoted = False

    while i < n:
        ch = content[i]
        if in_quotes:
            if ch == '"':
                if i + 1 < n and content[i + 1] == '"':
                    buf.append('"')
                    i += 1
                else:
                    in_quotes = False
            else:
                buf.append(ch)
        elif ch == '"':
            in_quotes = True
            quoted = True
        elif ch == ",":
            end_cell()
        elif ch in "\r\n":
            end_cell()
            records.append(row)
            row = []
            if ch == "\r" and i + 1 < n and content[i + 1] == "\n":
                i += 1
        else:
            buf.append(ch)
        i += 1

    if buf or row or quoted:
        end_cell()
        records.append(row)
    return records


def _cell_text(cell: Tuple[str, bool]) -> str:
    value, was_quoted = cell
    return value if was_quoted else value.strip()


def _is_blank_line(record: List[Tuple[str, bool]]) -> bool:
    """A line holding no delimiter and nothing but whitespace."""
    if len(record) != 1:
        return False
    value, was_quoted = record[0]
    return not was_quoted and not value.strip()


def parse_csv(content: str) -> Tuple[List[str], List[Dict[str, str]]]:
    """Parse CSV text into ``(headers, rows)``.

    Headers are lower-cased and trimmed.  Unquoted cells are trimmed while
    quoted cells keep their content verbatim, including embedded commas,
    doubled quotes and newlines.  Blank lines are skipped, but a line of
    bare delimiters is a row of empty cells.  Missing trailing cells read
    as ``""``.
    """
    records = [r for r in _split_records(content) if not _is_blank_line(r)]
    if not records:
        return [], []

    headers = [_cell_text(c).replace('"', "").strip().lower() for c in records[0]]
    rows: List[Dict[str, str]] = []
    for record in records[1:]:
        values = [_cell_text(c) for c in record]
        rows.append(
            {header: values[idx] if idx < len(values) else "" for idx, header in enumerate(headers)}
        )
    return headers, rows


# ---------------------------------------------------------------------------
# Column mapping
# ---------------------------------------------------------------------------


def _normalise(value: str) -> str:
    return _NORMALISE_RE.sub("", value).lower()


def suggest_field_mappings(headers: Sequence[str], entity_type: Any) -> List[FieldMapping]:
    """Guess which import field each CSV header refers to.

    Exact name/label match scores 100, a known alias 90, and partial
    containment up to 80 in proportion to the length overlap.  Headers whose
    best score is not above 50 are left unmapped.
    """
    fields = get_import_fields(entity_type)
    mappings: List[FieldMapping] = []

    for header in headers:
        normalised = _normalise(header)
        if not normalised:
            continue
        best: Optional[FieldDefinition] = None
        best_score = 0

        for fdef in fields:
            name = _normalise(fdef.name)
            label = _normalise(fdef.label)

            if normalised in (name, label):
                best, best_score = fdef, 100
                break

            if name in normalised or normalised in name:
                score = min(len(normalised), len(name)) / max(len(normalised), len(name)) * 80
                if score > best_score:
                    best, best_score = fdef, score

            if normalised in FIELD_ALIASES.get(fdef.name, []):
                best, best_score = fdef, 90

        if best is not None and best_score > _MATCH_THRESHOLD:
            mappings.append(
                FieldMapping(
                    source_field=header,
                    target_field=best.name,
                    transform="trim",
                    score=int(round(best_score)),
                )
            )
    return mappings


# ---------------------------------------------------------------------------
# Validation and transforms
# ---------------------------------------------------------------------------


def _is_number(value: str) -> bool:
    try:
        float(value)
    except ValueError:
        return False
    return value.strip().lower() not in ("nan", "inf", "-inf", "infinity", "-infinity")


def _is_date(value: str) -> bool:
    text = value.strip()
    for parse in (
        lambda v: datetime.fromisoformat(v.replace("Z", "+00:00")),
        date.fromisoformat,
        lambda v: datetime.strptime(v, "%m/%d/%Y"),
        lambda v: datetime.strptime(v, "%d %b %Y"),
        lambda v: datetime.strptime(v, "%b %d, %Y"),
    ):
        try:
            parse(text)
            return True
        except ValueError:
            continue
    return False


def validate_row(
    row: Dict[str, str],
    entity_type: Any,
    mappings: Sequence[FieldMapping],
) -> List[str]:
    """Return human-readable problems with *row* under *mappings*."""
    errors: List[str] = []
    fields = {f.name: f for f in get_import_fields(entity_type)}
    by_target = {m.target_field: m for m in mappings}

    for required in get_required_fields(entity_type):
        mapping = by_target.get(required)
        if mapping is None:
            errors.append(f"Missing required field mapping: {required}")
            continue
        if not (row.get(mapping.source_field) or "").strip():
            errors.append(f'Required field "{fields[required].label}" is empty')

    for mapping in mappings:
        fdef = fields.get(mapping.target_field)
        value = row.get(mapping.source_field)
        if fdef is None or not value:
            continue
        if fdef.type == "number" and not _is_number(value):
            errors.append(f'Field "{fdef.label}" must be a number')
        elif fdef.type == "date" and not _is_date(value):
            errors.append(f'Field "{fdef.label}" must be a valid date')
        elif fdef.type == "enum" and fdef.enum_values:
            if value.lower() not in fdef.enum_values:
                errors.append(f'Field "{fdef.label}" must be one of: {", ".join(fdef.enum_values)}')
    return errors


def apply_transform(value: str, transform: Optional[str]) -> str:
    if transform == "lowercase":
        return value.lower()
    if transform == "uppercase":
        return value.upper()
    if transform == "trim":
        return value.strip()
    return value


def map_row_to_entity(row: Dict[str, str], mappings: Sequence[FieldMapping]) -> Dict[str, str]:
    """Project a CSV row onto target fields; empty cells are left out."""
    record: Dict[str, str] = {}
    for mapping in mappings:
        value = row.get(mapping.source_field)
        if value:
            record[mapping.target_field] = apply_transform(value, mapping.transform)
    return record


# ---------------------------------------------------------------------------
# Preview
# ---------------------------------------------------------------------------


def generate_import_preview(
    content: str,
    entity_type: Any,
    max_rows: int = PREVIEW_MAX_ROWS,
    on_progress: Optional[ProgressCallback] = None,
) -> ImportPreview:
    """Parse, auto-map and validate the first *max_rows* rows of an upload."""
    headers, rows = parse_csv(content)
    mappings = suggest_field_mappings(headers, entity_type)

    preview_rows = rows[:max_rows]
    parsed: List[ParsedRow] = []
    valid = 0
    invalid = 0

    for i, row in enumerate(preview_rows):
        errors = validate_row(row, entity_type, mappings)
        is_valid = not errors
        parsed.append(ParsedRow(row_number=i + 2, data=row, errors=errors, is_valid=is_valid))
        if is_valid:
            valid += 1
        else:
            invalid += 1

        if on_progress is not None and i % PREVIEW_PROGRESS_EVERY == 0:
            on_progress(i + 1, len(preview_rows), "Validating rows...")

    return ImportPreview(
        headers=headers,
        rows=parsed,
        total_rows=len(rows),
        valid_rows=valid,
        error_rows=invalid,
        duplicate_rows=0,
        suggested_mappings=mappings,
    )


def decode_import_file(file_name: str, content: bytes) -> str:
    """Return the text content of an uploaded import file.

    Only CSV is supported; spreadsheets are rejected with a clear error.
    """
    extension = file_name.rsplit(".", 1)[-1].lower() if "." in file_name else ""
    if extension in ("xlsx", "xls"):
        raise InvalidImportFileError("Excel file support requires additional setup. Please use CSV format.")
    if extension != "csv":
        raise InvalidImportFileError(f"Unsupported file type: .{extension or '?'}")
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise InvalidImportFileError("Import file must be UTF-8 encoded")
