"""Closed field allowlists for every CRM entity type.

Two views of the same four entities live here:

* ``LeadField`` / ``ContactField`` / ``AccountField`` / ``DealField``: the
  identifiers a scoring rule or workflow condition may reference.  Any
  other name is rejected by :func:`resolve_field` instead of silently
  evaluating as ``None``.
* ``IMPORT_FIELDS``: the column schema used by CSV import/export
  (labels, types, required/unique flags).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Type

from app.core.exceptions import UnknownEntityTypeError, UnknownFieldError


class EntityType(str, Enum):
    lead = "lead"
    contact = "contact"
    account = "account"
    deal = "deal"


class LeadField(str, Enum):
    id = "id"
    first_name = "first_name"
    last_name = "last_name"
    email = "email"
    phone = "phone"
    company = "company"
    title = "title"
    source = "source"
    status = "status"
    industry = "industry"
    company_size = "company_size"
    annual_revenue = "annual_revenue"
    activity_count = "activity_count"
    score = "score"
    score_label = "score_label"
    owner_id = "owner_id"
    created_at = "created_at"
    updated_at = "updated_at"
    last_activity_at = "last_activity_at"


class ContactField(str, Enum):
    id = "id"
    first_name = "first_name"
    last_name = "last_name"
    email = "email"
    phone = "phone"
    title = "title"
    account_id = "account_id"
    owner_id = "owner_id"
    created_at = "created_at"
    updated_at = "updated_at"


class AccountField(str, Enum):
    id = "id"
    name = "name"
    domain = "domain"
    website = "website"
    industry = "industry"
    employee_count = "employee_count"
    annual_revenue = "annual_revenue"
    account_type = "account_type"
    owner_id = "owner_id"
    billing_city = "billing_city"
    billing_state = "billing_state"
    billing_country = "billing_country"
    created_at = "created_at"
    updated_at = "updated_at"


class DealField(str, Enum):
    id = "id"
    name = "name"
    amount = "amount"
    stage_id = "stage_id"
    pipeline_id = "pipeline_id"
    probability = "probability"
    close_date = "close_date"
    deal_type = "deal_type"
    owner_id = "owner_id"
    account_id = "account_id"
    contact_id = "contact_id"
    created_at = "created_at"
    updated_at = "updated_at"


ENTITY_FIELD_ENUMS: Dict[EntityType, Type[Enum]] = {
    EntityType.lead: LeadField,
    EntityType.contact: ContactField,
    EntityType.account: AccountField,
    EntityType.deal: DealField,
}


def to_entity_type(entity_type: Any) -> EntityType:
    """Coerce ``lead``/``leads``/``EntityType.lead`` into an :class:`EntityType`."""
    if isinstance(entity_type, EntityType):
        return entity_type
    value = str(entity_type or "").strip().lower()
    if value.endswith("s") and value[:-1] in EntityType.__members__:
        value = value[:-1]
    try:
        return EntityType(value)
    except ValueError:
        raise UnknownEntityTypeError(f"Unknown entity type: {entity_type}")


def resolve_field(entity_type: Any, field_name: str) -> Enum:
    """Return the allowlisted field identifier or raise ``UnknownFieldError``."""
    field_enum = ENTITY_FIELD_ENUMS[to_entity_type(entity_type)]
    try:
        return field_enum(field_name)
    except ValueError:
        raise UnknownFieldError(
            f"Field '{field_name}' is not available on {to_entity_type(entity_type).value}"
        )


def get_field_value(record: Mapping[str, Any], entity_type: Any, field_name: str) -> Any:
    """Look up an allowlisted field on a flat record.

    Unknown field names raise; known fields that the record simply does
    not carry come back as ``None``.
    """
    field = resolve_field(entity_type, field_name)
    return record.get(field.value)


def allowed_fields(entity_type: Any) -> List[str]:
    return [f.value for f in ENTITY_FIELD_ENUMS[to_entity_type(entity_type)]]


# ---------------------------------------------------------------------------
# Import / export column schema
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FieldDefinition:
    name: str
    label: str
    type: str = "string"  # string | number | date | boolean | enum
    required: bool = False
    unique: bool = False
    enum_values: Optional[Tuple[str, ...]] = None


LEAD_STATUSES: Tuple[str, ...] = ("new", "contacted", "qualified", "unqualified", "converted")

IMPORT_FIELDS: Dict[EntityType, List[FieldDefinition]] = {
    EntityType.contact: [
        FieldDefinition("first_name", "First Name", required=True),
        FieldDefinition("last_name", "Last Name"),
        FieldDefinition("email", "Email", unique=True),
        FieldDefinition("phone", "Phone"),
        FieldDefinition("title", "Job Title"),
        FieldDefinition("account_id", "Account ID"),
    ],
    EntityType.lead: [
        FieldDefinition("first_name", "First Name", required=True),
        FieldDefinition("last_name", "Last Name"),
        FieldDefinition("email", "Email", unique=True),
        FieldDefinition("phone", "Phone"),
        FieldDefinition("company", "Company"),
        FieldDefinition("title", "Job Title"),
        FieldDefinition("source", "Lead Source"),
        FieldDefinition("status", "Status", type="enum", enum_values=LEAD_STATUSES),
    ],
    EntityType.account: [
        FieldDefinition("name", "Company Name", required=True),
        FieldDefinition("domain", "Website Domain", unique=True),
        FieldDefinition("industry", "Industry"),
        FieldDefinition("employee_count", "Employee Count"),
        FieldDefinition("annual_revenue", "Annual Revenue"),
    ],
    EntityType.deal: [
        FieldDefinition("name", "Deal Name", required=True),
        FieldDefinition("amount", "Value", type="number"),
        FieldDefinition("stage_id", "Stage ID", required=True),
        FieldDefinition("account_id", "Account ID"),
        FieldDefinition("contact_id", "Contact ID"),
        FieldDefinition("close_date", "Expected Close Date", type="date"),
    ],
}


def get_import_fields(entity_type: Any) -> List[FieldDefinition]:
    return IMPORT_FIELDS[to_entity_type(entity_type)]


def get_required_fields(entity_type: Any) -> List[str]:
    return [f.name for f in get_import_fields(entity_type) if f.required]


def get_unique_fields(entity_type: Any) -> List[str]:
    """Fields used for duplicate detection during import."""
    return [f.name for f in get_import_fields(entity_type) if f.unique]
