"""Generic access to the four CRM entity tables (lead/contact/account/deal).

Used by data import/export, workflow actions and web form submissions.
Incoming values are usually strings (CSV cells, placeholders), so they
are coerced to the column's Python type before being written.
"""

import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type
from uuid import UUID

from sqlalchemy import Date, DateTime, Integer, Numeric, func, select
from sqlalchemy.dialects.postgresql import UUID as PG_UUID

from app.core.entity_fields import EntityType, allowed_fields, resolve_field, to_entity_type
from app.models.account import Account
from app.models.contact import Contact
from app.models.deal import Deal
from app.models.lead import Lead
from app.repositories.base import TenantScopedRepository, model_to_dict

logger = logging.getLogger(__name__)

ENTITY_MODELS: Dict[EntityType, Type] = {
    EntityType.lead: Lead,
    EntityType.contact: Contact,
    EntityType.account: Account,
    EntityType.deal: Deal,
}

# Columns a caller may never set directly
_PROTECTED_COLUMNS = frozenset({"id", "tenant_id", "created_at", "updated_at"})


def coerce_value(column_type: Any, value: Any) -> Any:
    """Convert *value* to the Python type expected by *column_type*.

    Empty strings become ``None``; unparseable values raise ``ValueError``.
    """
    if value is None or value == "":
        return None
    if isinstance(column_type, PG_UUID):
        return value if isinstance(value, UUID) else UUID(str(value))
    if isinstance(column_type, Integer):
        return int(float(value))
    if isinstance(column_type, Numeric):
        try:
            return Decimal(str(value))
        except InvalidOperation:
            raise ValueError(f"Invalid number: {value}")
    if isinstance(column_type, DateTime):
        if isinstance(value, datetime):
            return value
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if isinstance(column_type, Date):
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        return date.fromisoformat(str(value)[:10])
    return value


_FILTER_OPERATORS = {
    "eq": lambda col, v: col == v,
    "neq": lambda col, v: col != v,
    "gt": lambda col, v: col > v,
    "gte": lambda col, v: col >= v,
    "lt": lambda col, v: col < v,
    "lte": lambda col, v: col <= v,
    "like": lambda col, v: col.ilike(f"%{v}%"),
    "in": lambda col, v: col.in_(v if isinstance(v, (list, tuple)) else [v]),
}


class RecordRepository(TenantScopedRepository):
    """Tenant-scoped CRUD over lead/contact/account/deal rows."""

    @staticmethod
    def model_for(entity_type: Any) -> Type:
        return ENTITY_MODELS[to_entity_type(entity_type)]

    def _coerce(self, model: Type, data: Dict[str, Any]) -> Dict[str, Any]:
        columns = model.__table__.columns
        values: Dict[str, Any] = {}
        for key, value in data.items():
            if key in _PROTECTED_COLUMNS or key not in columns:
                continue
            values[key] = coerce_value(columns[key].type, value)
        return values

    async def get(self, entity_type: Any, record_id: UUID) -> Optional[Any]:
        model = self.model_for(entity_type)
        result = await self._db.execute(
            select(model).where(model.id == record_id, model.tenant_id == self._tenant_id)
        )
        return result.scalar_one_or_none()

    async def get_as_dict(self, entity_type: Any, record_id: UUID) -> Optional[Dict[str, Any]]:
        record = await self.get(entity_type, record_id)
        return model_to_dict(record) if record is not None else None

    async def find_by_field(self, entity_type: Any, field_name: str, value: Any) -> Optional[Any]:
        """Return the first record whose *field_name* equals *value* (case-insensitive)."""
        model = self.model_for(entity_type)
        field = resolve_field(entity_type, field_name)
        column = getattr(model, field.value)
        result = await self._db.execute(
            select(model)
            .where(
                model.tenant_id == self._tenant_id,
                func.lower(column) == str(value).lower(),
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def create(self, entity_type: Any, data: Dict[str, Any]) -> Any:
        model = self.model_for(entity_type)
        record = model(tenant_id=self._tenant_id, **self._coerce(model, data))
        self._db.add(record)
        await self._db.flush()
        return record

    async def update(self, record: Any, data: Dict[str, Any]) -> Any:
        for key, value in self._coerce(type(record), data).items():
            setattr(record, key, value)
        await self._db.flush()
        return record

    async def list_records(
        self,
        entity_type: Any,
        filters: Sequence[Tuple[str, str, Any]] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Return tenant records as dicts, applying ``(field, operator, value)`` filters."""
        model = self.model_for(entity_type)
        query = select(model).where(model.tenant_id == self._tenant_id)
        for field_name, operator, value in filters:
            column = getattr(model, resolve_field(entity_type, field_name).value)
            apply = _FILTER_OPERATORS.get(operator)
            if apply is None:
                raise ValueError(f"Unsupported filter operator: {operator}")
            if operator == "in":
                items = value if isinstance(value, (list, tuple)) else [value]
                value = [coerce_value(column.type, v) for v in items]
            elif operator != "like":
                value = coerce_value(column.type, value)
            query = query.where(apply(column, value))
        if order_by:
            column = getattr(model, resolve_field(entity_type, order_by).value)
            query = query.order_by(column.desc() if descending else column.asc())
        if limit:
            query = query.limit(limit)
        result = await self._db.execute(query)
        return [model_to_dict(r) for r in result.scalars().all()]

    @staticmethod
    def exportable_fields(entity_type: Any) -> List[str]:
        return allowed_fields(entity_type)
