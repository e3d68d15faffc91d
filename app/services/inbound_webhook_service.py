"""Generic inbound webhooks: external systems push JSON that becomes CRM records.

Each endpoint is addressed by an unguessable ``endpoint_slug`` and
authenticates callers by API key or HMAC signature.  Incoming fields are
picked out of the body by dotted path (``data.contact.email``), mapped
onto the endpoint's target entity and used to create or update one
record.  Every request is logged against the endpoint, and the endpoint
keeps success/error counters.
"""

import hashlib
import hmac
import json
import logging
import secrets
import string
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from app.core.entity_fields import resolve_field, to_entity_type
from app.core.exceptions import (
    CRMError,
    InboundWebhookNotFoundError,
    WebhookPayloadError,
    WebhookProcessingError,
    WebhookSignatureError,
)
from app.models.inbound_webhook import InboundWebhook, InboundWebhookLog
from app.repositories.inbound_webhook_repository import (
    InboundEndpointRepository,
    InboundWebhookRepository,
)
from app.repositories.record_repository import RecordRepository

logger = logging.getLogger(__name__)

HMAC_ALGORITHMS = {"sha256": hashlib.sha256, "sha1": hashlib.sha1}
SLUG_LENGTH = 12
_SLUG_ALPHABET = string.ascii_lowercase + string.digits

# Credentials are never written to the request log
_REDACTED_HEADERS = frozenset({"authorization", "x-api-key", "cookie"})

# At least one of these must be present for a record to be written
_IDENTIFYING_FIELDS = {
    "lead": ("first_name", "last_name", "email", "company"),
    "contact": ("first_name", "last_name", "email"),
    "account": ("name",),
    "deal": ("name",),
}


def generate_endpoint_slug() -> str:
    return "".join(secrets.choice(_SLUG_ALPHABET) for _ in range(SLUG_LENGTH))


def generate_api_key() -> str:
    return "inwh_" + secrets.token_urlsafe(32)


def generate_hmac_secret() -> str:
    return "whsec_" + secrets.token_urlsafe(32)


def extract_value(data: Any, path: str) -> Any:
    """Follow a dotted *path* through nested dicts; ``None`` when any step is missing."""
    current = data
    for key in path.split("."):
        if not isinstance(current, Mapping) or key not in current:
            return None
        current = current[key]
    return current


def map_fields(data: Mapping[str, Any], mappings: Mapping[str, str]) -> Dict[str, Any]:
    """Build ``{target_field: value}``; empty values are left out."""
    mapped: Dict[str, Any] = {}
    for target_field, source_path in mappings.items():
        value = extract_value(data, source_path)
        if value is not None and value != "":
            mapped[target_field] = value
    return mapped


def missing_identity(entity_type: str, data: Mapping[str, Any]) -> Optional[str]:
    fields = _IDENTIFYING_FIELDS[entity_type]
    if any(data.get(f) for f in fields):
        return None
    return f"{entity_type.capitalize()} requires at least one of: {', '.join(fields)}"


def verify_hmac(raw_body: bytes, signature: str, secret: str, algorithm: str = "sha256") -> bool:
    """Compare *signature* (hex, optionally ``sha256=``-prefixed) with the body's HMAC."""
    digest = HMAC_ALGORITHMS.get(algorithm)
    if digest is None or not secret:
        return False
    expected = hmac.new(secret.encode(), raw_body, digest).hexdigest()
    provided = signature.strip().lower()
    for prefix in ("sha256=", "sha1="):
        if provided.startswith(prefix):
            provided = provided[len(prefix):]
            break
    return hmac.compare_digest(expected, provided)


def check_auth(webhook: InboundWebhook, raw_body: bytes, headers: Mapping[str, str]) -> Optional[str]:
    """Return why the request is not authenticated, or ``None`` when it is."""
    headers = {k.lower(): v for k, v in headers.items()}
    if webhook.auth_type == "none":
        return None
    if webhook.auth_type == "api_key":
        provided = headers.get("x-api-key")
        if not provided and headers.get("authorization", "").startswith("Bearer "):
            provided = headers["authorization"][len("Bearer "):]
        if not provided or not webhook.api_key or not hmac.compare_digest(provided, webhook.api_key):
            return "Invalid or missing API key"
        return None
    if webhook.auth_type == "hmac":
        signature = headers.get(webhook.hmac_header.lower())
        if not signature:
            return f"Missing signature header: {webhook.hmac_header}"
        if not verify_hmac(raw_body, signature, webhook.hmac_secret or "", webhook.hmac_algorithm):
            return "Invalid webhook signature"
        return None
    return f"Unknown auth type: {webhook.auth_type}"


def redact_headers(headers: Mapping[str, str], signature_header: Optional[str] = None) -> Dict[str, str]:
    hidden = set(_REDACTED_HEADERS)
    if signature_header:
        hidden.add(signature_header.lower())
    return {k: ("[redacted]" if k.lower() in hidden else v) for k, v in headers.items()}


def _validate_mapping(
    entity_type: str,
    field_mappings: Mapping[str, str],
    default_values: Mapping[str, Any],
    lookup_field: Optional[str],
) -> None:
    """Every target field must exist on the entity; raises ``UnknownFieldError``."""
    for name in list(field_mappings) + list(default_values):
        resolve_field(entity_type, name)
    if lookup_field:
        resolve_field(entity_type, lookup_field)


class InboundWebhookService:
    """Tenant-side management of inbound webhook endpoints."""

    def __init__(self, repo: InboundWebhookRepository, user_id: Optional[UUID] = None) -> None:
        self._repo = repo
        self._user_id = user_id

    async def list_webhooks(self) -> List[InboundWebhook]:
        return await self._repo.list_webhooks()

    async def get_webhook(self, webhook_id: UUID) -> InboundWebhook:
        webhook = await self._repo.get(webhook_id)
        if webhook is None:
            raise InboundWebhookNotFoundError(f"Inbound webhook {webhook_id} not found")
        return webhook

    async def create_webhook(self, values: Dict[str, Any]) -> InboundWebhook:
        """Create an endpoint with a fresh slug and the credential its auth type needs."""
        values = {**values, "target_entity": to_entity_type(values["target_entity"]).value}
        _validate_mapping(
            values["target_entity"],
            values.get("field_mappings") or {},
            values.get("default_values") or {},
            values.get("lookup_field"),
        )
        auth_type = values.get("auth_type", "api_key")
        webhook = await self._repo.add(
            {
                "user_id": self._user_id,
                **values,
                "endpoint_slug": generate_endpoint_slug(),
                "api_key": generate_api_key() if auth_type == "api_key" else None,
                "hmac_secret": generate_hmac_secret() if auth_type == "hmac" else None,
            }
        )
        await self._repo.commit()
        logger.info("Created inbound webhook %s (%s)", webhook.id, webhook.endpoint_slug)
        return webhook

    async def update_webhook(self, webhook_id: UUID, values: Dict[str, Any]) -> InboundWebhook:
        webhook = await self.get_webhook(webhook_id)
        if values.get("target_entity"):
            values = {**values, "target_entity": to_entity_type(values["target_entity"]).value}
        merged = {
            "target_entity": webhook.target_entity,
            "field_mappings": webhook.field_mappings,
            "default_values": webhook.default_values,
            "lookup_field": webhook.lookup_field,
            **{k: v for k, v in values.items() if v is not None},
        }
        _validate_mapping(
            merged["target_entity"],
            merged["field_mappings"] or {},
            merged["default_values"] or {},
            merged["lookup_field"],
        )
        # switching auth type issues the credential the new type needs
        auth_type = values.get("auth_type")
        if auth_type == "api_key" and not webhook.api_key:
            values = {**values, "api_key": generate_api_key()}
        elif auth_type == "hmac" and not webhook.hmac_secret:
            values = {**values, "hmac_secret": generate_hmac_secret()}
        await self._repo.update(webhook, values)
        await self._repo.commit()
        return webhook

    async def delete_webhook(self, webhook_id: UUID) -> None:
        webhook = await self.get_webhook(webhook_id)
        await self._repo.delete(webhook)
        await self._repo.commit()
        logger.info("Deleted inbound webhook %s", webhook_id)

    async def rotate_credentials(self, webhook_id: UUID) -> InboundWebhook:
        """Replace the API key or HMAC secret; the old one stops working at once."""
        webhook = await self.get_webhook(webhook_id)
        if webhook.auth_type == "api_key":
            await self._repo.update(webhook, {"api_key": generate_api_key()})
        elif webhook.auth_type == "hmac":
            await self._repo.update(webhook, {"hmac_secret": generate_hmac_secret()})
        else:
            raise WebhookPayloadError("Webhooks without authentication have no credentials")
        await self._repo.commit()
        logger.info("Rotated credentials for inbound webhook %s", webhook_id)
        return webhook

    async def get_logs(self, webhook_id: UUID, limit: int = 50) -> List[InboundWebhookLog]:
        await self.get_webhook(webhook_id)
        return await self._repo.list_logs(webhook_id, limit)


class InboundWebhookProcessor:
    """Public side: authenticate, log and apply one incoming request."""

    def __init__(
        self,
        endpoint_repo: InboundEndpointRepository,
        record_repo_factory: Callable[[UUID], RecordRepository],
    ) -> None:
        self._endpoints = endpoint_repo
        self._record_repo_factory = record_repo_factory

    async def process(
        self,
        slug: str,
        raw_body: bytes,
        headers: Mapping[str, str],
        method: str = "POST",
        ip: Optional[str] = None,
    ) -> Dict[str, Any]:
        webhook = await self._endpoints.get_active_by_slug(slug)
        if webhook is None:
            raise InboundWebhookNotFoundError(f"No active inbound webhook at {slug}")

        body = self._parse_body(raw_body)
        log = await self._endpoints.add_log(
            tenant_id=webhook.tenant_id,
            inbound_webhook_id=webhook.id,
            request_method=method,
            request_headers=redact_headers(headers, webhook.hmac_header),
            request_body=body,
            request_ip=ip,
        )

        auth_error = check_auth(webhook, raw_body, headers)
        if auth_error:
            await self._fail(webhook, log, "auth_failed", auth_error)
            raise WebhookSignatureError(auth_error)

        if body is None:
            message = "Request body must be a JSON object"
            await self._fail(webhook, log, "validation_failed", message)
            raise WebhookPayloadError(message)

        mapped = map_fields(body, webhook.field_mappings or {})
        problem = missing_identity(webhook.target_entity, {**(webhook.default_values or {}), **mapped})
        if problem:
            await self._fail(webhook, log, "validation_failed", problem)
            raise WebhookPayloadError(problem)

        try:
            async with self._endpoints.savepoint():
                operation, entity_id = await self._apply(webhook, mapped)
        except (ValueError, CRMError, SQLAlchemyError) as exc:
            logger.error("Inbound webhook %s failed to write record", webhook.id, exc_info=True)
            message = str(getattr(exc, "orig", None) or exc)
            await self._fail(webhook, log, "error", message)
            raise WebhookProcessingError(f"Webhook could not be processed: {message}")

        await self._endpoints.finish_log(
            log,
            status="success",
            entity_type=webhook.target_entity,
            entity_id=entity_id,
            operation=operation,
        )
        await self._endpoints.record_outcome(webhook.id, success=True)
        await self._endpoints.commit()
        logger.info("Inbound webhook %s: %s %s %s", webhook.id, operation, webhook.target_entity, entity_id)
        return {"success": True, "operation": operation, "entity_id": entity_id}

    @staticmethod
    def _parse_body(raw_body: bytes) -> Optional[Dict[str, Any]]:
        try:
            body = json.loads(raw_body or b"null")
        except ValueError:
            return None
        return body if isinstance(body, dict) else None

    async def _apply(self, webhook: InboundWebhook, mapped: Dict[str, Any]) -> Tuple[str, Optional[UUID]]:
        records = self._record_repo_factory(webhook.tenant_id)
        existing = None
        lookup_value = mapped.get(webhook.lookup_field) if webhook.lookup_field else None
        if lookup_value not in (None, ""):
            existing = await records.find_by_field(webhook.target_entity, webhook.lookup_field, lookup_value)

        if existing is not None:
            if not webhook.update_if_exists:
                return "skip", existing.id
            await records.update(existing, mapped)
            return "update", existing.id

        if not webhook.create_if_not_exists:
            return "skip", None
        # defaults only fill in new records
        record = await records.create(webhook.target_entity, {**(webhook.default_values or {}), **mapped})
        return "create", record.id

    async def _fail(self, webhook: InboundWebhook, log: InboundWebhookLog, status: str, message: str) -> None:
        logger.warning("Inbound webhook %s rejected (%s): %s", webhook.id, status, message)
        await self._endpoints.finish_log(log, status=status, error_message=message)
        await self._endpoints.record_outcome(webhook.id, success=False)
        await self._endpoints.commit()
