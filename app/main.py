import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
import logging

from app.api.v1.router import router as api_v1_router
from app.core.exceptions import (
    ExternalServiceError,
    GoogleApiError,
    InvalidImportFileError,
    RecordNotFoundError,
    TenantRequiredError,
    TokenError,
    UnknownEntityTypeError,
    UnknownFieldError,
    WebhookPayloadError,
    WebhookProcessingError,
    WebhookSignatureError,
    WorkflowPersistenceError,
)
from app.core.cache import LocalCounters
from app.core.config import settings as app_settings
from app.core.rate_limit import limiter
from app.services.score_decay import start_score_decay_loop
from app.core.database import AsyncSessionLocal

# Configure logging
logging.basicConfig(level=app_settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application-level background tasks."""
    decay_task = None
    if app_settings.SCORE_DECAY_ENABLED:
        decay_task = asyncio.create_task(
            start_score_decay_loop(AsyncSessionLocal, app_settings.SCORE_DECAY_INTERVAL_SECONDS)
        )
        logger.info("Background score decay task scheduled")
    yield
    # Shutdown: cancel the background task
    if decay_task is not None:
        decay_task.cancel()
        try:
            await decay_task
        except asyncio.CancelledError:
            logger.info("Background score decay task stopped")


app = FastAPI(
    title="CRM Automation Backend",
    description="Multi-tenant CRM: lead scoring, workflow automation, CSV data management and integrations",
    version="0.1.0",
    lifespan=lifespan,
)

# Attach rate limiter state so slowapi middleware can find it
app.state.limiter = limiter
# Round-robin counters used while Redis is unreachable
app.state.local_counters = LocalCounters()
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS middleware – restricted to configured origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        o.strip() for o in app_settings.CORS_ORIGINS.split(",") if o.strip()
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_v1_router)


@app.exception_handler(TenantRequiredError)
async def tenant_required_handler(request: Request, exc: TenantRequiredError):
    logger.warning("Tenant context missing: %s", exc.detail)
    return JSONResponse(
        status_code=400,
        content={"detail": exc.detail, "type": "tenant_required"},
    )


@app.exception_handler(RecordNotFoundError)
async def record_not_found_handler(request: Request, exc: RecordNotFoundError):
    logger.warning("Record not found: %s", exc.detail)
    return JSONResponse(
        status_code=404,
        content={"detail": exc.detail, "type": "not_found"},
    )


@app.exception_handler(UnknownFieldError)
async def unknown_field_handler(request: Request, exc: UnknownFieldError):
    logger.warning("Unknown field: %s", exc.detail)
    return JSONResponse(
        status_code=422,
        content={"detail": exc.detail, "type": "unknown_field"},
    )


@app.exception_handler(UnknownEntityTypeError)
async def unknown_entity_type_handler(request: Request, exc: UnknownEntityTypeError):
    logger.warning("Unknown entity type: %s", exc.detail)
    return JSONResponse(
        status_code=422,
        content={"detail": exc.detail, "type": "unknown_entity_type"},
    )


@app.exception_handler(InvalidImportFileError)
async def invalid_import_file_handler(request: Request, exc: InvalidImportFileError):
    logger.warning("Invalid import file: %s", exc.detail)
    return JSONResponse(
        status_code=422,
        content={"detail": exc.detail, "type": "invalid_import_file"},
    )


@app.exception_handler(WorkflowPersistenceError)
async def workflow_persistence_handler(request: Request, exc: WorkflowPersistenceError):
    logger.error("Workflow persistence failed: %s", exc.detail)
    return JSONResponse(
        status_code=500,
        content={"detail": exc.detail, "type": "workflow_persistence_error"},
    )


@app.exception_handler(WebhookSignatureError)
async def webhook_signature_handler(request: Request, exc: WebhookSignatureError):
    logger.warning("Rejected webhook on %s: %s", request.url.path, exc.detail)
    return JSONResponse(
        status_code=401,
        content={"detail": exc.detail, "type": "invalid_signature"},
    )


@app.exception_handler(WebhookPayloadError)
async def webhook_payload_handler(request: Request, exc: WebhookPayloadError):
    logger.warning("Bad webhook payload: %s", exc.detail)
    return JSONResponse(
        status_code=400,
        content={"detail": exc.detail, "type": "invalid_webhook_payload"},
    )


@app.exception_handler(WebhookProcessingError)
async def webhook_processing_handler(request: Request, exc: WebhookProcessingError):
    return JSONResponse(
        status_code=500,
        content={"detail": exc.detail, "type": "webhook_processing_failed"},
    )



@app.exception_handler(TokenError)
async def token_error_handler(request: Request, exc: TokenError):
    logger.warning("Google token unavailable (%s): %s", exc.error_type, exc.detail)
    return JSONResponse(
        status_code=401,
        content={
            "detail": exc.detail,
            "type": "token_error",
            "error_type": exc.error_type,
            "requires_reauth": exc.requires_reauth,
        },
    )


@app.exception_handler(GoogleApiError)
async def google_api_error_handler(request: Request, exc: GoogleApiError):
    logger.error("Google API error (%s, %s): %s", exc.error_type, exc.status, exc.detail)
    status = exc.status if 400 <= exc.status < 600 else 502
    return JSONResponse(
        status_code=status,
        content={
            "detail": exc.detail,
            "type": "google_api_error",
            "error_type": exc.error_type,
            "retryable": exc.retryable,
        },
    )


@app.exception_handler(ExternalServiceError)
async def external_service_handler(request: Request, exc: ExternalServiceError):
    logger.error("External service unavailable: %s", exc.detail)
    return JSONResponse(
        status_code=502,
        content={"detail": exc.detail, "type": "external_service_error"},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning("Request validation error: %s", exc.errors())
    return JSONResponse(
        status_code=422,
        content={
            "detail": "Request validation failed",
            "errors": jsonable_encoder(exc.errors()),
            "type": "validation_error",
        },
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """Catch-all handler for unexpected/unhandled exceptions.

    Returns a generic 500 response so that raw stack traces are never
    leaked to the client.
    """
    logger.error(
        "Unhandled exception on %s %s: %s",
        request.method,
        request.url.path,
        exc,
        exc_info=True,
    )
    return JSONResponse(
        status_code=500,
        content={
            "detail": "An unexpected internal error occurred. Please try again later.",
            "type": "internal_server_error",
        },
    )
