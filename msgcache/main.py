import logging
import time
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import FastAPI, Path, Request, Response, status
from fastapi.responses import JSONResponse

from msgcache import manager
from msgcache.config import get_settings
from msgcache.errors import (
    DatabaseInitializationError,
    MessageConflictError,
    MessageNotFoundError,
    MessageValidationError,
    TransientStorageError,
)
from msgcache.logging_utils import setup_logging, RequestLoggingMiddleware, log_message_data
from msgcache.metrics import get_metrics, get_metrics_content_type
from msgcache.schemas import (
    ErrorResponse,
    HealthResponse,
    MessageCountResponse,
    MessageCreateRequest,
    MessageExistsResponse,
    MessageRecord,
    MessagesListResponse,
    MessageUpdateRequest,
    StatusResponse,
)
from msgcache.storage import check_db_health


# Setup structured JSON logging
setup_logging(get_settings().LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    - Startup: open the database and create the shared message manager
    - Shutdown: close the database handle
    """
    await manager.get_message_manager()
    yield
    manager.reset_message_manager()


app = FastAPI(
    title="Message Cache API",
    description="Local SQLite cache for bot messages",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)

MessageIdPath = Annotated[int, Path(description="Unique message identifier")]

ERROR_RESPONSES = {
    404: {"model": ErrorResponse, "description": "Message not found"},
    409: {"model": ErrorResponse, "description": "Message already exists"},
    422: {"model": ErrorResponse, "description": "Validation error"},
    503: {"model": ErrorResponse, "description": "Storage busy"},
}


# =============================================================================
# Error Handlers
# =============================================================================

def _error_response(request: Request, status_code: int, result: str, exc: Exception) -> JSONResponse:
    log_message_data(
        request=request,
        message_id=request.path_params.get("message_id"),
        result=result
    )
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


@app.exception_handler(MessageValidationError)
async def validation_error_handler(request: Request, exc: MessageValidationError) -> JSONResponse:
    return _error_response(request, status.HTTP_422_UNPROCESSABLE_ENTITY, "validation_error", exc)


@app.exception_handler(MessageConflictError)
async def conflict_error_handler(request: Request, exc: MessageConflictError) -> JSONResponse:
    return _error_response(request, status.HTTP_409_CONFLICT, "conflict", exc)


@app.exception_handler(MessageNotFoundError)
async def not_found_error_handler(request: Request, exc: MessageNotFoundError) -> JSONResponse:
    return _error_response(request, status.HTTP_404_NOT_FOUND, "not_found", exc)


@app.exception_handler(TransientStorageError)
async def transient_error_handler(request: Request, exc: TransientStorageError) -> JSONResponse:
    return _error_response(request, status.HTTP_503_SERVICE_UNAVAILABLE, "unavailable", exc)


@app.exception_handler(DatabaseInitializationError)
async def initialization_error_handler(request: Request, exc: DatabaseInitializationError) -> JSONResponse:
    return _error_response(request, status.HTTP_503_SERVICE_UNAVAILABLE, "unavailable", exc)


# =============================================================================
# Health Check Routes
# =============================================================================

@app.get("/health/live", response_model=HealthResponse)
async def health_live() -> HealthResponse:
    """
    Liveness probe - always returns 200 once the app is running.
    """
    return HealthResponse(status="ok")


@app.get("/health/ready", response_model=HealthResponse)
async def health_ready(response: Response) -> HealthResponse:
    """
    Readiness probe - returns 200 only if the database is reachable and
    the messages table exists, 503 otherwise.
    """
    message_manager = await manager.get_message_manager()
    if not check_db_health(message_manager.engine):
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(
            status="not_ready",
            reason="Database not reachable or schema not applied"
        )

    return HealthResponse(status="ready")


# =============================================================================
# Message Routes
# =============================================================================

@app.get("/messages", response_model=MessagesListResponse)
async def list_messages() -> MessagesListResponse:
    """
    List every stored message in storage order.

    No filtering or pagination: the cache only supports full scans and
    exact lookups.
    """
    messages = await manager.get_messages()
    logger.info(f"GET /messages: returned {len(messages)} messages")
    return MessagesListResponse(data=messages, total=len(messages))


@app.get("/messages/count", response_model=MessageCountResponse)
async def count_messages() -> MessageCountResponse:
    """Return the total number of stored messages."""
    count = await manager.get_message_count()
    return MessageCountResponse(count=count)


@app.get(
    "/messages/{message_id}",
    response_model=MessageRecord,
    responses=ERROR_RESPONSES,
)
async def read_message(request: Request, message_id: MessageIdPath) -> MessageRecord:
    """Fetch one message by its message_id."""
    message = await manager.get_message(message_id)
    if message is None:
        raise MessageNotFoundError(f"Message with ID {message_id} not found")
    log_message_data(request=request, message_id=message_id, result="ok")
    return message


@app.get(
    "/messages/{message_id}/exists",
    response_model=MessageExistsResponse,
    responses=ERROR_RESPONSES,
)
async def check_message_exists(message_id: MessageIdPath) -> MessageExistsResponse:
    """Report whether a message_id is stored."""
    exists = await manager.message_exists(message_id)
    return MessageExistsResponse(message_id=message_id, exists=exists)


@app.post(
    "/messages",
    response_model=StatusResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
async def create_message(request: Request, body: MessageCreateRequest) -> StatusResponse:
    """
    Cache a new message.

    - created_at defaults to the current time (epoch milliseconds)
    - updated_at defaults to created_at
    - An already stored message_id is rejected with 409
    """
    created_at = body.created_at if body.created_at is not None else int(time.time() * 1000)
    updated_at = body.updated_at if body.updated_at is not None else created_at

    await manager.insert_message(body.message_id, body.content, created_at, updated_at)

    log_message_data(request=request, message_id=body.message_id, result="ok")
    return StatusResponse(status="ok")


@app.put(
    "/messages/{message_id}",
    response_model=MessageRecord,
    responses=ERROR_RESPONSES,
)
async def replace_message_content(
    request: Request,
    message_id: MessageIdPath,
    body: MessageUpdateRequest,
) -> MessageRecord:
    """Replace a message's content; updated_at is refreshed server-side."""
    await manager.update_message(message_id, body.content)
    message = await manager.get_message(message_id)
    if message is None:
        raise MessageNotFoundError(f"Message with ID {message_id} not found")

    log_message_data(request=request, message_id=message_id, result="ok")
    return message


@app.delete(
    "/messages/{message_id}",
    response_model=StatusResponse,
    responses=ERROR_RESPONSES,
)
async def remove_message(request: Request, message_id: MessageIdPath) -> StatusResponse:
    """Delete a message by its message_id."""
    await manager.delete_message(message_id)
    log_message_data(request=request, message_id=message_id, result="ok")
    return StatusResponse(status="ok")


# =============================================================================
# Metrics Route
# =============================================================================

@app.get("/metrics")
async def metrics() -> Response:
    """
    Expose Prometheus-style metrics.

    Includes:
    - http_requests_total: Total HTTP requests by method, path, status
    - request_latency_seconds: Request latency histogram
    - message_operations_total: Manager operation outcomes
    - storage_retries_total: Retries after transient storage errors
    """
    return Response(
        content=get_metrics(),
        media_type=get_metrics_content_type()
    )
