"""
FastAPI application for Group Scheduler.

Provides:
- Event lifecycle endpoints (/events)
- Recurring event template endpoints (/recurring-events)
- Health endpoint
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from group_scheduler import __version__
from group_scheduler.api.dependencies import close_integrations, init_integrations
from group_scheduler.api.middleware import RequestLoggingMiddleware
from group_scheduler.api.models import HealthResponse
from group_scheduler.api.routers.events import router as events_router
from group_scheduler.api.routers.recurring_events import router as recurring_router
from group_scheduler.config import get_settings
from group_scheduler.database import check_connection
from group_scheduler.integrations.recommendations import RecommendationServiceError
from group_scheduler.services.errors import ErrorKind, LifecycleError

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_TRANSITION: 409,
    ErrorKind.UNAUTHORIZED: 403,
    ErrorKind.CAPACITY_EXCEEDED: 409,
    ErrorKind.INVALID_OPERATION: 400,
    ErrorKind.VALIDATION_ERROR: 422,
    ErrorKind.CONFLICT: 409,
}


# =============================================================================
# Application Lifecycle
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if settings.is_production:
        settings.validate_production_config()

    logger.info("Starting Group Scheduler API")
    init_integrations(settings)
    logger.info("Group Scheduler API started")

    yield

    logger.info("Shutting down Group Scheduler API")
    close_integrations()


# =============================================================================
# FastAPI Application
# =============================================================================


app = FastAPI(
    title="Group Scheduler API",
    description="""
# Group Scheduler API

Lifecycle orchestration for group events.

## Event Lifecycle
`inviting → gathering_preferences → ai_recommending → voting → confirmed → completed`,
with `cancelled` reachable from every non-terminal state.

1. **POST /events** - Create an event (status `inviting`)
2. **POST /events/{id}/invitations** - Invite users; acceptances past the
   threshold start preference gathering
3. **POST /events/{id}/recommendations** - Gather preferences, fetch venue
   candidates and open voting
4. **POST /events/{id}/votes** - Vote for a venue option
5. **POST /events/{id}/finalize** - Pick the venue and confirm
6. **POST /events/{id}/check-ins**, **PUT /events/{id}/feedback**

## Acting User
Send `X-User-ID` (UUID) and optionally `X-User-Role` (`member`, `moderator`, `admin`).

## Errors
All errors share the body `{error_type, message, retryable}`.

- **400** - Operation not allowed now (`invalid_operation`)
- **403** - Not organizer/participant/moderator (`unauthorized`)
- **404** - Unknown event, option, entry or template (`not_found`)
- **409** - `invalid_transition`, `capacity_exceeded`, `conflict` (retryable)
- **422** - Invalid input (`validation_error`)
- **502** - Recommendation service failed
    """,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)

app.include_router(events_router)
app.include_router(recurring_router)


# =============================================================================
# Exception Handlers
# =============================================================================


@app.exception_handler(LifecycleError)
async def lifecycle_exception_handler(request: Request, exc: LifecycleError):
    """Map lifecycle error kinds to HTTP statuses."""
    status_code = ERROR_STATUS_CODES.get(exc.kind, 400)
    logger.info(f"{request.method} {request.url.path} rejected ({exc.kind.value}): {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content={
            "error_type": exc.kind.value,
            "message": exc.message,
            "retryable": exc.retryable,
        },
    )


@app.exception_handler(RecommendationServiceError)
async def recommendation_exception_handler(request: Request, exc: RecommendationServiceError):
    logger.warning(f"Recommendation service failure: {exc.message}")
    return JSONResponse(
        status_code=502,
        content={
            "error_type": "recommendation_service_error",
            "message": exc.message,
            "retryable": exc.retryable,
        },
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Report malformed request bodies in the uniform error format."""
    problems = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
    )
    return JSONResponse(
        status_code=422,
        content={
            "error_type": ErrorKind.VALIDATION_ERROR.value,
            "message": problems,
            "retryable": False,
        },
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions with consistent format."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_type": "http_error",
            "message": exc.detail,
            "retryable": exc.status_code >= 500,
        },
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error_type": "internal_error",
            "message": "An unexpected error occurred",
            "retryable": True,
        },
    )


# =============================================================================
# Health
# =============================================================================


@app.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    tags=["System"],
)
def health_check() -> HealthResponse:
    """Check API and database health."""
    database_connected = check_connection()
    return HealthResponse(
        status="healthy" if database_connected else "unhealthy",
        version=__version__,
        database_connected=database_connected,
    )


# =============================================================================
# Run with Uvicorn
# =============================================================================


def run_server(host: str | None = None, port: int | None = None, reload: bool | None = None):
    """Run the API server with Uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "group_scheduler.api.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=settings.api_reload if reload is None else reload,
    )


if __name__ == "__main__":
    run_server()
