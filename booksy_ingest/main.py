"""
FastAPI application for Booksy notification ingestion.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from booksy_ingest.config import settings
from booksy_ingest.core.database import Database
from booksy_ingest.core.exceptions import ErrorKind, IngestError
from booksy_ingest.core.logging import configure_logging, get_logger
from booksy_ingest.routers.integration import router as integration_router
from booksy_ingest.routers.webhook import router as webhook_router

log = get_logger(__name__)

ERROR_STATUS = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.VALIDATION: 400,
    ErrorKind.UNRESOLVED_REFERENCE: 400,
    ErrorKind.INVALID_TIME_RANGE: 400,
    ErrorKind.SLOT_CONFLICT: 409,
    ErrorKind.MALFORMED_NOTIFICATION: 400,
    ErrorKind.TRANSPORT_ERROR: 400,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    configure_logging(settings.log_level, settings.log_json)
    log.info("application_starting")

    if settings.init_schema_on_startup:
        Database().init_schema()
    else:
        log.info("schema_init_skipped")

    yield

    log.info("application_stopped")


app = FastAPI(
    title="Booksy Ingest",
    description="Turns Booksy booking notifications into salon bookings",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(webhook_router)
app.include_router(integration_router)


@app.exception_handler(IngestError)
async def ingest_error_handler(request: Request, exc: IngestError):
    status_code = ERROR_STATUS.get(exc.kind, 500)
    if status_code >= 500:
        log.error("request_failed", path=request.url.path, kind=exc.kind.value, error=str(exc))
    return JSONResponse(status_code=status_code, content={"error": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    log.warning("request_invalid", path=request.url.path, errors=len(exc.errors()))
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request", "details": jsonable_encoder(exc.errors())},
    )


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "version": "1.0.0"}


# Run with: uvicorn booksy_ingest.main:app --host 0.0.0.0 --port 8001
