# compliance_ai/main.py
import os
import time
import uuid

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from compliance_ai.api.routes import config, router
from compliance_ai.errors import AppError
from compliance_ai.observability.logger import (
    get_logger,
    log_request_complete,
    log_request_error,
    log_request_start,
    setup_logging,
)
from compliance_ai.observability.metrics import metrics_tracker
from compliance_ai.observability.posthog_client import posthog_client

# Initialize logging FIRST
setup_logging(
    log_level=os.getenv("LOG_LEVEL", "INFO"),
    log_dir=os.getenv("LOG_DIR", "logs") or None,
)
logger = get_logger(__name__)

IS_PRODUCTION = os.getenv("APP_ENV", "development") == "production"

app = FastAPI(
    title="Compliance Document Assistant API",
    description="Token-budgeted summarization, Q&A and comparison of compliance documents",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGIN", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Request id, structured request logs and latency metrics."""

    request_id = str(uuid.uuid4())
    request.state.request_id = request_id

    endpoint = f"{request.method} {request.url.path}"

    log_request_start(
        logger,
        request_id,
        endpoint,
        client_ip=request.client.host if request.client else None,
    )

    start_time = time.time()

    try:

        response = await call_next(request)

    except Exception as e:

        metrics_tracker.record_failure()

        log_request_error(
            logger,
            request_id,
            endpoint,
            e,
            latency_seconds=round(time.time() - start_time, 3),
        )

        raise

    latency = time.time() - start_time

    if response.status_code < 400:
        metrics_tracker.record_success(latency)
    else:
        metrics_tracker.record_failure()

    response.headers["X-Request-ID"] = request_id

    log_request_complete(
        logger,
        request_id,
        endpoint,
        latency,
        status_code=response.status_code,
    )

    return response


app.include_router(router)


@app.on_event("startup")
async def startup_event():

    logger.info(
        "application_startup",
        extra={
            "version": "1.0.0",
            "simulation_mode": config.simulation_mode,
            "max_document_tokens": config.max_document_tokens,
            "max_chunk_tokens": config.max_chunk_tokens,
            "max_qa_tokens": config.max_qa_tokens,
        },
    )

    if not config.simulation_mode and not os.getenv("OPENAI_API_KEY"):

        logger.warning(
            "missing_api_key",
            extra={
                "warning_detail":
                "OPENAI_API_KEY not set. Completions are simulated."
            }
        )


@app.on_event("shutdown")
async def shutdown_event():

    logger.info("application_shutdown")


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):

    request_id = getattr(request.state, "request_id", "unknown")

    log = logger.warning if exc.status_code < 500 else logger.error

    log(
        "request_error",
        extra={
            "request_id": request_id,
            "path": request.url.path,
            "status_code": exc.status_code,
            "error": exc.message,
            "error_type": type(exc).__name__,
            "stage": getattr(exc, "stage", None),
        },
        exc_info=exc.status_code >= 500,
    )

    if exc.status_code >= 500:
        posthog_client.track_error(
            distinct_id=request_id,
            error_type=type(exc).__name__,
            error_message=exc.message,
            endpoint=request.url.path,
            stage=getattr(exc, "stage", None),
        )

    message = exc.message

    if IS_PRODUCTION and not exc.is_operational:
        message = "Something went wrong"

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": message, "request_id": request_id},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):

    request_id = getattr(request.state, "request_id", "unknown")

    logger.error(
        "unhandled_exception",
        extra={
            "request_id": request_id,
            "path": request.url.path,
            "error": str(exc),
            "error_type": type(exc).__name__
        },
        exc_info=True
    )

    posthog_client.track_error(
        distinct_id=request_id,
        error_type=type(exc).__name__,
        error_message=str(exc),
        endpoint=request.url.path,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "An internal error occurred. Please try again.",
            "request_id": request_id,
        }
    )


@app.get("/")
async def root():

    return {
        "message": "Compliance Document Assistant API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "metrics": "/metrics"
    }
