"""FastAPI application entry point for the Customer Retrieval Assistant."""

import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from customer_rag import __version__
from customer_rag.api.dependencies import get_caller_id
from customer_rag.api.routes import router
from customer_rag.config import settings
from customer_rag.ingestion.loader import RecordSourceError
from customer_rag.services import ServiceContext
from customer_rag.utils.logging import clear_request_context, get_logger, set_request_context, setup_logging
from customer_rag.utils.metrics import get_metrics

logger = get_logger(__name__)


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Middleware to add request ID, set logging context, and record API metrics."""

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid.uuid4())
        caller_id = get_caller_id(request)
        set_request_context(
            request_id=request_id,
            caller_id=caller_id,
            operation=request.url.path,
        )
        start = time.perf_counter()
        try:
            response = await call_next(request)
            get_metrics().record_api_request(request.url.path, response.status_code, time.perf_counter() - start)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_request_context()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the service context at startup and release it at shutdown."""
    setup_logging(log_level=settings.log_level)
    if getattr(app.state, "services", None) is None:
        try:
            app.state.services = ServiceContext.from_settings(settings)
        except RecordSourceError as e:
            logger.error("Cannot load customers: {}", e)
            raise
        if settings.populate_on_startup:
            app.state.services.start_background_population()
    logger.info("Application startup complete")
    yield
    logger.info("Application shutdown")
    app.state.services.close()
    app.state.services = None


app = FastAPI(
    title=settings.app_name,
    description="Customer profile retrieval and question answering",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(RequestIdMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


# Exception handlers: 400 validation, 500 server errors
@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle validation errors (400)."""
    errors = exc.errors() if hasattr(exc, "errors") else []
    detail = errors[0].get("msg", "Validation error") if errors else "Validation error"
    return JSONResponse(status_code=400, content={"detail": detail})


@app.exception_handler(Exception)
async def server_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle uncaught server errors (500). HTTPException passed through by FastAPI."""
    if isinstance(exc, HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})
    logger.exception("Server error: {}", exc)
    get_metrics().record_error(type(exc).__name__)
    return JSONResponse(
        status_code=500,
        content={"error": "Failed to process your request"},
    )


@app.get("/health")
def health_check() -> dict:
    """Liveness check."""
    return {"status": "ok", "app": settings.app_name, "version": __version__}


@app.get("/metrics")
def metrics_endpoint() -> dict:
    """Return aggregated observability metrics summary."""
    return get_metrics().get_metrics_summary()


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    uvicorn.run("customer_rag.main:app", host="0.0.0.0", port=8000)
