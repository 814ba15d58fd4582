"""
FastAPI Application Entry Point

JWT Pizza Service - REST backend for a pizza franchise business.

Endpoints:
    - /api/auth: register, login, logout, update account
    - /api/order: menu, order history, order creation, chaos switch
    - /api/franchise: franchises and their stores
    - /api/docs: endpoint catalogue
    - /: welcome message and version

Run locally:
    uvicorn pizza_service.main:app --port 3000
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from pizza_service.context import AppContext, create_context
from pizza_service.core.config import get_settings, setup_logging
from pizza_service.core.exceptions import StatusCodeError
from pizza_service.routes import ENDPOINTS, routers
from pizza_service.services.log_shipping import create_log_shipper
from pizza_service.services.metrics import HttpMetric, LatencyMetric, create_metrics_job

logger = logging.getLogger(__name__)
http_logger = logging.getLogger("pizza_service.http")

HTTP_METHOD_METRICS = {
    "GET": HttpMetric.GET_REQUESTS,
    "PUT": HttpMetric.PUT_REQUESTS,
    "POST": HttpMetric.POST_REQUESTS,
    "DELETE": HttpMetric.DELETE_REQUESTS,
}


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    context: Optional[AppContext] = getattr(app.state, "context", None)
    if context is None:
        context = create_context(get_settings())
        app.state.context = context
    settings = context.settings

    # Startup
    logger.info("=" * 60)
    logger.info(f"🚀 Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    await context.dao.ready()
    logger.info(f"✅ DAO: {context.dao.provider_name}")
    logger.info(f"✅ Factory: {context.factory.provider_name}")

    if settings.use_real_services:
        missing = settings.validate_production_config()
        if missing:
            logger.warning(f"⚠️ Missing production config: {missing}")

    metrics_job = None
    if settings.metrics_url:
        metrics_job = create_metrics_job(settings, context.metrics)
        metrics_job.start()

    log_shipper = None
    if settings.logging_url:
        log_shipper = create_log_shipper(settings, context.metrics)
        log_shipper.start()

    logger.info("✅ Application ready!")

    yield  # Application runs

    # Shutdown
    logger.info("Shutting down...")
    if metrics_job is not None:
        await metrics_job.stop()
    if log_shipper is not None:
        await log_shipper.stop()
    await context.dao.dispose()
    logger.info("✅ Cleanup complete")


# =============================================================================
# APPLICATION FACTORY
# =============================================================================

def create_app(context: Optional[AppContext] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        context: Collaborators to serve with. When omitted, the lifespan
            builds one from the environment at startup.
    """
    settings = context.settings if context is not None else get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="REST backend for the JWT Pizza franchise business.",
        version=settings.app_version,
        lifespan=lifespan,
    )
    if context is not None:
        app.state.context = context

    # Echo the caller's origin so credentialed browser requests work
    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=".*",
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.middleware("http")
    async def track_http(request: Request, call_next):
        metrics = request.app.state.context.metrics
        metrics.http.inc(HTTP_METHOD_METRICS.get(request.method, HttpMetric.OTHER_REQUESTS))
        start = time.monotonic()

        try:
            response = await call_next(request)
        except Exception:
            metrics.http.inc(HttpMetric.SERVER_ERROR)
            raise

        elapsed_ms = (time.monotonic() - start) * 1000
        if response.status_code >= 500:
            metrics.http.inc(HttpMetric.SERVER_ERROR)
        metrics.latency.add(LatencyMetric.SERVICE_ENDPOINT, elapsed_ms)

        http_logger.info(
            f"{request.method} {request.url.path} {response.status_code}",
            extra={
                "log_type": "http",
                "payload": {
                    "method": request.method,
                    "path": request.url.path,
                    "statusCode": response.status_code,
                    "authorized": "authorization" in request.headers,
                    "latencyMs": round(elapsed_ms, 2),
                },
            },
        )
        return response

    for router in routers:
        app.include_router(router)

    # =========================================================================
    # ROOT & DOCS
    # =========================================================================

    @app.get("/", tags=["Root"])
    async def root() -> dict[str, str]:
        return {"message": "welcome to JWT Pizza", "version": settings.app_version}

    @app.get("/api/docs", tags=["Root"])
    async def api_docs() -> dict:
        db = "memory" if settings.use_memory_database else settings.sqlalchemy_url.host
        return {
            "version": settings.app_version,
            "endpoints": ENDPOINTS,
            "config": {"factory": settings.factory_url, "db": db},
        }

    # =========================================================================
    # ERROR HANDLERS
    # =========================================================================

    @app.exception_handler(StatusCodeError)
    async def status_code_error_handler(request: Request, exc: StatusCodeError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"message": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        problems = []
        for error in exc.errors():
            location = ".".join(str(part) for part in error.get("loc", ())[1:])
            problems.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
        return JSONResponse(status_code=400, content={"message": "; ".join(problems) or "invalid request"})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        # Unknown paths and unsupported methods look the same to clients
        if exc.status_code in (404, 405):
            return JSONResponse(status_code=404, content={"message": "unknown endpoint"})
        return JSONResponse(status_code=exc.status_code, content={"message": str(exc.detail)})

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all exception handler."""
        logger.exception(f"Unhandled exception: {exc}")
        return JSONResponse(
            status_code=500,
            content={"message": str(exc) if settings.debug else "internal server error"},
        )

    return app


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

setup_logging()
app = create_app()
