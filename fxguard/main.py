import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import get_settings, Settings
from .core.logging import init_logging, request_context_middleware
from .db.migrate import apply_migrations
from .core import errors
from .routers import health, impact, orders, rates
from .scheduler import RateRefreshScheduler
from .services.registry import ServiceRegistry, build_services

logger = logging.getLogger("fxguard")


def create_app(
    settings_override: Settings | None = None,
    services_override: ServiceRegistry | None = None,
) -> FastAPI:
    """Application factory.

    settings_override: pass an already constructed Settings instance for tests
    to isolate environment (e.g., temp DB). Falls back to cached get_settings().
    services_override: prebuilt stores/services (tests inject fake providers).
    """
    settings = settings_override or get_settings()
    # Initialize logging early
    init_logging(debug=settings.debug)

    # Ensure database schema (idempotent) so test-injected fresh DBs have tables
    try:
        apply_migrations(settings.db_path)  # type: ignore[arg-type]
    except Exception:
        # Failing to init DB is fatal; re-raise after logging
        logger.exception("failed to apply migrations on startup")
        raise

    services = services_override or build_services(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        scheduler = None
        if settings.scheduler_enabled:
            scheduler = RateRefreshScheduler(
                services.acquisition,
                interval_seconds=settings.refresh_interval_minutes * 60,
                budget_seconds=settings.acquisition_budget_seconds,
                rate_store=services.rate_store,
                order_store=services.order_store,
            )
            scheduler.start()
        try:
            yield
        finally:
            if scheduler is not None:
                scheduler.stop(timeout=5)
            services.close()

    app = FastAPI(
        title=settings.app_name,
        debug=settings.debug,
        version=settings.version,
        lifespan=lifespan,
    )
    app.state.services = services

    # Middleware (request id / structured logging, CORS)
    app.middleware("http")(request_context_middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def open_cors_header(request, call_next):  # type: ignore
        # Callers without an Origin header still get the open allow-origin
        response = await call_next(request)
        if "*" in settings.cors_allow_origins:
            response.headers.setdefault("Access-Control-Allow-Origin", "*")
        return response

    # Error handlers
    app.add_exception_handler(errors.FxGuardError, errors.domain_error_handler)
    app.add_exception_handler(StarletteHTTPException, errors.http_error_handler)
    app.add_exception_handler(RequestValidationError, errors.validation_error_handler)
    app.add_exception_handler(Exception, errors.server_error_handler)

    # Routers
    app.include_router(health.router)
    app.include_router(rates.router)
    app.include_router(impact.router)
    app.include_router(orders.router)

    @app.get("/")
    async def root():
        return {"message": "FX Margin Guard API", "version": settings.version}

    return app
