import os
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from .config import settings
from .logging import setup_logging, RequestIdMiddleware, structlog
from .services.data_context import DataContext
from .storage.factory import get_store_provider
from .auth.router import router as auth_router
from .routes.users import router as users_router
from .routes.projects import router as projects_router
from .routes.records import router as records_router
from .routes.remarks import router as remarks_router
from .routes.forms import router as forms_router
from .routes.inventory import router as inventory_router
from .routes.reports import router as reports_router
from .routes.settings import router as settings_router


logger = structlog.get_logger(__name__)


def _init_sql_store() -> None:
    # Ensure local SQLite directory exists
    if settings.database_url.startswith("sqlite:///./"):
        os.makedirs("var", exist_ok=True)
    if settings.auto_create_db:
        from .db import create_store_tables, engine
        create_store_tables()
        logger.info("store_tables_ready", url=engine.url.render_as_string(hide_password=True))


def create_app(ctx: Optional[DataContext] = None) -> FastAPI:
    setup_logging()
    app = FastAPI(title=settings.app_name, version=settings.app_version)

    # Middlewares
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit], enabled=settings.rate_limit_enabled)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    # Routers
    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(projects_router)
    app.include_router(records_router)
    app.include_router(remarks_router)
    app.include_router(forms_router)
    app.include_router(inventory_router)
    app.include_router(reports_router)
    app.include_router(settings_router)

    # Metrics
    if settings.metrics_enabled:
        Instrumentator().instrument(app).expose(app)

    owns_context = ctx is None
    if ctx is None:
        ctx = DataContext(get_store_provider())
    app.state.ctx = ctx

    @app.get("/health")
    def health():
        return {"status": "ok", "loading": app.state.ctx.loading, "version": settings.app_version}

    @app.on_event("startup")
    def _startup():
        if owns_context and settings.store_backend.lower() == "sql":
            _init_sql_store()
        app.state.ctx.start()
        if app.state.ctx.ensure_admin():
            logger.warning("default_admin_created", username=settings.default_admin_username)
        logger.info("startup_complete", backend=settings.store_backend, version=settings.app_version)

    @app.on_event("shutdown")
    def _shutdown():
        if owns_context:
            app.state.ctx.stop()
            app.state.ctx.provider.close()

    return app


app = create_app()
