import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from tenantflow.api.audit import router as audit_router
from tenantflow.api.auth import router as auth_router
from tenantflow.api.dashboard import router as dashboard_router
from tenantflow.api.projects import router as project_router
from tenantflow.api.tasks import project_tasks_router, router as task_router
from tenantflow.api.tenants import router as tenant_router
from tenantflow.api.users import router as user_router, tenant_users_router
from tenantflow.core.errors import AppError
from tenantflow.core.logging import configure_logging
from tenantflow.core.settings import Settings, get_settings
from tenantflow.db import Database
from tenantflow.seed import seed_demo_data

logger = logging.getLogger(__name__)


def _envelope(status_code: int, message: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message}, headers=headers)


async def app_error_handler(_request: Request, exc: AppError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return _envelope(exc.status_code, exc.message, headers)


async def validation_error_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if not errors:
        return _envelope(400, "Invalid request")
    first = errors[0]
    loc = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    msg = first.get("msg", "Invalid value")
    return _envelope(400, f"{loc}: {msg}" if loc else msg)


async def http_error_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = "Route not found" if exc.status_code == 404 else str(exc.detail)
    return _envelope(exc.status_code, message, getattr(exc, "headers", None))


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return _envelope(500, "Internal server error")


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unexpected error on %s %s", request.method, request.url.path)
    return _envelope(500, "Internal server error")


def create_app(settings: Settings | None = None, database: Database | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)
    db = database or Database(settings.DATABASE_URL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.AUTO_CREATE_SCHEMA:
            db.create_all()
        if settings.SEED_DEMO_DATA:
            with db.session() as session:
                seed_demo_data(session, settings)
        logger.info("%s started env=%s", settings.APP_NAME, settings.ENV)
        try:
            yield
        finally:
            db.dispose()
            logger.info("%s stopped", settings.APP_NAME)

    app = FastAPI(title=settings.APP_NAME, version=settings.VERSION, lifespan=lifespan)
    app.state.settings = settings
    app.state.db = db

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    prefix = settings.API_PREFIX
    for router in (
        auth_router,
        tenant_router,
        tenant_users_router,
        user_router,
        project_router,
        project_tasks_router,
        task_router,
        audit_router,
        dashboard_router,
    ):
        app.include_router(router, prefix=prefix)

    @app.get(f"{prefix}/health", tags=["health"])
    def health():
        try:
            app.state.db.ping()
        except SQLAlchemyError:
            logger.exception("Health check failed")
            return JSONResponse(status_code=500, content={"status": "error", "database": "disconnected"})
        return {
            "status": "ok",
            "database": "connected",
            "service": "tenantflow",
            "env": settings.ENV,
            "version": settings.VERSION,
        }

    return app
