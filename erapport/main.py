# erapport/main.py - FastAPI application: lifespan, middleware, error handling and routers
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional
import logging
import traceback
import time

from erapport import __version__
from erapport.core.config import settings
from erapport.core.db import DatabaseManager, db_manager
from erapport.core.logging_config import setup_logging
from erapport.models import Base
from erapport.api.routers import auth, state, school_years, templates, students, reports, logs
from erapport.services.defaults import TemplateDefaults, build_template_defaults
from erapport.services.persistence import PersistenceCoordinator

setup_logging()
logger = logging.getLogger(__name__)

STARTED_AT = time.time()


def create_app(
    database: Optional[DatabaseManager] = None,
    defaults: Optional[TemplateDefaults] = None,
    create_tables: Optional[bool] = None,
) -> FastAPI:
    """
    Build the API around one database manager and one set of template defaults.

    Args:
        database: Database manager; the process-wide one when omitted
        defaults: Built-in template and evaluation types; built from settings when omitted
        create_tables: Run create_all at startup; defaults to development mode only
    """
    database = database or db_manager
    defaults = defaults or build_template_defaults(settings)
    if create_tables is None:
        create_tables = settings.is_development

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan events"""
        logger.info("Starting eRapport API...")
        logger.info(f"Environment: {settings.ENV}")
        logger.info(f"Database: {settings.safe_database_url()}")

        database.initialize()

        # Create tables if they don't exist (for development)
        if create_tables:
            logger.info("Creating database tables...")
            Base.metadata.create_all(bind=database.engine)

        persistence = PersistenceCoordinator(database, defaults)
        persistence.seed_defaults()
        persistence.migrate()

        yield

        logger.info("Shutting down eRapport API...")
        database.close()

    app = FastAPI(
        title=settings.API_TITLE,
        description="Evaluation report templates, student reports and PDF exports",
        version=__version__,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )
    app.state.db = database
    app.state.defaults = defaults

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log method, path, status and duration of every request"""
        start_time = time.time()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(f"Error processing {request.method} {request.url.path}: {e}")
            raise
        process_time = time.time() - start_time
        logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({process_time:.3f}s)")
        return response

    app.add_middleware(CORSMiddleware, **settings.get_cors_config())

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle uncaught exceptions"""
        logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}")
        logger.error(traceback.format_exc())

        if settings.is_development:
            return JSONResponse(
                status_code=500,
                content={"detail": str(exc), "traceback": traceback.format_exc()},
            )
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    @app.get("/status")
    def service_status():
        """Database health; 503 when the database does not answer"""
        db_status = database.health_check()
        return JSONResponse(
            status_code=200 if db_status["ok"] else 503,
            content={
                "status": "ok" if db_status["ok"] else "degraded",
                "version": __version__,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "uptime": round(time.time() - STARTED_AT, 3),
                "db": db_status,
            },
        )

    app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
    app.include_router(state.router, prefix="/api/state", tags=["State"])
    app.include_router(school_years.router, prefix="/api/school-years", tags=["School years"])
    app.include_router(templates.router, prefix="/api/modules", tags=["Templates"])
    app.include_router(students.router, prefix="/api/students", tags=["Students"])
    app.include_router(reports.router, prefix="/api/report", tags=["Reports"])
    app.include_router(logs.router, prefix="/api/logs", tags=["Logs"])

    return app


app = create_app()
