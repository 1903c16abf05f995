"""
Food rescue platform API - application entry point.

Restaurants post surplus food, volunteers claim and collect it, and a
master admin / org admin hierarchy manages the accounts.

Stack: FastAPI + DuckDB + JWT bearer tokens (demo tokens in demo mode)
"""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException

from .api import api_router
from .config.settings import settings
from .core.database import db_manager, utcnow
from .core.error_handler import (
    application_error_handler,
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from .core.exceptions import BaseApplicationError
from .models.base import isoformat_utc

logger = logging.getLogger("foodrescue")


def configure_logging():
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the database on startup and close it on shutdown"""
    db_manager.init_database()
    logger.info("Food rescue API started (demo mode: %s)", settings.is_demo)
    yield
    db_manager.close()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="Surplus food donation marketplace API",
        debug=settings.debug,
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info("%s %s -> %d (%.1f ms)", request.method, request.url.path, response.status_code, elapsed_ms)
        return response

    app.add_exception_handler(BaseApplicationError, application_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.include_router(api_router, prefix=settings.api_prefix)

    @app.get("/health")
    def health_check():
        try:
            db_manager.ping()
            database = "connected"
        except Exception as e:
            logger.warning("Health check could not reach the database: %s", e)
            database = "unavailable"
        return {
            "status": "ok" if database == "connected" else "degraded",
            "timestamp": isoformat_utc(utcnow()),
            "demo": settings.is_demo,
            "database": database,
            "version": settings.api_version,
        }

    @app.get("/")
    def root():
        return {
            "name": settings.api_title,
            "version": settings.api_version,
            "demo": settings.is_demo,
            "endpoints": ["/auth", "/food_offers", "/pickups", "/messages", "/volunteers", "/reports"],
        }

    return app


app = create_app()
