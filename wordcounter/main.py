import os
import subprocess
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from wordcounter.api.events.router import router as events_router
from wordcounter.api.wordcounter.router import router as wordcounter_router
from wordcounter.config.logger import app_logger, log_request_end, log_request_error, log_request_start
from wordcounter.config.settings import Settings, settings as default_settings
from wordcounter.db.db import init_db, ping_database
from wordcounter.engine import build_engine

_git_sha_cache: Optional[str] = None


def get_git_sha() -> str:
    """Get the current Git commit SHA (cached to avoid blocking)."""
    global _git_sha_cache
    if _git_sha_cache is not None:
        return _git_sha_cache

    try:
        result = subprocess.run(
            ["git", "rev-parse", "HEAD"],
            capture_output=True,
            text=True,
            check=True,
            timeout=1.0,
        )
        _git_sha_cache = result.stdout.strip()[:8]
    except (subprocess.CalledProcessError, FileNotFoundError, subprocess.TimeoutExpired):
        _git_sha_cache = "local-dev"
    return _git_sha_cache


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the FastAPI application; the engine is created on startup."""
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app_logger.info(f"{settings.APP_NAME} API starting up")

        # Fails fast on an unknown cache backend or a broken word pattern
        engine = build_engine(settings)
        await init_db(engine.db_engine)
        app.state.engine = engine

        app_logger.info("Application initialized successfully")
        yield

        app_logger.info(f"{settings.APP_NAME} API shutting down")
        await engine.close()
        app_logger.info("Application shutdown complete")

    app = FastAPI(
        title=settings.APP_NAME,
        description=settings.APP_DESCRIPTION,
        version=settings.APP_VERSION,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all HTTP requests with timing information using Loguru."""
        start_time = datetime.now()
        log_request_start(request)

        try:
            response = await call_next(request)
            process_time = (datetime.now() - start_time).total_seconds()
            log_request_end(request, response.status_code, process_time)
            return response

        except Exception as e:
            process_time = (datetime.now() - start_time).total_seconds()
            log_request_error(request, e, process_time)
            raise

    @app.get("/", tags=["health"])
    async def root():
        """Root endpoint with basic API information."""
        app_logger.info("Root endpoint accessed")
        return {
            "message": f"Welcome to {settings.APP_NAME} API",
            "version": settings.APP_VERSION,
            "status": "operational",
            "docs": "/docs",
            "redoc": "/redoc",
        }

    @app.get("/status", tags=["health"])
    async def status():
        """Status endpoint with build information for CI/CD monitoring."""
        return {
            "status": "ok",
            "build": os.getenv("BUILD_NUMBER", "local-dev"),
            "sha": os.getenv("GIT_SHA", os.getenv("GITHUB_SHA", get_git_sha())),
            "env": os.getenv("ENVIRONMENT", os.getenv("ENV", "development")),
            "cache_service": settings.WORDCOUNTER_CACHE_SERVICE,
        }

    @app.get("/health/db", tags=["health"])
    async def health_db(request: Request):
        """Database health endpoint."""
        is_ok, message = await ping_database(request.app.state.engine.session_maker)
        if not is_ok:
            return JSONResponse(
                status_code=503,
                content={"status": "degraded", "db": "unavailable", "message": message},
            )
        return {"status": "ok", "db": "available", "message": message}

    app.include_router(wordcounter_router)
    app.include_router(events_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    app_logger.info(f"Starting {default_settings.APP_NAME} API server")

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=8000,
        log_config=None,  # Use our custom logger
    )
