#!/usr/bin/env python3
"""
Vetora Auth - Main Entry Point

This is the thin orchestration layer that:
1. Loads configuration
2. Builds the auth service container
3. Mounts the routers and middleware

All business logic is in the modules, following black box principles.
"""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

import redis.asyncio as redis
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from vetora import __version__
from vetora.config.provider import ConfigProvider, EnvConfigProvider
from vetora.logging_config import configure_logging, get_logging_config
from vetora.modules.api import (
    create_account_router,
    create_auth_router,
    create_biometric_router,
    create_discovery_router,
)
from vetora.modules.auth.errors import AuthError
from vetora.modules.auth.factory import AuthFactory
from vetora.modules.biometric import BiometricSecurityMiddleware

# Import modules through their black box interfaces
from vetora.modules.config import get_config

# Get configuration
config = get_config()

configure_logging(config.get("log_level"))
logger = logging.getLogger(__name__)


async def get_redis_client() -> redis.Redis:
    """Create Redis client from configuration."""
    return await redis.from_url(
        config.redis_url(),
        password=config.get("redis_password"),  # Passed separately to avoid URL encoding issues
        encoding="utf-8",
        decode_responses=True,
    )


def _is_development(request: Request) -> bool:
    services = getattr(request.app.state, "services", None)
    if services is not None:
        return services.is_development
    return config.get("environment") == "development"


def create_app(
    config_provider: Optional[ConfigProvider] = None,
    redis_client: Optional[Any] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config_provider: Configuration provider (defaults to environment)
        redis_client: Async Redis client; created from config at startup when omitted

    Returns:
        Configured FastAPI app
    """
    config_provider = config_provider or EnvConfigProvider()
    api_config = config_provider.get_api_config()
    security_config = config_provider.get_security_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifecycle - initialize and cleanup resources."""
        logger.info("Starting Vetora auth API...")

        client = redis_client if redis_client is not None else await get_redis_client()
        services = AuthFactory.build(config_provider, client)
        app.state.services = services
        logger.info("Auth services initialized via factory")

        sweep_task = None
        interval = services.role_sync_config.sweep_interval
        if interval > 0:
            sweep_task = asyncio.create_task(services.roles.run_periodic(interval))

        logger.info("Vetora auth API started successfully")

        yield

        logger.info("Shutting down Vetora auth API...")
        if sweep_task is not None:
            sweep_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sweep_task
        if redis_client is None:
            await client.close()
        app.state.services = None
        logger.info("Vetora auth API shutdown complete")

    app = FastAPI(
        title="Vetora Auth API",
        description="Vetora - accounts, tokens and biometric sign-in",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.services = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=api_config.cors_origins,
        allow_credentials="*" not in api_config.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    biometric_security = BiometricSecurityMiddleware(security_config)

    @app.middleware("http")
    async def add_biometric_security(request: Request, call_next):
        return await biometric_security(request, call_next)

    app.include_router(create_auth_router(), prefix="/api/auth")
    app.include_router(create_account_router(), prefix="/api/auth")
    app.include_router(create_biometric_router(), prefix="/api/auth/biometric")
    app.include_router(create_discovery_router(config_provider))

    # Health/Monitoring Endpoints

    @app.get("/healthz")
    async def healthz():
        """
        Minimal liveness probe.

        Returns:
            200: Service is running
        """
        return {"status": "ok"}

    @app.get("/health")
    async def health_check(request: Request):
        """
        Readiness check.

        Returns:
            200: Service healthy
            503: Service unhealthy
        """
        services = request.app.state.services
        if services is None:
            return JSONResponse(
                status_code=503,
                content={"status": "unhealthy", "redis": "disconnected", "modules": "not initialized"},
            )
        try:
            await services.redis.ping()
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            return JSONResponse(status_code=503, content={"status": "unhealthy", "error": str(e)})

        return {
            "status": "healthy",
            "redis": "connected",
            "modules": "initialized",
            "environment": api_config.environment,
            "version": __version__,
        }

    # Error handlers

    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_body(_is_development(request)))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = [
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()
        ]
        logger.info(f"Rejected malformed request to {request.url.path}: {errors}")
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": "Invalid request format", "errors": errors},
        )

    @app.exception_handler(redis.ConnectionError)
    async def redis_error_handler(request: Request, exc: redis.ConnectionError):
        """Handle Redis connection errors."""
        logger.error(f"Redis connection error: {exc}")
        return JSONResponse(
            status_code=503,
            content={"success": False, "message": "Database connection failed"},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
        content = {"success": False, "message": "Internal server error"}
        if _is_development(request):
            content["details"] = str(exc)
        return JSONResponse(status_code=500, content=content)

    return app


app = create_app()


if __name__ == "__main__":
    # Use dict config for logging, not file path
    uvicorn.run(
        "vetora.main:app",
        host=config.get("host"),
        port=config.get("port"),
        log_level=config.get("log_level").lower(),
        reload=config.get("debug"),
        log_config=get_logging_config(config.get("log_level")),
    )
