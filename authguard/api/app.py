"""
AuthGuard admin API - application factory
"""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from .. import __version__
from ..container import SecurityServices, build_services
from ..utils.config import Config, load_config
from ..utils.logger import setup_logger
from .routers import health, security

logger = setup_logger(__name__)


def create_app(
    config: Optional[Config] = None,
    services: Optional[SecurityServices] = None,
    start_scheduler: Optional[bool] = None
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config: Configuration (loaded from config/config.yaml when omitted)
        services: Prebuilt container, mainly for tests
        start_scheduler: Override monitoring.autostart
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan manager
        Builds the service container on startup and tears it down on shutdown
        """
        container = services or build_services(config or load_config())
        await container.startup(start_scheduler=start_scheduler)
        app.state.security = container
        logger.info("[OK] AuthGuard API ready")

        yield

        try:
            await container.shutdown()
        except Exception as e:
            logger.error(f"[ERROR] Shutdown failed: {e}", exc_info=True)
        app.state.security = None

    app = FastAPI(
        title="AuthGuard",
        description="Authentication security core: rate limiting, lockouts and suspicious activity alerts",
        version=__version__,
        lifespan=lifespan,
    )
    app.include_router(health.router)
    app.include_router(security.router)
    return app
