"""
API Dependencies
Resolves the service container created by the application lifespan
"""
import secrets
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import APIKeyHeader

from ..container import SecurityServices
from ..utils.logger import setup_logger

logger = setup_logger(__name__)

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def get_services(request: Request) -> SecurityServices:
    """Service container owned by the app lifespan"""
    services: Optional[SecurityServices] = getattr(request.app.state, "security", None)
    if services is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Security services are not initialized"
        )
    return services


async def require_admin(
    api_key: Optional[str] = Depends(api_key_header),
    services: SecurityServices = Depends(get_services)
) -> None:
    """
    Guard admin endpoints with the configured API key.

    When no key is configured the API is open, which is only suitable
    behind a trusted network boundary.
    """
    expected = services.config.server.admin_api_key
    if not expected:
        return
    if not api_key or not secrets.compare_digest(api_key, expected):
        logger.warning("[API] Rejected admin request with missing or invalid API key")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key"
        )
