"""FastAPI dependencies."""

from fastapi import Header, HTTPException, Request, status

from arbscout.config import settings
from arbscout.services import ScoutServices


def get_scout_services(request: Request) -> ScoutServices:
    """Dependency for the scout services built in the app lifespan."""
    services = getattr(request.app.state, "scout", None)
    if services is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Scout services not initialized",
        )
    return services


async def require_admin_api_key(
    x_admin_api_key: str = Header(..., alias="X-Admin-API-Key")
) -> None:
    """
    Dependency to require admin API key for protected endpoints.

    Args:
        x_admin_api_key: Admin API key from X-Admin-API-Key header

    Raises:
        HTTPException: 503 if no key is configured, 403 if invalid
    """
    if not settings.admin_api_key:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin API key not configured"
        )

    if x_admin_api_key != settings.admin_api_key:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid admin API key"
        )
