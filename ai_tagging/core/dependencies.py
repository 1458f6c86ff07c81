"""FastAPI dependencies for internal trigger authentication and service wiring."""

import hmac
import logging

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ai_tagging.config import Settings, get_settings
from ai_tagging.core.exceptions import InternalAuthError

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def get_app_settings(request: Request) -> Settings:
    """Settings stored on app.state during lifespan, falling back to get_settings()."""
    return getattr(request.app.state, "settings", None) or get_settings()


async def require_internal_key(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    settings: Settings = Depends(get_app_settings),
) -> None:
    """Require ``Authorization: Bearer <INTERNAL_API_KEY>``.

    Raises 500 when the key is not configured.
    """
    if not settings.internal_api_key:
        logger.error("internal_api_key is not configured; refusing internal trigger")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal API key not configured.",
        )

    if credentials is None or not hmac.compare_digest(
        credentials.credentials, settings.internal_api_key
    ):
        raise InternalAuthError("Invalid internal API key.")


def get_dispatcher(request: Request):
    """Dispatcher singleton created in the lifespan."""
    dispatcher = getattr(request.app.state, "dispatcher", None)
    if dispatcher is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Dispatcher not initialized.",
        )
    return dispatcher
