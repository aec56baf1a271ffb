"""Helpers shared by the API routers."""

from fastapi import Header, HTTPException

from ...errors import AINotConfiguredError, NotFoundError, ValidationError
from ...logging_config import get_logger

logger = get_logger(__name__)

UNKNOWN_CALLER = "unknown"


def get_caller_upn(
    x_ms_client_principal_name: str | None = Header(default=None),
) -> str:
    """UPN of the signed-in caller as set by App Service authentication."""
    return x_ms_client_principal_name or UNKNOWN_CALLER


def to_http_exception(error: Exception) -> HTTPException:
    """Map a service error to the HTTP status the API returns for it."""
    if isinstance(error, (ValidationError, AINotConfiguredError)):
        return HTTPException(status_code=400, detail=str(error))
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    logger.error(f"Request failed: {error}", exc_info=error)
    return HTTPException(status_code=500, detail=str(error))
