"""
API Key Authentication for FastAPI

Requests carry the key in the X-API-Key header. The server refuses to serve
requests until API_KEY is configured.
"""
import logging
import secrets
from typing import Optional

from fastapi import HTTPException, Security, status
from fastapi.security import APIKeyHeader

from docchat.core.config import get_settings

logger = logging.getLogger(__name__)

API_KEY_NAME = "X-API-Key"

api_key_header = APIKeyHeader(name=API_KEY_NAME, auto_error=False)


async def verify_api_key(api_key: Optional[str] = Security(api_key_header)) -> str:
    """
    Verify the X-API-Key header.

    Raises:
        HTTPException: 500 if no key is configured, 401 if the header is
            missing, 403 if it is wrong
    """
    expected = get_settings().api_key
    if not expected:
        logger.error("Rejecting request: API_KEY is not configured")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="API_KEY not configured on server"
        )

    if not api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing API Key. Include 'X-API-Key' header."
        )

    if not secrets.compare_digest(api_key, expected):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API Key"
        )

    return api_key
