import secrets
from typing import Optional

import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from scheduler.core.config import settings
from scheduler.core.exceptions import AuthInvalidError, AuthMissingError

logger = structlog.get_logger(__name__)

# HTTP Bearer token extractor; a missing header is reported by verify_api_key
security = HTTPBearer(auto_error=False)


def get_api_key() -> str:
    """Configured secret. Overridden in tests."""
    return settings.API_KEY


def verify_api_key(
    credentials: Optional[HTTPAuthorizationCredentials], api_key: str
) -> str:
    """
    Check the caller's bearer token against the configured API key.

    - No Authorization header, or a non-Bearer scheme: AuthMissingError (401)
    - Bearer token that does not match exactly: AuthInvalidError (403)
    """
    if credentials is None or not credentials.credentials:
        logger.warning("Authentication failed: missing Authorization header")
        raise AuthMissingError()

    token = credentials.credentials
    if not secrets.compare_digest(token.encode(), api_key.encode()):
        logger.warning(
            "Authentication failed: invalid API key",
            token_preview=(token[:4] + "***"),
        )
        raise AuthInvalidError()

    return token


async def require_api_key(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    api_key: str = Depends(get_api_key),
) -> str:
    return verify_api_key(credentials, api_key)


async def authenticate_request(request: Request) -> str:
    """
    Run the bearer check outside dependency injection.

    FastAPI decodes the body before it resolves dependencies, so a request
    with a malformed body never reaches require_api_key.
    """
    resolve_api_key = request.app.dependency_overrides.get(get_api_key, get_api_key)
    credentials = await security(request)
    return verify_api_key(credentials, resolve_api_key())
