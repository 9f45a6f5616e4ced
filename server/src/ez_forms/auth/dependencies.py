"""Authentication dependencies for FastAPI"""

from typing import Optional

from authlib.jose.errors import InvalidTokenError
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ez_forms.auth.jwt_utils import get_jwt_utils
from ez_forms.auth.models import User
from ez_forms.logging_config import get_logger

# Create HTTPBearer security scheme
security = HTTPBearer()

logger = get_logger(__name__)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> User:
    """
    FastAPI dependency to extract and validate user ID from Auth0 JWT Bearer token

    Raises:
        HTTPException: 401 if token is missing, invalid, or expired
    """
    if not credentials:
        raise _unauthorized("Missing authorization token")

    try:
        return await get_jwt_utils().extract_user(credentials.credentials)
    except InvalidTokenError as e:
        raise _unauthorized(f"Invalid token: {e}")


async def get_current_user_optional(request: Request) -> Optional[User]:
    """
    FastAPI dependency for endpoints that accept anonymous callers.

    Returns:
        - Authenticated User if a valid Bearer token is provided
        - None if there is no Bearer token

    Raises:
        HTTPException: 401 if a token is provided but invalid/expired
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None

    token = auth_header[len("Bearer ") :]

    try:
        return await get_jwt_utils().extract_user(token)
    except InvalidTokenError as e:
        logger.info(f"Rejected bearer token on optional-auth route: {e}")
        raise _unauthorized(f"Invalid token: {e}")
