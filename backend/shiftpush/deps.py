"""Request dependencies: caller identity from the auth provider."""
import logging
from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import settings

logger = logging.getLogger(__name__)

ROLE_SUPPORT_WORKER = "support_worker"
ROLE_SERVICE_PROVIDER = "service_provider"

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class CurrentUser:
    """The authenticated caller."""
    id: str
    role: Optional[str] = None

    @property
    def is_service_provider(self) -> bool:
        return self.role == ROLE_SERVICE_PROVIDER


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_access_token(token: str) -> dict:
    """Verify an access token issued by the auth provider."""
    if not settings.auth_jwt_secret:
        raise _unauthorized("Authentication is not configured")

    options = {"require": ["sub", "exp"]}
    if not settings.auth_jwt_audience:
        options["verify_aud"] = False

    try:
        return jwt.decode(
            token,
            settings.auth_jwt_secret,
            algorithms=[settings.auth_jwt_algorithm],
            audience=settings.auth_jwt_audience,
            options=options,
        )
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token expired")
    except jwt.PyJWTError as e:
        logger.debug(f"Rejected access token: {e}")
        raise _unauthorized("Invalid token")


def role_from_claims(claims: dict) -> Optional[str]:
    """Read the app role from Supabase-style metadata claims."""
    for key in ("app_metadata", "user_metadata"):
        metadata = claims.get(key) or {}
        role = metadata.get("role")
        if role:
            return role
    return None


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> CurrentUser:
    """Resolve the caller from the Authorization header."""
    if credentials is None or not credentials.credentials:
        raise _unauthorized("Not authenticated")

    claims = decode_access_token(credentials.credentials)
    return CurrentUser(id=str(claims["sub"]), role=role_from_claims(claims))


async def require_service_provider(
    user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    """Only service providers may send notifications or manage other users' devices."""
    if not user.is_service_provider:
        raise HTTPException(status_code=403, detail="Only service providers can perform this action")
    return user
