"""
Authentication dependencies for the appointment booking API.

Bearer tokens are issued by an external identity service. This module only
verifies them and turns their claims into an Actor: the subject is the user
ID, and optional role/organization claims mark organization operators.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from ....domain.value_objects.actor import Actor, ActorRole
from ....infrastructure.logging import get_logger, log_authentication_failure
from ..config import Settings, get_settings

# Security scheme for bearer token authentication
security = HTTPBearer()

logger = get_logger(__name__)


class AuthenticationError(Exception):
    """Raised when a bearer token cannot be turned into an actor."""
    pass


def decode_actor(token: str, settings: Settings) -> Actor:
    """
    Decode a JWT into the acting party.

    Args:
        token: Encoded JWT
        settings: Application settings holding the key and claim names

    Returns:
        Actor: The authenticated actor

    Raises:
        AuthenticationError: If the token is invalid or its claims are malformed
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError as e:
        raise AuthenticationError(f"Invalid authentication token: {str(e)}") from e

    subject = payload.get("sub")
    if subject is None:
        raise AuthenticationError("Invalid token: missing subject")

    try:
        user_id = UUID(str(subject))
        role = ActorRole(payload.get(settings.role_claim, ActorRole.USER.value))
        organization = payload.get(settings.organization_claim)
        organization_id = UUID(str(organization)) if organization else None
        return Actor(user_id=user_id, role=role, organization_id=organization_id)
    except ValueError as e:
        raise AuthenticationError(f"Invalid token claims: {str(e)}") from e


async def get_current_actor(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    settings: Settings = Depends(get_settings)
) -> Actor:
    """
    FastAPI dependency returning the actor behind the bearer token.

    Raises:
        HTTPException: 401 if the token is missing or invalid
    """
    if not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return decode_actor(credentials.credentials, settings)
    except AuthenticationError as e:
        log_authentication_failure(logger, str(e))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_current_operator(actor: Actor = Depends(get_current_actor)) -> Actor:
    """
    Dependency for endpoints reserved to organization operators.

    Raises:
        HTTPException: 403 if the actor does not operate an organization
    """
    if not actor.is_operator:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Organization operator privileges required"
        )
    return actor


def create_access_token(
    user_id: UUID,
    role: ActorRole = ActorRole.USER,
    organization_id: Optional[UUID] = None,
    settings: Optional[Settings] = None,
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a JWT access token for development and tests.

    Args:
        user_id: Subject of the token
        role: Role claim
        organization_id: Organization claim for operators
        settings: Settings holding the key and claim names (defaults to cached settings)
        expires_delta: Optional custom expiration time

    Returns:
        str: The encoded JWT token
    """
    settings = settings or get_settings()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))

    to_encode = {
        "sub": str(user_id),
        "exp": expire,
        "iat": now,
        "type": "access_token",
        settings.role_claim: role.value,
    }
    if organization_id is not None:
        to_encode[settings.organization_claim] = str(organization_id)

    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)
