from fastapi import Depends, HTTPException, Query, status, Request
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Optional

from ..core.database import get_db, get_redis
from ..core.config import settings
from ..core.exceptions import AuthenticationError
from ..core.security import security, verify_credential, Identity
from ..schemas.common import PageParams
from ..services.identity import IdentityResolver, Principal
from ..services.policy import Action, Entity, policy_enforcer

async def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Identity:
    """Extract and verify the bearer token from the Authorization header."""
    return verify_credential(credentials.credentials if credentials else None)

async def get_current_principal(
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
) -> Principal:
    """Resolve the caller's account and, for patients, their Patient record."""
    return IdentityResolver(db).resolve_principal(identity)

def require_permission(entity: Entity, action: Action):
    """Create a dependency that rejects roles the policy matrix denies outright.

    Ownership is checked again by the services once the record is loaded.
    """
    async def permission_checker(
        principal: Principal = Depends(get_current_principal)
    ) -> Principal:
        policy_enforcer.authorize(principal, entity, action)
        return principal

    return permission_checker

# Optional authentication (for public endpoints that may benefit from user context)
async def get_current_principal_optional(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> Optional[Principal]:
    """Get the caller if a valid token was sent, None otherwise."""
    if credentials is None:
        return None
    try:
        identity = verify_credential(credentials.credentials)
        return IdentityResolver(db).resolve_principal(identity)
    except AuthenticationError:
        return None

def get_page_params(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1),
    sort_by: Optional[str] = None,
    order: str = Query("asc", pattern="^(asc|desc)$")
) -> PageParams:
    return PageParams.clamp(page, limit, sort_by, order)

# Rate limiting dependency
async def rate_limit_check(
    request: Request,
    redis_client = Depends(get_redis)
) -> None:
    """Basic fixed-window rate limiting for authentication endpoints."""
    client_ip = request.client.host if request.client else "unknown"
    key = f"rate_limit:{request.url.path}:{client_ip}"

    current_requests = redis_client.get(key)
    if current_requests is None:
        redis_client.setex(key, settings.RATE_LIMIT_WINDOW_SECONDS, 1)
    else:
        if int(current_requests) >= settings.RATE_LIMIT_MAX_REQUESTS:
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many requests. Please try again later."
            )
        redis_client.incr(key)
