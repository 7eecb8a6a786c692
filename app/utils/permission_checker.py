from fastapi import Depends, HTTPException, status, Request

from app.models.user import User
from app.schemas.base_schema import UserRole
from app.services.state_machine import Actor
from app.utils.ip_address_finder import get_client_ip
from app.utils.logging_config import get_logger, log_security_event
from app.utils.security import get_current_user

logger = get_logger(__name__)


def require_role(*roles: str):
    """
    Dependency factory to enforce roles.

    Usage:
        current_user: User = Depends(require_role("hospital"))
        current_user: User = Depends(require_role("hospital", "admin"))
    """

    async def checker(
        request: Request,
        current_user: User = Depends(get_current_user),
    ) -> User:
        if any(current_user.has_role(role) for role in roles):
            return current_user

        log_security_event(
            event_type="unauthorized_role_access_attempt",
            user_id=str(current_user.id),
            ip_address=get_client_ip(request),
            user_agent=request.headers.get("user-agent", "unknown"),
            details={
                "required_roles": list(roles),
                "user_role": UserRole(current_user.role).value,
                "path": str(request.url.path),
            },
        )
        logger.warning(
            "Access denied - insufficient role",
            extra={
                "event_type": "access_denied_role",
                "user_id": str(current_user.id),
                "required_roles": list(roles),
            },
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Access denied. Requires one of these roles: {', '.join(roles)}",
        )

    return checker


async def get_current_actor(current_user: User = Depends(get_current_user)) -> Actor:
    """The verified identity the lifecycle rules are evaluated against"""
    return Actor.from_user(current_user)
