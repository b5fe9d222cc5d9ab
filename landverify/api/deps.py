from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from landverify.core.clock import Clock, system_clock
from landverify.core.constants import UserRole
from landverify.core.exceptions import UnauthorizedError, ForbiddenError
from landverify.core.permissions import has_permission
from landverify.core.security import decode_token
from landverify.schemas.auth import Principal
from landverify.services.land_lookup import LandLookup
from landverify.services.notification_service import NotificationSink

security = HTTPBearer(auto_error=False)


async def get_current_principal(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Principal:
    if credentials is None:
        raise UnauthorizedError()

    payload = decode_token(credentials.credentials)
    if not payload or payload.get("type") != "access":
        raise UnauthorizedError("Invalid or expired access token")

    user_id = payload.get("sub")
    role = payload.get("role")
    if not user_id or not role:
        raise UnauthorizedError()

    try:
        return Principal(id=user_id, role=UserRole(role))
    except ValueError:
        raise UnauthorizedError("Unknown role in access token")


def require_permission(action: str):
    """Dependency factory: the caller's role must grant `action`."""

    async def checker(principal: Principal = Depends(get_current_principal)) -> Principal:
        if not has_permission(principal.role, action):
            raise ForbiddenError(f"Role {principal.role.value} cannot perform {action}")
        return principal

    return checker


async def get_current_admin(
    principal: Principal = Depends(get_current_principal),
) -> Principal:
    if principal.role != UserRole.ADMIN:
        raise ForbiddenError("This service is available to administrators only")
    return principal


def get_clock() -> Clock:
    return system_clock


def get_land_lookup() -> LandLookup:
    return LandLookup()


def get_notification_sink() -> NotificationSink:
    return NotificationSink()
