"""
Capability guards.

The caller's role is resolved once, at the API boundary, into one of a
closed set of actor types. Services branch on the actor type instead of
comparing role strings.
"""

from dataclasses import dataclass
from typing import List, Union

from fastapi import Depends
from fleet_backend.app.models.enums import UserRole
from fleet_backend.app.core.dependencies import get_current_user
from fleet_backend.app.core.exceptions import UnauthorizedError


@dataclass(frozen=True)
class DriverActor:
    """A driver acting on duty state (their own or, at a kiosk, a colleague's)."""
    user_id: int
    company_id: int

    role = UserRole.DRIVER


@dataclass(frozen=True)
class AdminActor:
    """A company administrator acting on any driver of the company."""
    user_id: int
    company_id: int

    role = UserRole.ADMIN


@dataclass(frozen=True)
class ParentActor:
    """A guardian reading progress of linked riders."""
    user_id: int
    company_id: int

    role = UserRole.PARENT


Actor = Union[DriverActor, AdminActor, ParentActor]

_ACTOR_TYPES = {
    UserRole.DRIVER: DriverActor,
    UserRole.ADMIN: AdminActor,
    UserRole.PARENT: ParentActor,
}


def resolve_actor(current_user: dict) -> Actor:
    """
    Turn an authenticated payload into a company-scoped actor.

    Raises:
        UnauthorizedError: unknown role or no company membership
    """
    try:
        role = UserRole(current_user.get("role"))
    except ValueError:
        raise UnauthorizedError("Invalid role")

    actor_type = _ACTOR_TYPES.get(role)
    if actor_type is None:
        raise UnauthorizedError(f"Role {role.value} cannot act on fleet resources")

    company_id = current_user.get("company_id")
    if not company_id:
        raise UnauthorizedError("User is not associated with a company")

    return actor_type(user_id=current_user["user_id"], company_id=company_id)


def require_role(allowed_roles: List[UserRole]):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.post("/driver/check-in")
        async def check_in(actor: DriverActor = Depends(require_role([UserRole.DRIVER]))):
            ...

    Returns:
        FastAPI dependency resolving to the caller's actor

    Raises:
        UnauthorizedError (403) if the caller's role is not allowed
    """
    async def role_checker(current_user: dict = Depends(get_current_user)) -> Actor:
        actor = resolve_actor(current_user)

        if actor.role not in allowed_roles:
            raise UnauthorizedError(
                f"Access denied. Required role: {', '.join([r.value for r in allowed_roles])}"
            )

        return actor

    return role_checker


require_driver = require_role([UserRole.DRIVER])
require_admin = require_role([UserRole.ADMIN])
require_parent = require_role([UserRole.PARENT])
require_staff = require_role([UserRole.DRIVER, UserRole.ADMIN])
