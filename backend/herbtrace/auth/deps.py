"""FastAPI dependencies for authentication and authorization.

Dependencies:
  get_current_actor   → decode JWT, return the (user_id, role) Actor
  require_role(...)   → restrict an endpoint to specific roles

The Actor is handed to service functions as an explicit argument; no
service reads request state on its own.
"""

import enum
from dataclasses import dataclass

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from herbtrace.auth.jwt import decode_token
from herbtrace.middleware.exceptions import PermissionDeniedError

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


class Role(str, enum.Enum):
    FARMER = "farmer"
    LAB_TECHNICIAN = "lab_technician"
    PROCESSOR = "processor"
    SUPPLY_MANAGER = "supply_manager"
    ADMINISTRATOR = "administrator"


@dataclass(frozen=True)
class Actor:
    """Verified caller identity supplied by the authentication service."""
    user_id: str
    role: Role
    name: str | None = None


# ── Core actor dependency ───────────────────────────────────

async def get_current_actor(token: str = Depends(oauth2_scheme)) -> Actor:
    """Decode the JWT and return the caller's Actor."""
    payload = decode_token(token)
    user_id: str | None = payload.get("sub")
    if not user_id or payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        role = Role(payload.get("role"))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token carries an unknown role",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return Actor(user_id=user_id, role=role, name=payload.get("name"))


# ── Role-based access control ───────────────────────────────

def require_role(*roles: Role):
    """Dependency factory — restrict to one or more roles.

    Administrators pass every role check.

    Usage:
        @router.post("/test-results")
        async def submit(actor: Actor = Depends(require_role(Role.LAB_TECHNICIAN))):
            ...
    """
    async def _check(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in roles and actor.role != Role.ADMINISTRATOR:
            raise PermissionDeniedError(f"Requires role: {', '.join(r.value for r in roles)}")
        return actor

    return _check
