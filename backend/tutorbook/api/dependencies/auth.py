# backend/tutorbook/api/dependencies/auth.py
"""
Principal dependencies.

Authentication is performed upstream; these helpers only read the principal
it left on ``request.state`` and apply capability checks.
"""

from typing import Optional

from fastapi import Depends, HTTPException, Request, status

from ...principal import Principal
from ...services.permission_service import PermissionService
from .services import get_permission_service


def get_principal_optional(request: Request) -> Optional[Principal]:
    principal = getattr(request.state, "principal", None)
    return principal if isinstance(principal, Principal) else None


def get_principal(
    principal: Optional[Principal] = Depends(get_principal_optional),
) -> Principal:
    """The authenticated principal; 401 when none was attached."""
    if principal is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return principal


def require_admin(
    principal: Principal = Depends(get_principal),
    permission_service: PermissionService = Depends(get_permission_service),
) -> Principal:
    permission_service.require_admin(principal)
    return principal
