"""
Authentication dependencies for the AssessFlow API.

Each dependency turns the ``Authorization: Bearer <token>`` header into a
``TenantContext`` and applies the role check the route needs.
"""

from typing import Optional

from fastapi import Depends, Header

from assessflow.common.auth.context import TenantContext
from assessflow.common.auth.exceptions import (
    InsufficientPermissionsError,
    InvalidTokenError,
    MissingTokenError,
)
from assessflow.common.auth.jwt import validate_token
from assessflow.common.error_handling import TenantContextError
from assessflow.common.logger import get_logger

logger = get_logger(__name__)


async def get_tenant_context(authorization: Optional[str] = Header(None)) -> TenantContext:
    """
    Resolve the caller from the authorization header.

    Raises:
        MissingTokenError: No header was sent
        InvalidTokenError: Header is malformed or the token does not validate
    """
    if not authorization:
        raise MissingTokenError()

    try:
        scheme, token = authorization.split()
    except ValueError:
        raise InvalidTokenError("Invalid authorization header format")

    if scheme.lower() != "bearer":
        raise InvalidTokenError("Invalid authentication scheme")

    claims = validate_token(token)
    return TenantContext.from_claims(claims)


async def require_student(ctx: TenantContext = Depends(get_tenant_context)) -> TenantContext:
    """Caller must be a student inside a tenant."""
    if not ctx.is_student:
        logger.info(f"Rejected non-student caller {ctx.user_id} on a student route")
        raise InsufficientPermissionsError("Only students can take assessments.")
    if ctx.tenant_id is None:
        raise TenantContextError()
    return ctx


async def require_admin(ctx: TenantContext = Depends(get_tenant_context)) -> TenantContext:
    """Caller must be an administrator inside a tenant."""
    if not ctx.is_admin:
        raise InsufficientPermissionsError("Administrator access required.")
    if ctx.tenant_id is None:
        raise TenantContextError()
    return ctx


async def require_tenant(ctx: TenantContext = Depends(get_tenant_context)) -> TenantContext:
    """Any authenticated caller, as long as a tenant is present."""
    if ctx.tenant_id is None:
        raise TenantContextError()
    return ctx
