"""
Authentication Framework

Bearer-token verification and the explicit tenant context handed to every
service call. Token issuance lives outside this service; ``create_access_token``
exists for tooling and tests.
"""

from assessflow.common.auth.context import TenantContext, UserRole
from assessflow.common.auth.jwt import (
    JWTConfig,
    TokenType,
    create_access_token,
    validate_token,
)
from assessflow.common.auth.dependencies import (
    get_tenant_context,
    require_admin,
    require_student,
    require_tenant,
)

__all__ = [
    "TenantContext",
    "UserRole",
    "JWTConfig",
    "TokenType",
    "create_access_token",
    "validate_token",
    "get_tenant_context",
    "require_admin",
    "require_student",
    "require_tenant",
]
