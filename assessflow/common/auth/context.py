"""Caller identity passed explicitly into every service operation."""

import enum
from dataclasses import dataclass
from typing import Any, Dict, Optional


class UserRole(enum.Enum):
    """User roles for authorization."""

    STUDENT = "student"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["UserRole"]:
        if not value:
            return None
        try:
            return cls(str(value).lower())
        except ValueError:
            return None


@dataclass(frozen=True)
class TenantContext:
    """
    Trusted identity of the current request.

    Attributes:
        tenant_id: Tenant the caller belongs to, ``None`` when the token has none
        user_id: External user identifier (token subject)
        role: Caller role
        student_id: Student profile id, when the token names one
    """
    tenant_id: Optional[int]
    user_id: str
    role: Optional[UserRole] = None
    student_id: Optional[int] = None

    @property
    def is_admin(self) -> bool:
        return self.role in (UserRole.ADMIN, UserRole.SUPER_ADMIN)

    @property
    def is_student(self) -> bool:
        return self.role is UserRole.STUDENT

    @classmethod
    def from_claims(cls, claims: Dict[str, Any]) -> "TenantContext":
        """Build a context from validated token claims."""
        return cls(
            tenant_id=_optional_int(claims.get("tenant_id")),
            user_id=str(claims["sub"]),
            role=UserRole.parse(claims.get("role")),
            student_id=_optional_int(claims.get("student_id")),
        )

    def log_context(self) -> Dict[str, Any]:
        context: Dict[str, Any] = {"tenant_id": self.tenant_id, "user_id": self.user_id}
        if self.student_id is not None:
            context["student_id"] = self.student_id
        return context


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
