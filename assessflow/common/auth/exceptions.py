"""
Authentication Exceptions

Token and permission failures. They extend the application error hierarchy so
the API layer renders them like any other ``AssessFlowError``.
"""

from assessflow.common.error_handling import AuthenticationError, AuthorizationError


class InvalidTokenError(AuthenticationError):
    """Exception raised when a token is invalid."""

    def __init__(self, message: str = "Invalid token"):
        super().__init__(message)


class ExpiredTokenError(AuthenticationError):
    """Exception raised when a token has expired."""

    def __init__(self, message: str = "Token has expired"):
        super().__init__(message)


class MissingTokenError(AuthenticationError):
    """Exception raised when a required token is missing."""

    def __init__(self, message: str = "Missing authorization header"):
        super().__init__(message)


class InsufficientPermissionsError(AuthorizationError):
    """Exception raised when the caller's role does not allow the action."""

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message)
