"""
JWT Authentication Module

Token validation for incoming bearer tokens plus a token factory used by
scripts and tests. Tokens carry the tenant, role and optional student profile
of the caller as custom claims.
"""

import datetime
import enum
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

import jwt

from assessflow.config import settings
from assessflow.common.auth.exceptions import InvalidTokenError, ExpiredTokenError


class TokenType(enum.Enum):
    """Types of JWT tokens accepted by the API."""

    ACCESS = "access"


@dataclass
class JWTConfig:
    """
    Configuration for JWT tokens.

    Attributes:
        secret_key: Secret key used for signing tokens
        algorithm: Algorithm used for signing tokens
        access_token_expires: Access token lifetime in minutes
        token_issuer: Issuer written into created tokens
    """
    secret_key: str
    algorithm: str = "HS256"
    access_token_expires: int = 60
    token_issuer: str = "assessflow"


_jwt_config = JWTConfig(
    secret_key=settings.JWT_SECRET_KEY,
    algorithm=settings.JWT_ALGORITHM,
    access_token_expires=settings.ACCESS_TOKEN_EXPIRE_MINUTES,
    token_issuer=settings.JWT_ISSUER,
)


def get_jwt_config() -> JWTConfig:
    return _jwt_config


def create_access_token(
    subject: Union[str, int],
    additional_claims: Optional[Dict[str, Any]] = None,
    expires_in: Optional[int] = None
) -> str:
    """
    Create a signed access token.

    Args:
        subject: The subject of the token (the external user id)
        additional_claims: Extra claims such as ``tenant_id``, ``role`` and ``student_id``
        expires_in: Lifetime in minutes, overrides the configured default

    Returns:
        The encoded token
    """
    config = get_jwt_config()

    now = datetime.datetime.now(datetime.timezone.utc)
    exp = now + datetime.timedelta(
        minutes=expires_in if expires_in is not None else config.access_token_expires
    )

    payload: Dict[str, Any] = {
        "sub": str(subject),
        "exp": exp,
        "iat": now,
        "iss": config.token_issuer,
        "type": TokenType.ACCESS.value
    }
    if additional_claims:
        payload.update(additional_claims)

    return jwt.encode(payload, config.secret_key, algorithm=config.algorithm)


def validate_token(
    token: str,
    expected_type: Optional[TokenType] = TokenType.ACCESS
) -> Dict[str, Any]:
    """
    Validate a JWT token and return its payload.

    Raises:
        InvalidTokenError: If the token is malformed, badly signed or of the wrong type
        ExpiredTokenError: If the token has expired
    """
    config = get_jwt_config()

    try:
        payload = jwt.decode(
            token,
            config.secret_key,
            algorithms=[config.algorithm],
            options={
                "verify_signature": True,
                "verify_exp": True,
                "verify_iat": True,
                "require": ["exp", "iat", "sub", "type"]
            }
        )
    except jwt.ExpiredSignatureError:
        raise ExpiredTokenError("Token has expired")
    except jwt.PyJWTError as e:
        raise InvalidTokenError(f"Invalid token: {e}")

    if expected_type is not None and payload.get("type") != expected_type.value:
        raise InvalidTokenError(
            f"Invalid token type: expected {expected_type.value}, got {payload.get('type')}"
        )

    return payload
