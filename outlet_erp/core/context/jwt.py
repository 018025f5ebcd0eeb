from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from outlet_erp.core.config import settings
from outlet_erp.core.context.models import ContextRole, OperationContext
from outlet_erp.core.exceptions import AuthenticationError


def create_access_token(user_id: str, outlet_code: str, role: str = ContextRole.STAFF.value) -> str:
    """Create an access token carrying the identity claims the engine reads."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "outlet": outlet_code,
        "role": role,
        "type": "access",
        "exp": now + timedelta(minutes=settings.access_token_expire_minutes),
        "iat": now,
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str, token_type: str = "access") -> dict[str, Any]:
    """
    Decode and validate JWT token.

    Raises:
        AuthenticationError: If token is invalid, expired or of another type
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError as e:
        raise AuthenticationError(f"Invalid token: {str(e)}")

    if payload.get("type") != token_type:
        raise AuthenticationError(f"Invalid token type, expected {token_type}")
    return payload


def context_from_token(token: str) -> OperationContext:
    payload = decode_token(token)
    outlet_code = payload.get("outlet")
    if not payload.get("sub") or not outlet_code:
        raise AuthenticationError("Token is missing identity claims")
    try:
        role = ContextRole(payload.get("role", ContextRole.STAFF.value))
    except ValueError:
        raise AuthenticationError(f"Unknown role: {payload.get('role')}")
    return OperationContext(
        outlet_code=outlet_code,
        user_id=str(payload["sub"]),
        role=role,
        home_outlet_code=outlet_code,
    )
