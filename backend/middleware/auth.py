"""
Bearer token helpers.

Identity is issued elsewhere; this API only verifies HS256 access tokens:
  - `sub`  opaque buyer / operator id
  - `role` "customer" | "admin"

Checkout accepts guests (no token). Admin endpoints require role=admin.
"""
import logging
from fastapi import Header
from typing import Optional

import jwt

from config import settings
from domain.errors import PermissionDeniedError, UnauthorizedError

logger = logging.getLogger(__name__)


def _parse_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    token = parts[1].strip()
    return token or None


def decode_access_token(token: str) -> dict:
    if not settings.jwt_secret:
        logger.error("JWT_SECRET not configured; refusing bearer token")
        raise UnauthorizedError("Token authentication is not configured.")
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=["HS256"],
            issuer=settings.jwt_issuer,
            options={"require": ["exp", "iat", "iss", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Access token expired.")
    except jwt.InvalidTokenError:
        raise UnauthorizedError("Invalid access token.")


async def get_optional_buyer(
    authorization: Optional[str] = Header(None, alias="Authorization"),
) -> Optional[str]:
    """Buyer id from a bearer token, or None for guest checkout."""
    token = _parse_bearer_token(authorization)
    if not token:
        return None
    return decode_access_token(token).get("sub")


async def require_admin(
    authorization: Optional[str] = Header(None, alias="Authorization"),
) -> str:
    token = _parse_bearer_token(authorization)
    if not token:
        raise UnauthorizedError("Authentication required. Provide Authorization: Bearer <token>.")
    payload = decode_access_token(token)
    if payload.get("role") != "admin":
        logger.warning(f"Admin endpoint refused for subject {payload.get('sub')}")
        raise PermissionDeniedError("Admin role required for this endpoint.")
    return payload["sub"]
