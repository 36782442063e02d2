"""Bearer/cookie token handling.

Tokens are HS256 JWTs whose ``id`` claim names the user. Issuing tokens for
end users belongs to the account service; ``create_access_token`` exists for
operators and tests that need to mint one.
"""

import datetime
from typing import Optional

import jwt
from jwt.exceptions import InvalidTokenError

from shortly.config import Settings
from shortly.exceptions import AuthenticationError

__all__ = ["create_access_token", "decode_access_token", "extract_token"]


def create_access_token(user_id: str, settings: Settings, expires_in: Optional[datetime.timedelta] = None) -> str:
    expires_in = expires_in or datetime.timedelta(days=settings.JWT_EXPIRES_DAYS)
    payload = {
        "id": user_id,
        "exp": datetime.datetime.now(datetime.timezone.utc) + expires_in,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str, settings: Settings) -> str:
    """Return the user id carried by ``token``.

    Raises:
        AuthenticationError: The token is malformed, expired, or has no ``id`` claim.
    """
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except InvalidTokenError as exc:
        raise AuthenticationError("Not authorized, token failed") from exc
    user_id = payload.get("id")
    if not user_id:
        raise AuthenticationError("Not authorized, token failed")
    return str(user_id)


def extract_token(cookie_value: Optional[str], authorization: Optional[str]) -> Optional[str]:
    """Cookie first, then ``Authorization: Bearer <token>``."""
    if cookie_value:
        return cookie_value
    if authorization:
        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() == "bearer" and credentials.strip():
            return credentials.strip()
    return None
