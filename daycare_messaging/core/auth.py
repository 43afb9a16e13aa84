"""
JWT verification for operator endpoints

Tokens are issued by the platform's auth provider; this service only
verifies them. The ``sub`` claim is the user id, which is then checked
against ``user_roles`` to decide whether the caller is an operator.
"""
from typing import Optional

import jwt as pyjwt
from pydantic import BaseModel, ValidationError

from daycare_messaging.core.config import Settings
from daycare_messaging.core.logging import get_logger

logger = get_logger(__name__)


class TokenPayload(BaseModel):
    """Claims this service relies on"""
    sub: str
    email: Optional[str] = None
    exp: Optional[int] = None


def create_access_token(user_id: str, settings: Settings, *, expires_at: int | None = None) -> str:
    """Issue a token with the same claims the auth provider sets (used by scripts and tests)"""
    settings.require_jwt_secret()
    payload: dict = {"sub": user_id}
    if expires_at is not None:
        payload["exp"] = expires_at
    return pyjwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def verify_token(token: str, settings: Settings) -> Optional[TokenPayload]:
    """Verify a bearer token, returning None if invalid or expired"""
    settings.require_jwt_secret()
    try:
        payload = pyjwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            options={"verify_aud": False},
        )
        return TokenPayload(**payload)
    except pyjwt.InvalidTokenError:
        logger.warning("JWT token invalid or expired")
        return None
    except ValidationError as e:
        logger.warning("JWT payload malformed", extra_data={"error": str(e)})
        return None
