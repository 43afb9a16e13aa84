"""
FastAPI dependency for operator-only endpoints

Usage:
    @router.post("/resend-invite-whatsapp")
    async def resend_invite(
        operator: TokenPayload = Depends(require_admin),
        db: AsyncSession = Depends(get_db),
    ):
        ...
"""
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from daycare_messaging.core.auth import verify_token, TokenPayload
from daycare_messaging.core.config import Settings, get_settings
from daycare_messaging.core.exceptions import AuthenticationError, AuthorizationError
from daycare_messaging.core.logging import get_logger
from daycare_messaging.db.database import get_db
from daycare_messaging.db.models.user_role import AppRole, UserRole

logger = get_logger(__name__)

# auto_error=False so a missing header gets our 401 error shape instead of FastAPI's 403
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    settings: Settings = Depends(get_settings),
) -> TokenPayload:
    """Verify the bearer token; 401 when missing, invalid or expired"""
    if credentials is None:
        logger.warning("auth_failed", extra_data={"reason": "no authorization header"})
        raise AuthenticationError("Não autorizado")

    token_data = verify_token(credentials.credentials, settings)
    if token_data is None:
        raise AuthenticationError("Usuário não autenticado")
    return token_data


async def require_admin(
    token_data: TokenPayload = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> TokenPayload:
    """The caller must hold the admin role in ``user_roles``"""
    result = await db.execute(
        select(UserRole.id).where(
            UserRole.user_id == token_data.sub,
            UserRole.role == AppRole.ADMIN,
        )
    )
    if result.first() is None:
        logger.warning("auth_failed", extra_data={"reason": "not admin", "user_id": token_data.sub})
        raise AuthorizationError("Sem permissão de administrador")
    return token_data
