"""
Зависимости FastAPI: аутентификация, роли и сборка сервисов на запрос
"""

import logging
from typing import Optional
from uuid import UUID

import jwt
from fastapi import Depends, Header, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_shared.config import config
from catalog_shared.models import User, UserRole

from .database import get_db
from .errors import AppError
from .services.admin_reviews import AdminReviewService
from .services.audit import AuditLogger, RequestMeta
from .services.cache import ReviewRateLimiter
from .services.establishments import EstablishmentService
from .services.moderation import ModerationService
from .services.reviews import ReviewService

logger = logging.getLogger(__name__)


def decode_access_token(token: str) -> dict:
    """Проверка подписи и срока действия access-токена"""
    try:
        return jwt.decode(token, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AppError("Access token has expired. Please refresh your token.", 401, "TOKEN_EXPIRED")
    except jwt.InvalidTokenError:
        raise AppError("Access token is malformed or invalid", 401, "MALFORMED_TOKEN")


def _extract_bearer(authorization: Optional[str]) -> str:
    if not authorization:
        raise AppError("No authorization token provided", 401, "MISSING_TOKEN")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AppError(
            "Invalid authorization header format. Expected: Bearer <token>",
            401,
            "INVALID_TOKEN_FORMAT",
        )
    return token.strip()


async def get_current_user(
    authorization: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Пользователь из bearer-токена; роль берётся из базы"""
    payload = decode_access_token(_extract_bearer(authorization))

    raw_user_id = payload.get("userId") or payload.get("sub")
    try:
        user_id = UUID(str(raw_user_id))
    except ValueError:
        raise AppError("Access token is malformed or invalid", 401, "MALFORMED_TOKEN")

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if not user:
        raise AppError("User not found", 401, "USER_NOT_FOUND")

    if not user.is_active:
        raise AppError("User account is inactive", 403, "USER_INACTIVE")

    return user


def require_role(*allowed_roles: UserRole):
    """Проверка роли текущего пользователя"""
    allowed = {role.value for role in allowed_roles}

    def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            logger.warning(
                f"Authorization denied for user {current_user.id}: "
                f"role={current_user.role}, required={sorted(allowed)}"
            )
            raise AppError(
                "Insufficient permissions to access this resource",
                403,
                "FORBIDDEN",
                details={"required_roles": sorted(allowed), "your_role": current_user.role},
            )
        return current_user
    return role_checker


# Сокращения для удобства
require_partner = require_role(UserRole.PARTNER)
require_admin = require_role(UserRole.ADMIN)
require_user_or_partner = require_role(UserRole.USER, UserRole.PARTNER)
require_any = require_role(UserRole.USER, UserRole.PARTNER, UserRole.ADMIN)


def get_request_meta(request: Request) -> RequestMeta:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ip = forwarded.split(",")[0].strip()
    else:
        ip = request.client.host if request.client else None
    return RequestMeta(ip_address=ip, user_agent=request.headers.get("user-agent"))


def get_audit_logger(request: Request) -> AuditLogger:
    return request.app.state.audit_logger


def get_review_limiter(request: Request) -> ReviewRateLimiter:
    return request.app.state.review_limiter


def get_establishment_service(db: AsyncSession = Depends(get_db)) -> EstablishmentService:
    return EstablishmentService(db)


def get_moderation_service(
    db: AsyncSession = Depends(get_db),
    audit: AuditLogger = Depends(get_audit_logger),
) -> ModerationService:
    return ModerationService(db, audit)


def get_admin_review_service(
    db: AsyncSession = Depends(get_db),
    audit: AuditLogger = Depends(get_audit_logger),
) -> AdminReviewService:
    return AdminReviewService(db, audit)


def get_review_service(
    db: AsyncSession = Depends(get_db),
    limiter: ReviewRateLimiter = Depends(get_review_limiter),
) -> ReviewService:
    return ReviewService(db, limiter)
