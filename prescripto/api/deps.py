from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Optional
import logging

import redis

from ..core.config import settings
from ..core.database import get_db, get_redis
from ..core.email import EmailClient
from ..core.exceptions import AuthenticationError, ServiceError
from ..core.security import (
    user_security, doctor_security, admin_security,
    verify_token, UserRole, TokenPayload
)
from ..models.user import User
from ..models.doctor import Doctor

logger = logging.getLogger(__name__)


class TooManyRequests(ServiceError):
    status_code = 429


def get_email_client(request: Request) -> EmailClient:
    """The process-wide email client built at startup."""
    return request.app.state.email_client


def _decode(token: Optional[str], role: UserRole) -> TokenPayload:
    if not token:
        raise AuthenticationError()

    token_payload = verify_token(token)
    if not token_payload or not token_payload.sub:
        raise AuthenticationError("Invalid or expired token")
    if token_payload.role != role:
        raise AuthenticationError("Invalid token type")
    return token_payload


def _subject_id(token_payload: TokenPayload) -> int:
    try:
        return int(token_payload.sub)
    except ValueError:
        raise AuthenticationError("Invalid token payload")


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(user_security),
    db: Session = Depends(get_db)
) -> User:
    """Patient identified by the bearer session token."""
    token_payload = _decode(credentials.credentials if credentials else None, UserRole.USER)

    user = db.get(User, _subject_id(token_payload))
    if not user:
        raise AuthenticationError("User not found")
    return user


async def get_current_doctor(
    dtoken: Optional[str] = Depends(doctor_security),
    db: Session = Depends(get_db)
) -> Doctor:
    """Doctor identified by the ``dtoken`` header."""
    token_payload = _decode(dtoken, UserRole.DOCTOR)

    doctor = db.get(Doctor, _subject_id(token_payload))
    if not doctor:
        raise AuthenticationError("Doctor not found")
    return doctor


async def get_current_admin(
    atoken: Optional[str] = Depends(admin_security),
) -> str:
    """Admin identified by the ``atoken`` header; returns the admin email."""
    token_payload = _decode(atoken, UserRole.ADMIN)

    if token_payload.sub != settings.ADMIN_EMAIL.lower():
        raise AuthenticationError()
    return token_payload.sub


# Rate limiting dependency
async def rate_limit_check(
    request: Request,
    redis_client = Depends(get_redis)
) -> None:
    """Fixed-window rate limiting per client and route."""
    client_ip = request.client.host if request.client else "unknown"
    key = f"rate_limit:{client_ip}:{request.url.path}"

    try:
        current_requests = redis_client.get(key)
        if current_requests is None:
            redis_client.setex(key, settings.RATE_LIMIT_WINDOW_SECONDS, 1)
            return
        if int(current_requests) >= settings.RATE_LIMIT_REQUESTS:
            raise TooManyRequests("Too many requests. Please try again later.")
        redis_client.incr(key)
    except redis.RedisError as e:
        logger.warning(f"Rate limiter unavailable, letting request through: {e}")
