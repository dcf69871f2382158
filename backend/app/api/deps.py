# 인증 의존성 (Access Guard)
# - get_current_user: Bearer 토큰 필수. 실패하면 401
# - get_optional_user: 토큰이 없거나 잘못돼도 통과, 이 경우 user 는 None (익명 열람자)

from typing import Optional
import logging

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pymongo.errors import PyMongoError

from ..core.exceptions import (
    AuthServiceError,
    ExpiredTokenError,
    InfrastructureError,
    InvalidTokenError,
    MalformedTokenError,
    MissingTokenError,
    TokenConfigurationError,
    TokenExpiredError,
    UserNotFoundError,
)
from ..core.security import verify_access_token
from ..models.user import SessionUser
from ..repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


async def resolve_user(token: str, repo: UserRepository) -> SessionUser:
    """
    Access 토큰을 검증하고 사용자를 조회합니다.

    Raises:
        InvalidTokenError / TokenExpiredError: 서명 불일치, 형식 오류, 만료
        UserNotFoundError: 토큰 발급 후 삭제된 사용자
        InfrastructureError: 비밀키 누락, DB 장애 (AUTH_ERROR)
    """
    try:
        user_id = verify_access_token(token)
    except ExpiredTokenError as exc:
        raise TokenExpiredError() from exc
    except MalformedTokenError as exc:
        raise InvalidTokenError() from exc
    except TokenConfigurationError as exc:
        logger.error(f"[auth] Access 토큰 검증 불가: {exc}")
        raise InfrastructureError("Authentication error", code="AUTH_ERROR") from exc

    try:
        user = await repo.get_session_user(user_id)
    except PyMongoError as exc:
        logger.exception("[auth] 사용자 조회 실패")
        raise InfrastructureError("Authentication error", code="AUTH_ERROR") from exc
    if user is None:
        raise UserNotFoundError()
    return user


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    repo: UserRepository = Depends(UserRepository),
) -> SessionUser:
    if credentials is None or not credentials.credentials:
        raise MissingTokenError()
    return await resolve_user(credentials.credentials, repo)


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    repo: UserRepository = Depends(UserRepository),
) -> Optional[SessionUser]:
    if credentials is None or not credentials.credentials:
        return None
    try:
        return await resolve_user(credentials.credentials, repo)
    except AuthServiceError:
        return None
