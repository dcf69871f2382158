# 인증 서비스 레이어 (세션 매니저)
# - 회원가입 / 익명 가입 / 로그인: 비밀번호 검증, Access/Refresh 토큰 발급
# - 토큰 갱신(refresh rotation), 로그아웃(refresh 토큰 폐기)
# - 프로필 조회/수정
#
# 주니어 개발자님께: 이 계층은 DB 예외(pymongo)나 JWT 예외를 밖으로 내보내지 않습니다.
# 전부 core/exceptions.py 의 AuthServiceError 계열로 바꿔서 던집니다.

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterable, Optional, Union
import logging

from fastapi import Depends
from pymongo.errors import DuplicateKeyError, PyMongoError

from ..core.exceptions import (
    DisplayNameTooLongError,
    ExpiredTokenError,
    InvalidCredentialsError,
    InvalidRefreshTokenError,
    InvalidUsernameLengthError,
    MalformedTokenError,
    MissingCredentialsError,
    MissingFieldsError,
    MissingPasswordError,
    MissingRefreshTokenError,
    PasswordTooShortError,
    StoreUnavailableError,
    TokenConfigurationError,
    TokenGenerationError,
    UserNotFoundError,
    UsernameExistsError,
)
from ..core.security import (
    AccessToken,
    RefreshToken,
    hash_password,
    issue_access_token,
    issue_refresh_token,
    require_signing_keys,
    verify_password,
    verify_refresh_token,
)
from ..models.user import SessionUser, User
from ..repositories.user_repository import UserRepository
from .identity import allocate_username

logger = logging.getLogger(__name__)

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 20
PASSWORD_MIN_LENGTH = 6
DISPLAY_NAME_MAX_LENGTH = 30


@dataclass
class IssuedSession:
    user: User
    token: AccessToken
    refresh_token: RefreshToken


@dataclass
class RotatedTokens:
    token: AccessToken
    refresh_token: RefreshToken


@contextmanager
def _store_errors(code: str, message: str):
    try:
        yield
    except PyMongoError as exc:
        logger.exception(f"[auth] DB 호출 실패 ({code})")
        raise StoreUnavailableError(message, code=code) from exc


def _check_password(password: str) -> None:
    if len(password) < PASSWORD_MIN_LENGTH:
        raise PasswordTooShortError()


def _clean_display_name(display_name: Optional[str]) -> Optional[str]:
    # 공백만 있는 값은 "입력 안 함"으로 취급합니다
    if display_name is None or not display_name.strip():
        return None
    cleaned = display_name.strip()
    if len(cleaned) > DISPLAY_NAME_MAX_LENGTH:
        raise DisplayNameTooLongError()
    return cleaned


class AuthService:
    def __init__(self, repo: UserRepository, candidates: Optional[Iterable[str]] = None):
        self.repo = repo
        self.candidates = candidates

    def _issue_pair(self, user_id, failure_message: str):
        try:
            return issue_access_token(str(user_id)), issue_refresh_token()
        except TokenConfigurationError as exc:
            logger.error(f"[auth] 토큰 발급 실패: {exc}")
            raise TokenGenerationError(failure_message) from exc

    async def _create_with_session(self, username: str, password: str, display_name: str, touch_last_login: bool) -> IssuedSession:
        hashed = await hash_password(password)
        try:
            user = await self.repo.create(username, hashed, display_name)
        except DuplicateKeyError as exc:
            # 중복 검사와 insert 사이에 다른 요청이 같은 이름을 먼저 저장한 경우
            logger.info(f"[auth] unique 인덱스 충돌로 가입 거절: {username}")
            raise UsernameExistsError() from exc

        try:
            access, refresh = self._issue_pair(user.id, "Registration failed - token generation error")
        except TokenGenerationError:
            # 토큰 없는 계정이 남지 않도록 방금 만든 사용자를 삭제 (보상 트랜잭션)
            await self.repo.delete(user.id)
            raise

        updated = await self.repo.push_refresh_token(user.id, refresh, touch_last_login=touch_last_login)
        logger.info(f"[auth] 가입 완료: user_id={user.id}")
        return IssuedSession(user=updated or user, token=access, refresh_token=refresh)

    async def register(self, username: Optional[str], password: Optional[str], display_name: Optional[str] = None) -> IssuedSession:
        username = (username or "").strip()
        if not username or not password:
            raise MissingFieldsError()
        _check_password(password)
        if not USERNAME_MIN_LENGTH <= len(username) <= USERNAME_MAX_LENGTH:
            raise InvalidUsernameLengthError()
        display_name = _clean_display_name(display_name) or username

        with _store_errors("REGISTRATION_ERROR", "Registration failed"):
            if await self.repo.username_exists(username):
                raise UsernameExistsError()
            return await self._create_with_session(username, password, display_name, touch_last_login=True)

    async def register_anonymous(self, password: Optional[str], display_name: Optional[str] = None) -> IssuedSession:
        if not password:
            raise MissingPasswordError()
        _check_password(password)
        display_name = _clean_display_name(display_name)

        with _store_errors("ANONYMOUS_REGISTRATION_ERROR", "Registration failed"):
            username = await allocate_username(self.repo.username_exists, candidates=self.candidates)
            return await self._create_with_session(username, password, display_name or username, touch_last_login=False)

    async def login(self, username: Optional[str], password: Optional[str]) -> IssuedSession:
        username = (username or "").strip()
        if not username or not password:
            raise MissingCredentialsError()

        with _store_errors("LOGIN_ERROR", "Login failed"):
            user = await self.repo.get_by_username(username)
            # 사용자 없음 / 비밀번호 불일치는 같은 에러 (아이디 존재 여부 노출 방지)
            if user is None or not await verify_password(password, user.hashed_password):
                raise InvalidCredentialsError()

            access, refresh = self._issue_pair(user.id, "Login failed - token generation error")
            updated = await self.repo.push_refresh_token(user.id, refresh, touch_last_login=True)
            if updated is None:
                raise InvalidCredentialsError()
        logger.info(f"[auth] 로그인: user_id={user.id}")
        return IssuedSession(user=updated, token=access, refresh_token=refresh)

    async def refresh(self, refresh_token: Optional[str]) -> RotatedTokens:
        """
        refresh 토큰을 1회용으로 소비하고 새 Access/Refresh 쌍을 발급합니다.

        주니어 개발자님께:
        1. 서명/만료를 먼저 검사합니다. 실패하면 INVALID_REFRESH_TOKEN.
        2. 새 refresh 토큰을 만들고, "기존 토큰을 가진 문서"를 filter 로 한 번에 교체합니다.
        3. 매칭된 문서가 없으면 이미 소비됐거나(재사용) 로그아웃된 토큰입니다.
        비밀키가 빠져 있으면 교체 전에 실패시켜서, 기존 토큰만 날아가는 일이 없게 합니다.
        """
        if not refresh_token:
            raise MissingRefreshTokenError()
        try:
            require_signing_keys()
        except TokenConfigurationError as exc:
            logger.error(f"[auth] 토큰 갱신 불가: {exc}")
            raise TokenGenerationError("Token refresh failed") from exc
        try:
            verify_refresh_token(refresh_token)
        except (ExpiredTokenError, MalformedTokenError) as exc:
            raise InvalidRefreshTokenError() from exc

        new_refresh = issue_refresh_token()
        with _store_errors("REFRESH_ERROR", "Token refresh failed"):
            user = await self.repo.rotate_refresh_token(refresh_token, new_refresh)
        if user is None:
            raise InvalidRefreshTokenError()
        return RotatedTokens(token=issue_access_token(str(user.id)), refresh_token=new_refresh)

    async def logout(self, user: SessionUser, refresh_token: Optional[str] = None) -> None:
        if not refresh_token:
            return
        with _store_errors("LOGOUT_ERROR", "Logout failed"):
            await self.repo.pull_refresh_token(user.id, refresh_token)

    async def get_profile(self, user: SessionUser) -> SessionUser:
        return user

    async def update_profile(self, user: SessionUser, display_name: Optional[str] = None) -> Union[User, SessionUser]:
        cleaned = _clean_display_name(display_name)
        if cleaned is None:
            return user
        with _store_errors("PROFILE_UPDATE_ERROR", "Failed to update profile"):
            updated = await self.repo.set_display_name(user.id, cleaned)
        if updated is None:
            raise UserNotFoundError()
        return updated


def get_auth_service(repo: UserRepository = Depends(UserRepository)) -> AuthService:
    return AuthService(repo)
