# 보안/인증 유틸리티
# - 비밀번호 해싱/검증 (bcrypt, 스레드풀에서 실행)
# - JWT 토큰 생성/검증 (access: JWT_SECRET_KEY, refresh: JWT_REFRESH_SECRET_KEY)

from datetime import datetime, timedelta, timezone
from typing import NewType, Optional
import secrets

from fastapi.concurrency import run_in_threadpool
from passlib.context import CryptContext
import jwt

from .config import settings
from .exceptions import ExpiredTokenError, MalformedTokenError, TokenConfigurationError

# 주니어 개발자님께: 두 토큰은 둘 다 문자열이지만 타입을 분리해 두면
# 타입 체커가 access 자리에 refresh 를 넘기는 실수를 잡아줍니다.
AccessToken = NewType("AccessToken", str)
RefreshToken = NewType("RefreshToken", str)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.BCRYPT_ROUNDS)


async def verify_password(plain_password: str, hashed_password: str) -> bool:
    return await run_in_threadpool(pwd_context.verify, plain_password, hashed_password)

async def hash_password(password: str) -> str:
    return await run_in_threadpool(pwd_context.hash, password)


def _access_secret() -> str:
    if not settings.JWT_SECRET_KEY:
        raise TokenConfigurationError("JWT_SECRET_KEY")
    return settings.JWT_SECRET_KEY

def _refresh_secret() -> str:
    if not settings.JWT_REFRESH_SECRET_KEY:
        raise TokenConfigurationError("JWT_REFRESH_SECRET_KEY")
    return settings.JWT_REFRESH_SECRET_KEY

def require_signing_keys() -> None:
    _access_secret()
    _refresh_secret()


def create_token(subject: dict, secret: str, expires_delta: timedelta) -> str:
    now = datetime.now(tz=timezone.utc)
    payload = {
        "exp": now + expires_delta,
        "iat": now,
        **subject,
    }
    return jwt.encode(payload, secret, algorithm=settings.JWT_ALGORITHM)

def decode_token(token: str, secret: str) -> dict:
    try:
        return jwt.decode(token, secret, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError as exc:
        raise ExpiredTokenError() from exc
    except jwt.PyJWTError as exc:
        raise MalformedTokenError() from exc


def issue_access_token(user_id: str, expires_delta: Optional[timedelta] = None) -> AccessToken:
    delta = expires_delta if expires_delta is not None else timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    return AccessToken(create_token({"userId": str(user_id)}, _access_secret(), delta))

def issue_refresh_token(expires_delta: Optional[timedelta] = None) -> RefreshToken:
    # 사용자 정보는 넣지 않습니다. 어느 사용자의 토큰인지는 DB의 refresh_tokens 목록이 결정합니다.
    # jti 는 같은 초에 발급된 두 토큰이 같은 문자열이 되지 않게 하는 용도입니다.
    delta = expires_delta if expires_delta is not None else timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    return RefreshToken(create_token({"jti": secrets.token_urlsafe(16)}, _refresh_secret(), delta))

def verify_access_token(token: str) -> str:
    payload = decode_token(token, _access_secret())
    user_id = payload.get("userId")
    if not isinstance(user_id, str) or not user_id:
        raise MalformedTokenError()
    return user_id

def verify_refresh_token(token: str) -> dict:
    return decode_token(token, _refresh_secret())
