# 요청/응답 스키마 정의 (Pydantic 모델)
# - JSON 필드명은 camelCase (displayName, refreshToken ...), 파이썬 쪽은 snake_case
# - 요청 필드는 전부 Optional: 누락 검사는 서비스가 하고 고유 에러 코드(MISSING_FIELDS 등)로 응답

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class RegisterRequest(CamelModel):
    username: Optional[str] = None
    password: Optional[str] = None
    display_name: Optional[str] = None

class AnonymousRegisterRequest(CamelModel):
    password: Optional[str] = None
    display_name: Optional[str] = None

class LoginRequest(CamelModel):
    username: Optional[str] = None
    password: Optional[str] = None

class RefreshRequest(CamelModel):
    refresh_token: Optional[str] = None

class LogoutRequest(CamelModel):
    refresh_token: Optional[str] = None

class ProfileUpdateRequest(CamelModel):
    display_name: Optional[str] = None

class UserPublic(CamelModel):
    # 비밀번호 해시와 refresh 토큰 목록은 절대 포함하지 않습니다
    id: str
    username: str
    display_name: str
    created_at: datetime
    last_login: Optional[datetime] = None

    @classmethod
    def from_user(cls, user) -> "UserPublic":
        return cls(
            id=str(user.id),
            username=user.username,
            display_name=user.display_name,
            created_at=user.created_at,
            last_login=user.last_login,
        )

class AuthResponse(CamelModel):
    message: str
    user: UserPublic
    token: str
    refresh_token: str

class TokenPair(CamelModel):
    message: str
    token: str
    refresh_token: str

class ProfileResponse(CamelModel):
    user: UserPublic

class ProfileUpdateResponse(CamelModel):
    message: str
    user: UserPublic

class MessageResponse(BaseModel):
    message: str

class ErrorResponse(BaseModel):
    message: str
    code: str
