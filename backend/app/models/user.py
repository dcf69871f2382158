# User 도메인 모델 (Beanie Document)
# - 아이디, 비밀번호 해시, 표시 이름, 가입일, 마지막 로그인
# - 현재 유효한 refresh 토큰 목록 (기기별 세션)
# - 아이디는 unique 인덱스

from datetime import datetime
from typing import List, Optional
from beanie import Document, Indexed, PydanticObjectId
from pydantic import BaseModel, ConfigDict, Field

class RefreshTokenEntry(BaseModel):
    token: str
    created_at: datetime = Field(default_factory=datetime.utcnow)

class User(Document):
    username: Indexed(str, unique=True)  # 중복 방지 인덱스
    hashed_password: str = Field(repr=False)
    display_name: str
    created_at: datetime = Field(default_factory=datetime.utcnow)
    last_login: Optional[datetime] = None
    # 이 목록은 반드시 repository 의 원자적 업데이트로만 변경합니다 (user.save() 금지)
    refresh_tokens: List[RefreshTokenEntry] = Field(default_factory=list, repr=False)

    class Settings:
        name = "users"  # 컬렉션명


class SessionUser(BaseModel):
    """요청 컨텍스트에 바인딩되는 사용자 (projection)

    비밀번호 해시와 refresh 토큰 목록은 DB 에서 아예 읽어오지 않습니다.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: PydanticObjectId = Field(alias="_id")
    username: str
    display_name: str
    created_at: datetime
    last_login: Optional[datetime] = None

    class Settings:
        projection = {"_id": 1, "username": 1, "display_name": 1, "created_at": 1, "last_login": 1}
