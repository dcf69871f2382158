# 설정 모듈
# - .env 값들을 한 곳에서 관리
# - 기본값을 제공하여 로컬 실행 편의성 확보

from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path
from typing import Optional
from pydantic import Field

# 프로젝트 루트 디렉토리 경로 찾기
# 주니어 개발자님께: 이 파일은 backend/app/core/config.py에 있으므로,
# 3단계 상위로 올라가면 프로젝트 루트가 됩니다.
PROJECT_ROOT = Path(__file__).parent.parent.parent.parent
ENV_FILE_PATH = PROJECT_ROOT / ".env"

class Settings(BaseSettings):
    APP_NAME: str = "moodlog"
    ENV: str = "dev"
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    MONGODB_URI: str = "mongodb://localhost:27017/moodlog"

    # 두 비밀키는 서로 달라야 합니다. 하나가 유출되어도 다른 종류의 토큰은 위조할 수 없습니다.
    # 비어 있으면 서버는 뜨지만, 토큰 발급 시점에 TokenConfigurationError 로 실패합니다.
    JWT_SECRET_KEY: Optional[str] = Field(None, description="Access 토큰 서명 비밀키")
    JWT_REFRESH_SECRET_KEY: Optional[str] = Field(None, description="Refresh 토큰 서명 비밀키")
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7
    REFRESH_TOKEN_EXPIRE_DAYS: int = 30

    # bcrypt work factor
    BCRYPT_ROUNDS: int = 12

    # 사용자 한 명이 동시에 보유할 수 있는 refresh 토큰 수 (기기 수)
    MAX_REFRESH_TOKENS_PER_USER: int = 20

    CORS_ALLOW_ORIGINS: str = "http://localhost:5173,http://localhost:3000"

    model_config = SettingsConfigDict(
        # 주니어 개발자님께: env_file에 절대 경로를 지정하면 backend 디렉토리에서 실행해도
        # 프로젝트 루트의 .env 파일을 찾을 수 있습니다.
        env_file=str(ENV_FILE_PATH) if ENV_FILE_PATH.exists() else ".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

settings = Settings()
