# 공통 테스트 픽스처
# - 앱 모듈을 import 하기 전에 환경변수를 먼저 세팅 (settings 는 import 시점에 한 번 읽힘)
# - 테스트마다 새 mongomock DB 에 Beanie 를 초기화 (실제 MongoDB 불필요)

import asyncio
import os
import uuid

os.environ.setdefault("JWT_SECRET_KEY", "test-access-secret")
os.environ.setdefault("JWT_REFRESH_SECRET_KEY", "test-refresh-secret")
# 테스트에서는 bcrypt 최소 라운드로 속도 확보
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import mongomock
import pytest
from beanie import init_beanie
from fastapi.testclient import TestClient

from app.main import app
from app.models.user import User
from app.repositories.user_repository import UserRepository
from app.services.auth_service import AuthService
from mongo_mock import AsyncMockDatabase


@pytest.fixture
def store():
    database = AsyncMockDatabase(mongomock.MongoClient()[f"moodlog_test_{uuid.uuid4().hex[:8]}"])
    asyncio.run(init_beanie(database=database, document_models=[User]))
    return database


@pytest.fixture
def repo(store):
    return UserRepository()


@pytest.fixture
def service(repo):
    return AuthService(repo)


@pytest.fixture
def client(store):
    # with 블록 없이 만들면 startup 이벤트(실제 MongoDB 연결)가 실행되지 않습니다
    return TestClient(app)
