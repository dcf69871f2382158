# 세션 매니저(AuthService) 테스트
# - mongomock 기반 Beanie 저장소 위에서 가입/로그인/갱신/로그아웃 흐름 검증
# - 동시 요청은 asyncio.gather 로 재현
import asyncio
from datetime import timedelta
from itertools import repeat
from unittest.mock import patch

import pytest
from pymongo.errors import PyMongoError

from app.core.config import settings
from app.core.exceptions import (
    IdentityAllocationExhausted,
    InvalidCredentialsError,
    InvalidRefreshTokenError,
    StoreUnavailableError,
    TokenGenerationError,
    UserNotFoundError,
    UsernameExistsError,
)
from app.core.security import issue_refresh_token, verify_access_token
from app.services.auth_service import AuthService

def _stored(store, username):
    return store.raw["users"].find_one({"username": username})

def _stored_tokens(store, username):
    return [entry["token"] for entry in _stored(store, username)["refresh_tokens"]]

def test_register_issues_working_session(service, store):
    session = asyncio.run(service.register("alice", "secret1"))
    assert session.user.username == "alice"
    assert session.user.display_name == "alice"
    assert session.user.last_login is not None
    assert verify_access_token(session.token) == str(session.user.id)
    assert _stored_tokens(store, "alice") == [session.refresh_token]
    # 비밀번호는 해시로만 저장
    assert _stored(store, "alice")["hashed_password"] != "secret1"

def test_register_trims_username_and_display_name(service):
    session = asyncio.run(service.register("  bob  ", "secret1", "  Bobby  "))
    assert session.user.username == "bob"
    assert session.user.display_name == "Bobby"

@pytest.mark.parametrize(
    "username, password, display_name, code",
    [
        (None, "secret1", None, "MISSING_FIELDS"),
        ("   ", "secret1", None, "MISSING_FIELDS"),
        ("alice", "", None, "MISSING_FIELDS"),
        ("ab", "123", None, "PASSWORD_TOO_SHORT"),
        ("ab", "secret1", None, "INVALID_USERNAME_LENGTH"),
        ("a" * 21, "secret1", None, "INVALID_USERNAME_LENGTH"),
        ("alice", "secret1", "x" * 31, "DISPLAY_NAME_TOO_LONG"),
    ],
)
def test_register_validation_codes(service, store, username, password, display_name, code):
    with pytest.raises(Exception) as exc_info:
        asyncio.run(service.register(username, password, display_name))
    assert exc_info.value.code == code
    assert exc_info.value.status_code == 400
    assert store.raw["users"].count_documents({}) == 0

def test_register_duplicate_username(service):
    asyncio.run(service.register("alice", "secret1"))
    with pytest.raises(UsernameExistsError):
        asyncio.run(service.register("alice", "another1"))

def test_register_race_is_settled_by_unique_index(service, repo, store):
    asyncio.run(service.register("alice", "secret1"))
    # 중복 검사는 통과했지만 insert 시점에 이미 같은 이름이 있는 상황
    with patch.object(repo, "username_exists", return_value=False):
        with pytest.raises(UsernameExistsError):
            asyncio.run(service.register("alice", "another1"))
    assert store.raw["users"].count_documents({"username": "alice"}) == 1

def test_register_rolls_back_when_token_signing_fails(service, store, monkeypatch):
    monkeypatch.setattr(settings, "JWT_REFRESH_SECRET_KEY", None)
    with pytest.raises(TokenGenerationError) as exc_info:
        asyncio.run(service.register("alice", "secret1"))
    assert exc_info.value.code == "TOKEN_GENERATION_ERROR"
    assert exc_info.value.status_code == 500
    assert store.raw["users"].count_documents({}) == 0

def test_register_anonymous(service, store):
    session = asyncio.run(service.register_anonymous("secret1"))
    user = session.user
    assert 3 <= len(user.username) <= 20
    assert user.display_name == user.username
    assert user.last_login is None
    assert _stored_tokens(store, user.username) == [session.refresh_token]

def test_register_anonymous_requires_password(service):
    with pytest.raises(Exception) as exc_info:
        asyncio.run(service.register_anonymous(None))
    assert exc_info.value.code == "MISSING_PASSWORD"
    with pytest.raises(Exception) as exc_info:
        asyncio.run(service.register_anonymous("12345"))
    assert exc_info.value.code == "PASSWORD_TOO_SHORT"

def test_register_anonymous_exhaustion(repo, store):
    asyncio.run(AuthService(repo).register("CalmSoul1", "secret1"))
    service = AuthService(repo, candidates=repeat("CalmSoul1"))
    with pytest.raises(IdentityAllocationExhausted) as exc_info:
        asyncio.run(service.register_anonymous("secret1"))
    assert exc_info.value.attempts == 10
    assert exc_info.value.status_code == 503
    assert store.raw["users"].count_documents({}) == 1

def test_login_appends_session_and_sets_last_login(service, store):
    registered = asyncio.run(service.register_anonymous("secret1", "Quiet"))
    username = registered.user.username
    session = asyncio.run(service.login(username, "secret1"))
    assert session.user.last_login is not None
    assert session.user.display_name == "Quiet"
    assert _stored_tokens(store, username) == [registered.refresh_token, session.refresh_token]

def test_login_failures_are_indistinguishable(service):
    asyncio.run(service.register("alice", "secret1"))
    with pytest.raises(InvalidCredentialsError) as wrong_password:
        asyncio.run(service.login("alice", "wrong-password"))
    with pytest.raises(InvalidCredentialsError) as unknown_user:
        asyncio.run(service.login("nobody", "secret1"))
    assert wrong_password.value.code == unknown_user.value.code == "INVALID_CREDENTIALS"
    assert wrong_password.value.message == unknown_user.value.message

def test_login_missing_credentials(service):
    with pytest.raises(Exception) as exc_info:
        asyncio.run(service.login("alice", None))
    assert exc_info.value.code == "MISSING_CREDENTIALS"

def test_refresh_token_is_single_use(service, store):
    session = asyncio.run(service.register("alice", "secret1"))
    rotated = asyncio.run(service.refresh(session.refresh_token))
    assert rotated.refresh_token != session.refresh_token
    assert verify_access_token(rotated.token) == str(session.user.id)
    assert _stored_tokens(store, "alice") == [rotated.refresh_token]

    with pytest.raises(InvalidRefreshTokenError):
        asyncio.run(service.refresh(session.refresh_token))
    # 새 토큰은 여전히 유효
    asyncio.run(service.refresh(rotated.refresh_token))

def test_concurrent_refresh_succeeds_once(service, store):
    session = asyncio.run(service.register("alice", "secret1"))

    async def race():
        return await asyncio.gather(
            service.refresh(session.refresh_token),
            service.refresh(session.refresh_token),
            return_exceptions=True,
        )

    results = asyncio.run(race())
    winners = [r for r in results if not isinstance(r, Exception)]
    losers = [r for r in results if isinstance(r, InvalidRefreshTokenError)]
    assert len(winners) == 1
    assert len(losers) == 1
    assert _stored_tokens(store, "alice") == [winners[0].refresh_token]

def test_concurrent_refresh_and_logout_match_a_serial_order(service, repo, store):
    session = asyncio.run(service.register("alice", "secret1"))
    user = asyncio.run(repo.get_session_user(str(session.user.id)))

    async def race():
        return await asyncio.gather(
            service.refresh(session.refresh_token),
            service.logout(user, session.refresh_token),
            return_exceptions=True,
        )

    refreshed, logged_out = asyncio.run(race())
    assert logged_out is None
    stored = _stored_tokens(store, "alice")
    if isinstance(refreshed, Exception):
        # 로그아웃이 먼저: 토큰이 폐기되어 갱신 실패, 남은 세션 없음
        assert isinstance(refreshed, InvalidRefreshTokenError)
        assert stored == []
    else:
        # 갱신이 먼저: 로그아웃은 이미 소비된 토큰을 지우려다 아무 일도 하지 않음
        assert stored == [refreshed.refresh_token]
    assert session.refresh_token not in stored

def test_refresh_only_rotates_the_presented_session(service, store):
    first = asyncio.run(service.register("alice", "secret1"))
    second = asyncio.run(service.login("alice", "secret1"))
    rotated = asyncio.run(service.refresh(first.refresh_token))
    # 갱신된 세션은 목록의 가장 최신 위치로 이동
    assert _stored_tokens(store, "alice") == [second.refresh_token, rotated.refresh_token]

def test_refresh_rejects_bad_tokens(service):
    with pytest.raises(Exception) as exc_info:
        asyncio.run(service.refresh(None))
    assert exc_info.value.code == "MISSING_REFRESH_TOKEN"
    with pytest.raises(InvalidRefreshTokenError):
        asyncio.run(service.refresh("garbage"))
    with pytest.raises(InvalidRefreshTokenError):
        asyncio.run(service.refresh(issue_refresh_token(expires_delta=timedelta(seconds=-1))))
    # 서명은 올바르지만 어떤 사용자에게도 저장되지 않은 토큰
    with pytest.raises(InvalidRefreshTokenError):
        asyncio.run(service.refresh(issue_refresh_token()))

def test_refresh_with_missing_secret_keeps_old_token(service, store, monkeypatch):
    session = asyncio.run(service.register("alice", "secret1"))
    monkeypatch.setattr(settings, "JWT_SECRET_KEY", None)
    with pytest.raises(TokenGenerationError):
        asyncio.run(service.refresh(session.refresh_token))
    assert _stored_tokens(store, "alice") == [session.refresh_token]

def test_refresh_store_failure(service, repo):
    session = asyncio.run(service.register("alice", "secret1"))
    with patch.object(repo, "rotate_refresh_token", side_effect=PyMongoError("connection reset")):
        with pytest.raises(StoreUnavailableError) as exc_info:
            asyncio.run(service.refresh(session.refresh_token))
    assert exc_info.value.code == "REFRESH_ERROR"
    assert exc_info.value.status_code == 500

def test_token_list_is_bounded(service, store, monkeypatch):
    monkeypatch.setattr(settings, "MAX_REFRESH_TOKENS_PER_USER", 3)
    registered = asyncio.run(service.register("alice", "secret1"))
    logins = [asyncio.run(service.login("alice", "secret1")) for _ in range(4)]
    assert _stored_tokens(store, "alice") == [s.refresh_token for s in logins[-3:]]
    # 밀려난 가장 오래된 토큰은 더 이상 사용할 수 없음
    with pytest.raises(InvalidRefreshTokenError):
        asyncio.run(service.refresh(registered.refresh_token))

def test_rotated_session_survives_cap_eviction(service, store, monkeypatch):
    monkeypatch.setattr(settings, "MAX_REFRESH_TOKENS_PER_USER", 3)
    a = asyncio.run(service.register("alice", "secret1"))
    b = asyncio.run(service.login("alice", "secret1"))
    c = asyncio.run(service.login("alice", "secret1"))
    a_rotated = asyncio.run(service.refresh(a.refresh_token))
    d = asyncio.run(service.login("alice", "secret1"))
    # 방금 갱신한 세션이 아니라 가장 오래 쓰지 않은 세션(b)이 밀려남
    assert _stored_tokens(store, "alice") == [c.refresh_token, a_rotated.refresh_token, d.refresh_token]
    asyncio.run(service.refresh(a_rotated.refresh_token))
    with pytest.raises(InvalidRefreshTokenError):
        asyncio.run(service.refresh(b.refresh_token))

def test_logout_revokes_and_is_idempotent(service, repo, store):
    session = asyncio.run(service.register("alice", "secret1"))
    user = asyncio.run(repo.get_session_user(str(session.user.id)))
    asyncio.run(service.logout(user, session.refresh_token))
    asyncio.run(service.logout(user, session.refresh_token))
    assert _stored_tokens(store, "alice") == []
    with pytest.raises(InvalidRefreshTokenError):
        asyncio.run(service.refresh(session.refresh_token))

def test_logout_without_token_keeps_sessions(service, repo, store):
    session = asyncio.run(service.register("alice", "secret1"))
    user = asyncio.run(repo.get_session_user(str(session.user.id)))
    asyncio.run(service.logout(user))
    assert _stored_tokens(store, "alice") == [session.refresh_token]

def test_logout_cannot_revoke_another_users_token(service, repo, store):
    alice = asyncio.run(service.register("alice", "secret1"))
    bob = asyncio.run(service.register("bob", "secret1"))
    bob_user = asyncio.run(repo.get_session_user(str(bob.user.id)))
    asyncio.run(service.logout(bob_user, alice.refresh_token))
    assert _stored_tokens(store, "alice") == [alice.refresh_token]

def test_update_profile(service, repo, store):
    session = asyncio.run(service.register("alice", "secret1"))
    user = asyncio.run(repo.get_session_user(str(session.user.id)))

    with pytest.raises(Exception) as exc_info:
        asyncio.run(service.update_profile(user, "x" * 31))
    assert exc_info.value.code == "DISPLAY_NAME_TOO_LONG"
    assert _stored(store, "alice")["display_name"] == "alice"

    updated = asyncio.run(service.update_profile(user, "y" * 30))
    assert updated.display_name == "y" * 30
    assert _stored(store, "alice")["display_name"] == "y" * 30

    # 빈 값은 변경 없음
    unchanged = asyncio.run(service.update_profile(user, "   "))
    assert unchanged.display_name == "alice"

def test_update_profile_for_deleted_user(service, repo):
    session = asyncio.run(service.register("alice", "secret1"))
    user = asyncio.run(repo.get_session_user(str(session.user.id)))
    asyncio.run(repo.delete(session.user.id))
    with pytest.raises(UserNotFoundError):
        asyncio.run(service.update_profile(user, "New name"))
