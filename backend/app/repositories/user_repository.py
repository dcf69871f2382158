# 사용자 저장소 레이어
# - 데이터 접근(조회/생성/원자적 업데이트)만 담당 (서비스 로직 분리)
#
# 주니어 개발자님께: refresh_tokens 는 절대 "읽고 → 메모리에서 수정 → save()" 하지 않습니다.
# 같은 사용자의 요청 두 개(예: 두 기기의 동시 refresh)가 겹치면
# 나중에 저장한 쪽이 먼저 저장한 변경을 조용히 덮어쓰기 때문입니다.
# 대신 MongoDB 의 filter + update 한 번으로 처리하면 문서 단위로 직렬화됩니다.

from datetime import datetime
from typing import Optional
from beanie import PydanticObjectId, UpdateResponse
from bson.errors import InvalidId

from ..core.config import settings
from ..models.user import RefreshTokenEntry, SessionUser, User

def _to_object_id(user_id) -> Optional[PydanticObjectId]:
    try:
        return PydanticObjectId(user_id)
    except (InvalidId, TypeError):
        return None

class UserRepository:
    async def get_by_username(self, username: str) -> Optional[User]:
        return await User.find_one(User.username == username)

    async def username_exists(self, username: str) -> bool:
        return await User.find_one(User.username == username) is not None

    async def create(self, username: str, hashed_password: str, display_name: str) -> User:
        # unique 인덱스 위반 시 pymongo.errors.DuplicateKeyError 가 그대로 올라갑니다
        user = User(username=username, hashed_password=hashed_password, display_name=display_name)
        return await user.insert()

    async def get_session_user(self, user_id: str) -> Optional[SessionUser]:
        oid = _to_object_id(user_id)
        if oid is None:
            return None
        return await User.find_one(User.id == oid, projection_model=SessionUser)

    async def delete(self, user_id: PydanticObjectId) -> None:
        await User.find_one(User.id == user_id).delete_one()

    async def push_refresh_token(self, user_id: PydanticObjectId, token: str, touch_last_login: bool = False) -> Optional[User]:
        # $slice 로 최신 N개만 유지 (사용자별 bounded set)
        update = {
            "$push": {
                "refresh_tokens": {
                    "$each": [RefreshTokenEntry(token=token).model_dump()],
                    "$slice": -settings.MAX_REFRESH_TOKENS_PER_USER,
                }
            }
        }
        if touch_last_login:
            update["$set"] = {"last_login": datetime.utcnow()}
        return await User.find_one(User.id == user_id).update(update, response_type=UpdateResponse.NEW_DOCUMENT)

    async def rotate_refresh_token(self, old_token: str, new_token: str) -> Optional[User]:
        """old_token 항목을 빼고 new_token 항목을 목록 끝에 붙입니다.

        주니어 개발자님께: filter 에 old_token 값이 들어가 있으므로,
        다른 요청이 이미 같은 토큰을 소비했다면 아무 문서도 매칭되지 않고 None 이 반환됩니다.
        MongoDB 는 같은 필드에 $pull 과 $push 를 한 번에 쓸 수 없어서
        파이프라인 업데이트($filter + $concatArrays) 한 번으로 처리합니다.
        새 항목이 끝으로 가야 $slice 가 방금 갱신한 세션을 "가장 오래된 세션"으로 착각하지 않습니다.

        Returns:
            교체 후의 User 문서, 토큰을 가진 사용자가 없으면 None
        """
        entry = RefreshTokenEntry(token=new_token).model_dump()
        pipeline = [
            {
                "$set": {
                    "refresh_tokens": {
                        "$concatArrays": [
                            {
                                "$filter": {
                                    "input": "$refresh_tokens",
                                    "as": "entry",
                                    "cond": {"$ne": ["$$entry.token", old_token]},
                                }
                            },
                            {"$literal": [entry]},
                        ]
                    }
                }
            }
        ]
        return await User.find_one({"refresh_tokens.token": old_token}).update(
            pipeline,
            response_type=UpdateResponse.NEW_DOCUMENT,
        )

    async def pull_refresh_token(self, user_id: PydanticObjectId, token: str) -> None:
        await User.find_one(User.id == user_id).update({"$pull": {"refresh_tokens": {"token": token}}})

    async def set_display_name(self, user_id: PydanticObjectId, display_name: str) -> Optional[User]:
        return await User.find_one(User.id == user_id).update(
            {"$set": {"display_name": display_name}},
            response_type=UpdateResponse.NEW_DOCUMENT,
        )
