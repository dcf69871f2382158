# 익명 아이디 생성기
# - 형용사 + 명사 + 0~999 숫자 조합 (예: "CalmDreamer42")
# - 후보 생성은 DB 를 전혀 모릅니다. 중복 검사는 호출하는 쪽이 함수로 넘겨줍니다.

from itertools import islice
from typing import Awaitable, Callable, Iterable, Iterator, Optional, Sequence
import logging
import random

from ..core.exceptions import IdentityAllocationExhausted

logger = logging.getLogger(__name__)

ADJECTIVES = ("Happy", "Calm", "Peaceful", "Hopeful", "Brave", "Strong", "Gentle", "Wise")
NOUNS = ("Soul", "Heart", "Spirit", "Mind", "Dreamer", "Warrior", "Friend", "Traveler")
MAX_SUFFIX = 999
MAX_ATTEMPTS = 10

_rng = random.SystemRandom()


def generate_username(
    rng: Optional[random.Random] = None,
    adjectives: Sequence[str] = ADJECTIVES,
    nouns: Sequence[str] = NOUNS,
    max_suffix: int = MAX_SUFFIX,
) -> str:
    # 가장 짧은 이름 "CalmSoul0"(9자), 가장 긴 이름 "PeacefulTraveler999"(19자) -> 항상 3~20자
    rng = rng or _rng
    return f"{rng.choice(adjectives)}{rng.choice(nouns)}{rng.randint(0, max_suffix)}"


def candidate_usernames(
    rng: Optional[random.Random] = None,
    adjectives: Sequence[str] = ADJECTIVES,
    nouns: Sequence[str] = NOUNS,
    max_suffix: int = MAX_SUFFIX,
) -> Iterator[str]:
    """끝없이 후보 아이디를 만들어내는 제너레이터"""
    while True:
        yield generate_username(rng, adjectives, nouns, max_suffix)


async def allocate_username(
    is_taken: Callable[[str], Awaitable[bool]],
    candidates: Optional[Iterable[str]] = None,
    max_attempts: int = MAX_ATTEMPTS,
) -> str:
    """
    후보를 최대 max_attempts 개까지 검사해서 사용 중이 아닌 첫 아이디를 반환합니다.

    주니어 개발자님께:
    검사와 실제 insert 사이에는 락이 없습니다. 그 사이에 다른 요청이 같은 이름을 가져가면
    DB 의 unique 인덱스가 최종 판정을 하고, 서비스 계층이 USERNAME_EXISTS 로 변환합니다.

    Args:
        is_taken: 이름이 이미 쓰이는지 확인하는 비동기 함수
        candidates: 후보 시퀀스 (기본값: candidate_usernames())
        max_attempts: 최대 시도 횟수

    Raises:
        IdentityAllocationExhausted: max_attempts 안에 빈 이름을 찾지 못한 경우
    """
    if candidates is None:
        candidates = candidate_usernames()
    attempts = 0
    for candidate in islice(candidates, max_attempts):
        attempts += 1
        if not await is_taken(candidate):
            return candidate
    logger.warning(f"[identity] 익명 아이디 생성 실패: {attempts}회 시도")
    raise IdentityAllocationExhausted(attempts)
