# 커스텀 예외 클래스 정의
# 주니어 개발자님께: 인증 서브시스템의 모든 실패는 아래 예외 중 하나로 표현됩니다.
# 각 예외는 HTTP 상태 코드와 "안정적인" 에러 코드(code)를 가지고 있고,
# 클라이언트는 message 가 아니라 code 로 분기해야 합니다.
# code 값은 API 계약의 일부이므로 절대 바꾸면 안 됩니다.

from typing import Optional


class AuthServiceError(Exception):
    """인증 서브시스템 예외의 기본 클래스

    Attributes:
        status_code: 응답 HTTP 상태 코드
        code: 기계가 읽을 수 있는 에러 코드 (예: "USERNAME_EXISTS")
        message: 사람이 읽는 메시지
    """
    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, code: Optional[str] = None):
        if message is not None:
            self.message = message
        if code is not None:
            self.code = code
        super().__init__(f"[{self.code}] {self.message}")


# ---- 분류(taxonomy) ----

class RequestValidationFailed(AuthServiceError):
    """입력값이 형식/범위를 벗어난 경우 (400). 장애로 로깅하지 않습니다."""
    status_code = 400
    code = "VALIDATION_ERROR"


class AuthenticationFailed(AuthServiceError):
    """자격 증명이나 토큰이 유효하지 않은 경우 (401)

    주니어 개발자님께: 어느 부분이 틀렸는지는 일부러 알려주지 않습니다.
    (예: 아이디가 없는지, 비밀번호가 틀렸는지 구분하지 않음)
    """
    status_code = 401
    code = "UNAUTHORIZED"


class ConflictError(AuthServiceError):
    status_code = 400
    code = "CONFLICT"


class CapacityError(AuthServiceError):
    """일시적인 용량 부족 (503). 클라이언트 잘못이 아니므로 재시도 가능합니다."""
    status_code = 503
    code = "CAPACITY_ERROR"


class InfrastructureError(AuthServiceError):
    """비밀키 설정 누락, DB 장애 등 서버 측 문제 (500). 항상 로깅됩니다."""
    status_code = 500
    code = "INTERNAL_ERROR"


# ---- 입력 검증 ----

class MissingFieldsError(RequestValidationFailed):
    code = "MISSING_FIELDS"
    message = "Username and password are required"


class MissingPasswordError(RequestValidationFailed):
    code = "MISSING_PASSWORD"
    message = "Password is required"


class MissingCredentialsError(RequestValidationFailed):
    code = "MISSING_CREDENTIALS"
    message = "Username and password are required"


class PasswordTooShortError(RequestValidationFailed):
    code = "PASSWORD_TOO_SHORT"
    message = "Password must be at least 6 characters long"


class InvalidUsernameLengthError(RequestValidationFailed):
    code = "INVALID_USERNAME_LENGTH"
    message = "Username must be between 3 and 20 characters"


class DisplayNameTooLongError(RequestValidationFailed):
    code = "DISPLAY_NAME_TOO_LONG"
    message = "Display name must be 30 characters or less"


class MissingRefreshTokenError(RequestValidationFailed):
    code = "MISSING_REFRESH_TOKEN"
    message = "Refresh token is required"


# ---- 인증 ----

class InvalidCredentialsError(AuthenticationFailed):
    code = "INVALID_CREDENTIALS"
    message = "Invalid credentials"


class InvalidRefreshTokenError(AuthenticationFailed):
    code = "INVALID_REFRESH_TOKEN"
    message = "Invalid refresh token"


class MissingTokenError(AuthenticationFailed):
    code = "MISSING_TOKEN"
    message = "Access token required"


class InvalidTokenError(AuthenticationFailed):
    code = "INVALID_TOKEN"
    message = "Invalid token"


class TokenExpiredError(AuthenticationFailed):
    code = "TOKEN_EXPIRED"
    message = "Token expired"


class UserNotFoundError(AuthenticationFailed):
    code = "USER_NOT_FOUND"
    message = "User not found"


# ---- 충돌 / 용량 / 인프라 ----

class UsernameExistsError(ConflictError):
    code = "USERNAME_EXISTS"
    message = "Username already exists"


class IdentityAllocationExhausted(CapacityError):
    """익명 아이디 생성이 시도 횟수 안에 빈 이름을 찾지 못한 경우

    Attributes:
        attempts: 실제로 시도한 후보 수
    """
    code = "USERNAME_GENERATION_FAILED"
    message = "Unable to generate unique username"

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__()


class TokenGenerationError(InfrastructureError):
    code = "TOKEN_GENERATION_ERROR"
    message = "Token generation error"


class StoreUnavailableError(InfrastructureError):
    """DB 호출 실패. code 는 실패한 작업별로 지정합니다 (예: "LOGIN_ERROR")."""
    message = "Credential store unavailable"


# ---- 토큰 계층 (서브시스템 내부용) ----
# 주니어 개발자님께: 아래 예외들은 security.py 가 던지고,
# 서비스/가드 계층에서 위의 AuthServiceError 로 변환됩니다. 응답으로 직접 나가지 않습니다.

class TokenError(Exception):
    pass


class ExpiredTokenError(TokenError):
    pass


class MalformedTokenError(TokenError):
    pass


class TokenConfigurationError(TokenError):
    """서명 비밀키가 설정되지 않은 경우 (프로세스 설정 오류)"""
    def __init__(self, setting_name: str):
        self.setting_name = setting_name
        super().__init__(f"{setting_name} 환경 변수가 설정되지 않았습니다")
