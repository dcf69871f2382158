# 인증 라우터
# - 회원가입: POST /api/v1/auth/register
# - 익명 가입: POST /api/v1/auth/register-anonymous
# - 로그인: POST /api/v1/auth/login
# - 토큰 갱신: POST /api/v1/auth/refresh
# - 프로필: GET/PUT /api/v1/auth/profile (로그인 필요)
# - 로그아웃: POST /api/v1/auth/logout (로그인 필요)

from typing import Optional
from fastapi import APIRouter, Depends, status

from ...schemas.user_schema import (
    AnonymousRegisterRequest,
    AuthResponse,
    ErrorResponse,
    LoginRequest,
    LogoutRequest,
    MessageResponse,
    ProfileResponse,
    ProfileUpdateRequest,
    ProfileUpdateResponse,
    RefreshRequest,
    RegisterRequest,
    TokenPair,
    UserPublic,
)
from ...services.auth_service import AuthService, get_auth_service
from ...models.user import SessionUser
from ..deps import get_current_user

# 모든 에러 응답은 {"message", "code"} 형식 (OpenAPI 문서용)
router = APIRouter(
    prefix="/auth",
    tags=["auth"],
    responses={
        400: {"model": ErrorResponse, "description": "입력값 오류 / 아이디 중복"},
        401: {"model": ErrorResponse, "description": "인증 실패"},
        500: {"model": ErrorResponse, "description": "서버 오류"},
        503: {"model": ErrorResponse, "description": "익명 아이디 생성 실패"},
    },
)

@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED, summary="회원가입 (아이디 중복 체크 포함)")
async def register(payload: RegisterRequest, service: AuthService = Depends(get_auth_service)):
    session = await service.register(payload.username, payload.password, payload.display_name)
    return AuthResponse(
        message="User registered successfully",
        user=UserPublic.from_user(session.user),
        token=session.token,
        refresh_token=session.refresh_token,
    )

@router.post("/register-anonymous", response_model=AuthResponse, status_code=status.HTTP_201_CREATED, summary="익명 가입 (아이디 자동 생성)")
async def register_anonymous(payload: AnonymousRegisterRequest, service: AuthService = Depends(get_auth_service)):
    session = await service.register_anonymous(payload.password, payload.display_name)
    return AuthResponse(
        message="Anonymous account created successfully",
        user=UserPublic.from_user(session.user),
        token=session.token,
        refresh_token=session.refresh_token,
    )

@router.post("/login", response_model=AuthResponse, summary="로그인 (JWT Access/Refresh 토큰 발급)")
async def login(payload: LoginRequest, service: AuthService = Depends(get_auth_service)):
    session = await service.login(payload.username, payload.password)
    return AuthResponse(
        message="Login successful",
        user=UserPublic.from_user(session.user),
        token=session.token,
        refresh_token=session.refresh_token,
    )

@router.post("/refresh", response_model=TokenPair, summary="토큰 갱신 (refresh 토큰은 1회용)")
async def refresh(payload: RefreshRequest, service: AuthService = Depends(get_auth_service)):
    tokens = await service.refresh(payload.refresh_token)
    return TokenPair(message="Token refreshed successfully", token=tokens.token, refresh_token=tokens.refresh_token)

@router.get("/profile", response_model=ProfileResponse, summary="내 프로필 조회 (로그인 필요)")
async def get_profile(user: SessionUser = Depends(get_current_user), service: AuthService = Depends(get_auth_service)):
    profile = await service.get_profile(user)
    return ProfileResponse(user=UserPublic.from_user(profile))

@router.put("/profile", response_model=ProfileUpdateResponse, summary="표시 이름 변경 (로그인 필요)")
async def update_profile(
    payload: ProfileUpdateRequest,
    user: SessionUser = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    updated = await service.update_profile(user, payload.display_name)
    return ProfileUpdateResponse(message="Profile updated successfully", user=UserPublic.from_user(updated))

@router.post("/logout", response_model=MessageResponse, summary="로그아웃 (refresh 토큰 폐기, 로그인 필요)")
async def logout(
    payload: Optional[LogoutRequest] = None,
    user: SessionUser = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    await service.logout(user, payload.refresh_token if payload else None)
    return {"message": "Logout successful"}
