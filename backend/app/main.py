# FastAPI 진입점
# - Beanie ODM 초기화 (MongoDB)
# - 라우터 라우팅
# - CORS 설정
# - 에러 응답 형식 통일: {"message": ..., "code": ...}

import logging
from datetime import datetime
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo import AsyncMongoClient
from beanie import init_beanie
import uvicorn
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import settings
from .core.exceptions import AuthServiceError
from .models.user import User
from .api.v1.auth import router as auth_router

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# FastAPI 애플리케이션 인스턴스 생성
app = FastAPI(
    title="MoodLog API",
    description="익명 감정 일기 서비스 - 인증/세션 API",
    version="1.0.0"
)

# CORS 허용 도메인 세팅
origins = [o.strip() for o in settings.CORS_ALLOW_ORIGINS.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Beanie 초기화 (앱 시작 시 1회)
@app.on_event("startup")
async def app_init():
    # 주니어 개발자님께: serverSelectionTimeoutMS는 서버 선택 타임아웃(밀리초)입니다.
    # 5초 안에 연결하지 못하면 타임아웃 에러가 발생하고, 인증 API 전체가 DB 없이는 동작하지 않으므로
    # 여기서는 예외를 삼키지 않고 기동을 실패시킵니다.
    client = AsyncMongoClient(settings.MONGODB_URI, serverSelectionTimeoutMS=5000)
    await client.admin.command('ping')
    db = client.get_default_database()
    await init_beanie(database=db, document_models=[User])
    app.state.mongo_client = client
    logger.info(f"[startup] MongoDB 연결 성공: {db.name}")
    if not settings.JWT_SECRET_KEY or not settings.JWT_REFRESH_SECRET_KEY:
        logger.warning("[startup] JWT 비밀키가 설정되지 않았습니다. 토큰 발급 요청은 TOKEN_GENERATION_ERROR 로 실패합니다.")

@app.on_event("shutdown")
async def app_shutdown():
    client = getattr(app.state, "mongo_client", None)
    if client is not None:
        await client.close()
        logger.info("[shutdown] MongoDB 연결 종료")

# ---- 에러 핸들러 ----

# 인프라 오류 로깅은 발생 지점(서비스/가드) 담당, 여기서는 응답 변환만
@app.exception_handler(AuthServiceError)
async def auth_error_handler(request: Request, exc: AuthServiceError):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message, "code": exc.code})

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={
            "message": "Validation Error",
            "code": "VALIDATION_ERROR",
            "errors": [err.get("msg", "Invalid value") for err in exc.errors()],
        },
    )

@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        return JSONResponse(status_code=404, content={"message": "Route not found", "code": "ROUTE_NOT_FOUND"})
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(status_code=exc.status_code, content={"message": message, "code": "HTTP_ERROR"})

@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"[error] 처리되지 않은 예외: {request.method} {request.url.path}")
    message = "Internal server error" if settings.ENV == "production" else str(exc)
    return JSONResponse(status_code=500, content={"message": message, "code": "INTERNAL_ERROR"})

# 간단한 헬스체크
@app.get("/")
async def root():
    return {"ok": True, "app": settings.APP_NAME, "time": datetime.utcnow().isoformat()}

@app.get("/health")
async def health_check():
    return {"status": "ok", "app": settings.APP_NAME, "version": "1.0.0"}

# API v1 라우터 등록
app.include_router(auth_router, prefix="/api/v1")


def run():
    """로컬 실행용 진입점 (pyproject 의 moodlog-api 스크립트)"""
    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
