"""
Match Fee Settlement - FastAPI 웹 서버

경기 비용 기반 선수별 정산 API
데이터 소스: Supabase
"""
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger
from dotenv import load_dotenv

from settlement.errors import (
    InvalidRateError,
    NotFoundError,
    RecalculationError,
    RecalculationInProgressError,
    SettlementError,
    ValidationError,
)

from app.fees import fees_router, stats_router, players_router

# 환경변수 로드
load_dotenv()

# FastAPI 앱
app = FastAPI(
    title="Match Fee Settlement",
    description="경기 비용 기반 선수별 정산 및 수동 조정 API",
    version="1.0.0"
)

app.include_router(fees_router, prefix="/api")
app.include_router(stats_router, prefix="/api")
app.include_router(players_router, prefix="/api")


def status_code_for(error: SettlementError) -> int:
    """정산 오류 → HTTP 상태 코드"""
    if isinstance(error, (ValidationError, InvalidRateError)):
        return 400
    if isinstance(error, NotFoundError):
        return 404
    if isinstance(error, RecalculationInProgressError):
        return 409
    if isinstance(error, RecalculationError):
        return 422
    return 500


@app.exception_handler(SettlementError)
async def settlement_error_handler(request: Request, exc: SettlementError):
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} 처리 실패: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} → {status_code} {exc.code}")
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": exc.to_dict()},
    )


@app.on_event("startup")
async def startup_event():
    logger.info("✅ 정산 서버 시작")


@app.on_event("shutdown")
async def shutdown_event():
    """서버 종료 시 정리"""
    logger.info("서버 종료됨")


@app.get("/api/status")
async def get_status():
    """서버 상태"""
    return {
        "status": "ok",
        "time": datetime.now().isoformat(),
    }


# ==================== 서버 실행 ====================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.server:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
