"""
FastAPIアプリケーション エントリーポイント

クリニック管理システムの収益性分析APIを提供する。
データと認証はSupabaseに委ねる。
"""
from datetime import datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.endpoints import profitability
from app.core.config import settings
from app.core.logging import configure_logging, get_logger
from app.schemas.common import APIInfo, HealthResponse


configure_logging()
logger = get_logger(__name__)


# =============================================================================
# FastAPIアプリケーション初期化
# =============================================================================

app = FastAPI(
    title=settings.API_TITLE,
    version=settings.API_VERSION,
    description=settings.API_DESCRIPTION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Requested-With"],
    expose_headers=["Content-Disposition"],
    max_age=600,
)


# =============================================================================
# ルーター登録
# =============================================================================

# 収益性分析エンドポイント
app.include_router(profitability.router, prefix="/api/v1")


# =============================================================================
# ルートエンドポイント
# =============================================================================

@app.get(
    "/",
    response_model=APIInfo,
    summary="API情報",
    tags=["システム"],
)
async def root() -> APIInfo:
    """APIの基本情報を返す"""
    return APIInfo(
        title=settings.API_TITLE,
        version=settings.API_VERSION,
        description=settings.API_DESCRIPTION,
        docs_url="/docs",
    )


@app.get(
    "/health",
    response_model=HealthResponse,
    summary="ヘルスチェック",
    description="稼働状態を返す。認証不要。",
    tags=["システム"],
)
async def health_check() -> HealthResponse:
    return HealthResponse(
        status="healthy",
        environment=settings.APP_ENV,
        version=settings.API_VERSION,
        timestamp=datetime.now(),
    )


# =============================================================================
# イベントハンドラ
# =============================================================================

@app.on_event("startup")
async def startup_event():
    """起動時に設定内容をログに出力する"""
    logger.info(f"{settings.API_TITLE} v{settings.API_VERSION} を起動しました")
    logger.info(f"環境: {settings.APP_ENV} / デバッグ: {settings.DEBUG}")
    logger.info(f"許可オリジン: {settings.allowed_origins_list}")
    logger.info(
        f"表示ロケール: {settings.DISPLAY_LOCALE} / 通貨: {settings.CURRENCY} / "
        f"推定原価率: {settings.COST_ESTIMATE_RATIO}"
    )


@app.on_event("shutdown")
async def shutdown_event():
    logger.info(f"{settings.API_TITLE} を終了します")


# =============================================================================
# 開発用: uvicornで直接実行する場合
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
