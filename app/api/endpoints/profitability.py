"""
収益性分析APIエンドポイント

施術別・月別の収益性レポート、コスト分析、Excel出力のAPIを提供する。
"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse
from supabase import Client

from app.api.deps import get_current_user, get_supabase_admin
from app.core.config import settings
from app.core.exceptions import DataFetchError
from app.core.logging import get_logger, log_report_access
from app.schemas.common import User
from app.schemas.profitability import CostAnalysis, ProfitabilityResponse, ReportStatus
from app.services.cost_analysis_service import fetch_cost_analyses
from app.services.period_utils import DEFAULT_PERIOD, ReportingPeriod, resolve_period_range
from app.services.profitability_service import (
    build_profitability_report,
    fetch_completed_appointments,
    load_profitability,
)
from app.services.report_export import build_report_workbook


router = APIRouter(prefix="/profitability", tags=["収益性分析"])

logger = get_logger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


# =============================================================================
# 収益性レポート
# =============================================================================

@router.get(
    "",
    response_model=ProfitabilityResponse,
    summary="収益性レポート取得",
    description="""
    選択した期間の完了済み予約から収益性レポートを作成する。

    ## 内容
    - 施術別収益性（回数、売上、推定原価、利益、利益率、評価）
    - 月別集計
    - 期間合計と表示用の整形済み値
    - 最近のコスト分析

    ## パラメータ
    - period: 1month / 3months / 6months / 1year

    データ取得に失敗した場合は status=fetch_error、report=null を返す。
    """,
)
async def get_profitability(
    period: ReportingPeriod = Query(DEFAULT_PERIOD, description="レポート期間"),
    current_user: User = Depends(get_current_user),
    supabase: Client = Depends(get_supabase_admin),
) -> ProfitabilityResponse:
    response = await load_profitability(supabase=supabase, period=period)

    log_report_access(
        "profitability",
        user_id=current_user.user_id,
        user_email=current_user.email,
        period=period.value,
        success=response.status == ReportStatus.COMPUTED,
    )
    return response


# =============================================================================
# コスト分析
# =============================================================================

@router.get(
    "/cost-analyses",
    response_model=List[CostAnalysis],
    summary="最近のコスト分析取得",
    description="期間開始日以降のコスト分析を新しい順に取得する。",
)
async def get_cost_analyses(
    period: ReportingPeriod = Query(DEFAULT_PERIOD, description="レポート期間"),
    limit: int = Query(
        settings.COST_ANALYSIS_DISPLAY_LIMIT, ge=1, le=50, description="取得件数"
    ),
    current_user: User = Depends(get_current_user),
    supabase: Client = Depends(get_supabase_admin),
) -> List[CostAnalysis]:
    start_date, _ = resolve_period_range(period)

    try:
        analyses = fetch_cost_analyses(supabase, start_date, limit)
    except DataFetchError as e:
        logger.error(f"コスト分析の取得に失敗しました: {e.message}")
        log_report_access(
            "cost_analyses", current_user.user_id, current_user.email,
            period=period.value, success=False,
        )
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Impossible de charger les analyses de coûts",
        )

    log_report_access(
        "cost_analyses", current_user.user_id, current_user.email, period=period.value
    )
    return analyses


# =============================================================================
# Excel出力
# =============================================================================

@router.get(
    "/export",
    summary="収益性レポートExcel出力",
    description="収益性レポートを Synthèse / Par soin / Par mois の3シートで出力する。",
)
async def export_profitability(
    period: ReportingPeriod = Query(DEFAULT_PERIOD, description="レポート期間"),
    current_user: User = Depends(get_current_user),
    supabase: Client = Depends(get_supabase_admin),
) -> StreamingResponse:
    start_date, end_date = resolve_period_range(period)

    try:
        records = fetch_completed_appointments(supabase, start_date, end_date)
    except DataFetchError as e:
        logger.error(f"Excel出力用データの取得に失敗しました: {e.message}")
        log_report_access(
            "export", current_user.user_id, current_user.email,
            period=period.value, success=False,
        )
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Impossible de charger les données de rentabilité",
        )

    report = build_profitability_report(records)
    output = build_report_workbook(
        report, start_date, end_date, locale=settings.DISPLAY_LOCALE
    )

    log_report_access(
        "export", current_user.user_id, current_user.email, period=period.value
    )

    filename = f"rentabilite_{period.value}_{end_date.isoformat()}.xlsx"
    return StreamingResponse(
        output,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
