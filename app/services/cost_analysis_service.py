"""
コスト分析サービスモジュール

上流で計算済みのコスト分析（想定原価と実原価の差異）を取得する。
"""
from datetime import date
from typing import Any, Dict, Iterable, List

from pydantic import ValidationError
from supabase import Client

from app.core.exceptions import DataFetchError
from app.core.logging import get_logger
from app.schemas.profitability import CostAnalysis
from app.services.formatting import format_percentage, format_signed_currency


logger = get_logger(__name__)

# 1件あたりに表示する改善提案の最大数
MAX_SUGGESTIONS = 3


def parse_cost_analysis_rows(rows: Iterable[Dict[str, Any]]) -> List[CostAnalysis]:
    """
    cost_analysis テーブルの行を CostAnalysis に変換する

    改善提案は表示用に先頭 MAX_SUGGESTIONS 件に絞り、
    原価差異と差異率は符号付きの表示用文字列も付ける（欠損は0）。
    不正な行はスキップする。
    """
    analyses = []
    for row in rows:
        try:
            analysis = CostAnalysis(**row)
        except ValidationError as e:
            logger.warning(
                f"不正なコスト分析データをスキップしました: id={row.get('id')} "
                f"errors={e.error_count()}"
            )
            continue

        analysis.optimization_suggestions = analysis.optimization_suggestions[:MAX_SUGGESTIONS]
        analysis.formatted_variance = format_signed_currency(analysis.cost_variance)
        analysis.formatted_variance_percentage = format_percentage(
            analysis.cost_variance_percentage, signed=True
        )
        analyses.append(analysis)

    return analyses


def fetch_cost_analyses(
    supabase: Client,
    since: date,
    limit: int,
) -> List[CostAnalysis]:
    """
    指定日以降に開始したコスト分析を新しい順に取得する

    Args:
        supabase: Supabaseクライアント
        since: 分析期間開始日の下限
        limit: 取得件数

    Returns:
        List[CostAnalysis]: コスト分析（分析期間開始日の降順）

    Raises:
        DataFetchError: 問い合わせに失敗した場合
    """
    try:
        response = supabase.table("cost_analysis").select("*").gte(
            "analysis_period_start", since.isoformat()
        ).order(
            "analysis_period_start", desc=True
        ).limit(limit).execute()
    except Exception as e:
        raise DataFetchError(
            "cost_analysis", str(e), code=getattr(e, "code", None)
        ) from e

    return parse_cost_analysis_rows(response.data or [])
