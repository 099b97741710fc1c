"""
収益性レポートスキーマ定義

予約レコード・施術別収益性・月別集計・コスト分析のPydanticモデルを定義する。
"""
from datetime import date as date_type
from decimal import Decimal
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.services.period_utils import ReportingPeriod


UNKNOWN_TREATMENT_ID = "unknown"
UNKNOWN_TREATMENT_NAME = "Soin inconnu"


# =============================================================================
# 入力レコード
# =============================================================================

class AppointmentStatus(str, Enum):
    """予約ステータス"""
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class AppointmentRecord(BaseModel):
    """
    予約レコード

    appointments テーブルと soins テーブル（施術マスタ）を結合した1行を表す。
    取得後は変更しない。
    """
    id: str = Field(..., description="予約ID")
    date: date_type = Field(..., description="予約日")
    status: AppointmentStatus = Field(..., description="ステータス")
    treatment_id: str = Field(default=UNKNOWN_TREATMENT_ID, description="施術ID")
    treatment_name: str = Field(default=UNKNOWN_TREATMENT_NAME, description="施術名")
    treatment_price: Decimal = Field(default=Decimal("0"), ge=0, description="施術価格")
    consumed_items: List[Any] = Field(default_factory=list, description="消費した商品")

    model_config = ConfigDict(frozen=True)


# =============================================================================
# 集計結果
# =============================================================================

class PerformanceTier(str, Enum):
    """利益率による評価区分"""
    EXCELLENT = "excellent"
    VERY_GOOD = "very_good"
    FAIR = "fair"
    NEEDS_IMPROVEMENT = "needs_improvement"

    @classmethod
    def from_margin(cls, margin: Decimal) -> "PerformanceTier":
        """利益率（%）から評価区分を判定する"""
        if margin >= 50:
            return cls.EXCELLENT
        if margin >= 30:
            return cls.VERY_GOOD
        if margin >= 15:
            return cls.FAIR
        return cls.NEEDS_IMPROVEMENT

    @property
    def label(self) -> str:
        return PERFORMANCE_LABELS[self]


PERFORMANCE_LABELS = {
    PerformanceTier.EXCELLENT: "Excellent",
    PerformanceTier.VERY_GOOD: "Très bon",
    PerformanceTier.FAIR: "Correct",
    PerformanceTier.NEEDS_IMPROVEMENT: "À améliorer",
}


class TreatmentProfitability(BaseModel):
    """施術別収益性"""
    treatment_id: str = Field(..., description="施術ID")
    treatment_name: str = Field(..., description="施術名")
    session_count: int = Field(default=0, ge=0, description="施術回数")
    total_revenue: Decimal = Field(default=Decimal("0"), description="売上合計")
    total_cost: Decimal = Field(default=Decimal("0"), description="推定原価合計")
    profit: Decimal = Field(default=Decimal("0"), description="利益（売上 - 原価）")
    profit_margin: Decimal = Field(default=Decimal("0"), description="利益率（%）")
    average_session_cost: Decimal = Field(default=Decimal("0"), description="1回あたり平均原価")
    average_session_price: Decimal = Field(default=Decimal("0"), description="1回あたり平均単価")
    performance: PerformanceTier = Field(
        default=PerformanceTier.NEEDS_IMPROVEMENT, description="評価区分"
    )


class MonthlyRollup(BaseModel):
    """月別集計"""
    month: str = Field(..., description="月キー（YYYY-MM）")
    revenue: Decimal = Field(default=Decimal("0"), description="売上")
    cost: Decimal = Field(default=Decimal("0"), description="推定原価")
    profit: Decimal = Field(default=Decimal("0"), description="利益")
    session_count: int = Field(default=0, ge=0, description="施術回数")


class PeriodTotals(BaseModel):
    """期間合計"""
    total_revenue: Decimal = Field(default=Decimal("0"), description="売上合計")
    total_cost: Decimal = Field(default=Decimal("0"), description="原価合計")
    total_profit: Decimal = Field(default=Decimal("0"), description="利益合計")
    profit_margin: Decimal = Field(default=Decimal("0"), description="全体利益率（%）")
    total_sessions: int = Field(default=0, ge=0, description="施術回数合計")


class ProfitabilityReport(BaseModel):
    """収益性レポート"""
    treatments: List[TreatmentProfitability] = Field(
        default_factory=list, description="施術別収益性（利益の降順）"
    )
    monthly: List[MonthlyRollup] = Field(
        default_factory=list, description="月別集計（月の昇順）"
    )
    totals: PeriodTotals = Field(default_factory=PeriodTotals, description="期間合計")


# =============================================================================
# コスト分析
# =============================================================================

class CostAnalysis(BaseModel):
    """
    コスト分析

    cost_analysis テーブルの1行。想定原価と実原価の差異は上流で計算済み。
    """
    id: str = Field(..., description="分析ID")
    soin_id: Optional[str] = Field(None, description="施術ID")
    analysis_period_start: date_type = Field(..., description="分析期間開始日")
    analysis_period_end: date_type = Field(..., description="分析期間終了日")
    expected_cost: Optional[Decimal] = Field(None, description="想定原価")
    actual_cost: Optional[Decimal] = Field(None, description="実原価")
    cost_variance: Optional[Decimal] = Field(None, description="原価差異")
    cost_variance_percentage: Optional[Decimal] = Field(None, description="原価差異率（%）")
    profit_margin: Optional[Decimal] = Field(None, description="利益率（%）")
    total_sessions: Optional[int] = Field(None, description="施術回数")
    optimization_suggestions: List[Any] = Field(
        default_factory=list, description="改善提案"
    )
    formatted_variance: Optional[str] = Field(None, description="表示用の原価差異（符号付き）")
    formatted_variance_percentage: Optional[str] = Field(
        None, description="表示用の原価差異率（符号付き）"
    )

    @field_validator("optimization_suggestions", mode="before")
    @classmethod
    def _ensure_list(cls, value: Any) -> List[Any]:
        # JSONカラムのため配列以外が入っていることがある
        return value if isinstance(value, list) else []


# =============================================================================
# レスポンス
# =============================================================================

class ReportStatus(str, Enum):
    """レポートの計算状態"""
    COMPUTED = "computed"
    FETCH_ERROR = "fetch_error"


class FormattedTotals(BaseModel):
    """表示用に整形した期間合計"""
    total_revenue: str
    total_cost: str
    total_profit: str
    profit_margin: str
    total_sessions: int


class ProfitabilityResponse(BaseModel):
    """
    収益性レポートAPIレスポンス

    データ取得に失敗した場合は status=fetch_error、report=None となり、
    空のレポート（status=computed、件数0）とは区別される。
    """
    status: ReportStatus = Field(..., description="計算状態")
    period: ReportingPeriod = Field(..., description="選択された期間")
    start_date: date_type = Field(..., description="集計開始日")
    end_date: date_type = Field(..., description="集計終了日")
    report: Optional[ProfitabilityReport] = Field(None, description="収益性レポート")
    formatted_totals: Optional[FormattedTotals] = Field(None, description="表示用の期間合計")
    cost_analyses: List[CostAnalysis] = Field(default_factory=list, description="最近のコスト分析")
    error: Optional[str] = Field(None, description="エラーメッセージ")
