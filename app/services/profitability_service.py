"""
収益性分析サービスモジュール

完了済み予約から施術別・月別の収益性を集計する。
- 施術別収益性（回数・売上・推定原価・利益・利益率）
- 月別集計
- 期間合計

推定原価は施術価格の30%（COST_ESTIMATE_RATIO）で固定。
消費商品の実原価による計算は行わない。
"""
from collections import OrderedDict
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError
from supabase import Client

from app.core.config import settings
from app.core.exceptions import DataFetchError
from app.core.logging import get_logger
from app.schemas.profitability import (
    UNKNOWN_TREATMENT_ID,
    UNKNOWN_TREATMENT_NAME,
    AppointmentRecord,
    AppointmentStatus,
    MonthlyRollup,
    PerformanceTier,
    PeriodTotals,
    ProfitabilityReport,
    ProfitabilityResponse,
    ReportStatus,
    TreatmentProfitability,
)
from app.services.cost_analysis_service import fetch_cost_analyses
from app.services.formatting import format_report_totals
from app.services.period_utils import ReportingPeriod, month_key, resolve_period_range


logger = get_logger(__name__)

ZERO = Decimal("0")
APPOINTMENT_COLUMNS = (
    "id, date, status, treatment_id, consumed_products, "
    "soins!appointments_treatment_id_fkey(nom, prix)"
)


# =============================================================================
# ヘルパー関数
# =============================================================================

def _to_decimal(value: Any) -> Optional[Decimal]:
    """値をDecimalに変換する"""
    if value is None:
        return None
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return None
    # numeric型はNaNを保持できる。NaN・無限大は欠損と同じ扱い
    if result.is_nan() or result.is_infinite():
        return None
    return result


def _calculate_margin(profit: Decimal, revenue: Decimal) -> Decimal:
    """利益率（%）を計算する。売上が0以下の場合は0"""
    if revenue <= 0:
        return ZERO
    return (profit / revenue) * 100


def _safe_average(total: Decimal, count: int) -> Decimal:
    if count <= 0:
        return ZERO
    return total / count


def estimate_session_cost(
    price: Decimal,
    cost_ratio: Optional[Decimal] = None,
) -> Decimal:
    """
    1回の施術の推定原価を計算する

    推定原価 = 施術価格 × 原価率（デフォルト30%）
    """
    ratio = settings.COST_ESTIMATE_RATIO if cost_ratio is None else cost_ratio
    return price * ratio


# =============================================================================
# 行データの検証
# =============================================================================

def _extract_treatment(row: Dict[str, Any]) -> Dict[str, Any]:
    """結合された soins（施術マスタ）を取り出す"""
    treatment = row.get("soins")
    if isinstance(treatment, list):
        treatment = treatment[0] if treatment else None
    return treatment if isinstance(treatment, dict) else {}


def parse_appointment_rows(rows: Iterable[Dict[str, Any]]) -> List[AppointmentRecord]:
    """
    Supabaseの行データを AppointmentRecord に変換する

    - 施術が結合できない行は「Soin inconnu」、価格0として扱う
    - 価格が欠損・不正・負の場合は0として扱う
    - 日付やステータスが不正な行はスキップする（警告ログを出力）

    Args:
        rows: appointments テーブルの行（soins を結合済み）

    Returns:
        List[AppointmentRecord]: 検証済みの予約レコード
    """
    records: List[AppointmentRecord] = []

    for row in rows:
        treatment = _extract_treatment(row)

        price = _to_decimal(treatment.get("prix"))
        if price is None or price < 0:
            if treatment:
                logger.warning(
                    f"予約 {row.get('id')} の施術価格が不正なため0として扱います: "
                    f"{treatment.get('prix')!r}"
                )
            price = ZERO

        consumed = row.get("consumed_products")

        try:
            record = AppointmentRecord(
                id=str(row.get("id") or ""),
                date=row.get("date"),
                status=row.get("status"),
                treatment_id=str(row.get("treatment_id") or UNKNOWN_TREATMENT_ID),
                treatment_name=treatment.get("nom") or UNKNOWN_TREATMENT_NAME,
                treatment_price=price,
                consumed_items=consumed if isinstance(consumed, list) else [],
            )
        except ValidationError as e:
            logger.warning(
                f"不正な予約データをスキップしました: id={row.get('id')} "
                f"errors={e.error_count()}"
            )
            continue

        records.append(record)

    return records


# =============================================================================
# 集計
# =============================================================================

def _completed_only(records: Iterable[AppointmentRecord]) -> List[AppointmentRecord]:
    completed = []
    for record in records:
        if record.status != AppointmentStatus.COMPLETED:
            logger.debug(f"完了していない予約を集計から除外: {record.id}")
            continue
        completed.append(record)
    return completed


def aggregate_by_treatment(
    records: Iterable[AppointmentRecord],
    cost_ratio: Optional[Decimal] = None,
) -> List[TreatmentProfitability]:
    """
    施術別に収益性を集計する

    結果は利益の降順。利益が同じ場合は最初に出現した順を保つ。

    Args:
        records: 完了済み予約レコード
        cost_ratio: 推定原価率（省略時は設定値）

    Returns:
        List[TreatmentProfitability]: 施術別収益性
    """
    buckets: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()

    for record in _completed_only(records):
        bucket = buckets.get(record.treatment_id)
        if bucket is None:
            bucket = {
                "treatment_name": record.treatment_name,
                "sessions": 0,
                "revenue": ZERO,
                "cost": ZERO,
            }
            buckets[record.treatment_id] = bucket

        bucket["sessions"] += 1
        bucket["revenue"] += record.treatment_price
        bucket["cost"] += estimate_session_cost(record.treatment_price, cost_ratio)

    results = []
    for treatment_id, bucket in buckets.items():
        revenue = bucket["revenue"]
        cost = bucket["cost"]
        profit = revenue - cost
        margin = _calculate_margin(profit, revenue)

        results.append(TreatmentProfitability(
            treatment_id=treatment_id,
            treatment_name=bucket["treatment_name"],
            session_count=bucket["sessions"],
            total_revenue=revenue,
            total_cost=cost,
            profit=profit,
            profit_margin=margin,
            average_session_cost=_safe_average(cost, bucket["sessions"]),
            average_session_price=_safe_average(revenue, bucket["sessions"]),
            performance=PerformanceTier.from_margin(margin),
        ))

    return sorted(results, key=lambda item: item.profit, reverse=True)


def aggregate_by_month(
    records: Iterable[AppointmentRecord],
    cost_ratio: Optional[Decimal] = None,
) -> List[MonthlyRollup]:
    """
    月別に売上・推定原価・利益を集計する

    結果は月キー（YYYY-MM）の昇順。
    """
    buckets: Dict[str, Dict[str, Any]] = {}

    for record in _completed_only(records):
        key = month_key(record.date)
        bucket = buckets.setdefault(key, {"sessions": 0, "revenue": ZERO, "cost": ZERO})
        bucket["sessions"] += 1
        bucket["revenue"] += record.treatment_price
        bucket["cost"] += estimate_session_cost(record.treatment_price, cost_ratio)

    return [
        MonthlyRollup(
            month=key,
            revenue=bucket["revenue"],
            cost=bucket["cost"],
            profit=bucket["revenue"] - bucket["cost"],
            session_count=bucket["sessions"],
        )
        for key, bucket in sorted(buckets.items())
    ]


def compute_totals(treatments: Iterable[TreatmentProfitability]) -> PeriodTotals:
    """施術別収益性を合計して期間合計を作る"""
    revenue = ZERO
    cost = ZERO
    profit = ZERO
    sessions = 0

    for item in treatments:
        revenue += item.total_revenue
        cost += item.total_cost
        profit += item.profit
        sessions += item.session_count

    return PeriodTotals(
        total_revenue=revenue,
        total_cost=cost,
        total_profit=profit,
        profit_margin=_calculate_margin(profit, revenue),
        total_sessions=sessions,
    )


def build_profitability_report(
    records: Iterable[AppointmentRecord],
    cost_ratio: Optional[Decimal] = None,
) -> ProfitabilityReport:
    """
    収益性レポートを作成する

    入力のみに依存する純粋な計算で、副作用はない。
    入力が空の場合は空のリストと0の合計を返す。

    Args:
        records: 期間内の完了済み予約レコード
        cost_ratio: 推定原価率（省略時は設定値）

    Returns:
        ProfitabilityReport: 施術別・月別・期間合計
    """
    records = list(records)
    treatments = aggregate_by_treatment(records, cost_ratio)

    return ProfitabilityReport(
        treatments=treatments,
        monthly=aggregate_by_month(records, cost_ratio),
        totals=compute_totals(treatments),
    )


# =============================================================================
# データ取得
# =============================================================================

def fetch_completed_appointments(
    supabase: Client,
    start_date: date,
    end_date: date,
) -> List[AppointmentRecord]:
    """
    期間内の完了済み予約を施術情報付きで取得する

    Args:
        supabase: Supabaseクライアント
        start_date: 集計開始日
        end_date: 集計終了日

    Returns:
        List[AppointmentRecord]: 検証済みの予約レコード

    Raises:
        DataFetchError: 問い合わせに失敗した場合
    """
    try:
        response = supabase.table("appointments").select(
            APPOINTMENT_COLUMNS
        ).gte(
            "date", start_date.isoformat()
        ).lte(
            "date", end_date.isoformat()
        ).eq(
            "status", AppointmentStatus.COMPLETED.value
        ).execute()
    except Exception as e:
        raise DataFetchError(
            "appointments", str(e), code=getattr(e, "code", None)
        ) from e

    return parse_appointment_rows(response.data or [])


async def load_profitability(
    supabase: Client,
    period: ReportingPeriod,
    today: Optional[date] = None,
    cost_analysis_limit: Optional[int] = None,
) -> ProfitabilityResponse:
    """
    期間を指定して収益性レポートを取得・集計する

    データ取得に失敗した場合は集計を行わず、status=fetch_error を返す。
    エラーはログに記録し、例外としては送出しない。

    Args:
        supabase: Supabaseクライアント
        period: レポート期間
        today: 基準日（省略時は今日）
        cost_analysis_limit: コスト分析の表示件数（省略時は設定値）

    Returns:
        ProfitabilityResponse: レポートと計算状態
    """
    start_date, end_date = resolve_period_range(period, today)
    limit = cost_analysis_limit or settings.COST_ANALYSIS_DISPLAY_LIMIT

    try:
        records = fetch_completed_appointments(supabase, start_date, end_date)
        cost_analyses = fetch_cost_analyses(supabase, start_date, limit)
    except DataFetchError as e:
        logger.error(
            f"収益性データの取得に失敗しました: period={period.value} "
            f"source={e.source} error={e.message}"
        )
        return ProfitabilityResponse(
            status=ReportStatus.FETCH_ERROR,
            period=period,
            start_date=start_date,
            end_date=end_date,
            error=f"Impossible de charger les données ({e.source})",
        )

    report = build_profitability_report(records)
    logger.info(
        f"収益性レポートを作成しました: period={period.value} "
        f"records={len(records)} treatments={len(report.treatments)}"
    )

    return ProfitabilityResponse(
        status=ReportStatus.COMPUTED,
        period=period,
        start_date=start_date,
        end_date=end_date,
        report=report,
        formatted_totals=format_report_totals(report.totals),
        cost_analyses=cost_analyses,
    )
