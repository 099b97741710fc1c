"""
期間計算ユーティリティ

収益性レポートの集計期間（直近1ヶ月・3ヶ月・6ヶ月・1年）と
月キー（YYYY-MM）の計算を行う。

期間ルール:
- 終了日: 今日
- 開始日: 今日から1/3/6ヶ月、または1年遡った日
- 月末日をまたぐ場合は遡った月の末日に丸める（3月31日の1ヶ月前 → 2月28日）
"""
from datetime import date
from enum import Enum
from typing import Optional, Tuple

from dateutil.relativedelta import relativedelta


class ReportingPeriod(str, Enum):
    """レポート期間の選択肢"""
    ONE_MONTH = "1month"
    THREE_MONTHS = "3months"
    SIX_MONTHS = "6months"
    ONE_YEAR = "1year"


DEFAULT_PERIOD = ReportingPeriod.THREE_MONTHS

_PERIOD_OFFSETS = {
    ReportingPeriod.ONE_MONTH: relativedelta(months=1),
    ReportingPeriod.THREE_MONTHS: relativedelta(months=3),
    ReportingPeriod.SIX_MONTHS: relativedelta(months=6),
    ReportingPeriod.ONE_YEAR: relativedelta(years=1),
}

MONTH_NAMES = {
    "fr": [
        "janvier", "février", "mars", "avril", "mai", "juin",
        "juillet", "août", "septembre", "octobre", "novembre", "décembre",
    ],
    "en": [
        "January", "February", "March", "April", "May", "June",
        "July", "August", "September", "October", "November", "December",
    ],
}


def resolve_period_range(
    period: ReportingPeriod,
    today: Optional[date] = None,
) -> Tuple[date, date]:
    """
    期間の選択肢から開始日・終了日を返す

    Args:
        period: レポート期間
        today: 基準日（省略時は今日）

    Returns:
        Tuple[date, date]: (開始日, 終了日)

    Examples:
        >>> resolve_period_range(ReportingPeriod.THREE_MONTHS, date(2026, 10, 18))
        (date(2026, 7, 18), date(2026, 10, 18))
        >>> resolve_period_range(ReportingPeriod.ONE_MONTH, date(2026, 3, 31))
        (date(2026, 2, 28), date(2026, 3, 31))
    """
    end_date = today or date.today()
    start_date = end_date - _PERIOD_OFFSETS[ReportingPeriod(period)]
    return start_date, end_date


def month_key(target_date: date) -> str:
    """
    日付から月キー（YYYY-MM、ゼロ埋め）を作る

    ゼロ埋めしているため、文字列比較がそのまま時系列順になる。
    """
    return f"{target_date.year:04d}-{target_date.month:02d}"


def format_month_label(key: str, locale: str = "fr-FR") -> str:
    """
    月キーを表示用の文字列に変換する

    Examples:
        >>> format_month_label("2026-10")
        'octobre 2026'
        >>> format_month_label("2026-10", "en-US")
        'October 2026'
        >>> format_month_label("2026-10", "ja-JP")
        '2026年10月'
    """
    year_str, month_str = key.split("-")
    year, month = int(year_str), int(month_str)

    language = locale.split("-")[0].lower()
    if language == "ja":
        return f"{year}年{month}月"

    names = MONTH_NAMES.get(language, MONTH_NAMES["fr"])
    return f"{names[month - 1]} {year}"
