"""
表示用フォーマットモジュール

金額（ロケール別の通貨記号・区切り文字・小数桁）と
パーセント（小数1桁、増加は + 付き）を文字列に整形する。
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional

from app.core.config import settings
from app.schemas.profitability import FormattedTotals, PeriodTotals


# ロケール別の書式: (桁区切り, 小数点, 通貨記号を後ろに置くか)
LOCALE_FORMATS = {
    "fr-FR": ("\u202f", ",", True),
    "en-US": (",", ".", False),
    "en-GB": (",", ".", False),
    "ja-JP": (",", ".", False),
}

CURRENCY_SYMBOLS = {
    "EUR": "€",
    "USD": "$",
    "GBP": "£",
    "JPY": "￥",
}

# 通貨ごとの小数桁（記載のない通貨は2桁）
CURRENCY_DECIMALS = {
    "JPY": 0,
}


def _to_decimal(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def format_currency(
    amount: Any,
    locale: Optional[str] = None,
    currency: Optional[str] = None,
) -> str:
    """
    金額を通貨表記に整形する

    Examples:
        >>> format_currency(Decimal("1234.5"), "fr-FR", "EUR")
        '1\u202f234,50\xa0€'
        >>> format_currency(Decimal("1234.5"), "en-US", "USD")
        '$1,234.50'
        >>> format_currency(Decimal("1234.5"), "ja-JP", "JPY")
        '￥1,235'
    """
    locale = locale or settings.DISPLAY_LOCALE
    currency = currency or settings.CURRENCY

    group_sep, decimal_sep, symbol_after = LOCALE_FORMATS.get(
        locale, LOCALE_FORMATS["fr-FR"]
    )
    symbol = CURRENCY_SYMBOLS.get(currency, currency)
    decimals = CURRENCY_DECIMALS.get(currency, 2)

    value = _to_decimal(amount).quantize(
        Decimal(1).scaleb(-decimals), rounding=ROUND_HALF_UP
    )
    sign = "-" if value < 0 else ""

    # 一旦 "1,234.50" 形式にしてからロケールの区切り文字に置き換える
    number = format(abs(value), f",.{decimals}f")
    number = number.replace(",", "\x00").replace(".", decimal_sep).replace("\x00", group_sep)

    if symbol_after:
        return f"{sign}{number}\xa0{symbol}"
    return f"{sign}{symbol}{number}"


def format_signed_currency(
    amount: Any,
    locale: Optional[str] = None,
    currency: Optional[str] = None,
) -> str:
    """差異表示用。正の金額には + を付ける"""
    value = _to_decimal(amount)
    prefix = "+" if value > 0 else ""
    return f"{prefix}{format_currency(value, locale, currency)}"


def format_percentage(value: Any, signed: bool = False) -> str:
    """
    パーセントを小数1桁で整形する

    Examples:
        >>> format_percentage(Decimal("70"))
        '70.0%'
        >>> format_percentage(Decimal("12.34"), signed=True)
        '+12.3%'
    """
    rounded = _to_decimal(value).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    if rounded == 0:
        # "-0.0%" にならないようにする
        rounded = abs(rounded)
    prefix = "+" if signed and rounded > 0 else ""
    return f"{prefix}{rounded}%"


def format_report_totals(
    totals: PeriodTotals,
    locale: Optional[str] = None,
    currency: Optional[str] = None,
) -> FormattedTotals:
    """期間合計を表示用に整形する"""
    return FormattedTotals(
        total_revenue=format_currency(totals.total_revenue, locale, currency),
        total_cost=format_currency(totals.total_cost, locale, currency),
        total_profit=format_currency(totals.total_profit, locale, currency),
        profit_margin=format_percentage(totals.profit_margin),
        total_sessions=totals.total_sessions,
    )
