"""
収益性レポートのExcel出力

ProfitabilityReport を3シート（Synthèse / Par soin / Par mois）の
Excelファイルに変換する。
"""
import io
from datetime import date
from decimal import Decimal

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from app.schemas.profitability import ProfitabilityReport
from app.services.period_utils import format_month_label


HEADER_FILL = PatternFill(start_color="E2EFDA", end_color="E2EFDA", fill_type="solid")
HEADER_FONT = Font(bold=True)
CENTER_ALIGNMENT = Alignment(horizontal="center", vertical="center")
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)
MONEY_FORMAT = "#,##0.00"
PERCENT_FORMAT = "0.0"

TREATMENT_HEADERS = [
    "Soin", "Sessions", "Chiffre d'affaires", "Coûts",
    "Bénéfice", "Marge (%)", "Coût moyen", "Performance",
]
MONTHLY_HEADERS = ["Mois", "Chiffre d'affaires", "Coûts", "Bénéfice", "Sessions"]


def _write_header(ws, headers) -> None:
    for col, title in enumerate(headers, start=1):
        cell = ws.cell(row=1, column=col, value=title)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = CENTER_ALIGNMENT
        cell.border = THIN_BORDER
        ws.column_dimensions[get_column_letter(col)].width = max(14, len(title) + 4)


def _money(value: Decimal) -> float:
    return float(value)


def build_report_workbook(
    report: ProfitabilityReport,
    start_date: date,
    end_date: date,
    locale: str = "fr-FR",
) -> io.BytesIO:
    """
    収益性レポートをExcelファイルに変換する

    Args:
        report: 収益性レポート
        start_date: 集計開始日
        end_date: 集計終了日
        locale: 月名表示のロケール

    Returns:
        Excelファイルのバイトストリーム
    """
    wb = Workbook()

    # ========== シート1: 期間合計 ==========
    ws = wb.active
    ws.title = "Synthèse"
    ws.column_dimensions["A"].width = 25
    ws.column_dimensions["B"].width = 18

    totals = report.totals
    rows = [
        ("Période", f"{start_date.isoformat()} - {end_date.isoformat()}", None),
        ("Chiffre d'affaires", _money(totals.total_revenue), MONEY_FORMAT),
        ("Coûts", _money(totals.total_cost), MONEY_FORMAT),
        ("Bénéfice", _money(totals.total_profit), MONEY_FORMAT),
        ("Marge (%)", _money(totals.profit_margin), PERCENT_FORMAT),
        ("Sessions", totals.total_sessions, None),
    ]
    for row_index, (label, value, number_format) in enumerate(rows, start=1):
        ws.cell(row=row_index, column=1, value=label).font = HEADER_FONT
        cell = ws.cell(row=row_index, column=2, value=value)
        if number_format:
            cell.number_format = number_format

    # ========== シート2: 施術別 ==========
    ws2 = wb.create_sheet("Par soin")
    _write_header(ws2, TREATMENT_HEADERS)
    for row_index, item in enumerate(report.treatments, start=2):
        values = [
            (item.treatment_name, None),
            (item.session_count, None),
            (_money(item.total_revenue), MONEY_FORMAT),
            (_money(item.total_cost), MONEY_FORMAT),
            (_money(item.profit), MONEY_FORMAT),
            (_money(item.profit_margin), PERCENT_FORMAT),
            (_money(item.average_session_cost), MONEY_FORMAT),
            (item.performance.label, None),
        ]
        for col, (value, number_format) in enumerate(values, start=1):
            cell = ws2.cell(row=row_index, column=col, value=value)
            cell.border = THIN_BORDER
            if number_format:
                cell.number_format = number_format

    # ========== シート3: 月別 ==========
    ws3 = wb.create_sheet("Par mois")
    _write_header(ws3, MONTHLY_HEADERS)
    for row_index, rollup in enumerate(report.monthly, start=2):
        values = [
            (format_month_label(rollup.month, locale), None),
            (_money(rollup.revenue), MONEY_FORMAT),
            (_money(rollup.cost), MONEY_FORMAT),
            (_money(rollup.profit), MONEY_FORMAT),
            (rollup.session_count, None),
        ]
        for col, (value, number_format) in enumerate(values, start=1):
            cell = ws3.cell(row=row_index, column=col, value=value)
            cell.border = THIN_BORDER
            if number_format:
                cell.number_format = number_format

    output = io.BytesIO()
    wb.save(output)
    output.seek(0)
    return output
