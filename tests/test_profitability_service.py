"""
収益性分析サービスのテスト

施術別・月別集計、期間合計、行データ検証、取得失敗時の扱いを確認する。
"""
import asyncio
from datetime import date
from decimal import Decimal

import pytest

from app.core.exceptions import DataFetchError
from app.schemas.profitability import (
    UNKNOWN_TREATMENT_ID,
    UNKNOWN_TREATMENT_NAME,
    AppointmentStatus,
    PerformanceTier,
    ReportStatus,
)
from app.services.formatting import format_percentage
from app.services.period_utils import ReportingPeriod
from app.services.profitability_service import (
    aggregate_by_month,
    aggregate_by_treatment,
    build_profitability_report,
    compute_totals,
    estimate_session_cost,
    fetch_completed_appointments,
    load_profitability,
    parse_appointment_rows,
)
from tests.conftest import appointment_row, make_record


class TestAggregation:
    """集計ロジックのテスト"""

    def test_two_treatments_scenario(self, sample_records):
        report = build_profitability_report(sample_records)

        by_id = {item.treatment_id: item for item in report.treatments}
        peeling = by_id["soin-a"]
        assert peeling.session_count == 2
        assert peeling.total_revenue == Decimal("200")
        assert peeling.total_cost == Decimal("60")
        assert peeling.profit == Decimal("140")
        assert peeling.profit_margin == Decimal("70")
        assert peeling.average_session_cost == Decimal("30")
        assert peeling.average_session_price == Decimal("100")

        laser = by_id["soin-b"]
        assert laser.session_count == 1
        assert laser.total_revenue == Decimal("200")
        assert laser.total_cost == Decimal("60")
        assert laser.profit == Decimal("140")
        assert laser.profit_margin == Decimal("70")

        totals = report.totals
        assert totals.total_revenue == Decimal("400")
        assert totals.total_cost == Decimal("120")
        assert totals.total_profit == Decimal("280")
        assert totals.profit_margin == Decimal("70")
        assert totals.total_sessions == 3

    def test_empty_input(self):
        report = build_profitability_report([])

        assert report.treatments == []
        assert report.monthly == []
        assert report.totals.total_revenue == 0
        assert report.totals.total_cost == 0
        assert report.totals.total_profit == 0
        assert report.totals.profit_margin == 0
        assert report.totals.total_sessions == 0

    def test_zero_price_has_zero_margin(self):
        records = [make_record("apt-1", date(2026, 10, 1), "soin-free", "Consultation", "0")]

        treatment = aggregate_by_treatment(records)[0]

        assert treatment.profit_margin == Decimal("0")
        assert treatment.profit == Decimal("0")
        assert treatment.performance == PerformanceTier.NEEDS_IMPROVEMENT
        assert compute_totals([treatment]).profit_margin == Decimal("0")

    def test_sorted_by_profit_descending_and_stable(self):
        records = [
            make_record("apt-1", date(2026, 10, 1), "soin-a", "Peeling", "50"),
            make_record("apt-2", date(2026, 10, 1), "soin-b", "Laser", "300"),
            make_record("apt-3", date(2026, 10, 1), "soin-c", "Massage", "50"),
        ]

        treatments = aggregate_by_treatment(records)

        assert [t.treatment_id for t in treatments] == ["soin-b", "soin-a", "soin-c"]
        profits = [t.profit for t in treatments]
        assert profits == sorted(profits, reverse=True)

    def test_monthly_sorted_ascending(self, sample_records):
        records = list(reversed(sample_records))
        records.append(make_record("apt-4", date(2025, 12, 20), "soin-a", "Peeling", "100"))

        monthly = aggregate_by_month(records)

        assert [m.month for m in monthly] == ["2025-12", "2026-09", "2026-10"]
        october = monthly[-1]
        assert october.session_count == 2
        assert october.revenue == Decimal("300")
        assert october.cost == Decimal("90")
        assert october.profit == Decimal("210")

    def test_groupings_agree_on_totals(self):
        records = [
            make_record(f"apt-{i}", date(2026, 1 + i % 9, 1 + i % 27), f"soin-{i % 4}", "Soin", str(35 + i * 7))
            for i in range(40)
        ]

        report = build_profitability_report(records)

        assert sum(t.session_count for t in report.treatments) == len(records)
        assert sum(m.session_count for m in report.monthly) == len(records)
        assert sum(m.revenue for m in report.monthly) == report.totals.total_revenue
        assert sum(m.cost for m in report.monthly) == report.totals.total_cost
        assert sum(m.profit for m in report.monthly) == report.totals.total_profit
        for item in report.treatments:
            assert item.profit == item.total_revenue - item.total_cost
        for rollup in report.monthly:
            assert rollup.profit == rollup.revenue - rollup.cost
        assert report.totals.total_profit == report.totals.total_revenue - report.totals.total_cost

    def test_non_completed_records_are_ignored(self, sample_records):
        records = sample_records + [
            make_record("apt-9", date(2026, 10, 3), "soin-a", "Peeling", "100",
                        status=AppointmentStatus.CANCELLED),
        ]

        report = build_profitability_report(records)

        assert report.totals.total_sessions == 3

    def test_custom_cost_ratio(self, sample_records):
        report = build_profitability_report(sample_records, cost_ratio=Decimal("0.5"))

        assert report.totals.total_cost == Decimal("200")
        assert report.totals.profit_margin == Decimal("50")
        assert report.treatments[0].performance == PerformanceTier.EXCELLENT

    def test_estimate_session_cost_default_ratio(self):
        assert estimate_session_cost(Decimal("80")) == Decimal("24")

    def test_margin_and_averages_are_not_rounded(self):
        records = [
            make_record(f"apt-{i}", date(2026, 10, 1), "soin-a", "Peeling", price)
            for i, price in enumerate(["100", "100", "101"])
        ]

        treatment = aggregate_by_treatment(records, cost_ratio=Decimal("0.12345"))[0]
        totals = compute_totals([treatment])

        assert treatment.profit_margin == Decimal("87.655")
        assert totals.profit_margin == Decimal("87.655")
        assert treatment.average_session_price == Decimal("301") / 3
        assert format_percentage(totals.profit_margin) == "87.7%"


class TestPerformanceTier:

    @pytest.mark.parametrize("margin, expected", [
        (Decimal("70"), PerformanceTier.EXCELLENT),
        (Decimal("50"), PerformanceTier.EXCELLENT),
        (Decimal("30"), PerformanceTier.VERY_GOOD),
        (Decimal("15"), PerformanceTier.FAIR),
        (Decimal("14.99"), PerformanceTier.NEEDS_IMPROVEMENT),
    ])
    def test_from_margin(self, margin, expected):
        assert PerformanceTier.from_margin(margin) == expected

    def test_labels(self):
        assert PerformanceTier.VERY_GOOD.label == "Très bon"
        assert PerformanceTier.NEEDS_IMPROVEMENT.label == "À améliorer"


class TestParseAppointmentRows:
    """Supabaseの行データ検証のテスト"""

    def test_valid_row(self):
        rows = [appointment_row("apt-1", "2026-10-01", price="120.50", consumed=[{"id": "p1"}])]

        records = parse_appointment_rows(rows)

        assert len(records) == 1
        record = records[0]
        assert record.date == date(2026, 10, 1)
        assert record.treatment_price == Decimal("120.50")
        assert record.treatment_name == "Peeling"
        assert record.consumed_items == [{"id": "p1"}]

    def test_missing_treatment_goes_to_unknown_bucket(self):
        rows = [appointment_row("apt-1", "2026-10-01", treatment_id=None, name=None, price=None)]

        records = parse_appointment_rows(rows)
        treatments = aggregate_by_treatment(records)

        assert records[0].treatment_id == UNKNOWN_TREATMENT_ID
        assert records[0].treatment_name == UNKNOWN_TREATMENT_NAME
        assert records[0].treatment_price == Decimal("0")
        assert treatments[0].treatment_name == UNKNOWN_TREATMENT_NAME
        assert treatments[0].profit_margin == Decimal("0")

    def test_missing_or_invalid_price_counts_as_zero(self):
        rows = [
            appointment_row("apt-1", "2026-10-01", price=None),
            appointment_row("apt-2", "2026-10-02", price="abc"),
            appointment_row("apt-3", "2026-10-03", price=-10),
            appointment_row("apt-4", "2026-10-04", price=float("nan")),
            appointment_row("apt-5", "2026-10-05", price="NaN"),
            appointment_row("apt-6", "2026-10-06", price="Infinity"),
            appointment_row("apt-7", "2026-10-07", price=float("-inf")),
        ]

        records = parse_appointment_rows(rows)

        assert [r.id for r in records] == [f"apt-{i}" for i in range(1, 8)]
        assert [r.treatment_price for r in records] == [Decimal("0")] * 7

    def test_nan_price_does_not_invalidate_report(self):
        rows = [
            appointment_row("apt-1", "2026-10-01", price=100),
            appointment_row("apt-2", "2026-10-02", price=float("nan")),
        ]

        report = build_profitability_report(parse_appointment_rows(rows))

        assert report.totals.total_sessions == 2
        assert report.totals.total_revenue == Decimal("100")
        assert report.totals.total_profit == Decimal("70")

    def test_row_without_date_is_skipped(self):
        rows = [
            appointment_row("apt-1", None),
            appointment_row("apt-2", "2026-10-02"),
        ]

        records = parse_appointment_rows(rows)

        assert [r.id for r in records] == ["apt-2"]

    def test_non_list_consumed_products(self):
        rows = [appointment_row("apt-1", "2026-10-01", consumed={"p1": 2})]

        assert parse_appointment_rows(rows)[0].consumed_items == []

    def test_joined_treatment_as_list(self):
        row = appointment_row("apt-1", "2026-10-01")
        row["soins"] = [{"nom": "Laser", "prix": 250}]

        record = parse_appointment_rows([row])[0]

        assert record.treatment_name == "Laser"
        assert record.treatment_price == Decimal("250")


class TestFetchAndLoad:
    """データ取得と読み込みのテスト"""

    def test_fetch_filters_by_range_and_status(self, fake_supabase):
        fake_supabase.tables["appointments"] = [
            appointment_row("apt-1", "2026-07-17"),
            appointment_row("apt-2", "2026-07-18"),
            appointment_row("apt-3", "2026-10-18"),
            appointment_row("apt-4", "2026-10-10", status="cancelled"),
        ]

        records = fetch_completed_appointments(
            fake_supabase, date(2026, 7, 18), date(2026, 10, 18)
        )

        assert [r.id for r in records] == ["apt-2", "apt-3"]
        query = fake_supabase.queries[0]
        assert ("eq", "status", "completed") in query.filters
        assert "soins" in query.columns

    def test_fetch_error_is_wrapped(self, fake_supabase):
        fake_supabase.fail("appointments", "timeout")

        with pytest.raises(DataFetchError) as exc_info:
            fetch_completed_appointments(fake_supabase, date(2026, 7, 18), date(2026, 10, 18))

        assert exc_info.value.source == "appointments"
        assert exc_info.value.code == "PGRST000"

    def test_load_profitability_computes_report(self, fake_supabase):
        fake_supabase.tables["appointments"] = [
            appointment_row("apt-1", "2026-09-03", "soin-a", "Peeling", 100),
            appointment_row("apt-2", "2026-10-02", "soin-a", "Peeling", 100),
            appointment_row("apt-3", "2026-10-09", "soin-b", "Laser", 200),
        ]
        fake_supabase.tables["cost_analysis"] = [
            {
                "id": "ca-1",
                "analysis_period_start": "2026-09-01",
                "analysis_period_end": "2026-09-30",
                "cost_variance": 12.5,
                "optimization_suggestions": ["a", "b", "c", "d"],
            },
        ]

        response = asyncio.run(load_profitability(
            fake_supabase, ReportingPeriod.THREE_MONTHS, today=date(2026, 10, 18)
        ))

        assert response.status == ReportStatus.COMPUTED
        assert response.start_date == date(2026, 7, 18)
        assert response.end_date == date(2026, 10, 18)
        assert response.report.totals.total_profit == Decimal("280")
        assert response.formatted_totals.profit_margin == "70.0%"
        assert len(response.cost_analyses) == 1
        assert response.cost_analyses[0].optimization_suggestions == ["a", "b", "c"]
        assert response.cost_analyses[0].formatted_variance == "+12,50\xa0€"
        assert response.cost_analyses[0].formatted_variance_percentage == "0.0%"
        assert response.error is None

    def test_load_profitability_empty_is_not_an_error(self, fake_supabase):
        response = asyncio.run(load_profitability(
            fake_supabase, ReportingPeriod.ONE_MONTH, today=date(2026, 10, 18)
        ))

        assert response.status == ReportStatus.COMPUTED
        assert response.report.treatments == []
        assert response.report.totals.total_sessions == 0

    def test_load_profitability_fetch_error_skips_aggregation(self, fake_supabase):
        fake_supabase.fail("appointments")

        response = asyncio.run(load_profitability(
            fake_supabase, ReportingPeriod.SIX_MONTHS, today=date(2026, 10, 18)
        ))

        assert response.status == ReportStatus.FETCH_ERROR
        assert response.report is None
        assert response.formatted_totals is None
        assert "appointments" in response.error

    def test_load_profitability_cost_analysis_error(self, fake_supabase):
        fake_supabase.tables["appointments"] = [appointment_row("apt-1", "2026-10-02")]
        fake_supabase.fail("cost_analysis")

        response = asyncio.run(load_profitability(
            fake_supabase, ReportingPeriod.ONE_YEAR, today=date(2026, 10, 18)
        ))

        assert response.status == ReportStatus.FETCH_ERROR
        assert response.report is None
