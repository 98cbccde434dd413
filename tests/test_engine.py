from decimal import Decimal

import pandas as pd
import pytest

from ledger_insight.attribution import Business, CostCenter, attribute_cost_centers
from ledger_insight.engine import (
    aggregate_by_client,
    aggregate_totals,
    build_kpi_metadata,
    build_kpis,
    build_trends,
)
from ledger_insight.io import entries_frame
from ledger_insight.periods import PeriodWindow, WindowMode

BUSINESSES = [
    Business(id="b-x", commercial_name="CLIENT X"),
    Business(id="b-y", commercial_name="CLIENT Y"),
]
COST_CENTERS = [
    CostCenter(id="cc-x", code="CC-X", name="X main", business_id="b-x"),
    CostCenter(id="cc-y", code="CC-Y", name="Y main", business_id="b-y"),
]


def _frame(rows: list[tuple[int, int, str, str, str]]) -> pd.DataFrame:
    return entries_frame(
        {
            "year": y,
            "month": m,
            "account_code": code,
            "cost_center_id": cc,
            "value": value,
        }
        for y, m, code, cc, value in rows
    )


def _report(df: pd.DataFrame, window: PeriodWindow):
    attribution = attribute_cost_centers(
        COST_CENTERS, BUSINESSES, df["cost_center_id"]
    )
    return aggregate_by_client(df, attribution, window)


# ---------------------------------------------------------------------------
# Client roll-up
# ---------------------------------------------------------------------------


def test_single_client_margin_and_cost_percentage() -> None:
    """Income 1000 and direct cost 400 give a 600 margin and 40% cost."""
    df = _frame(
        [
            (2025, 1, "4.1.1", "cc-x", "1000"),
            (2025, 1, "5.1.1", "cc-x", "400"),
        ]
    )

    report = _report(df, PeriodWindow.cumulative(2025, 1))

    assert report.total_clients == 1
    client = report.clients[0]
    assert client.business_id == "b-x"
    assert client.income == Decimal("1000")
    assert client.direct_cost == Decimal("400")
    assert client.contribution_margin == Decimal("600")
    assert client.cost_percentage == pytest.approx(40.0)
    assert client.contribution_margin_pct == pytest.approx(60.0)
    assert client.percentage_of_total_income == pytest.approx(100.0)
    assert client.cost_centers == ("X main",)
    assert not client.is_heuristic
    assert report.period == "2025-01"


def test_client_sums_equal_global_totals() -> None:
    df = _frame(
        [
            (2025, 1, "4.1", "cc-x", "100.10"),
            (2025, 2, "4.1", "cc-y", "250.25"),
            (2025, 2, "5.1.1", "cc-y", "80"),
            (2025, 3, "6.1", "cc-x", "12.5"),
            (2025, 3, "4.2", "cc-orphan", "40"),
            (2025, 3, "5.2.1.4", "cc-x", "999"),
        ]
    )
    window = PeriodWindow.cumulative(2025, 3)

    report = _report(df, window)
    totals = aggregate_totals(df, window)

    assert sum((c.income for c in report.clients), Decimal(0)) == totals.income
    assert (
        sum((c.direct_cost for c in report.clients), Decimal(0)) == totals.direct_cost
    )
    assert sum((c.profit for c in report.clients), Decimal(0)) == totals.profit
    assert report.totals.income == totals.income
    assert report.totals.contribution_margin == totals.income - totals.direct_cost


def test_orphan_cost_center_marks_client_heuristic() -> None:
    df = _frame(
        [
            (2025, 1, "4.1", "cc-x", "100"),
            (2025, 1, "4.1", "cc-orphan", "50"),
        ]
    )

    report = _report(df, PeriodWindow.cumulative(2025, 1))

    client_x = next(c for c in report.clients if c.business_id == "b-x")
    assert client_x.income == Decimal("150")
    assert client_x.is_heuristic
    assert client_x.cost_centers_count == 2


def test_clients_sorted_by_income_descending() -> None:
    df = _frame(
        [
            (2025, 1, "4.1", "cc-x", "100"),
            (2025, 1, "4.1", "cc-y", "300"),
        ]
    )

    report = _report(df, PeriodWindow.cumulative(2025, 1))

    assert [c.business_id for c in report.clients] == ["b-y", "b-x"]
    assert report.clients[0].percentage_of_total_income == pytest.approx(75.0)


def test_unclassified_only_client_is_listed_with_zero_totals() -> None:
    df = _frame([(2025, 1, "5.2.1.4", "cc-x", "70")])

    report = _report(df, PeriodWindow.cumulative(2025, 1))

    assert report.total_clients == 1
    assert report.clients[0].income == 0
    assert report.clients[0].monthly == ()
    assert report.totals.income == 0


def test_shares_of_total_are_zero_when_totals_are_zero() -> None:
    df = _frame(
        [
            (2025, 1, "5.2.1.4", "cc-x", "70"),
            (2025, 1, "5.2.1.5", "cc-y", "30"),
        ]
    )

    report = _report(df, PeriodWindow.cumulative(2025, 1))

    assert report.total_clients == 2
    for client in report.clients:
        assert client.percentage_of_total_income == 0.0
        assert client.percentage_of_total_direct_cost == 0.0
        assert client.percentage_of_total_profit == 0.0
        assert client.cost_percentage == 0.0
    assert report.totals.average_cost_percentage == 0.0


def test_cumulative_and_single_month_agree_for_january() -> None:
    df = _frame(
        [
            (2025, 1, "4.1", "cc-x", "100"),
            (2025, 1, "5.1", "cc-x", "30"),
            (2025, 2, "4.1", "cc-x", "999"),
        ]
    )

    cumulative = _report(df, PeriodWindow.cumulative(2025, 1))
    single = _report(df, PeriodWindow.single_month(2025, 1))

    assert cumulative.clients == single.clients
    assert cumulative.totals == single.totals
    assert cumulative.monthly_series == single.monthly_series
    assert single.mode is WindowMode.SINGLE_MONTH


def test_single_month_excludes_earlier_months() -> None:
    df = _frame(
        [
            (2025, 1, "4.1", "cc-x", "100"),
            (2025, 3, "4.1", "cc-x", "40"),
        ]
    )

    single = _report(df, PeriodWindow.single_month(2025, 3))
    cumulative = _report(df, PeriodWindow.cumulative(2025, 3))

    assert single.totals.income == Decimal("40")
    assert cumulative.totals.income == Decimal("140")


def test_aggregation_is_idempotent() -> None:
    df = _frame(
        [
            (2025, 1, "4.1", "cc-x", "100"),
            (2025, 2, "5.1", "cc-y", "30"),
            (2025, 2, "4.1", "cc-orphan", "10"),
        ]
    )
    window = PeriodWindow.cumulative(2025, 2)

    assert _report(df, window) == _report(df, window)


def test_monthly_series_is_dense_and_client_series_sparse() -> None:
    df = _frame(
        [
            (2025, 1, "4.1", "cc-x", "100"),
            (2025, 3, "4.1", "cc-x", "50"),
            (2025, 3, "5.1", "cc-x", "10"),
        ]
    )

    report = _report(df, PeriodWindow.cumulative(2025, 3))

    assert [p.period for p in report.monthly_series] == [
        "2025-01",
        "2025-02",
        "2025-03",
    ]
    assert report.monthly_series[1].income == 0
    assert [p.month for p in report.clients[0].monthly] == [1, 3]
    march = report.clients[0].monthly[1]
    assert march.contribution_margin == Decimal("40")
    assert march.cost_percentage == pytest.approx(20.0)


def test_monthly_series_ascending_for_shuffled_rows() -> None:
    df = _frame(
        [
            (2025, 3, "4.1", "cc-x", "30"),
            (2025, 1, "4.1", "cc-x", "10"),
            (2025, 2, "5.1", "cc-x", "5"),
            (2025, 2, "4.1", "cc-x", "20"),
        ]
    )

    report = _report(df, PeriodWindow.cumulative(2025, 3))

    assert [p.month for p in report.monthly_series] == [1, 2, 3]
    assert [p.income for p in report.monthly_series] == [
        Decimal("10"),
        Decimal("20"),
        Decimal("30"),
    ]
    assert [p.month for p in report.clients[0].monthly] == [1, 2, 3]
    assert report.clients[0].monthly[1].direct_cost == Decimal("5")


def test_empty_window_is_not_an_error() -> None:
    report = _report(entries_frame([]), PeriodWindow.cumulative(2025, 6))

    assert report.clients == ()
    assert report.totals.income == 0
    assert report.totals.average_cost_percentage == 0.0
    assert report.monthly_series == ()


def test_window_without_entries_has_empty_monthly_series() -> None:
    df = _frame([(2025, 8, "4.1", "cc-x", "100")])

    report = _report(df, PeriodWindow.cumulative(2025, 6))

    assert report.clients == ()
    assert report.monthly_series == ()


def test_missing_attribution_raises() -> None:
    df = _frame([(2025, 1, "4.1", "cc-unknown", "1")])
    with pytest.raises(ValueError, match="cc-unknown"):
        aggregate_by_client(df, {}, PeriodWindow.cumulative(2025, 1))


def test_average_cost_percentage_over_clients() -> None:
    df = _frame(
        [
            (2025, 1, "4.1", "cc-x", "100"),
            (2025, 1, "5.1", "cc-x", "20"),
            (2025, 1, "4.1", "cc-y", "100"),
            (2025, 1, "5.1", "cc-y", "60"),
        ]
    )

    report = _report(df, PeriodWindow.cumulative(2025, 1))

    assert report.totals.average_cost_percentage == pytest.approx(40.0)


# ---------------------------------------------------------------------------
# KPIs
# ---------------------------------------------------------------------------


def test_kpis_compare_previous_month_and_year_ago() -> None:
    df = _frame(
        [
            (2025, 3, "4.1", "cc-x", "1500"),
            (2025, 3, "5.1", "cc-x", "600"),
            (2025, 3, "6.1", "cc-x", "300"),
            (2025, 2, "4.1", "cc-x", "1000"),
            (2025, 2, "5.1", "cc-x", "800"),
            (2024, 3, "4.1", "cc-x", "1200"),
        ]
    )

    kpis = build_kpis(df, df, df, 2025, 3)

    assert kpis.period == "2025-03"
    assert kpis.total_income == Decimal("1500")
    assert kpis.total_costs == Decimal("600")
    assert kpis.total_profit == Decimal("300")
    assert kpis.cost_percentage == pytest.approx(40.0)
    assert kpis.profit_margin == pytest.approx(20.0)
    assert kpis.income_variation_month == pytest.approx(50.0)
    assert kpis.costs_variation_month == pytest.approx(-25.0)
    assert kpis.profit_variation_month == 100.0
    assert kpis.year_ago_income == Decimal("1200")
    assert kpis.income_variation_year == pytest.approx(25.0)
    assert kpis.costs_variation_year == 100.0


def test_kpis_january_compares_with_december_of_prior_year() -> None:
    df = _frame(
        [
            (2025, 1, "4.1", "cc-x", "200"),
            (2024, 12, "4.1", "cc-x", "100"),
            (2024, 1, "4.1", "cc-x", "400"),
        ]
    )

    kpis = build_kpis(df, df, df, 2025, 1)

    assert kpis.previous_income == Decimal("100")
    assert kpis.income_variation_month == pytest.approx(100.0)
    assert kpis.year_ago_income == Decimal("400")
    assert kpis.income_variation_year == pytest.approx(-50.0)


def test_kpis_with_no_data_are_zero() -> None:
    empty = entries_frame([])
    kpis = build_kpis(empty, empty, empty, 2025, 5)

    assert kpis.total_income == 0
    assert kpis.cost_percentage == 0.0
    assert kpis.income_variation_month == 0.0
    assert kpis.metadata.total_entries == 0


def test_kpi_metadata_counts_every_entry() -> None:
    df = _frame(
        [
            (2025, 1, "4.1", "cc-x", "1"),
            (2025, 1, "4.1", "cc-x", "2"),
            (2025, 1, "5.1.1", "cc-x", "3"),
            (2025, 1, "6", "cc-x", "4"),
            (2025, 1, "5.2.1", "cc-x", "5"),
        ]
    )

    meta = build_kpi_metadata(df)

    assert meta.total_entries == 5
    assert meta.unique_accounts == 4
    assert meta.income_entries == 2
    assert meta.direct_cost_entries == 1
    assert meta.profit_entries == 1
    assert meta.unclassified_entries == 1


# ---------------------------------------------------------------------------
# Trends
# ---------------------------------------------------------------------------


def test_trends_keep_only_months_with_activity() -> None:
    df = _frame(
        [
            (2025, 1, "4.1", "cc-x", "100"),
            (2025, 1, "5.1", "cc-x", "25"),
            (2025, 4, "4.1", "cc-x", "300"),
            (2025, 6, "5.2.1", "cc-x", "50"),
            (2024, 2, "4.1", "cc-x", "999"),
        ]
    )

    trends = build_trends(df, 2025)

    assert [p.month for p in trends.points] == [1, 4]
    assert trends.months_with_data == 2
    assert trends.points[0].direct_cost_percentage == pytest.approx(25.0)
    assert trends.average_income == Decimal("200")
    assert trends.average_costs == Decimal("12.5")


def test_trends_for_empty_year() -> None:
    trends = build_trends(entries_frame([]), 2025)
    assert trends.points == ()
    assert trends.average_income == 0
