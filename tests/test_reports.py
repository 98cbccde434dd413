from decimal import Decimal
from pathlib import Path

import pandas as pd
import pytest

from ledger_insight.attribution import Business, CostCenter
from ledger_insight.errors import InputError, SourceUnavailable
from ledger_insight.io import entries_frame
from ledger_insight.periods import WindowMode
from ledger_insight.reports import (
    client_report,
    directs_report,
    expense_report,
    kpi_report,
    trend_report,
)
from ledger_insight.sources import FrameSource, fetch_concurrently

BUSINESSES = [
    Business(id="b-1", commercial_name="ALPHA"),
    Business(id="b-2", commercial_name="BETA"),
    Business(id="b-3", commercial_name="OLD", active=False),
]
COST_CENTERS = [
    CostCenter(id="cc-1", code="CC-1", name="Alpha main", business_id="b-1"),
    CostCenter(id="cc-2", code="CC-2", name="Beta main", business_id="b-2"),
    CostCenter(id="cc-9", code="CC-9", name="Closed", active=False),
]


def _source() -> FrameSource:
    rows = [
        (2024, 3, "4.1", "cc-1", "800"),
        (2024, 3, "5.2.1.2.1", "cc-1", "100"),
        (2025, 2, "4.1", "cc-1", "1000"),
        (2025, 2, "5.1.1", "cc-1", "400"),
        (2025, 3, "4.1.2.1.2.1", "cc-2", "500"),
        (2025, 3, "5.1.1.2.1", "cc-2", "700"),
        (2025, 3, "4.1", "cc-orphan", "100"),
        (2025, 3, "5.2.1.2.1", "cc-1", "150"),
    ]
    entries = entries_frame(
        {
            "year": y,
            "month": m,
            "account_code": code,
            "cost_center_id": cc,
            "value": value,
        }
        for y, m, code, cc, value in rows
    )
    return FrameSource(entries, COST_CENTERS, BUSINESSES)


class BrokenSource:
    """Source whose entry fetch always fails."""

    def fetch_entries(self, year: int, month_from: int, month_to: int):
        raise ConnectionError("database unreachable")

    def fetch_cost_centers(self):
        return list(COST_CENTERS)

    def fetch_businesses(self):
        return list(BUSINESSES)


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------


def test_frame_source_filters_by_year_and_month_range() -> None:
    source = _source()

    df = source.fetch_entries(2025, 2, 2)

    assert len(df) == 2
    assert set(df["month"]) == {2}
    assert list(df.index) == [0, 1]


def test_frame_source_reference_data_is_active_only() -> None:
    source = _source()
    assert [c.id for c in source.fetch_cost_centers()] == ["cc-1", "cc-2"]
    assert [b.id for b in source.fetch_businesses()] == ["b-1", "b-2"]


def test_frame_source_rejects_bad_ranges() -> None:
    source = _source()
    with pytest.raises(InputError):
        source.fetch_entries(2025, 3, 2)
    with pytest.raises(InputError):
        source.fetch_entries(2025, 0, 2)


def test_frame_source_normalizes_raw_frames() -> None:
    raw = pd.DataFrame(
        {
            "year": ["2025"],
            "month": ["1"],
            "code": ["4.1"],
            "cost_center": ["cc"],
            "amount": ["10.5"],
        }
    )
    source = FrameSource(raw)
    assert source.entries.loc[0, "value"] == Decimal("10.5")


def test_frame_source_from_csv(tmp_path: Path) -> None:
    entries = tmp_path / "entries.csv"
    entries.write_text(
        "year,month,account_code,cost_center_id,value\n2025,1,4.1,cc-1,5\n",
        encoding="utf-8",
    )
    businesses = tmp_path / "businesses.csv"
    businesses.write_text("id,commercial_name\nb-1,ALPHA\n", encoding="utf-8")

    source = FrameSource.from_csv(entries, businesses_path=businesses)

    assert len(source.fetch_entries(2025, 1, 12)) == 1
    assert source.fetch_cost_centers() == []
    assert [b.commercial_name for b in source.fetch_businesses()] == ["ALPHA"]


def test_fetch_concurrently_returns_results_by_name() -> None:
    results = fetch_concurrently({"a": lambda: 1, "b": lambda: "two"})
    assert results == {"a": 1, "b": "two"}
    assert fetch_concurrently({}) == {}


def test_fetch_concurrently_wraps_failures() -> None:
    def boom():
        raise RuntimeError("boom")

    with pytest.raises(SourceUnavailable) as excinfo:
        fetch_concurrently({"ok": lambda: 1, "bad": boom})
    assert isinstance(excinfo.value.__cause__, RuntimeError)


def test_fetch_concurrently_reraises_input_errors() -> None:
    def bad_input():
        raise InputError("bad month")

    with pytest.raises(InputError):
        fetch_concurrently({"bad": bad_input})


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


def test_client_report_cumulative() -> None:
    report = client_report(_source(), 2025, 3)

    assert report.mode is WindowMode.CUMULATIVE
    ids = [c.business_id for c in report.clients]
    # ALPHA: 1000 + orphan 100; BETA: 500
    assert ids == ["b-1", "b-2"]
    alpha = report.clients[0]
    assert alpha.income == Decimal("1100")
    assert alpha.is_heuristic
    assert report.totals.income == Decimal("1600")


def test_client_report_single_month() -> None:
    report = client_report(_source(), 2025, 3, mode=WindowMode.SINGLE_MONTH)

    assert report.totals.income == Decimal("600")
    assert report.totals.direct_cost == Decimal("700")


def test_kpi_report() -> None:
    kpis = kpi_report(_source(), 2025, 3)

    assert kpis.total_income == Decimal("600")
    assert kpis.previous_income == Decimal("1000")
    assert kpis.income_variation_month == pytest.approx(-40.0)
    assert kpis.year_ago_income == Decimal("800")
    assert kpis.income_variation_year == pytest.approx(-25.0)
    assert kpis.metadata.total_entries == 4


def test_trend_report() -> None:
    trends = trend_report(_source(), 2025)
    assert [p.month for p in trends.points] == [2, 3]


def test_directs_report_counts_problems() -> None:
    report = directs_report(_source(), 2025, 3)

    premios = report.groupings[0]
    assert premios.margin == Decimal("-200")
    assert premios.is_problematic
    assert [cc.id for cc in report.cost_centers] == ["cc-1", "cc-2"]
    assert report.problematic_cost_centers == 1


def test_expense_report() -> None:
    report = expense_report(_source(), 2025, 3)

    personal = report.expenses[0]
    assert personal.current == Decimal("150")
    assert personal.previous == Decimal("100")
    assert personal.difference == Decimal("50")


def test_reports_validate_period_first() -> None:
    with pytest.raises(InputError):
        kpi_report(_source(), 2025, 13)
    with pytest.raises(InputError):
        client_report(_source(), 2025, 0)
    with pytest.raises(InputError):
        trend_report(_source(), 99)


def test_source_failure_fails_whole_report() -> None:
    with pytest.raises(SourceUnavailable):
        client_report(BrokenSource(), 2025, 3)
    with pytest.raises(SourceUnavailable):
        kpi_report(BrokenSource(), 2025, 3)


def test_frame_source_from_csv_reads_cost_centers(tmp_path: Path) -> None:
    entries = tmp_path / "entries.csv"
    entries.write_text(
        "year,month,code,cost_center,amount\n2025,1,4.1,cc-1,5\n",
        encoding="utf-8",
    )
    centers = tmp_path / "cost_centers.csv"
    centers.write_text(
        "id,code,name,active,business_id\ncc-1,CC-001,Main,,b-1\n",
        encoding="utf-8",
    )
    businesses = tmp_path / "businesses.csv"
    businesses.write_text("id,commercial_name\nb-1,ALPHA\n", encoding="utf-8")

    source = FrameSource.from_csv(entries, centers, businesses)
    report = client_report(source, 2025, 1)

    [center] = source.fetch_cost_centers()
    assert center.code == "CC-001"
    assert center.business == Business(id="b-1", commercial_name="ALPHA")
    assert report.clients[0].business_name == "ALPHA"
    assert not report.clients[0].is_heuristic


def test_directs_report_names_deactivated_client() -> None:
    """A cost center keeps its client's name after the client is deactivated."""
    centers = [
        CostCenter(id="cc-3", code="CC-3", name="Legacy", business_id="b-3"),
        CostCenter(id="cc-4", code="CC-4", name="Unlinked"),
    ]
    entries = entries_frame(
        [
            {
                "year": 2025,
                "month": 1,
                "account_code": "4.1",
                "cost_center_id": "cc-3",
                "value": "100",
            }
        ]
    )
    source = FrameSource(entries, centers, BUSINESSES)

    report = directs_report(source, 2025, 1)

    names = {cc.id: cc.business_name for cc in report.cost_centers}
    assert names["cc-3"] == "OLD"
    assert names["cc-4"] == "No client"
