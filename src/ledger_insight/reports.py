# Ledger Insight - Financial KPI & client analysis for marketing-services businesses
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
High-level report services.

This module sits between the data sources (sources.py) and user-facing
layers such as the CLI. Each function:

1. validates the requested period (InputError on a bad year or month),
2. fetches the independent windows it needs concurrently, failing as a
   whole with SourceUnavailable if any fetch fails,
3. hands the fetched snapshot to the relevant engine and returns its frozen
   result record.

Reports
-------
- client_report:   per-client roll-up (cumulative or single month)
- kpi_report:      month KPIs vs. previous month and same month last year
- trend_report:    twelve independent months of a year
- directs_report:  grouping and cost-center diagnostics (cumulative)
- expense_report:  expense formulas vs. prior year (cumulative)

The services hold no state: every call works on its own snapshot.
"""

from collections.abc import Sequence

from .attribution import attribute_cost_centers
from .engine import (
    ClientReport,
    KpiReport,
    TrendReport,
    aggregate_by_client,
    build_kpis,
    build_trends,
)
from .expenses import (
    DEFAULT_EXPENSE_FORMULAS,
    ExpenseFormula,
    ExpenseReport,
    compare_expenses,
)
from .groupings import DEFAULT_GROUPINGS, DirectsReport, Grouping, build_directs_report
from .periods import (
    PeriodWindow,
    WindowMode,
    previous_month,
    same_month_prior_year,
    validate_year,
)
from .sources import EntrySource, LedgerSource, fetch_concurrently


def client_report(
    source: LedgerSource,
    year: int,
    month: int,
    mode: WindowMode = WindowMode.CUMULATIVE,
) -> ClientReport:
    """Per-client roll-up for a cumulative (default) or single-month window."""
    if mode is WindowMode.CUMULATIVE:
        window = PeriodWindow.cumulative(year, month)
    else:
        window = PeriodWindow.single_month(year, month)

    fetched = fetch_concurrently(
        {
            "entries": lambda: source.fetch_entries(
                window.year, window.first_month, window.month
            ),
            "cost_centers": source.fetch_cost_centers,
            "businesses": source.fetch_businesses,
        }
    )
    entries = fetched["entries"]
    attribution = attribute_cost_centers(
        fetched["cost_centers"],
        fetched["businesses"],
        entries["cost_center_id"],
    )
    return aggregate_by_client(entries, attribution, window)


def kpi_report(source: EntrySource, year: int, month: int) -> KpiReport:
    """KPIs of a month, with previous-month and prior-year comparisons."""
    current = PeriodWindow.single_month(year, month)
    prev_year, prev_month = previous_month(current.year, current.month)
    ago_year, ago_month = same_month_prior_year(current.year, current.month)

    fetched = fetch_concurrently(
        {
            "current": lambda: source.fetch_entries(
                current.year, current.month, current.month
            ),
            "previous": lambda: source.fetch_entries(prev_year, prev_month, prev_month),
            "year_ago": lambda: source.fetch_entries(ago_year, ago_month, ago_month),
        }
    )
    return build_kpis(
        fetched["current"],
        fetched["previous"],
        fetched["year_ago"],
        current.year,
        current.month,
    )


def trend_report(source: EntrySource, year: int) -> TrendReport:
    """Twelve independent single-month aggregations for a bare year."""
    year = validate_year(year)
    fetched = fetch_concurrently({"entries": lambda: source.fetch_entries(year, 1, 12)})
    return build_trends(fetched["entries"], year)


def directs_report(
    source: LedgerSource,
    year: int,
    month: int,
    groupings: Sequence[Grouping] = DEFAULT_GROUPINGS,
) -> DirectsReport:
    """Grouping and cost-center diagnostics, cumulative up to ``month``."""
    window = PeriodWindow.cumulative(year, month)
    fetched = fetch_concurrently(
        {
            "entries": lambda: source.fetch_entries(window.year, 1, window.month),
            "cost_centers": source.fetch_cost_centers,
            "businesses": source.fetch_businesses,
        }
    )
    return build_directs_report(
        fetched["entries"],
        window.year,
        window.month,
        cost_centers=fetched["cost_centers"],
        businesses=fetched["businesses"],
        groupings=groupings,
    )


def expense_report(
    source: EntrySource,
    year: int,
    month: int,
    formulas: Sequence[ExpenseFormula] = DEFAULT_EXPENSE_FORMULAS,
) -> ExpenseReport:
    """Expense formulas up to ``month`` compared with the same months of year - 1."""
    window = PeriodWindow.cumulative(year, month)
    previous_year = validate_year(window.year - 1)
    fetched = fetch_concurrently(
        {
            "current": lambda: source.fetch_entries(window.year, 1, window.month),
            "previous": lambda: source.fetch_entries(previous_year, 1, window.month),
        }
    )
    return compare_expenses(
        fetched["current"],
        fetched["previous"],
        window.year,
        window.month,
        formulas=formulas,
    )
