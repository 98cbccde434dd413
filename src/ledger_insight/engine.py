# Ledger Insight - Financial KPI & client analysis for marketing-services businesses
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Core period aggregation engine for Ledger Insight.

This module folds classified and attributed ledger entries into the three
period-based reports of the application.

1. Client roll-up
   ---------------
   ``aggregate_by_client()`` groups the entries of a PeriodWindow by the
   business their cost center is attributed to, sums every classification
   bucket per client and per month, and derives:

   - contribution margin      = income - direct cost
   - contribution margin (%)  = contribution margin / income * 100
   - cost percentage          = direct cost / income * 100
   - share of total (%)       = client metric / sum over all clients * 100

   Clients are sorted by descending income. Totals are the sums over the
   returned clients, so ``sum(client.income) == totals.income`` always holds.

2. KPI block
   ----------
   ``build_kpis()`` compares the target month with the previous calendar
   month and with the same month one year earlier. Each of the three windows
   is an independent single-month aggregation.

3. Monthly trends
   ---------------
   ``build_trends()`` computes each of the twelve months of a year as an
   independent single-month aggregation, keeping only months with activity.

Notes
-----
All amounts are Decimals; ratios are floats computed from Decimal operands
(see ratios.py). Every function is a pure reduction over its inputs: local
accumulators never escape a call and results are frozen dataclasses.
"""

from collections import defaultdict
from collections.abc import Mapping
from dataclasses import dataclass, replace
from decimal import Decimal

import pandas as pd
import structlog

from .accounts import (
    ZERO,
    BucketTotals,
    ClassificationBucket,
    bucket_totals,
    classify,
    classify_entries,
)
from .attribution import CostCenterAttribution
from .periods import (
    PeriodWindow,
    WindowMode,
    period_label,
    previous_month,
    same_month_prior_year,
    select_window,
)
from .ratios import average, percentage, variation

logger = structlog.get_logger(__name__)

_KPI_BUCKETS = (
    ClassificationBucket.INCOME,
    ClassificationBucket.DIRECT_COST,
    ClassificationBucket.PROFIT,
)


# ---------------------------------------------------------------------------
# Result records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MonthlyPoint:
    """Classified sums for one month of a series."""

    month: int
    period: str
    income: Decimal
    direct_cost: Decimal
    profit: Decimal
    contribution_margin: Decimal
    cost_percentage: float


@dataclass(frozen=True)
class ClientSummary:
    """
    Roll-up of one client (business) over a period window.

    Attributes
    ----------
    business_id, business_name :
        Identity of the client, as resolved by the attribution step.
    income, direct_cost, profit :
        Bucket sums over the window.
    contribution_margin :
        income - direct_cost.
    contribution_margin_pct, cost_percentage :
        Ratios to income, 0.0 when income is 0.
    cost_centers :
        Sorted display names of the cost centers that contributed entries.
    is_heuristic :
        True if at least one of those cost centers was attributed by the
        orphan round-robin fallback rather than a real link.
    monthly :
        Months with activity, ascending.
    percentage_of_total_income / _direct_cost / _profit :
        Share of the client in the sum over all clients, 0.0 if that sum is 0.
    """

    business_id: str
    business_name: str
    income: Decimal
    direct_cost: Decimal
    profit: Decimal
    contribution_margin: Decimal
    contribution_margin_pct: float
    cost_percentage: float
    cost_centers: tuple[str, ...]
    is_heuristic: bool
    monthly: tuple[MonthlyPoint, ...]
    percentage_of_total_income: float = 0.0
    percentage_of_total_direct_cost: float = 0.0
    percentage_of_total_profit: float = 0.0

    @property
    def cost_centers_count(self) -> int:
        return len(self.cost_centers)


@dataclass(frozen=True)
class ClientTotals:
    """Totals over all clients of a ClientReport."""

    income: Decimal
    direct_cost: Decimal
    profit: Decimal
    contribution_margin: Decimal
    average_cost_percentage: float


@dataclass(frozen=True)
class ClientReport:
    """Client roll-up for one period window."""

    year: int
    month: int
    mode: WindowMode
    period: str
    clients: tuple[ClientSummary, ...]
    totals: ClientTotals
    monthly_series: tuple[MonthlyPoint, ...]

    @property
    def total_clients(self) -> int:
        return len(self.clients)


@dataclass(frozen=True)
class KpiMetadata:
    """Raw counts over the current window, classified or not."""

    total_entries: int
    unique_accounts: int
    income_entries: int
    direct_cost_entries: int
    profit_entries: int
    unclassified_entries: int


@dataclass(frozen=True)
class KpiReport:
    """Global KPIs for one month with month-over-month and year-over-year
    comparisons."""

    year: int
    month: int
    period: str

    total_income: Decimal
    total_costs: Decimal
    total_profit: Decimal
    cost_percentage: float
    profit_margin: float

    previous_income: Decimal
    previous_costs: Decimal
    previous_profit: Decimal
    income_variation_month: float
    costs_variation_month: float
    profit_variation_month: float

    year_ago_income: Decimal
    year_ago_costs: Decimal
    year_ago_profit: Decimal
    income_variation_year: float
    costs_variation_year: float
    profit_variation_year: float

    metadata: KpiMetadata


@dataclass(frozen=True)
class TrendPoint:
    """One month of the yearly trend."""

    month: int
    period: str
    income: Decimal
    costs: Decimal
    profit: Decimal
    direct_cost_percentage: float


@dataclass(frozen=True)
class TrendReport:
    """Independent single-month aggregations for the twelve months of a year."""

    year: int
    points: tuple[TrendPoint, ...]
    average_income: Decimal
    average_costs: Decimal
    average_profit: Decimal

    @property
    def months_with_data(self) -> int:
        return len(self.points)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _new_buckets() -> dict[ClassificationBucket, Decimal]:
    return {bucket: ZERO for bucket in _KPI_BUCKETS}


def _has_activity(buckets: Mapping[ClassificationBucket, Decimal]) -> bool:
    return any(buckets[b] != 0 for b in _KPI_BUCKETS)


def _monthly_point(
    year: int, month: int, buckets: Mapping[ClassificationBucket, Decimal]
) -> MonthlyPoint:
    income = buckets[ClassificationBucket.INCOME]
    direct_cost = buckets[ClassificationBucket.DIRECT_COST]
    return MonthlyPoint(
        month=month,
        period=period_label(year, month),
        income=income,
        direct_cost=direct_cost,
        profit=buckets[ClassificationBucket.PROFIT],
        contribution_margin=income - direct_cost,
        cost_percentage=percentage(direct_cost, income),
    )


def _decimal_average(values: list[Decimal]) -> Decimal:
    if not values:
        return ZERO
    return sum(values, ZERO) / len(values)


# ---------------------------------------------------------------------------
# Client roll-up
# ---------------------------------------------------------------------------


def aggregate_by_client(
    entries: pd.DataFrame,
    attribution: Mapping[str, CostCenterAttribution],
    window: PeriodWindow,
) -> ClientReport:
    """Aggregate ledger entries per client for a period window.

    Steps:
        1. Select the entries of the window (cumulative or single-month).
        2. For each entry, resolve its client through ``attribution`` and add
           its value to the client's bucket, both overall and for its month.
        3. Derive margins and ratios per client and per month.
        4. Sort clients by descending income and compute their share of the
           totals.

    Args:
        entries: Normalized ledger entries (see io.normalize_entries).
        attribution: Total mapping cost-center id → attribution, as returned
            by ``attribution.attribute_cost_centers`` for the same entries.
        window: The PeriodWindow to aggregate.

    Returns:
        A ClientReport. An empty window yields no clients, zero totals and an
        empty monthly series.

    Raises:
        ValueError: if an entry's cost center is missing from ``attribution``.
    """
    selected = select_window(entries, window)

    names: dict[str, str] = {}
    totals_by_client: dict[str, dict[ClassificationBucket, Decimal]] = {}
    months_by_client: dict[str, dict[int, dict[ClassificationBucket, Decimal]]] = {}
    cost_centers_by_client: dict[str, set[str]] = defaultdict(set)
    heuristic_clients: set[str] = set()
    global_months: dict[int, dict[ClassificationBucket, Decimal]] = defaultdict(
        _new_buckets
    )

    for row in selected.itertuples(index=False):
        info = attribution.get(row.cost_center_id)
        if info is None:
            raise ValueError(
                f"Cost center {row.cost_center_id!r} has no attribution; "
                "build the attribution from the same entries."
            )

        client_id = info.business_id
        if client_id not in totals_by_client:
            names[client_id] = info.business_name
            totals_by_client[client_id] = _new_buckets()
            months_by_client[client_id] = defaultdict(_new_buckets)

        cost_centers_by_client[client_id].add(info.cost_center_name)
        if info.is_heuristic:
            heuristic_clients.add(client_id)

        bucket = classify(row.account_code)
        if bucket is ClassificationBucket.UNCLASSIFIED:
            continue
        month = int(row.month)
        totals_by_client[client_id][bucket] += row.value
        months_by_client[client_id][month][bucket] += row.value
        global_months[month][bucket] += row.value

    months = range(window.first_month, window.month + 1)

    clients: list[ClientSummary] = []
    for client_id, buckets in totals_by_client.items():
        income = buckets[ClassificationBucket.INCOME]
        direct_cost = buckets[ClassificationBucket.DIRECT_COST]
        margin = income - direct_cost
        client_months = months_by_client[client_id]
        monthly = tuple(
            _monthly_point(window.year, m, client_months[m])
            for m in months
            if m in client_months and _has_activity(client_months[m])
        )
        clients.append(
            ClientSummary(
                business_id=client_id,
                business_name=names[client_id],
                income=income,
                direct_cost=direct_cost,
                profit=buckets[ClassificationBucket.PROFIT],
                contribution_margin=margin,
                contribution_margin_pct=percentage(margin, income),
                cost_percentage=percentage(direct_cost, income),
                cost_centers=tuple(sorted(cost_centers_by_client[client_id])),
                is_heuristic=client_id in heuristic_clients,
                monthly=monthly,
            )
        )

    clients.sort(key=lambda c: (-c.income, c.business_name, c.business_id))

    total_income = sum((c.income for c in clients), ZERO)
    total_direct_cost = sum((c.direct_cost for c in clients), ZERO)
    total_profit = sum((c.profit for c in clients), ZERO)

    # Shares of the totals need the totals, hence a second pass.
    clients = [
        replace(
            c,
            percentage_of_total_income=percentage(c.income, total_income),
            percentage_of_total_direct_cost=percentage(
                c.direct_cost, total_direct_cost
            ),
            percentage_of_total_profit=percentage(c.profit, total_profit),
        )
        for c in clients
    ]

    totals = ClientTotals(
        income=total_income,
        direct_cost=total_direct_cost,
        profit=total_profit,
        contribution_margin=total_income - total_direct_cost,
        average_cost_percentage=average([c.cost_percentage for c in clients]),
    )

    # Dense over the window, but empty when nothing was selected.
    monthly_series: tuple[MonthlyPoint, ...] = ()
    if not selected.empty:
        monthly_series = tuple(
            _monthly_point(window.year, m, global_months[m]) for m in months
        )

    logger.info(
        "client_report_computed",
        period=window.label,
        mode=window.mode.value,
        entries=len(selected),
        clients=len(clients),
    )

    return ClientReport(
        year=window.year,
        month=window.month,
        mode=window.mode,
        period=window.label,
        clients=tuple(clients),
        totals=totals,
        monthly_series=monthly_series,
    )


def aggregate_totals(entries: pd.DataFrame, window: PeriodWindow) -> BucketTotals:
    """Global bucket sums over a period window (no client attribution)."""
    return bucket_totals(select_window(entries, window))


# ---------------------------------------------------------------------------
# KPI block
# ---------------------------------------------------------------------------


def build_kpi_metadata(entries: pd.DataFrame) -> KpiMetadata:
    """Count entries per bucket; unclassified entries are counted too."""
    counts = {bucket: 0 for bucket in ClassificationBucket}
    for bucket in classify_entries(entries)["bucket"]:
        counts[bucket] += 1
    return KpiMetadata(
        total_entries=len(entries),
        unique_accounts=int(entries["account_code"].nunique()),
        income_entries=counts[ClassificationBucket.INCOME],
        direct_cost_entries=counts[ClassificationBucket.DIRECT_COST],
        profit_entries=counts[ClassificationBucket.PROFIT],
        unclassified_entries=counts[ClassificationBucket.UNCLASSIFIED],
    )


def build_kpis(
    current_entries: pd.DataFrame,
    previous_entries: pd.DataFrame,
    year_ago_entries: pd.DataFrame,
    year: int,
    month: int,
) -> KpiReport:
    """
    Build the KPI block for a month.

    The three entry frames may be the same snapshot or three separate
    fetches; each one is narrowed to its own single-month window:

    - current:   (year, month)
    - previous:  previous calendar month (January wraps to December of
                 year - 1)
    - year ago:  (year - 1, month)

    Parameters
    ----------
    current_entries, previous_entries, year_ago_entries :
        Normalized ledger entries.
    year, month :
        Target period.

    Returns
    -------
    KpiReport
    """
    current_window = PeriodWindow.single_month(year, month)
    previous_window = PeriodWindow.single_month(*previous_month(year, month))
    year_ago_window = PeriodWindow.single_month(*same_month_prior_year(year, month))

    current_selected = select_window(current_entries, current_window)
    current = bucket_totals(current_selected)
    previous = aggregate_totals(previous_entries, previous_window)
    year_ago = aggregate_totals(year_ago_entries, year_ago_window)

    return KpiReport(
        year=current_window.year,
        month=current_window.month,
        period=current_window.label,
        total_income=current.income,
        total_costs=current.direct_cost,
        total_profit=current.profit,
        cost_percentage=percentage(current.direct_cost, current.income),
        profit_margin=percentage(current.profit, current.income),
        previous_income=previous.income,
        previous_costs=previous.direct_cost,
        previous_profit=previous.profit,
        income_variation_month=variation(current.income, previous.income),
        costs_variation_month=variation(current.direct_cost, previous.direct_cost),
        profit_variation_month=variation(current.profit, previous.profit),
        year_ago_income=year_ago.income,
        year_ago_costs=year_ago.direct_cost,
        year_ago_profit=year_ago.profit,
        income_variation_year=variation(current.income, year_ago.income),
        costs_variation_year=variation(current.direct_cost, year_ago.direct_cost),
        profit_variation_year=variation(current.profit, year_ago.profit),
        metadata=build_kpi_metadata(current_selected),
    )


# ---------------------------------------------------------------------------
# Monthly trends
# ---------------------------------------------------------------------------


def build_trends(entries: pd.DataFrame, year: int) -> TrendReport:
    """Compute the twelve months of a year independently.

    Months without income, direct cost or profit are left out of the
    points; averages are taken over the months that remain.
    """
    points: list[TrendPoint] = []
    for month in range(1, 13):
        window = PeriodWindow.single_month(year, month)
        totals = aggregate_totals(entries, window)
        if not totals.has_activity():
            continue
        points.append(
            TrendPoint(
                month=month,
                period=window.label,
                income=totals.income,
                costs=totals.direct_cost,
                profit=totals.profit,
                direct_cost_percentage=percentage(totals.direct_cost, totals.income),
            )
        )

    return TrendReport(
        year=int(year),
        points=tuple(points),
        average_income=_decimal_average([p.income for p in points]),
        average_costs=_decimal_average([p.costs for p in points]),
        average_profit=_decimal_average([p.profit for p in points]),
    )
