# Ledger Insight - Financial KPI & client analysis for marketing-services businesses
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Grouping rules engine ("directs" diagnostics).

A grouping is a named business line whose income and cost are defined by
explicit lists of account-code prefixes, independently of the generic
income / direct cost classification:

    PREMIOS     income: 4.1.2.1.2.1, 4.1.2.2.1     cost: 5.1.1.2.1, 5.1.1.3.2
    LOGISTICA   income: 4.1.2.1.2.2, 4.1.2.2.2     cost: 5.1.1.2.2, 5.1.1.3.3
    ...

Rules:
- an entry counts toward a grouping's income (resp. cost) if its code starts
  with ANY prefix of the list (a prefix listed twice does not double count),
- groupings are evaluated independently: one entry may feed several
  groupings, which is how shared costs are represented. Totals across
  groupings are therefore not expected to add up to the ledger total,
- a grouping (or cost center) is "problematic" when income <= cost.

The same module produces a per-cost-center breakdown that uses the generic
buckets ("4" income, "5.1" direct cost) rather than the grouping lists.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

import pandas as pd
import structlog

from .accounts import ZERO, ClassificationBucket, classify, matches_any_prefix
from .attribution import Business, CostCenter
from .periods import PeriodWindow, select_window
from .ratios import percentage

logger = structlog.get_logger(__name__)

NO_CLIENT_LABEL = "No client"


@dataclass(frozen=True)
class Grouping:
    """A named set of income and cost account-code prefixes."""

    key: str
    name: str
    income_codes: tuple[str, ...]
    cost_codes: tuple[str, ...]


DEFAULT_GROUPINGS: tuple[Grouping, ...] = (
    Grouping(
        key="premios",
        name="PREMIOS",
        income_codes=("4.1.2.1.2.1", "4.1.2.2.1"),
        cost_codes=("5.1.1.2.1", "5.1.1.3.2"),
    ),
    Grouping(
        key="logistica",
        name="LOGISTICA",
        income_codes=("4.1.2.1.2.2", "4.1.2.2.2"),
        cost_codes=("5.1.1.2.2", "5.1.1.3.3"),
    ),
    Grouping(
        key="plataformas",
        name="PLATAFORMAS",
        income_codes=("4.1.2.1.2.3", "4.1.2.2.3"),
        cost_codes=("5.1.1.2.3", "5.1.1.3.4"),
    ),
    Grouping(
        key="celular",
        name="CELULAR",
        income_codes=("4.1.2.1.2.5", "4.1.2.2.5"),
        cost_codes=("5.1.1.2.6", "5.1.1.3.6"),
    ),
    Grouping(
        key="administracion",
        name="ADMINISTRACION",
        income_codes=("4.1.2.1.2.6", "4.1.2.2.6"),
        cost_codes=("5.1.1.3.7",),
    ),
)


@dataclass(frozen=True)
class GroupingResult:
    """Evaluation of one grouping over a set of entries."""

    key: str
    name: str
    income: Decimal
    cost: Decimal
    margin: Decimal
    margin_pct: float
    is_problematic: bool
    income_codes: tuple[str, ...]
    cost_codes: tuple[str, ...]


@dataclass(frozen=True)
class CostCenterResult:
    """Generic income / direct cost diagnostic for one cost center."""

    id: str
    code: str
    name: str
    business_name: str
    income: Decimal
    cost: Decimal
    margin: Decimal
    is_problematic: bool


@dataclass(frozen=True)
class DirectsReport:
    """Grouping and cost-center diagnostics for a cumulative window."""

    year: int
    month: int
    period: str
    groupings: tuple[GroupingResult, ...]
    cost_centers: tuple[CostCenterResult, ...]

    @property
    def problematic_groupings(self) -> int:
        return sum(1 for g in self.groupings if g.is_problematic)

    @property
    def problematic_cost_centers(self) -> int:
        return sum(1 for cc in self.cost_centers if cc.is_problematic)


def evaluate_grouping(entries: pd.DataFrame, grouping: Grouping) -> GroupingResult:
    """Sum the income and cost of one grouping over all the given entries."""
    income = ZERO
    cost = ZERO
    for row in entries.itertuples(index=False):
        # Not elif: a code may legitimately match both lists.
        if matches_any_prefix(row.account_code, grouping.income_codes):
            income += row.value
        if matches_any_prefix(row.account_code, grouping.cost_codes):
            cost += row.value

    margin = income - cost
    return GroupingResult(
        key=grouping.key,
        name=grouping.name,
        income=income,
        cost=cost,
        margin=margin,
        margin_pct=percentage(margin, income),
        is_problematic=income <= cost,
        income_codes=grouping.income_codes,
        cost_codes=grouping.cost_codes,
    )


def evaluate_groupings(
    entries: pd.DataFrame, groupings: Sequence[Grouping] = DEFAULT_GROUPINGS
) -> list[GroupingResult]:
    """Evaluate every grouping independently, preserving their order.

    The caller selects the window (normally cumulative up to a month); the
    whole frame passed in is evaluated.
    """
    return [evaluate_grouping(entries, g) for g in groupings]


def _business_name(
    cost_center: CostCenter, businesses_by_id: dict[str, Business]
) -> str:
    if cost_center.business is not None:
        return cost_center.business.commercial_name
    if cost_center.business_id is not None and cost_center.business_id in (
        businesses_by_id
    ):
        return businesses_by_id[cost_center.business_id].commercial_name
    return NO_CLIENT_LABEL


def cost_center_breakdown(
    entries: pd.DataFrame,
    cost_centers: Sequence[CostCenter],
    businesses: Sequence[Business] = (),
) -> list[CostCenterResult]:
    """Income / direct cost per active cost center, generic buckets only.

    Every active cost center appears, including those without entries in the
    window (which are then problematic, since 0 <= 0). Entries booked on
    unknown or inactive cost centers are not part of this breakdown.
    """
    businesses_by_id = {b.id: b for b in businesses}
    income_by_cc: dict[str, Decimal] = {}
    cost_by_cc: dict[str, Decimal] = {}
    for row in entries.itertuples(index=False):
        bucket = classify(row.account_code)
        if bucket is ClassificationBucket.INCOME:
            income_by_cc[row.cost_center_id] = (
                income_by_cc.get(row.cost_center_id, ZERO) + row.value
            )
        elif bucket is ClassificationBucket.DIRECT_COST:
            cost_by_cc[row.cost_center_id] = (
                cost_by_cc.get(row.cost_center_id, ZERO) + row.value
            )

    results: list[CostCenterResult] = []
    for cc in cost_centers:
        if not cc.active:
            continue
        income = income_by_cc.get(cc.id, ZERO)
        cost = cost_by_cc.get(cc.id, ZERO)
        results.append(
            CostCenterResult(
                id=cc.id,
                code=cc.code,
                name=cc.name,
                business_name=_business_name(cc, businesses_by_id),
                income=income,
                cost=cost,
                margin=income - cost,
                is_problematic=income <= cost,
            )
        )
    return results


def build_directs_report(
    entries: pd.DataFrame,
    year: int,
    month: int,
    cost_centers: Sequence[CostCenter],
    businesses: Sequence[Business] = (),
    groupings: Sequence[Grouping] = DEFAULT_GROUPINGS,
) -> DirectsReport:
    """Evaluate groupings and the cost-center breakdown, cumulative to month."""
    window = PeriodWindow.cumulative(year, month)
    selected = select_window(entries, window)

    grouping_results = evaluate_groupings(selected, groupings)
    cc_results = cost_center_breakdown(selected, cost_centers, businesses)

    report = DirectsReport(
        year=window.year,
        month=window.month,
        period=window.label,
        groupings=tuple(grouping_results),
        cost_centers=tuple(cc_results),
    )
    logger.info(
        "directs_report_computed",
        period=window.label,
        groupings=len(report.groupings),
        problematic_groupings=report.problematic_groupings,
        cost_centers=len(report.cost_centers),
        problematic_cost_centers=report.problematic_cost_centers,
    )
    return report
