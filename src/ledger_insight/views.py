# Ledger Insight - Financial KPI & client analysis for marketing-services businesses
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
View utilities for Ledger Insight.

The engines return frozen result records holding exact ``Decimal`` amounts.
This module turns those records into pandas DataFrames ready for display
(``DataFrame.to_string``) or CSV export. Amounts are converted to floats
and rounded to the requested number of decimals here, and only here: no
view value is ever fed back into a computation.

Available views:

- clients_to_dataframe:          one row per client
- client_monthly_to_dataframe:   global monthly series of a client report
- kpis_to_dataframe:             one row per KPI (current / previous / year ago)
- trends_to_dataframe:           one row per month of a trend report
- groupings_to_dataframe:        grouping diagnostics
- cost_centers_to_dataframe:     cost-center diagnostics
- expenses_to_dataframe:         expense formulas vs. prior year
"""

from decimal import Decimal
from typing import Union

import pandas as pd

from .engine import ClientReport, KpiReport, TrendReport
from .expenses import ExpenseReport
from .groupings import DirectsReport

Number = Union[Decimal, float, int]

CLIENT_COLUMNS = [
    "business_id",
    "business_name",
    "income",
    "direct_cost",
    "profit",
    "contribution_margin",
    "contribution_margin_pct",
    "cost_percentage",
    "pct_of_income",
    "pct_of_direct_cost",
    "pct_of_profit",
    "cost_centers_count",
    "is_heuristic",
]
MONTHLY_COLUMNS = [
    "period",
    "income",
    "direct_cost",
    "profit",
    "contribution_margin",
    "cost_percentage",
]
KPI_COLUMNS = [
    "key",
    "label",
    "current",
    "previous_month",
    "variation_month",
    "year_ago",
    "variation_year",
]
TREND_COLUMNS = ["period", "income", "costs", "profit", "direct_cost_percentage"]
GROUPING_COLUMNS = [
    "key",
    "name",
    "income",
    "cost",
    "margin",
    "margin_pct",
    "is_problematic",
]
COST_CENTER_COLUMNS = [
    "code",
    "name",
    "business_name",
    "income",
    "cost",
    "margin",
    "is_problematic",
]
EXPENSE_COLUMNS = [
    "key",
    "name",
    "expression",
    "current",
    "previous",
    "difference",
    "pct_of_income",
]


def _r(value: Number, decimals: int) -> float:
    """Display rounding: float conversion happens at the view boundary."""
    return round(float(value), decimals)


def clients_to_dataframe(report: ClientReport, decimals: int = 2) -> pd.DataFrame:
    """
    Convert a client report into a DataFrame, one row per client.

    Rows keep the report order (income descending). An empty report yields
    an empty DataFrame with the expected columns.
    """
    if not report.clients:
        return pd.DataFrame(columns=CLIENT_COLUMNS)

    rows: list[dict[str, object]] = []
    for c in report.clients:
        rows.append(
            {
                "business_id": c.business_id,
                "business_name": c.business_name,
                "income": _r(c.income, decimals),
                "direct_cost": _r(c.direct_cost, decimals),
                "profit": _r(c.profit, decimals),
                "contribution_margin": _r(c.contribution_margin, decimals),
                "contribution_margin_pct": _r(c.contribution_margin_pct, decimals),
                "cost_percentage": _r(c.cost_percentage, decimals),
                "pct_of_income": _r(c.percentage_of_total_income, decimals),
                "pct_of_direct_cost": _r(
                    c.percentage_of_total_direct_cost, decimals
                ),
                "pct_of_profit": _r(c.percentage_of_total_profit, decimals),
                "cost_centers_count": c.cost_centers_count,
                "is_heuristic": c.is_heuristic,
            }
        )
    return pd.DataFrame(rows)[CLIENT_COLUMNS]


def client_monthly_to_dataframe(
    report: ClientReport, decimals: int = 2
) -> pd.DataFrame:
    """Global monthly series of a client report."""
    rows = [
        {
            "period": p.period,
            "income": _r(p.income, decimals),
            "direct_cost": _r(p.direct_cost, decimals),
            "profit": _r(p.profit, decimals),
            "contribution_margin": _r(p.contribution_margin, decimals),
            "cost_percentage": _r(p.cost_percentage, decimals),
        }
        for p in report.monthly_series
    ]
    return pd.DataFrame(rows, columns=MONTHLY_COLUMNS)


def kpis_to_dataframe(report: KpiReport, decimals: int = 2) -> pd.DataFrame:
    """
    Convert a KPI report into a DataFrame with one row per KPI.

    Ratio KPIs (cost percentage, profit margin) have no comparison columns;
    those cells are NaN.
    """
    nan = float("nan")
    rows: list[dict[str, object]] = [
        {
            "key": "income",
            "label": "Total income",
            "current": _r(report.total_income, decimals),
            "previous_month": _r(report.previous_income, decimals),
            "variation_month": _r(report.income_variation_month, decimals),
            "year_ago": _r(report.year_ago_income, decimals),
            "variation_year": _r(report.income_variation_year, decimals),
        },
        {
            "key": "costs",
            "label": "Total direct costs",
            "current": _r(report.total_costs, decimals),
            "previous_month": _r(report.previous_costs, decimals),
            "variation_month": _r(report.costs_variation_month, decimals),
            "year_ago": _r(report.year_ago_costs, decimals),
            "variation_year": _r(report.costs_variation_year, decimals),
        },
        {
            "key": "profit",
            "label": "Total profit",
            "current": _r(report.total_profit, decimals),
            "previous_month": _r(report.previous_profit, decimals),
            "variation_month": _r(report.profit_variation_month, decimals),
            "year_ago": _r(report.year_ago_profit, decimals),
            "variation_year": _r(report.profit_variation_year, decimals),
        },
        {
            "key": "cost_percentage",
            "label": "Direct cost % of income",
            "current": _r(report.cost_percentage, decimals),
            "previous_month": nan,
            "variation_month": nan,
            "year_ago": nan,
            "variation_year": nan,
        },
        {
            "key": "profit_margin",
            "label": "Profit % of income",
            "current": _r(report.profit_margin, decimals),
            "previous_month": nan,
            "variation_month": nan,
            "year_ago": nan,
            "variation_year": nan,
        },
    ]
    return pd.DataFrame(rows)[KPI_COLUMNS]


def trends_to_dataframe(report: TrendReport, decimals: int = 2) -> pd.DataFrame:
    """One row per month with activity, in calendar order."""
    rows = [
        {
            "period": p.period,
            "income": _r(p.income, decimals),
            "costs": _r(p.costs, decimals),
            "profit": _r(p.profit, decimals),
            "direct_cost_percentage": _r(p.direct_cost_percentage, decimals),
        }
        for p in report.points
    ]
    return pd.DataFrame(rows, columns=TREND_COLUMNS)


def groupings_to_dataframe(report: DirectsReport, decimals: int = 2) -> pd.DataFrame:
    rows = [
        {
            "key": g.key,
            "name": g.name,
            "income": _r(g.income, decimals),
            "cost": _r(g.cost, decimals),
            "margin": _r(g.margin, decimals),
            "margin_pct": _r(g.margin_pct, decimals),
            "is_problematic": g.is_problematic,
        }
        for g in report.groupings
    ]
    return pd.DataFrame(rows, columns=GROUPING_COLUMNS)


def cost_centers_to_dataframe(
    report: DirectsReport, decimals: int = 2
) -> pd.DataFrame:
    rows = [
        {
            "code": cc.code,
            "name": cc.name,
            "business_name": cc.business_name,
            "income": _r(cc.income, decimals),
            "cost": _r(cc.cost, decimals),
            "margin": _r(cc.margin, decimals),
            "is_problematic": cc.is_problematic,
        }
        for cc in report.cost_centers
    ]
    return pd.DataFrame(rows, columns=COST_CENTER_COLUMNS)


def expenses_to_dataframe(report: ExpenseReport, decimals: int = 2) -> pd.DataFrame:
    """One row per expense formula, in formula order."""
    rows = [
        {
            "key": e.key,
            "name": e.name,
            "expression": e.expression,
            "current": _r(e.current, decimals),
            "previous": _r(e.previous, decimals),
            "difference": _r(e.difference, decimals),
            "pct_of_income": _r(e.percentage_of_income, decimals),
        }
        for e in report.expenses
    ]
    return pd.DataFrame(rows, columns=EXPENSE_COLUMNS)
