# Ledger Insight - Financial KPI & client analysis for marketing-services businesses
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Ledger Insight
--------------

A Python library and command-line tool that turns the ledger entries of a
marketing-services business into management information: financial KPIs,
monthly trends, per-client profitability and expense comparisons.

Main capabilities:
- account classification by code prefix (income, direct cost, profit),
- cost-center to client attribution, with round-robin assignment of
  orphan cost centers flagged as heuristic,
- cumulative and single-month period aggregation, per client and overall,
- KPI variations vs. the previous month and the same month last year,
- grouping rules (PREMIOS, LOGISTICA, ...) with problematic-margin flags,
- signed expense formulas compared year over year,
- TOML configuration, structured logging (structlog) and a CLI.

Amounts are exact ``decimal.Decimal`` values throughout the engines;
floats only appear in ratios and in display views.


Version: 0.1.0

Usage:
    ledger-insight --help
"""

__all__ = ["accounts", "attribution", "engine", "expenses", "groupings", "reports"]

__version__ = "0.1.0"
