# Ledger Insight - Financial KPI & client analysis for marketing-services businesses
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Period helpers for Ledger Insight.

Ledger entries are dated by (year, month) only. Reports select them through
one of two explicit window modes:

- cumulative:    every month from January up to the target month of the
                 target year (year-to-date),
- single-month:  exactly the target year and month.

This module also derives the comparison periods used by the KPI report
(previous calendar month, same month one year earlier) and validates the
year/month parameters received from callers.
"""

from dataclasses import dataclass
from enum import Enum

import pandas as pd

from .errors import InputError, invalid_month, invalid_year

MIN_YEAR = 1900
MAX_YEAR = 9999


class WindowMode(str, Enum):
    """How a PeriodWindow selects months."""

    CUMULATIVE = "cumulative"
    SINGLE_MONTH = "single_month"


def validate_year(year: object) -> int:
    """Return the year as an int, or raise InputError if out of range."""
    if isinstance(year, bool):
        raise InputError(invalid_year(year))
    try:
        value = int(str(year).strip())
    except (TypeError, ValueError) as exc:
        raise InputError(invalid_year(year)) from exc
    if not MIN_YEAR <= value <= MAX_YEAR:
        raise InputError(invalid_year(year))
    return value


def validate_month(month: object) -> int:
    """Return the month as an int, or raise InputError if not in 1..12.

    Months are never wrapped (13 is rejected, not turned into January).
    """
    if isinstance(month, bool):
        raise InputError(invalid_month(month))
    try:
        value = int(str(month).strip())
    except (TypeError, ValueError) as exc:
        raise InputError(invalid_month(month)) from exc
    if not 1 <= value <= 12:
        raise InputError(invalid_month(month))
    return value


@dataclass(frozen=True)
class PeriodWindow:
    """A (year, month) selection with its mode and a human-readable label."""

    year: int
    month: int
    mode: WindowMode

    @classmethod
    def cumulative(cls, year: object, month: object) -> "PeriodWindow":
        """Months 1..month of the given year."""
        return cls(validate_year(year), validate_month(month), WindowMode.CUMULATIVE)

    @classmethod
    def single_month(cls, year: object, month: object) -> "PeriodWindow":
        """Exactly the given year and month."""
        return cls(
            validate_year(year), validate_month(month), WindowMode.SINGLE_MONTH
        )

    @property
    def first_month(self) -> int:
        return 1 if self.mode is WindowMode.CUMULATIVE else self.month

    @property
    def label(self) -> str:
        """Period label in the 'YYYY-MM' form used by every report."""
        return period_label(self.year, self.month)

    def contains(self, year: int, month: int) -> bool:
        return year == self.year and self.first_month <= month <= self.month


def period_label(year: int, month: int) -> str:
    """Return 'YYYY-MM'."""
    return f"{year}-{month:02d}"


def previous_month(year: int, month: int) -> tuple[int, int]:
    """Previous calendar month; January wraps to December of the prior year."""
    month = validate_month(month)
    year = validate_year(year)
    if month == 1:
        return year - 1, 12
    return year, month - 1


def same_month_prior_year(year: int, month: int) -> tuple[int, int]:
    """Same month one year earlier."""
    return validate_year(year) - 1, validate_month(month)


def select_window(entries: pd.DataFrame, window: PeriodWindow) -> pd.DataFrame:
    """
    Filter normalized entries to keep only the rows inside the window.

    Parameters
    ----------
    entries:
        DataFrame with at least integer 'year' and 'month' columns.
    window:
        Cumulative or single-month PeriodWindow (bounds inclusive).

    Returns
    -------
    pandas.DataFrame
        Filtered copy of the entries.
    """
    if entries.empty:
        return entries.copy()
    mask = (
        (entries["year"] == window.year)
        & (entries["month"] >= window.first_month)
        & (entries["month"] <= window.month)
    )
    return entries.loc[mask].copy()
