# Ledger Insight - Financial KPI & client analysis for marketing-services businesses
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Error types for Ledger Insight.

The engine distinguishes two failure categories:

- InputError:        the caller asked for something malformed (year or month
                     out of range, unreadable CSV, invalid formula or rules).
- SourceUnavailable: an external entry/reference source failed. The whole
                     report fails; no partial aggregate is ever returned.

An empty query window is *not* an error: all sums and ratios are 0 and all
lists are empty.
"""


class LedgerInsightError(Exception):
    """Base class for all errors raised by Ledger Insight."""


class InputError(LedgerInsightError, ValueError):
    """Malformed or out-of-range input.

    Subclasses ValueError so callers catching ValueError (as the CLI does
    for configuration problems) keep working.
    """


class SourceUnavailable(LedgerInsightError):
    """An entry or reference source failed while building a report."""


def invalid_month(month: object) -> str:
    """Return message for a month outside 1..12."""
    return f"Invalid month {month!r}: expected an integer between 1 and 12."


def invalid_year(year: object) -> str:
    """Return message for a year outside the supported range."""
    return f"Invalid year {year!r}: expected an integer between 1900 and 9999."
