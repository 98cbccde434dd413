# Ledger Insight - Financial KPI & client analysis for marketing-services businesses
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Ratio arithmetic shared by all Ledger Insight reports.

Monetary operands are Decimals; the ratios returned here are floats meant for
display. Division by zero is never an error:

- percentage(x, 0)  → 0.0
- variation(x, 0)   → 100.0 if x > 0, else 0.0
"""

from decimal import Decimal
from typing import Union

Number = Union[Decimal, int]


def percentage(numerator: Number, denominator: Number) -> float:
    """Return ``numerator / denominator * 100`` or 0.0 if the denominator is 0."""
    if denominator == 0:
        return 0.0
    return float(Decimal(numerator) / Decimal(denominator) * 100)


def variation(current: Number, previous: Number) -> float:
    """Relative change from ``previous`` to ``current``, in percent.

    The denominator is ``|previous|`` so that a move from -100 to -50 reads as
    an improvement (+50%).

    Special cases:
        - previous == 0 and current > 0 → 100.0
        - previous == 0 otherwise       → 0.0
    """
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    current_d = Decimal(current)
    previous_d = Decimal(previous)
    return float((current_d - previous_d) / abs(previous_d) * 100)


def average(values: list[float]) -> float:
    """Arithmetic mean, 0.0 for an empty list."""
    if not values:
        return 0.0
    return sum(values) / len(values)
