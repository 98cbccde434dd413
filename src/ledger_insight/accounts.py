# Ledger Insight - Financial KPI & client analysis for marketing-services businesses
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Account classification for Ledger Insight.

Account codes are dot-delimited hierarchical strings (e.g. "5.1.1.2.1").
The generic KPIs only care about three top-level families, recognised by
prefix:

    "4"    → income
    "5.1"  → direct cost
    "6"    → profit

Everything else is "unclassified": such entries never raise, they are simply
left out of the classified sums while still being counted in raw metadata.

Responsibilities:
- Classify a single account code (pure function of the string).
- Provide the shared "starts with any prefix" matcher used by the grouping
  and expense formula engines.
- Sum a set of normalized ledger entries per classification bucket.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

import pandas as pd
import structlog

logger = structlog.get_logger(__name__)

ZERO = Decimal("0")


class ClassificationBucket(str, Enum):
    """Semantic bucket derived from an account code prefix."""

    INCOME = "income"
    DIRECT_COST = "direct_cost"
    PROFIT = "profit"
    UNCLASSIFIED = "unclassified"


# Ordered rule table: the first matching prefix wins, so a more specific
# prefix must always be listed before a broader one sharing its root.
CLASSIFICATION_RULES: tuple[tuple[str, ClassificationBucket], ...] = (
    ("4", ClassificationBucket.INCOME),
    ("5.1", ClassificationBucket.DIRECT_COST),
    ("6", ClassificationBucket.PROFIT),
)


def classify(account_code: str) -> ClassificationBucket:
    """Return the classification bucket of an account code.

    Examples:
        '4.1.2.1.2.1' → INCOME
        '5.1.1.2'     → DIRECT_COST
        '5.2.1.4'     → UNCLASSIFIED
        '6'           → PROFIT

    Args:
        account_code: Raw account code (surrounding whitespace is ignored).

    Returns:
        The bucket of the first matching rule, or UNCLASSIFIED.
    """
    code = str(account_code).strip()
    for prefix, bucket in CLASSIFICATION_RULES:
        if code.startswith(prefix):
            return bucket
    return ClassificationBucket.UNCLASSIFIED


def matches_any_prefix(account_code: str, prefixes: Iterable[str]) -> bool:
    """Return True if the account code starts with at least one prefix.

    A prefix listed several times still matches only once: the result is a
    membership test, not a count.
    """
    code = str(account_code).strip()
    return any(code.startswith(p) for p in prefixes)


@dataclass(frozen=True)
class BucketTotals:
    """Sums of entry values per classification bucket.

    Attributes:
        income: Sum of values on "4*" accounts.
        direct_cost: Sum of values on "5.1*" accounts.
        profit: Sum of values on "6*" accounts.
        unclassified: Sum of values on any other account.
        entries: Number of entries that were folded (all buckets).
    """

    income: Decimal = ZERO
    direct_cost: Decimal = ZERO
    profit: Decimal = ZERO
    unclassified: Decimal = ZERO
    entries: int = 0

    @property
    def contribution_margin(self) -> Decimal:
        return self.income - self.direct_cost

    def has_activity(self) -> bool:
        """True if any classified bucket is non-zero."""
        return self.income != 0 or self.direct_cost != 0 or self.profit != 0


def bucket_totals(entries: pd.DataFrame) -> BucketTotals:
    """Sum normalized ledger entries per classification bucket.

    Args:
        entries: DataFrame with at least 'account_code' and 'value'
            (Decimal) columns, as produced by ``io.normalize_entries``.

    Returns:
        A BucketTotals instance. An empty frame yields all-zero totals.
    """
    sums = {bucket: ZERO for bucket in ClassificationBucket}
    count = 0
    for row in entries.itertuples(index=False):
        sums[classify(row.account_code)] += row.value
        count += 1

    if sums[ClassificationBucket.UNCLASSIFIED] != 0:
        logger.debug(
            "unclassified_entries_excluded",
            amount=str(sums[ClassificationBucket.UNCLASSIFIED]),
        )

    return BucketTotals(
        income=sums[ClassificationBucket.INCOME],
        direct_cost=sums[ClassificationBucket.DIRECT_COST],
        profit=sums[ClassificationBucket.PROFIT],
        unclassified=sums[ClassificationBucket.UNCLASSIFIED],
        entries=count,
    )


def classify_entries(entries: pd.DataFrame) -> pd.DataFrame:
    """Return a copy of the entries with an added 'bucket' column.

    The column holds ``ClassificationBucket`` members, which makes it easy to
    count or filter entries per bucket downstream (e.g. KPI metadata).
    """
    out = entries.copy()
    out["bucket"] = [classify(code) for code in out["account_code"]]
    return out
