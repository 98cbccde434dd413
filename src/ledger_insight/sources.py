# Ledger Insight - Financial KPI & client analysis for marketing-services businesses
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Data sources consumed by the report services.

The engine never talks to a database directly. It consumes two kinds of
read-only sources:

- EntrySource:     ledger entries for a year and a month range, already
                   normalized (see io.normalize_entries),
- ReferenceSource: active cost centers (joined with their linked business)
                   and active businesses.

``FrameSource`` implements both on top of in-memory DataFrames / lists,
typically loaded from CSV files with ``FrameSource.from_csv``. Any other
backend (SQL, HTTP API) only needs to provide the same three methods.

``fetch_concurrently`` runs independent fetches in parallel. If any of them
fails, the whole call fails with SourceUnavailable: callers never receive a
partially populated result.
"""

from collections.abc import Callable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from typing import Optional, Protocol, TypeVar

import pandas as pd
import structlog

from .attribution import Business, CostCenter
from .errors import InputError, SourceUnavailable
from .io import (
    PathLike,
    empty_entries,
    normalize_entries,
    read_businesses,
    read_cost_centers,
    read_ledger_entries,
)
from .periods import validate_month, validate_year

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class EntrySource(Protocol):
    def fetch_entries(self, year: int, month_from: int, month_to: int) -> pd.DataFrame:
        """Return normalized entries of ``year`` for months month_from..month_to."""
        ...


class ReferenceSource(Protocol):
    def fetch_cost_centers(self) -> list[CostCenter]:
        """Return the active cost centers, joined with their linked business."""
        ...

    def fetch_businesses(self) -> list[Business]:
        """Return the active businesses, in stable order."""
        ...


class LedgerSource(EntrySource, ReferenceSource, Protocol):
    """A source providing both entries and reference data."""


@dataclass
class FrameSource:
    """In-memory entry and reference source."""

    entries: pd.DataFrame = field(default_factory=empty_entries)
    cost_centers: Sequence[CostCenter] = ()
    businesses: Sequence[Business] = ()

    def __post_init__(self) -> None:
        self.entries = normalize_entries(self.entries)

    @classmethod
    def from_csv(
        cls,
        entries_path: PathLike,
        cost_centers_path: Optional[PathLike] = None,
        businesses_path: Optional[PathLike] = None,
    ) -> "FrameSource":
        """Build a source from CSV files; reference files are optional."""
        return cls(
            entries=read_ledger_entries(entries_path),
            cost_centers=read_cost_centers(cost_centers_path)
            if cost_centers_path is not None
            else [],
            businesses=read_businesses(businesses_path)
            if businesses_path is not None
            else [],
        )

    def fetch_entries(self, year: int, month_from: int, month_to: int) -> pd.DataFrame:
        year = validate_year(year)
        month_from = validate_month(month_from)
        month_to = validate_month(month_to)
        if month_from > month_to:
            raise InputError(
                f"Invalid month range {month_from}..{month_to}: start after end."
            )
        df = self.entries
        mask = (
            (df["year"] == year)
            & (df["month"] >= month_from)
            & (df["month"] <= month_to)
        )
        return df.loc[mask].reset_index(drop=True)

    def fetch_cost_centers(self) -> list[CostCenter]:
        """Active cost centers, each joined with its linked business.

        The join looks at every business, active or not: a cost center keeps
        the name of the client it is linked to even after that client is
        deactivated.
        """
        all_businesses = {b.id: b for b in self.businesses}
        out: list[CostCenter] = []
        for cc in self.cost_centers:
            if not cc.active:
                continue
            if cc.business is None and cc.business_id in all_businesses:
                cc = replace(cc, business=all_businesses[cc.business_id])
            out.append(cc)
        return out

    def fetch_businesses(self) -> list[Business]:
        return [b for b in self.businesses if b.active]


def fetch_concurrently(tasks: Mapping[str, Callable[[], T]]) -> dict[str, T]:
    """Run independent fetches concurrently and return their results by name.

    Args:
        tasks: Mapping name → zero-argument callable.

    Returns:
        Mapping name → result, once every task has succeeded.

    Raises:
        InputError: re-raised as-is when a task rejects its parameters.
        SourceUnavailable: if any task fails for another reason. The first
            failure (in task order) is chained as the cause.
    """
    if not tasks:
        return {}

    with ThreadPoolExecutor(max_workers=len(tasks)) as pool:
        futures = {name: pool.submit(fn) for name, fn in tasks.items()}

    results: dict[str, T] = {}
    for name, future in futures.items():
        exc = future.exception()
        if exc is None:
            results[name] = future.result()
            continue
        if isinstance(exc, (InputError, SourceUnavailable)):
            raise exc
        logger.error("source_fetch_failed", task=name, error=str(exc))
        raise SourceUnavailable(f"Data source failed while fetching {name!r}") from exc
    return results
