# Ledger Insight - Financial KPI & client analysis for marketing-services businesses
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
I/O module for Ledger Insight.

This module reads ledger entries and reference data (cost centers,
businesses) from CSV files and normalizes them into the structures consumed
by the engines.

Ledger entries
--------------
Expected columns (case-insensitive):

    year, month, account_code, cost_center_id, value[, account_name]

Aliases: ``code`` for ``account_code``, ``cost_center`` for
``cost_center_id``, ``amount`` for ``value``.

Output schema
-------------
``normalize_entries`` and ``read_ledger_entries`` return a DataFrame with
exactly these columns:

    - ``year``           (int)
    - ``month``          (int, 1..12)
    - ``account_code``   (str)
    - ``cost_center_id`` (str)
    - ``value``          (decimal.Decimal, object dtype)
    - ``account_name``   (str, may be empty)

Values are parsed to Decimal from their string form so that sums never drift
by a cent. Duplicated rows are kept as-is: the engines sum them.

Reference data
--------------
``read_cost_centers``: id, code, name[, active][, business_id]
``read_businesses``:   id, commercial_name[, legal_name][, active]
"""

import os
from collections.abc import Iterable, Mapping
from dataclasses import asdict, dataclass, is_dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Union

import pandas as pd

from .attribution import Business, CostCenter
from .errors import InputError
from .periods import validate_month, validate_year

ENTRY_COLUMNS = [
    "year",
    "month",
    "account_code",
    "cost_center_id",
    "value",
    "account_name",
]

_ENTRY_ALIASES = {
    "code": "account_code",
    "cost_center": "cost_center_id",
    "amount": "value",
}

_TRUE_VALUES = {"true", "1", "yes", "y", "t"}
_FALSE_VALUES = {"false", "0", "no", "n", "f"}

PathLike = Union[str, "os.PathLike[str]"]


@dataclass(frozen=True)
class LedgerEntry:
    """One dated monetary fact tied to an account and a cost center."""

    year: int
    month: int
    account_code: str
    cost_center_id: str
    value: Decimal
    account_name: str = ""


def to_decimal(raw: Any) -> Decimal:
    """Convert a raw cell value to a finite Decimal.

    Floats go through their shortest string representation (0.1 → '0.1'),
    so binary noise is never carried into the sums.

    Raises:
        InputError: if the value is empty, not a number, NaN or infinite.
    """
    if isinstance(raw, Decimal):
        value = raw
    else:
        text = str(raw).strip()
        try:
            value = Decimal(text)
        except InvalidOperation as exc:
            raise InputError(f"Invalid numeric value: {raw!r}") from exc
    if not value.is_finite():
        raise InputError(f"Invalid numeric value: {raw!r}")
    return value


def _clean_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Lowercase and strip column names."""
    out = df.copy()
    out.columns = [str(c).strip().lower() for c in out.columns]
    return out


def _rename_entry_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Apply the ledger-entry column aliases (code, cost_center, amount)."""
    out = _clean_columns(df)
    renames = {
        alias: canonical
        for alias, canonical in _ENTRY_ALIASES.items()
        if alias in out.columns and canonical not in out.columns
    }
    return out.rename(columns=renames)


def normalize_entries(df: pd.DataFrame) -> pd.DataFrame:
    """
    Normalize a raw entries DataFrame to the canonical entry schema.

    Parameters
    ----------
    df:
        Raw frame, typically read from CSV or built in memory.

    Returns
    -------
    pandas.DataFrame
        A new frame with the columns listed in ``ENTRY_COLUMNS``.

    Raises
    ------
    InputError
        If required columns are missing or if a year, month or value cannot
        be parsed.
    """
    d = _rename_entry_columns(df).reset_index(drop=True)

    required = {"year", "month", "account_code", "cost_center_id", "value"}
    missing = required - set(d.columns)
    if missing:
        raise InputError(
            "Invalid ledger entries structure, missing columns: "
            + ", ".join(sorted(missing))
            + ". Expected: year, month, account_code, cost_center_id, value."
        )

    if d.empty:
        return empty_entries()

    out = pd.DataFrame(
        {
            "year": [validate_year(v) for v in d["year"]],
            "month": [validate_month(v) for v in d["month"]],
            "account_code": d["account_code"].astype(str).str.strip(),
            "cost_center_id": d["cost_center_id"].astype(str).str.strip(),
            "value": pd.Series([to_decimal(v) for v in d["value"]], dtype=object),
            "account_name": (
                d["account_name"].fillna("").astype(str).str.strip()
                if "account_name" in d.columns
                else ""
            ),
        }
    )
    out["year"] = out["year"].astype(int)
    out["month"] = out["month"].astype(int)
    return out[ENTRY_COLUMNS]


def empty_entries() -> pd.DataFrame:
    """Return an empty but well-formed entries DataFrame."""
    return pd.DataFrame(
        {
            "year": pd.Series([], dtype=int),
            "month": pd.Series([], dtype=int),
            "account_code": pd.Series([], dtype=object),
            "cost_center_id": pd.Series([], dtype=object),
            "value": pd.Series([], dtype=object),
            "account_name": pd.Series([], dtype=object),
        }
    )


def entries_frame(
    records: Iterable[Union[LedgerEntry, Mapping[str, Any]]],
) -> pd.DataFrame:
    """Build a normalized entries DataFrame from LedgerEntry objects or dicts."""
    rows = [asdict(r) if is_dataclass(r) else dict(r) for r in records]
    if not rows:
        return empty_entries()
    return normalize_entries(pd.DataFrame(rows))


def _read_csv(path: PathLike) -> pd.DataFrame:
    # Read every cell as text: values are converted to Decimal explicitly.
    return pd.read_csv(path, dtype=str, keep_default_na=False)


def read_ledger_entries(path: PathLike) -> pd.DataFrame:
    """
    Read ledger entries from a CSV file and normalize them.

    Raises
    ------
    InputError
        If the CSV structure is invalid or values cannot be parsed.
    """
    return normalize_entries(_read_csv(path))


def _parse_bool(raw: Any, column: str, default: bool = True) -> bool:
    """Parse a flag cell; a blank cell counts as a missing column."""
    text = str(raw).strip().lower()
    if not text:
        return default
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise InputError(f"Invalid boolean value in '{column}' column: {raw!r}")


def _optional_id(raw: Any) -> Optional[str]:
    text = str(raw).strip()
    return text or None


def _require_columns(df: pd.DataFrame, required: set[str], what: str) -> None:
    missing = required - set(df.columns)
    if missing:
        raise InputError(
            f"Invalid {what} structure, missing columns: {', '.join(sorted(missing))}."
        )


def read_cost_centers(path: PathLike) -> list[CostCenter]:
    """Read cost centers from CSV.

    Columns: id, code, name, optional active (a missing column or a blank
    cell means true) and optional business_id (empty → orphaned cost center).
    Column names are only lowercased and stripped: ``code`` is the
    cost-center code, not an account-code alias.
    """
    df = _clean_columns(_read_csv(path))
    _require_columns(df, {"id", "code", "name"}, "cost centers")

    out: list[CostCenter] = []
    for row in df.to_dict(orient="records"):
        out.append(
            CostCenter(
                id=str(row["id"]).strip(),
                code=str(row["code"]).strip(),
                name=str(row["name"]).strip(),
                active=_parse_bool(row.get("active", "true"), "active"),
                business_id=_optional_id(row.get("business_id", "")),
            )
        )
    return out


def read_businesses(path: PathLike) -> list[Business]:
    """Read businesses (clients) from CSV, preserving file order.

    Columns: id, commercial_name, optional legal_name and optional active
    (a missing column or a blank cell means true).
    """
    df = _clean_columns(_read_csv(path))
    _require_columns(df, {"id", "commercial_name"}, "businesses")

    out: list[Business] = []
    for row in df.to_dict(orient="records"):
        out.append(
            Business(
                id=str(row["id"]).strip(),
                commercial_name=str(row["commercial_name"]).strip(),
                legal_name=str(row.get("legal_name", "")).strip(),
                active=_parse_bool(row.get("active", "true"), "active"),
            )
        )
    return out
