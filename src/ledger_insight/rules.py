# Ledger Insight - Financial KPI & client analysis for marketing-services businesses
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Loading of grouping and expense formula definitions from TOML.

Rules file layout (tables are evaluated in the order they appear)::

    [groupings.premios]
    name = "PREMIOS"
    income = ["4.1.2.1.2.1", "4.1.2.2.1"]
    cost = ["5.1.1.2.1", "5.1.1.3.2"]

    [formulas.gastos_personal]
    name = "GASTOS PERSONAL"
    expression = "5.2.1.2 + 5.1.2 - 5.2.1.2.10"

A missing [groupings] or [formulas] section falls back to the built-in
defaults.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from .config import load_toml
from .errors import InputError
from .expenses import DEFAULT_EXPENSE_FORMULAS, ExpenseFormula
from .groupings import DEFAULT_GROUPINGS, Grouping


@dataclass(frozen=True)
class Rules:
    """Groupings and expense formulas used by the reports."""

    groupings: tuple[Grouping, ...] = DEFAULT_GROUPINGS
    formulas: tuple[ExpenseFormula, ...] = DEFAULT_EXPENSE_FORMULAS


def _code_list(value: Any, where: str) -> tuple[str, ...]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise InputError(f"{where} must be a list of account-code prefixes.")
    codes = tuple(v.strip() for v in value if v.strip())
    return codes


def parse_groupings(section: Mapping[str, Any]) -> tuple[Grouping, ...]:
    """Build Grouping objects from a [groupings] table."""
    out: list[Grouping] = []
    for key, table in section.items():
        if not isinstance(table, Mapping):
            raise InputError(f"[groupings.{key}] must be a table.")
        out.append(
            Grouping(
                key=str(key),
                name=str(table.get("name", str(key).upper())),
                income_codes=_code_list(
                    table.get("income", []), f"[groupings.{key}].income"
                ),
                cost_codes=_code_list(table.get("cost", []), f"[groupings.{key}].cost"),
            )
        )
    return tuple(out)


def parse_formulas(section: Mapping[str, Any]) -> tuple[ExpenseFormula, ...]:
    """Build ExpenseFormula objects from a [formulas] table."""
    out: list[ExpenseFormula] = []
    for key, table in section.items():
        if not isinstance(table, Mapping) or "expression" not in table:
            raise InputError(f"[formulas.{key}] must be a table with an 'expression'.")
        out.append(
            ExpenseFormula.from_expression(
                key=str(key),
                name=str(table.get("name", str(key).upper())),
                expression=str(table["expression"]),
            )
        )
    return tuple(out)


def load_rules(path: Optional[Path]) -> Rules:
    """Load groupings and formulas from a TOML file, or return the defaults.

    Raises:
        FileNotFoundError: if ``path`` is given but does not exist.
        InputError: if a definition is malformed.
    """
    if path is None:
        return Rules()

    data = load_toml(Path(path))

    groupings = DEFAULT_GROUPINGS
    raw_groupings = data.get("groupings")
    if raw_groupings is not None:
        if not isinstance(raw_groupings, Mapping):
            raise InputError("[groupings] must be a table.")
        groupings = parse_groupings(raw_groupings)

    formulas = DEFAULT_EXPENSE_FORMULAS
    raw_formulas = data.get("formulas")
    if raw_formulas is not None:
        if not isinstance(raw_formulas, Mapping):
            raise InputError("[formulas] must be a table.")
        formulas = parse_formulas(raw_formulas)

    return Rules(groupings=groupings, formulas=formulas)
