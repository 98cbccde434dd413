# Ledger Insight - Financial KPI & client analysis for marketing-services businesses
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Expense formula engine.

An expense formula is a named, ordered list of signed account-code-prefix
terms, written as text:

    "5.2.1.2 + 5.1.2 - 5.2.1.2.10"     (personnel expenses)
    "5.2.1.4 + 5.2.1.5 + 5.2.1.6"      (administrative expenses)

Evaluation rule: for every entry, each term whose prefix matches the code
contributes ``sign * value``, except that a later term whose prefix extends
an earlier term's prefix shadows the earlier one for the codes it matches.
An entry on "5.2.1.2.10" above therefore counts -value once, through
"5.2.1.2.10" only, while every other "5.2.1.2*" entry counts +value.
Terms that are not nested this way stay independent and all contribute.

Formulas are evaluated over a cumulative window (January up to a month
limit) of one year, keeping both the grand total and the per-month values.
``compare_expenses()`` runs the same formulas for the prior year with the
same month limit to build the year-over-year comparison.
"""

import re
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

import pandas as pd
import structlog

from .accounts import ZERO, bucket_totals
from .errors import InputError
from .periods import PeriodWindow, period_label, select_window, validate_month
from .ratios import percentage

logger = structlog.get_logger(__name__)

# One term: optional sign followed by a dot-delimited numeric prefix.
_TERM_RE = re.compile(r"\s*([+-])?\s*(\d+(?:\.\d+)*)\s*")


@dataclass(frozen=True)
class FormulaTerm:
    """``sign * value`` is added for every code starting with ``prefix``."""

    sign: int
    prefix: str

    def __post_init__(self) -> None:
        if self.sign not in (1, -1):
            raise InputError(f"Invalid term sign {self.sign!r}: expected 1 or -1.")
        if not str(self.prefix).strip():
            raise InputError("Formula term prefix cannot be empty.")

    def contribution(self, account_code: str, value: Decimal) -> Decimal:
        if str(account_code).strip().startswith(self.prefix):
            return value if self.sign > 0 else -value
        return ZERO


@dataclass(frozen=True)
class ExpenseFormula:
    """A named composite expense definition."""

    key: str
    name: str
    terms: tuple[FormulaTerm, ...]

    @classmethod
    def from_expression(cls, key: str, name: str, expression: str) -> "ExpenseFormula":
        return cls(key=key, name=name, terms=parse_formula(expression))

    @property
    def expression(self) -> str:
        """Render the terms back as text, e.g. '5.2.1.2 + 5.1.2 - 5.2.1.2.10'."""
        parts: list[str] = []
        for i, term in enumerate(self.terms):
            if i == 0:
                parts.append(term.prefix if term.sign > 0 else f"-{term.prefix}")
            else:
                parts.append(f"{'+' if term.sign > 0 else '-'} {term.prefix}")
        return " ".join(parts)

    def contribution(self, account_code: str, value: Decimal) -> Decimal:
        """Net contribution of one entry.

        Sums the matching terms, skipping a term when a later matching term
        has a strictly longer prefix extending its own.
        """
        code = str(account_code).strip()
        total = ZERO
        for i, term in enumerate(self.terms):
            if not code.startswith(term.prefix):
                continue
            if any(_shadows(later, term, code) for later in self.terms[i + 1 :]):
                continue
            total += term.contribution(code, value)
        return total


def _shadows(later: FormulaTerm, earlier: FormulaTerm, code: str) -> bool:
    return (
        len(later.prefix) > len(earlier.prefix)
        and later.prefix.startswith(earlier.prefix)
        and code.startswith(later.prefix)
    )


def parse_formula(expression: str) -> tuple[FormulaTerm, ...]:
    """Parse a formula such as '5.2.1.2 + 5.1.2 - 5.2.1.2.10'.

    A leading '=' is accepted (spreadsheet style). The first term may carry
    a sign; every following term must.

    Raises:
        InputError: if the expression is empty or malformed.
    """
    text = str(expression).strip()
    if text.startswith("="):
        text = text[1:].strip()
    if not text:
        raise InputError("Empty expense formula.")

    terms: list[FormulaTerm] = []
    pos = 0
    while pos < len(text):
        m = _TERM_RE.match(text, pos)
        if m is None:
            raise InputError(f"Invalid expense formula: {expression!r}")
        sign_token, prefix = m.groups()
        if sign_token is None and terms:
            raise InputError(
                f"Missing '+' or '-' before {prefix!r} in formula {expression!r}"
            )
        terms.append(FormulaTerm(sign=-1 if sign_token == "-" else 1, prefix=prefix))
        pos = m.end()
    return tuple(terms)


DEFAULT_EXPENSE_FORMULAS: tuple[ExpenseFormula, ...] = (
    ExpenseFormula.from_expression(
        "gastos_personal", "GASTOS PERSONAL", "5.2.1.2 + 5.1.2 - 5.2.1.2.10"
    ),
    ExpenseFormula.from_expression(
        "gastos_administrativos",
        "GASTOS ADMINISTRATIVOS",
        "5.2.1.4 + 5.2.1.5 + 5.2.1.6",
    ),
    ExpenseFormula.from_expression(
        "gastos_interes_financiero", "GASTOS INTERES FINANCIERO", "5.2.1.3.1"
    ),
    ExpenseFormula.from_expression(
        "seguros_personal", "SEGUROS PERSONAL", "5.2.1.2.10"
    ),
)


@dataclass(frozen=True)
class FormulaResult:
    """Total and raw per-month values (not cumulative) of one formula."""

    key: str
    year: int
    month_limit: int
    total: Decimal
    monthly: dict[int, Decimal]


@dataclass(frozen=True)
class ExpensePoint:
    month: int
    period: str
    value: Decimal


@dataclass(frozen=True)
class ExpenseComparison:
    """Year-over-year comparison of one formula."""

    key: str
    name: str
    expression: str
    current: Decimal
    previous: Decimal
    difference: Decimal
    percentage_of_income: float
    monthly_chart: tuple[ExpensePoint, ...]


@dataclass(frozen=True)
class ExpenseReport:
    """Expense formulas for a year-to-month window vs. the prior year."""

    year: int
    month: int
    previous_year: int
    current_income: Decimal
    previous_income: Decimal
    expenses: tuple[ExpenseComparison, ...]


def evaluate_formula(
    entries: pd.DataFrame, formula: ExpenseFormula, year: int, month_limit: int
) -> FormulaResult:
    """Evaluate a formula over months 1..month_limit of ``year``.

    Entries of other years, or of months after the limit, are ignored. The
    monthly values always cover months 1..12 (zero outside the window).
    """
    window = PeriodWindow.cumulative(year, month_limit)
    monthly = {m: ZERO for m in range(1, 13)}
    total = ZERO
    for row in select_window(entries, window).itertuples(index=False):
        contribution = formula.contribution(row.account_code, row.value)
        if contribution == 0:
            continue
        monthly[int(row.month)] += contribution
        total += contribution
    return FormulaResult(
        key=formula.key,
        year=window.year,
        month_limit=window.month,
        total=total,
        monthly=monthly,
    )


def monthly_chart(result: FormulaResult) -> tuple[ExpensePoint, ...]:
    """Chart points for months 1..12, leaving out months whose value is 0."""
    return tuple(
        ExpensePoint(month=m, period=period_label(result.year, m), value=v)
        for m, v in sorted(result.monthly.items())
        if v != 0
    )


def compare_expenses(
    current_entries: pd.DataFrame,
    previous_entries: pd.DataFrame,
    year: int,
    month: int,
    formulas: Sequence[ExpenseFormula] = DEFAULT_EXPENSE_FORMULAS,
) -> ExpenseReport:
    """
    Compare expense formulas between a year and the prior year.

    Both years use the same cumulative window (January up to ``month``).
    For each formula:

    - difference           = current - previous
    - percentage_of_income = current / current income * 100 (0 if no income)

    where income is the generic Income bucket ("4*") over the current window.

    Parameters
    ----------
    current_entries, previous_entries :
        Normalized entries containing (at least) the current and prior year.
        The same frame may be passed twice.
    year, month :
        Target year and month limit.
    formulas :
        Formulas to evaluate, in display order.
    """
    month = validate_month(month)
    current_window = PeriodWindow.cumulative(year, month)
    previous_window = PeriodWindow.cumulative(current_window.year - 1, month)

    current_income = bucket_totals(
        select_window(current_entries, current_window)
    ).income
    previous_income = bucket_totals(
        select_window(previous_entries, previous_window)
    ).income

    comparisons: list[ExpenseComparison] = []
    for formula in formulas:
        current = evaluate_formula(current_entries, formula, current_window.year, month)
        previous = evaluate_formula(
            previous_entries, formula, previous_window.year, month
        )
        comparisons.append(
            ExpenseComparison(
                key=formula.key,
                name=formula.name,
                expression=formula.expression,
                current=current.total,
                previous=previous.total,
                difference=current.total - previous.total,
                percentage_of_income=percentage(current.total, current_income),
                monthly_chart=monthly_chart(current),
            )
        )

    logger.info(
        "expense_report_computed",
        period=current_window.label,
        formulas=len(comparisons),
    )
    return ExpenseReport(
        year=current_window.year,
        month=month,
        previous_year=previous_window.year,
        current_income=current_income,
        previous_income=previous_income,
        expenses=tuple(comparisons),
    )
