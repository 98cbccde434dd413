# Ledger Insight - Financial KPI & client analysis for marketing-services businesses
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Command-Line Interface (CLI) for Ledger Insight.

This module wires together the main building blocks of Ledger Insight:

- global configuration (data files, default period, display, logging),
- the optional rules file (groupings and expense formulas),
- the in-memory data source loaded from CSV files,
- the report services (clients, KPIs, trends, directs, expenses),
- view helpers (tabular rendering and CSV export).

The CLI is intentionally thin: it does not implement any financial logic
itself. Instead, it orchestrates the underlying modules based on
command-line arguments and configuration files.


Subcommands
-----------

- ``kpis``:
    Month KPIs compared with the previous month and the same month of the
    prior year.

- ``trends``:
    Twelve independent single-month aggregations of a year.

- ``clients``:
    Per-client roll-up, cumulative from January (default) or for a single
    month with ``--single-month``.

- ``directs``:
    Grouping (PREMIOS, LOGISTICA, ...) and cost-center diagnostics,
    cumulative from January.

- ``expenses``:
    Expense formulas, cumulative from January, compared with the same
    months of the prior year.


Configuration and overrides
---------------------------

By default the CLI reads ``ledger_insight_config.toml`` in the current
working directory. Override it with ``--config PATH``.

``--year`` and ``--month`` default to ``[period]`` in the configuration.
``--rules`` overrides ``[rules].file``. ``--display-mode`` overrides
``[display].mode``. In ``csv`` mode, files are written to ``--output-dir``
(``data/output`` by default).


Examples
--------

    ledger-insight kpis --year 2025 --month 3
    ledger-insight clients --month 6 --single-month
    ledger-insight expenses --display-mode csv --output-dir out/
"""

import argparse
from datetime import datetime
from pathlib import Path
from typing import Optional

import pandas as pd
import structlog

from . import __version__
from .config import AppConfig, load_app_config
from .errors import LedgerInsightError
from .logging_config import configure_logging
from .periods import WindowMode
from .reports import (
    client_report,
    directs_report,
    expense_report,
    kpi_report,
    trend_report,
)
from .rules import Rules, load_rules
from .sources import FrameSource
from .views import (
    client_monthly_to_dataframe,
    clients_to_dataframe,
    cost_centers_to_dataframe,
    expenses_to_dataframe,
    groupings_to_dataframe,
    kpis_to_dataframe,
    trends_to_dataframe,
)

logger = structlog.get_logger(__name__)

COMMANDS = ("kpis", "trends", "clients", "directs", "expenses")


def _build_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for the CLI."""
    ap = argparse.ArgumentParser(
        prog="ledger-insight",
        description=(
            "Ledger Insight - Financial KPI & client analysis for "
            "marketing-services businesses. Reads ledger entries, classifies "
            "accounts, attributes cost centers to clients and renders KPIs, "
            "trends, client roll-ups and expense comparisons."
        ),
    )

    ap.add_argument(
        "--version",
        action="version",
        version=f"ledger_insight version {__version__}",
    )

    # Options shared by every subcommand
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        dest="config_path",
        help=(
            "Path to the main TOML configuration file. If omitted, "
            "'ledger_insight_config.toml' in the current directory is used."
        ),
    )
    common.add_argument(
        "--year",
        type=int,
        help="Target year. Defaults to [period].default_year.",
    )
    common.add_argument(
        "--month",
        type=int,
        help="Target month (1-12). Defaults to [period].default_month.",
    )
    common.add_argument(
        "--rules",
        dest="rules_path",
        help="Override the rules TOML file (groupings and expense formulas).",
    )
    common.add_argument(
        "--display-mode",
        dest="display_mode",
        choices=["table", "csv"],
        help="Override the display.mode setting from the configuration file.",
    )
    common.add_argument(
        "--output-dir",
        dest="output_dir",
        help="Directory for CSV files in csv mode (default: data/output).",
    )

    subparsers = ap.add_subparsers(dest="command", metavar="command", required=True)

    subparsers.add_parser(
        "kpis",
        parents=[common],
        help="Month KPIs vs. previous month and same month last year.",
    )
    subparsers.add_parser(
        "trends",
        parents=[common],
        help="Monthly income / costs / profit of a year.",
    )
    clients = subparsers.add_parser(
        "clients",
        parents=[common],
        help="Per-client roll-up.",
    )
    clients.add_argument(
        "--single-month",
        dest="single_month",
        action="store_true",
        help="Aggregate the target month only instead of January..month.",
    )
    subparsers.add_parser(
        "directs",
        parents=[common],
        help="Grouping and cost-center diagnostics.",
    )
    subparsers.add_parser(
        "expenses",
        parents=[common],
        help="Expense formulas vs. the prior year.",
    )

    return ap


def _build_source(config: AppConfig) -> FrameSource:
    return FrameSource.from_csv(
        config.data.entries,
        cost_centers_path=config.data.cost_centers,
        businesses_path=config.data.businesses,
    )


def _build_tables(
    command: str,
    source: FrameSource,
    rules: Rules,
    year: int,
    month: int,
    decimals: int,
    single_month: bool = False,
) -> list[tuple[str, str, pd.DataFrame]]:
    """Run the requested report and return (title, file stem, table) triples."""
    if command == "kpis":
        kpis = kpi_report(source, year, month)
        return [(f"KPIs {kpis.period}", "kpis", kpis_to_dataframe(kpis, decimals))]

    if command == "trends":
        trends = trend_report(source, year)
        return [
            (
                f"Monthly trends {trends.year} "
                f"({trends.months_with_data} months with data)",
                "trends",
                trends_to_dataframe(trends, decimals),
            )
        ]

    if command == "clients":
        mode = WindowMode.SINGLE_MONTH if single_month else WindowMode.CUMULATIVE
        report = client_report(source, year, month, mode=mode)
        return [
            (
                f"Clients {report.period} ({report.total_clients} clients)",
                "clients",
                clients_to_dataframe(report, decimals),
            ),
            (
                f"Monthly series {report.period}",
                "clients_monthly",
                client_monthly_to_dataframe(report, decimals),
            ),
        ]

    if command == "directs":
        directs = directs_report(source, year, month, groupings=rules.groupings)
        return [
            (
                f"Groupings {directs.period} "
                f"({directs.problematic_groupings} problematic)",
                "groupings",
                groupings_to_dataframe(directs, decimals),
            ),
            (
                f"Cost centers {directs.period} "
                f"({directs.problematic_cost_centers} problematic)",
                "cost_centers",
                cost_centers_to_dataframe(directs, decimals),
            ),
        ]

    if command == "expenses":
        expenses = expense_report(source, year, month, formulas=rules.formulas)
        return [
            (
                f"Expenses {expenses.year} vs {expenses.previous_year} "
                f"(months 1-{expenses.month})",
                "expenses",
                expenses_to_dataframe(expenses, decimals),
            )
        ]

    raise ValueError(f"Unknown command: {command!r}")


def _render(
    tables: list[tuple[str, str, pd.DataFrame]],
    display_mode: str,
    output_dir: Path,
) -> None:
    if display_mode == "table":
        for title, _, df in tables:
            print()
            print(f"=== {title} ===")
            if df.empty:
                print("(no data)")
            else:
                print(df.to_string(index=False))
        return

    output_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y-%m-%d-%H-%M-%S")
    for _, stem, df in tables:
        path = output_dir / f"{stem}_{timestamp}.csv"
        df.to_csv(path, index=False)
        print(f"Wrote {path} ({len(df)} rows)")


def main(argv: Optional[list[str]] = None) -> None:
    """Entry point for the Ledger Insight CLI.

    Parses command-line arguments, loads the configuration and the rules,
    builds the CSV-backed source, runs the requested report and renders it
    as a console table or CSV files. Input and source errors are reported
    through the argument parser (exit status 2).
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_app_config(args.config_path)
    except (FileNotFoundError, LedgerInsightError) as exc:
        parser.error(str(exc))

    configure_logging(config.log_level, config.log_format)

    year = args.year if args.year is not None else config.default_year
    month = args.month if args.month is not None else config.default_month
    rules_path = Path(args.rules_path) if args.rules_path else config.rules_file
    display_mode = args.display_mode or config.display_mode
    output_dir = Path(args.output_dir) if args.output_dir else Path("data/output")

    try:
        rules = load_rules(rules_path)
        source = _build_source(config)
        tables = _build_tables(
            args.command,
            source,
            rules,
            year,
            month,
            config.decimals,
            single_month=getattr(args, "single_month", False),
        )
    except (FileNotFoundError, LedgerInsightError) as exc:
        logger.error("command_failed", command=args.command, error=str(exc))
        parser.error(str(exc))

    _render(tables, display_mode, output_dir)


if __name__ == "__main__":
    main()
