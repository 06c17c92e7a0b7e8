"""Command-line interface for the contract calculator.

This module uses the ``click`` library to implement a multi-command
interface. Users can compute an EMI, print a loan's amortization schedule,
produce the ledger of a single month from a contracts file or project that
ledger over several months. Results can be printed to the terminal or
exported to JSON/CSV files.
"""

from __future__ import annotations

import csv
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

import click

from .data_models import ContractType, LoanSummary, Projection
from .engine import calculate_emi, generate_schedule
from .execution import calculate_type_outflow, execute_month, generate_projection
from .formatter import print_loan_summary, print_projection, print_schedule, print_snapshot
from .serialization import (
    load_contracts,
    loan_summary_to_dict,
    projection_to_dict,
    snapshot_to_dict,
)
from .utils import InvalidInputError, parse_amount, parse_date, parse_year_month, round_currency

logger = logging.getLogger(__name__)


def _amount_option(value: Optional[str], name: str):
    if value is None:
        return None
    try:
        return parse_amount(value)
    except InvalidInputError:
        raise click.BadParameter(f"Invalid amount: {value}", param_hint=name)


def _month_option(value: str, name: str):
    try:
        return parse_year_month(value)
    except InvalidInputError as exc:
        raise click.BadParameter(str(exc), param_hint=name)


def _load(path: str):
    try:
        contracts = load_contracts(Path(path))
    except InvalidInputError as exc:
        raise click.ClickException(f"Could not read contracts from {path}: {exc}")
    logger.debug("Loaded %d contracts from %s", len(contracts), path)
    return contracts


def _write_json(path: Path, data: Dict[str, Any]) -> None:
    with path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def export_schedule_to_csv(path: Path, summary: LoanSummary) -> None:
    """Export an amortization schedule to a CSV file."""
    header = [
        "Month",
        "Date",
        "EMI",
        "Principal",
        "Interest",
        "Balance",
        "Cumulative_Principal",
        "Cumulative_Interest",
    ]
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(header)
        for e in summary.schedule:
            writer.writerow(
                [
                    e.month_number,
                    e.payment_date.isoformat(),
                    round_currency(e.emi_paid),
                    round_currency(e.principal_portion),
                    round_currency(e.interest_portion),
                    round_currency(e.remaining_balance),
                    round_currency(e.cumulative_principal_paid),
                    round_currency(e.cumulative_interest_paid),
                ]
            )


def export_projection_to_csv(path: Path, projection: Projection) -> None:
    """Export one row per projected month to a CSV file."""
    header = [
        "Year",
        "Month",
        "Income",
        "Reducing",
        "Growing",
        "Fixed",
        "Mandatory_Outflow",
        "Free_Balance",
        "Active_Contracts",
    ]
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(header)
        for s in projection.snapshots:
            writer.writerow(
                [
                    s.year,
                    s.month,
                    round_currency(s.total_income),
                    round_currency(s.reducing_outflow),
                    round_currency(s.growing_outflow),
                    round_currency(s.fixed_outflow),
                    round_currency(s.mandatory_outflow),
                    round_currency(s.free_balance),
                    s.active_contract_count,
                ]
            )


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log engine activity to stderr")
def cli(verbose: bool) -> None:
    """Track loans, investments and subscriptions month by month."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@click.option("--principal", "-p", "principal", required=True, help="Loan amount")
@click.option("--rate", "-r", "rate", required=True, help="Annual interest rate (percent)")
@click.option("--term", "-t", "term", required=True, type=int, help="Tenure in months")
def emi(principal: str, rate: str, term: int) -> None:
    """Compute the equal monthly installment for a loan."""
    try:
        value = calculate_emi(_amount_option(principal, "--principal"), parse_amount(rate), term)
    except InvalidInputError as exc:
        raise click.BadParameter(str(exc))
    click.echo(f"{round_currency(value)}")


@cli.command()
@click.option("--principal", "-p", "principal", required=True, help="Loan amount")
@click.option("--rate", "-r", "rate", required=True, help="Annual interest rate (percent)")
@click.option("--term", "-t", "term", required=True, type=int, help="Tenure in months")
@click.option("--emi", "emi_value", help="Monthly installment; defaults to the calculated EMI")
@click.option("--start-date", "-s", "start_date", required=True, help="First payment date (YYYY-MM or YYYY-MM-DD)")
@click.option("--output", "output", type=str, help="Output file path (.json or .csv)")
def schedule(
    principal: str,
    rate: str,
    term: int,
    emi_value: Optional[str],
    start_date: str,
    output: Optional[str],
) -> None:
    """Compute and print the full amortization schedule."""
    try:
        principal_value = _amount_option(principal, "--principal")
        rate_value = parse_amount(rate)
        installment = _amount_option(emi_value, "--emi")
        if installment is None:
            installment = calculate_emi(principal_value, rate_value, term)
        summary = generate_schedule(
            principal_value, rate_value, term, installment, parse_date(start_date)
        )
    except InvalidInputError as exc:
        raise click.BadParameter(str(exc))

    if output:
        path = Path(output)
        if path.suffix.lower() == ".json":
            _write_json(path, loan_summary_to_dict(summary))
        elif path.suffix.lower() == ".csv":
            export_schedule_to_csv(path, summary)
        else:
            raise click.BadParameter("Unsupported output format; use .json or .csv")
        click.echo(f"Schedule exported to {path}")
        return
    print_loan_summary(summary)
    print_schedule(summary.schedule)


@cli.command()
@click.option("--contracts", "-c", "contracts_path", required=True, type=click.Path(exists=True, dir_okay=False), help="JSON file with contracts")
@click.option("--month", "-m", "month", required=True, help="Month to compute (YYYY-MM)")
@click.option("--income", "-i", "income", default="0", help="Total income for the month")
@click.option("--output", "output", type=str, help="Output file path (.json)")
def month(contracts_path: str, month: str, income: str, output: Optional[str]) -> None:
    """Compute the ledger of a single month."""
    target = _month_option(month, "--month")
    contracts = _load(contracts_path)
    snapshot = execute_month(
        contracts,
        target.month,
        target.year,
        total_income=_amount_option(income, "--income"),
        generated_at=datetime.now(),
    )
    if output:
        path = Path(output)
        if path.suffix.lower() != ".json":
            raise click.BadParameter("Snapshot export must use .json extension")
        _write_json(path, snapshot_to_dict(snapshot))
        click.echo(f"Snapshot exported to {path}")
        return
    print_snapshot(snapshot)


@cli.command()
@click.option("--contracts", "-c", "contracts_path", required=True, type=click.Path(exists=True, dir_okay=False), help="JSON file with contracts")
@click.option("--start", "-s", "start", required=True, help="First projected month (YYYY-MM)")
@click.option("--months", "-n", "months", default=12, show_default=True, type=int, help="Number of months")
@click.option("--income", "-i", "income", default="0", help="Monthly income")
@click.option("--output", "output", type=str, help="Output file path (.json or .csv)")
def project(contracts_path: str, start: str, months: int, income: str, output: Optional[str]) -> None:
    """Project the monthly ledger over several months."""
    first = _month_option(start, "--start")
    contracts = _load(contracts_path)
    try:
        projection = generate_projection(
            contracts,
            first.month,
            first.year,
            months,
            monthly_income=_amount_option(income, "--income"),
            generated_at=datetime.now(),
        )
    except InvalidInputError as exc:
        raise click.BadParameter(str(exc))
    if output:
        path = Path(output)
        if path.suffix.lower() == ".json":
            _write_json(path, projection_to_dict(projection))
        elif path.suffix.lower() == ".csv":
            export_projection_to_csv(path, projection)
        else:
            raise click.BadParameter("Unsupported output format; use .json or .csv")
        click.echo(f"Projection exported to {path}")
        return
    print_projection(projection)


@cli.command()
@click.option("--contracts", "-c", "contracts_path", required=True, type=click.Path(exists=True, dir_okay=False), help="JSON file with contracts")
@click.option("--type", "contract_type", required=True, type=click.Choice([t.value for t in ContractType]), help="Contract type to total")
@click.option("--start", "-s", "start", required=True, help="First month (YYYY-MM)")
@click.option("--months", "-n", "months", default=12, show_default=True, type=int, help="Number of months")
def outflow(contracts_path: str, contract_type: str, start: str, months: int) -> None:
    """Total the outflow of one contract type over several months."""
    first = _month_option(start, "--start")
    contracts = _load(contracts_path)
    try:
        total = calculate_type_outflow(
            contracts, ContractType(contract_type), first.month, first.year, months
        )
    except InvalidInputError as exc:
        raise click.BadParameter(str(exc))
    click.echo(f"{round_currency(total)}")


if __name__ == "__main__":
    cli()
