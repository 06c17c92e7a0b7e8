"""Output helpers for the command-line interface.

This module renders loan schedules, monthly snapshots and projections in a
tabular text format. It relies only on built-in printing and string
formatting. Amounts are carried at full precision by the engines and rounded
to two places here, at display time.
"""

from __future__ import annotations

from typing import Iterable

from .data_models import AmortizationEntry, LoanSummary, MonthlySnapshot, Projection


def print_loan_summary(summary: LoanSummary) -> None:
    """Print the totals of a loan schedule in a human-readable format."""
    print("Loan summary")
    print("-" * 72)
    print(f"Principal          : {summary.principal:.2f}")
    print(f"Annual rate        : {summary.annual_interest_rate:.2f}%")
    print(f"Nominal EMI        : {summary.emi:.2f}")
    print(f"Tenure             : {summary.tenure_months} months")
    print(f"Installments       : {summary.months}")
    print(f"Total interest     : {summary.total_interest_payable:.2f}")
    print(f"Total payable      : {summary.total_amount_payable:.2f}")
    print(f"First payment      : {summary.start_date.isoformat()}")
    print(f"Expected closure   : {summary.expected_closure_date.isoformat()}")
    print("-" * 72)


def print_schedule(schedule: Iterable[AmortizationEntry]) -> None:
    """Print the amortization schedule as a simple table."""
    headers = ["Month", "Date", "EMI", "Principal", "Interest", "Balance", "CumInterest"]
    print("\t".join(headers))
    for entry in schedule:
        row = [
            str(entry.month_number),
            entry.payment_date.isoformat(),
            f"{entry.emi_paid:.2f}",
            f"{entry.principal_portion:.2f}",
            f"{entry.interest_portion:.2f}",
            f"{entry.remaining_balance:.2f}",
            f"{entry.cumulative_interest_paid:.2f}",
        ]
        print("\t".join(row))


def print_snapshot(snapshot: MonthlySnapshot, show_contributions: bool = True) -> None:
    """Print one month's ledger, optionally with the per-contract breakdown."""
    print(snapshot.display_month)
    print("-" * 72)
    print(f"Income             : {snapshot.total_income:.2f}")
    print(f"Loans (reducing)   : {snapshot.reducing_outflow:.2f}")
    print(f"Investments        : {snapshot.growing_outflow:.2f}")
    print(f"Fixed charges      : {snapshot.fixed_outflow:.2f}")
    print(f"Mandatory outflow  : {snapshot.mandatory_outflow:.2f}")
    print(f"Free balance       : {snapshot.free_balance:.2f}")
    print(f"Savings rate       : {snapshot.savings_rate_percent:.2f}%")
    print(f"Active contracts   : {snapshot.active_contract_count}")
    if snapshot.is_deficit:
        print("Warning: outflow exceeds income this month")
    if show_contributions and snapshot.contributions:
        print()
        print("\t".join(["Contract", "Type", "Amount", "Principal", "Interest", "After"]))
        for c in snapshot.contributions:
            after = c.new_balance if c.new_balance is not None else c.new_invested_total
            print(
                "\t".join(
                    [
                        c.contract_name,
                        c.contract_type.value,
                        f"{c.amount:.2f}",
                        f"{c.principal_portion:.2f}" if c.principal_portion is not None else "-",
                        f"{c.interest_portion:.2f}" if c.interest_portion is not None else "-",
                        f"{after:.2f}" if after is not None else "-",
                    ]
                )
            )
    print("-" * 72)


def print_projection(projection: Projection) -> None:
    """Print one row per projected month followed by the horizon totals."""
    print(
        f"Projection {projection.from_month:02d}/{projection.from_year} - "
        f"{projection.to_month:02d}/{projection.to_year}"
    )
    print("=" * 72)
    print("\t".join(["Month", "Income", "Reducing", "Growing", "Fixed", "Outflow", "Free", "Active"]))
    for s in projection.snapshots:
        print(
            "\t".join(
                [
                    f"{s.year}-{s.month:02d}",
                    f"{s.total_income:.2f}",
                    f"{s.reducing_outflow:.2f}",
                    f"{s.growing_outflow:.2f}",
                    f"{s.fixed_outflow:.2f}",
                    f"{s.mandatory_outflow:.2f}",
                    f"{s.free_balance:.2f}",
                    str(s.active_contract_count),
                ]
            )
        )
    print("=" * 72)
    print(f"Total outflow      : {projection.total_mandatory_outflow:.2f}")
    print(f"Total income       : {projection.total_income:.2f}")
    print(f"Total free balance : {projection.total_free_balance:.2f}")
    print(f"Average outflow    : {projection.average_monthly_outflow:.2f}")
    closed = [c for c in projection.final_contracts if c.is_closed]
    if closed:
        print(f"Closed by the end  : {', '.join(c.name for c in closed)}")
