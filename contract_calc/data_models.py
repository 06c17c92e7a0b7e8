"""Data models for contracts, snapshots and loan schedules.

This module defines dataclasses representing the entities the engines read
and produce: contracts with their type-specific metadata, per-contract
contributions, monthly snapshots, projections and amortization schedules.
All of them are frozen so that a value handed to a caller can never be
changed behind its back; state changes are expressed by building new values
with ``dataclasses.replace``.

Contract metadata is a tagged union. Each metadata class carries a ``kind``
tag matching one ``ContractType`` and a contract refuses to be built when its
``type`` and ``metadata.kind`` disagree.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import ClassVar, Optional, Tuple, Union

from .utils import (
    InvalidInputError,
    ZERO_TOLERANCE,
    first_day_of_month,
    last_day_of_month,
    months_between,
)

MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


class ContractType(str, Enum):
    """Classification of a contract, fixed for its lifetime."""

    REDUCING = "reducing"  # loans and EMIs
    GROWING = "growing"  # savings and investments
    FIXED = "fixed"  # subscriptions and insurance

    @classmethod
    def parse(cls, value: str) -> "ContractType":
        try:
            return cls(value)
        except ValueError as exc:
            raise InvalidInputError(f"Unknown contract type: {value}") from exc

    @property
    def display_name(self) -> str:
        return self.value.capitalize()

    @property
    def description(self) -> str:
        return {
            ContractType.REDUCING: "Loans & EMIs - balance decreases over time",
            ContractType.GROWING: "Savings & investments - value grows over time",
            ContractType.FIXED: "Subscriptions & insurance - fixed recurring payments",
        }[self]


class ContractStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    CLOSED = "closed"

    @classmethod
    def parse(cls, value: str) -> "ContractStatus":
        try:
            return cls(value)
        except ValueError as exc:
            raise InvalidInputError(f"Unknown contract status: {value}") from exc

    @property
    def display_name(self) -> str:
        return self.value.capitalize()

    @property
    def allows_updates(self) -> bool:
        return self is ContractStatus.ACTIVE

    @property
    def is_terminal(self) -> bool:
        return self is ContractStatus.CLOSED


class BillingCycle(str, Enum):
    """How often a fixed contract is billed. ``months`` is the cycle length."""

    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    HALF_YEARLY = "half_yearly"
    YEARLY = "yearly"

    @classmethod
    def parse(cls, value: str) -> "BillingCycle":
        try:
            return cls(value)
        except ValueError as exc:
            raise InvalidInputError(f"Unknown billing cycle: {value}") from exc

    @property
    def months(self) -> int:
        return {
            BillingCycle.MONTHLY: 1,
            BillingCycle.QUARTERLY: 3,
            BillingCycle.HALF_YEARLY: 6,
            BillingCycle.YEARLY: 12,
        }[self]

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").title()


@dataclass(frozen=True)
class ReducingMetadata:
    """Loan state for a reducing contract.

    Attributes
    ----------
    principal_amount: Decimal
        The amount originally borrowed.
    interest_rate_percent: Decimal
        Annual nominal interest rate in percent (12 means 12 % a year).
    tenure_months: int
        Agreed number of monthly installments.
    remaining_balance: Decimal
        Outstanding principal. Never negative.
    emi_amount: Decimal
        The nominal monthly installment agreed with the lender.
    paid_installments: int
        Installments already applied to ``remaining_balance``.
    prepayments_made: Decimal
        Cumulative extra payments recorded outside the schedule.
    """

    kind: ClassVar[ContractType] = ContractType.REDUCING

    principal_amount: Decimal
    interest_rate_percent: Decimal
    tenure_months: int
    remaining_balance: Decimal
    emi_amount: Decimal
    lender_name: Optional[str] = None
    loan_type: Optional[str] = None
    account_number: Optional[str] = None
    paid_installments: int = 0
    prepayments_made: Decimal = Decimal("0")

    def __post_init__(self) -> None:
        if self.remaining_balance < 0:
            raise InvalidInputError("remaining_balance must be non-negative")

    @property
    def remaining_installments(self) -> int:
        return self.tenure_months - self.paid_installments

    @property
    def progress_percent(self) -> Decimal:
        if self.tenure_months <= 0:
            return Decimal("0")
        return Decimal(self.paid_installments) / Decimal(self.tenure_months) * 100

    @property
    def total_paid(self) -> Decimal:
        return self.paid_installments * self.emi_amount + self.prepayments_made


@dataclass(frozen=True)
class GrowingMetadata:
    """Investment state for a growing contract (e.g. a monthly SIP)."""

    kind: ClassVar[ContractType] = ContractType.GROWING

    current_value: Decimal
    total_invested: Decimal
    expected_return_percent: Optional[Decimal] = None
    target_amount: Optional[Decimal] = None
    target_date: Optional[date] = None
    investment_type: Optional[str] = None
    provider_name: Optional[str] = None
    sip_day: Optional[int] = None
    paid_months: int = 0

    @property
    def absolute_returns(self) -> Decimal:
        return self.current_value - self.total_invested

    @property
    def returns_percent(self) -> Decimal:
        if self.total_invested <= 0:
            return Decimal("0")
        return self.absolute_returns / self.total_invested * 100

    @property
    def target_progress(self) -> Optional[Decimal]:
        if self.target_amount is None or self.target_amount <= 0:
            return None
        return self.current_value / self.target_amount


@dataclass(frozen=True)
class FixedMetadata:
    """Billing details for a fixed contract (subscription or insurance)."""

    kind: ClassVar[ContractType] = ContractType.FIXED

    billing_cycle: BillingCycle = BillingCycle.MONTHLY
    renewal_date: Optional[date] = None
    auto_renew: bool = True
    category: Optional[str] = None
    provider_name: Optional[str] = None
    policy_number: Optional[str] = None
    coverage_amount: Optional[Decimal] = None
    is_liability: bool = True

    def is_renewal_due_within(self, days: int, today: date) -> bool:
        if self.renewal_date is None:
            return False
        diff = (self.renewal_date - today).days
        return 0 <= diff <= days


ContractMetadata = Union[ReducingMetadata, GrowingMetadata, FixedMetadata]


@dataclass(frozen=True)
class Contract:
    """A recurring financial commitment.

    ``monthly_amount`` is the nominal EMI, contribution or premium charged
    every month. ``metadata`` must be the variant matching ``type``.
    """

    id: str
    name: str
    type: ContractType
    status: ContractStatus
    start_date: date
    monthly_amount: Decimal
    metadata: ContractMetadata
    end_date: Optional[date] = None
    description: Optional[str] = None
    tags: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.metadata.kind is not self.type:
            raise InvalidInputError(
                f"Contract {self.id}: {self.metadata.kind.value} metadata "
                f"does not match contract type {self.type.value}"
            )

    @property
    def reducing_metadata(self) -> ReducingMetadata:
        return self._metadata_of(ContractType.REDUCING)

    @property
    def growing_metadata(self) -> GrowingMetadata:
        return self._metadata_of(ContractType.GROWING)

    @property
    def fixed_metadata(self) -> FixedMetadata:
        return self._metadata_of(ContractType.FIXED)

    def _metadata_of(self, kind: ContractType):
        if self.type is not kind:
            raise InvalidInputError(
                f"Contract {self.id} is {self.type.value}, not {kind.value}"
            )
        return self.metadata

    @property
    def is_active(self) -> bool:
        return self.status is ContractStatus.ACTIVE

    @property
    def is_paused(self) -> bool:
        return self.status is ContractStatus.PAUSED

    @property
    def is_closed(self) -> bool:
        return self.status is ContractStatus.CLOSED

    @property
    def has_end_date(self) -> bool:
        return self.end_date is not None

    @property
    def annual_amount(self) -> Decimal:
        return self.monthly_amount * 12

    @property
    def duration_months(self) -> Optional[int]:
        if self.end_date is None:
            return None
        return months_between(self.start_date, self.end_date)

    def is_applicable(self, month: int, year: int) -> bool:
        """Whether this contract takes part in the given calendar month."""
        if not self.is_active:
            return False
        if self.start_date > last_day_of_month(month, year):
            return False
        if self.end_date is not None and self.end_date < first_day_of_month(month, year):
            return False
        return True


@dataclass(frozen=True)
class ContractContribution:
    """One contract's effect on a month's snapshot.

    Reducing contracts fill in the principal/interest split and the balance
    after the payment; growing contracts fill in the invested total after the
    contribution; fixed contracts carry only ``amount``.
    """

    contract_id: str
    contract_name: str
    contract_type: ContractType
    amount: Decimal
    principal_portion: Optional[Decimal] = None
    interest_portion: Optional[Decimal] = None
    new_balance: Optional[Decimal] = None
    new_invested_total: Optional[Decimal] = None


@dataclass(frozen=True)
class MonthlySnapshot:
    """The cash-flow ledger of one calendar month."""

    month: int
    year: int
    total_income: Decimal
    mandatory_outflow: Decimal
    active_contract_count: int
    reducing_outflow: Decimal
    growing_outflow: Decimal
    fixed_outflow: Decimal
    contributions: Tuple[ContractContribution, ...] = ()
    total_wealth: Decimal = Decimal("0")
    total_debt: Decimal = Decimal("0")
    generated_at: Optional[datetime] = None

    @classmethod
    def empty(
        cls,
        month: int,
        year: int,
        total_income: Decimal = Decimal("0"),
        generated_at: Optional[datetime] = None,
    ) -> "MonthlySnapshot":
        return cls(
            month=month,
            year=year,
            total_income=total_income,
            mandatory_outflow=Decimal("0"),
            active_contract_count=0,
            reducing_outflow=Decimal("0"),
            growing_outflow=Decimal("0"),
            fixed_outflow=Decimal("0"),
            generated_at=generated_at,
        )

    @property
    def free_balance(self) -> Decimal:
        return self.total_income - self.mandatory_outflow

    @property
    def is_deficit(self) -> bool:
        return self.free_balance < 0

    @property
    def savings_rate_percent(self) -> Decimal:
        if self.total_income <= 0:
            return Decimal("0")
        return self.free_balance / self.total_income * 100

    @property
    def has_no_contracts(self) -> bool:
        return self.active_contract_count == 0

    @property
    def month_name(self) -> str:
        return MONTH_NAMES[self.month - 1]

    @property
    def display_month(self) -> str:
        return f"{self.month_name} {self.year}"

    def outflow_for(self, contract_type: ContractType) -> Decimal:
        return {
            ContractType.REDUCING: self.reducing_outflow,
            ContractType.GROWING: self.growing_outflow,
            ContractType.FIXED: self.fixed_outflow,
        }[contract_type]


@dataclass(frozen=True)
class AmortizationEntry:
    """One installment of an amortization schedule.

    ``emi_paid`` equals the nominal EMI except on the closing installment,
    where it is reduced to the remaining principal plus that month's interest.
    """

    month_number: int
    payment_date: date
    emi_paid: Decimal
    principal_portion: Decimal
    interest_portion: Decimal
    remaining_balance: Decimal
    cumulative_principal_paid: Decimal
    cumulative_interest_paid: Decimal

    @property
    def cumulative_total_paid(self) -> Decimal:
        return self.cumulative_principal_paid + self.cumulative_interest_paid


@dataclass(frozen=True)
class LoanStatusAtDate:
    as_of_date: date
    months_completed: int
    total_amount_paid: Decimal
    total_interest_paid: Decimal
    remaining_principal: Decimal
    remaining_months: int
    expected_closure_date: date
    is_loan_closed: bool


@dataclass(frozen=True)
class LoanSummary:
    """A full schedule together with the loan parameters and its totals."""

    principal: Decimal
    annual_interest_rate: Decimal
    tenure_months: int
    emi: Decimal
    start_date: date
    schedule: Tuple[AmortizationEntry, ...]
    total_amount_payable: Decimal
    total_interest_payable: Decimal
    expected_closure_date: date

    @property
    def monthly_interest_rate(self) -> Decimal:
        return self.annual_interest_rate / 12 / 100

    @property
    def months(self) -> int:
        return len(self.schedule)

    def entry_at_month(self, month_number: int) -> Optional[AmortizationEntry]:
        if month_number < 1 or month_number > len(self.schedule):
            return None
        return self.schedule[month_number - 1]

    def status_at_date(self, as_of: date) -> LoanStatusAtDate:
        """Return the loan position after every installment due on or before ``as_of``."""
        last_entry = None
        for entry in self.schedule:
            if entry.payment_date > as_of:
                break
            last_entry = entry
        if last_entry is None:
            return LoanStatusAtDate(
                as_of_date=as_of,
                months_completed=0,
                total_amount_paid=Decimal("0"),
                total_interest_paid=Decimal("0"),
                remaining_principal=self.principal,
                remaining_months=self.tenure_months,
                expected_closure_date=self.expected_closure_date,
                is_loan_closed=False,
            )
        return LoanStatusAtDate(
            as_of_date=as_of,
            months_completed=last_entry.month_number,
            total_amount_paid=last_entry.cumulative_total_paid,
            total_interest_paid=last_entry.cumulative_interest_paid,
            remaining_principal=last_entry.remaining_balance,
            remaining_months=self.tenure_months - last_entry.month_number,
            expected_closure_date=self.expected_closure_date,
            is_loan_closed=last_entry.remaining_balance <= ZERO_TOLERANCE,
        )


@dataclass(frozen=True)
class Projection:
    """Snapshots for consecutive months plus the contracts' final states."""

    snapshots: Tuple[MonthlySnapshot, ...]
    final_contracts: Tuple[Contract, ...]
    from_month: int
    from_year: int
    to_month: int
    to_year: int

    @property
    def month_count(self) -> int:
        return len(self.snapshots)

    @property
    def total_mandatory_outflow(self) -> Decimal:
        return sum((s.mandatory_outflow for s in self.snapshots), Decimal("0"))

    @property
    def total_income(self) -> Decimal:
        return sum((s.total_income for s in self.snapshots), Decimal("0"))

    @property
    def total_free_balance(self) -> Decimal:
        return self.total_income - self.total_mandatory_outflow

    @property
    def average_monthly_outflow(self) -> Decimal:
        if not self.snapshots:
            return Decimal("0")
        return self.total_mandatory_outflow / len(self.snapshots)

    @property
    def first_snapshot(self) -> Optional[MonthlySnapshot]:
        return self.snapshots[0] if self.snapshots else None

    @property
    def last_snapshot(self) -> Optional[MonthlySnapshot]:
        return self.snapshots[-1] if self.snapshots else None
