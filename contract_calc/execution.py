"""Monthly execution engine.

Given a list of contracts, this module computes what each of them costs in a
calendar month and aggregates the result into a ``MonthlySnapshot``. It can
also roll the same calculation forward over many months, advancing loan
balances and invested totals as it goes, to produce a ``Projection``.

Every function here is pure. Contracts passed in are never modified; the
projection works on its own per-contract accumulators and hands back freshly
built ``Contract`` values for the final state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from .data_models import (
    Contract,
    ContractContribution,
    ContractStatus,
    ContractType,
    MonthlySnapshot,
    Projection,
)
from .engine import calculate_remaining_tenure
from .utils import (
    InvalidInputError,
    ZERO_TOLERANCE,
    month_offset,
    months_between,
    to_decimal,
    validate_month_year,
)

logger = logging.getLogger(__name__)


@dataclass
class _WorkingState:
    """Mutable financial state of one contract during a projection.

    Built fresh from the caller's contract when a projection starts; the
    caller's value is only read, never written.
    """

    contract: Contract
    status: ContractStatus
    remaining_balance: Decimal = Decimal("0")
    paid_installments: int = 0
    total_invested: Decimal = Decimal("0")
    current_value: Decimal = Decimal("0")
    paid_months: int = 0

    @classmethod
    def from_contract(cls, contract: Contract) -> "_WorkingState":
        state = cls(contract=contract, status=contract.status)
        if contract.type is ContractType.REDUCING:
            meta = contract.reducing_metadata
            state.remaining_balance = meta.remaining_balance
            state.paid_installments = meta.paid_installments
        elif contract.type is ContractType.GROWING:
            meta = contract.growing_metadata
            state.total_invested = meta.total_invested
            state.current_value = meta.current_value
            state.paid_months = meta.paid_months
        return state

    def is_applicable(self, month: int, year: int) -> bool:
        return self.status is ContractStatus.ACTIVE and self.contract.is_applicable(month, year)

    def to_contract(self) -> Contract:
        contract = self.contract
        if contract.type is ContractType.REDUCING:
            metadata = replace(
                contract.reducing_metadata,
                remaining_balance=self.remaining_balance,
                paid_installments=self.paid_installments,
            )
        elif contract.type is ContractType.GROWING:
            metadata = replace(
                contract.growing_metadata,
                total_invested=self.total_invested,
                current_value=self.current_value,
                paid_months=self.paid_months,
            )
        else:
            metadata = contract.metadata
        return replace(contract, status=self.status, metadata=metadata)


def _reducing_contribution(
    contract: Contract, balance: Decimal
) -> ContractContribution:
    meta = contract.reducing_metadata
    interest = balance * meta.interest_rate_percent / Decimal(12) / Decimal(100)
    # An installment below the interest leaves the balance where it is.
    principal_portion = max(Decimal("0"), min(contract.monthly_amount - interest, balance))
    new_balance = max(Decimal("0"), balance - principal_portion)
    return ContractContribution(
        contract_id=contract.id,
        contract_name=contract.name,
        contract_type=contract.type,
        amount=contract.monthly_amount,
        principal_portion=principal_portion,
        interest_portion=interest,
        new_balance=new_balance,
    )


def _growing_contribution(
    contract: Contract, total_invested: Decimal
) -> ContractContribution:
    return ContractContribution(
        contract_id=contract.id,
        contract_name=contract.name,
        contract_type=contract.type,
        amount=contract.monthly_amount,
        new_invested_total=total_invested + contract.monthly_amount,
    )


def _fixed_contribution(contract: Contract) -> ContractContribution:
    return ContractContribution(
        contract_id=contract.id,
        contract_name=contract.name,
        contract_type=contract.type,
        amount=contract.monthly_amount,
    )


def _contribution_for(state: _WorkingState) -> ContractContribution:
    contract = state.contract
    if contract.type is ContractType.REDUCING:
        return _reducing_contribution(contract, state.remaining_balance)
    if contract.type is ContractType.GROWING:
        return _growing_contribution(contract, state.total_invested)
    return _fixed_contribution(contract)


def _build_snapshot(
    states: Sequence[_WorkingState],
    month: int,
    year: int,
    total_income: Decimal,
    generated_at: Optional[datetime],
) -> Tuple[MonthlySnapshot, List[Tuple[_WorkingState, ContractContribution]]]:
    """Aggregate the applicable states into a snapshot.

    Also returns each applicable state paired with its contribution so a
    projection can advance the states without recomputing anything.
    """
    applied: List[Tuple[_WorkingState, ContractContribution]] = []
    outflow = {t: Decimal("0") for t in ContractType}
    total_wealth = Decimal("0")
    total_debt = Decimal("0")

    for state in states:
        if not state.is_applicable(month, year):
            continue
        contract = state.contract
        contribution = _contribution_for(state)
        outflow[contract.type] += contribution.amount

        if contract.type is ContractType.REDUCING:
            emi = contract.reducing_metadata.emi_amount
            remaining_months = calculate_remaining_tenure(
                contribution.new_balance,
                contract.reducing_metadata.interest_rate_percent,
                emi,
            )
            total_debt += remaining_months * emi
        elif contract.type is ContractType.GROWING:
            total_wealth += state.total_invested
        else:
            meta = contract.fixed_metadata
            value = meta.coverage_amount if meta.coverage_amount is not None else contract.monthly_amount
            if meta.is_liability:
                total_debt += value
            else:
                total_wealth += value
        applied.append((state, contribution))

    reducing = outflow[ContractType.REDUCING]
    growing = outflow[ContractType.GROWING]
    fixed = outflow[ContractType.FIXED]
    snapshot = MonthlySnapshot(
        month=month,
        year=year,
        total_income=total_income,
        mandatory_outflow=reducing + growing + fixed,
        active_contract_count=len(applied),
        reducing_outflow=reducing,
        growing_outflow=growing,
        fixed_outflow=fixed,
        contributions=tuple(c for _, c in applied),
        total_wealth=total_wealth,
        total_debt=total_debt,
        generated_at=generated_at,
    )
    return snapshot, applied


def execute_month(
    contracts: Iterable[Contract],
    month: int,
    year: int,
    total_income: Union[Decimal, int, float, str] = Decimal("0"),
    generated_at: Optional[datetime] = None,
) -> MonthlySnapshot:
    """Compute the cash-flow ledger of one calendar month.

    Only contracts applicable to the month (active, started by its last day
    and not ended before its first day) contribute. Each contract is priced
    from its currently stored state; nothing is mutated. Contributions appear
    in the same order as ``contracts``.

    ``generated_at`` is stamped on the snapshot as given. The engine never
    reads the clock, so identical arguments produce equal snapshots.

    Raises
    ------
    InvalidInputError
        If ``month`` is outside 1-12.
    """
    validate_month_year(month, year)
    states = [_WorkingState.from_contract(c) for c in contracts]
    snapshot, _ = _build_snapshot(
        states, month, year, to_decimal(total_income), generated_at
    )
    logger.debug(
        "%s: %d active contracts, mandatory outflow %s",
        snapshot.display_month,
        snapshot.active_contract_count,
        snapshot.mandatory_outflow,
    )
    return snapshot


def _advance(state: _WorkingState, contribution: ContractContribution) -> None:
    contract = state.contract
    if contract.type is ContractType.REDUCING:
        balance = state.remaining_balance - contribution.principal_portion
        state.paid_installments += 1
        if balance <= ZERO_TOLERANCE:
            balance = Decimal("0")
            state.status = ContractStatus.CLOSED
            logger.debug("Contract %s paid off; closing", contract.id)
        state.remaining_balance = balance
    elif contract.type is ContractType.GROWING:
        state.total_invested += contract.monthly_amount
        state.current_value += contract.monthly_amount
        state.paid_months += 1


def generate_projection(
    contracts: Iterable[Contract],
    start_month: int,
    start_year: int,
    month_count: int,
    monthly_income: Union[Decimal, int, float, str] = Decimal("0"),
    generated_at: Optional[datetime] = None,
) -> Projection:
    """Roll the monthly calculation forward over ``month_count`` months.

    Each month is priced from the working state left by the previous month.
    After pricing, loan balances drop by the principal portion and invested
    totals grow by the monthly contribution. A loan whose balance falls to the
    tolerance is closed: it still pays in the month it closes and is skipped
    from then on.

    Returns
    -------
    Projection
        One snapshot per month in calendar order, and the final state of every
        input contract in input order.
    """
    validate_month_year(start_month, start_year)
    if month_count <= 0:
        raise InvalidInputError(f"month_count must be positive. Got: {month_count}")
    income = to_decimal(monthly_income)
    states = [_WorkingState.from_contract(c) for c in contracts]
    snapshots: List[MonthlySnapshot] = []

    month, year = start_month, start_year
    for offset in range(month_count):
        month, year = month_offset(start_month, start_year, offset)
        validate_month_year(month, year)
        snapshot, applied = _build_snapshot(states, month, year, income, generated_at)
        for state, contribution in applied:
            _advance(state, contribution)
        snapshots.append(snapshot)

    logger.debug(
        "Projected %d months from %02d/%d across %d contracts",
        month_count,
        start_month,
        start_year,
        len(states),
    )
    return Projection(
        snapshots=tuple(snapshots),
        final_contracts=tuple(s.to_contract() for s in states),
        from_month=start_month,
        from_year=start_year,
        to_month=month,
        to_year=year,
    )


def calculate_type_outflow(
    contracts: Iterable[Contract],
    contract_type: ContractType,
    start_month: int,
    start_year: int,
    month_count: int,
) -> Decimal:
    """Total outflow of one contract type over a projection horizon."""
    projection = generate_projection(contracts, start_month, start_year, month_count)
    return sum(
        (s.outflow_for(contract_type) for s in projection.snapshots), Decimal("0")
    )


def catch_up_contract(contract: Contract, target_month: int, target_year: int) -> Contract:
    """Bring a contract's stored state up to the start of a target month.

    Every month from the contract's start month up to, but excluding, the
    target month counts as paid. Months already recorded in
    ``paid_installments`` or ``paid_months`` are not applied again. Contracts
    that are not active, fixed contracts and targets before the start month
    come back unchanged.
    """
    validate_month_year(target_month, target_year)
    if not contract.is_active or contract.type is ContractType.FIXED:
        return contract
    start = date(contract.start_date.year, contract.start_date.month, 1)
    target = date(target_year, target_month, 1)
    if target < start:
        return contract

    state = _WorkingState.from_contract(contract)
    already_applied = (
        state.paid_installments
        if contract.type is ContractType.REDUCING
        else state.paid_months
    )
    months_due = months_between(start, target) - already_applied
    for _ in range(max(months_due, 0)):
        if state.status is not ContractStatus.ACTIVE:
            break
        _advance(state, _contribution_for(state))
    return state.to_contract()
