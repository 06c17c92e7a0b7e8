"""Loan amortization engine.

This module builds reducing-balance payment schedules for a single loan.
Interest for each month is charged on the outstanding principal; whatever is
left of the EMI after interest reduces the principal. Results are returned as
a ``LoanSummary`` holding every ``AmortizationEntry`` plus the totals.

Values are carried at full ``Decimal`` precision through the whole recurrence.
Rounding to currency units is left to whoever displays or exports the
schedule, so long tenures do not accumulate rounding drift.

The engine is pure: it reads only its arguments and never touches contract
state, so it can be used on its own to preview a loan.
"""

from __future__ import annotations

import logging
import math
from datetime import date
from decimal import Decimal
from typing import List

from .data_models import AmortizationEntry, LoanSummary
from .utils import (
    EMI_INTEREST_TOLERANCE,
    InvalidInputError,
    ZERO_TOLERANCE,
    add_months,
    to_decimal,
)

logger = logging.getLogger(__name__)

# Returned by ``calculate_remaining_tenure`` when the EMI can never clear the balance.
NEVER_AMORTIZES = 999


def _monthly_rate(annual_rate_percent: Decimal) -> Decimal:
    return annual_rate_percent / Decimal(12) / Decimal(100)


def calculate_emi(principal, annual_rate_percent, tenure_months: int) -> Decimal:
    """Return the equal monthly installment for a loan.

    The formula is:

        EMI = P * r * (1 + r)^n / ((1 + r)^n - 1)

    where ``P`` is the principal, ``r`` the monthly interest rate and ``n``
    the number of installments. When the interest rate is zero the payment
    simplifies to ``P / n``.
    """
    principal = to_decimal(principal)
    annual_rate_percent = to_decimal(annual_rate_percent)
    if principal <= 0:
        raise InvalidInputError(f"Principal must be positive. Got: {principal}")
    if tenure_months <= 0:
        raise InvalidInputError(f"Tenure must be positive. Got: {tenure_months}")
    if annual_rate_percent <= 0:
        return principal / Decimal(tenure_months)
    rate = _monthly_rate(annual_rate_percent)
    factor = (1 + rate) ** tenure_months
    return principal * rate * factor / (factor - 1)


def _validate_inputs(
    principal: Decimal,
    annual_rate_percent: Decimal,
    tenure_months: int,
    emi: Decimal,
) -> None:
    if principal <= 0:
        raise InvalidInputError(f"Principal must be a positive number. Got: {principal}")
    if annual_rate_percent < 0:
        raise InvalidInputError(
            f"Annual interest rate cannot be negative. Got: {annual_rate_percent}"
        )
    if tenure_months <= 0:
        raise InvalidInputError(f"Tenure must be a positive integer. Got: {tenure_months}")
    if emi <= 0:
        raise InvalidInputError(f"EMI must be a positive number. Got: {emi}")
    first_month_interest = principal * _monthly_rate(annual_rate_percent)
    if emi <= first_month_interest - EMI_INTEREST_TOLERANCE:
        raise InvalidInputError(
            f"EMI ({emi}) must be greater than the first month's interest "
            f"({first_month_interest}); the loan would never amortize."
        )


def generate_schedule(
    principal,
    annual_rate_percent,
    tenure_months: int,
    emi,
    start_date: date,
) -> LoanSummary:
    """Compute the amortization schedule and summary for a loan.

    Parameters
    ----------
    principal:
        Amount borrowed. Must be positive.
    annual_rate_percent:
        Annual nominal interest rate in percent. Zero is allowed.
    tenure_months: int
        Maximum number of installments. The final installment always clears
        whatever balance is left.
    emi:
        Nominal monthly installment. It must cover the first month's interest.
    start_date: date
        Date of the first installment. Later installments fall on the same
        day of each following month, clamped to the month's last day.

    Returns
    -------
    LoanSummary
        The schedule, which stops early once the balance reaches zero, and
        the loan totals.

    Raises
    ------
    InvalidInputError
        If any parameter is out of range.
    """
    principal = to_decimal(principal)
    annual_rate_percent = to_decimal(annual_rate_percent)
    emi = to_decimal(emi)
    _validate_inputs(principal, annual_rate_percent, tenure_months, emi)

    rate = _monthly_rate(annual_rate_percent)
    schedule: List[AmortizationEntry] = []
    remaining_balance = principal
    cumulative_principal = Decimal("0")
    cumulative_interest = Decimal("0")

    for month_number in range(1, tenure_months + 1):
        interest = remaining_balance * rate
        principal_if_full_emi = emi - interest

        if (
            month_number == tenure_months
            or remaining_balance <= principal_if_full_emi + ZERO_TOLERANCE
        ):
            # Closing installment: pay off exactly what is left.
            principal_portion = remaining_balance
            actual_emi = principal_portion + interest
        else:
            principal_portion = principal_if_full_emi
            actual_emi = emi

        remaining_balance -= principal_portion
        if remaining_balance < ZERO_TOLERANCE:
            remaining_balance = Decimal("0")

        cumulative_principal += principal_portion
        cumulative_interest += interest
        schedule.append(
            AmortizationEntry(
                month_number=month_number,
                payment_date=add_months(start_date, month_number - 1),
                emi_paid=actual_emi,
                principal_portion=principal_portion,
                interest_portion=interest,
                remaining_balance=remaining_balance,
                cumulative_principal_paid=cumulative_principal,
                cumulative_interest_paid=cumulative_interest,
            )
        )
        if remaining_balance == 0:
            break

    logger.debug(
        "Generated %d installments for principal %s at %s%% (tenure %d)",
        len(schedule),
        principal,
        annual_rate_percent,
        tenure_months,
    )
    return LoanSummary(
        principal=principal,
        annual_interest_rate=annual_rate_percent,
        tenure_months=tenure_months,
        emi=emi,
        start_date=start_date,
        schedule=tuple(schedule),
        total_amount_payable=cumulative_principal + cumulative_interest,
        total_interest_payable=cumulative_interest,
        expected_closure_date=schedule[-1].payment_date,
    )


def calculate_remaining_tenure(balance, annual_rate_percent, emi) -> int:
    """Return how many more installments of ``emi`` clear ``balance``.

    Uses ``n = -ln(1 - B*r/P) / ln(1 + r)`` rounded up. Returns
    ``NEVER_AMORTIZES`` when the EMI does not exceed the monthly interest.
    """
    balance = to_decimal(balance)
    emi = to_decimal(emi)
    if balance <= ZERO_TOLERANCE:
        return 0
    if emi <= ZERO_TOLERANCE:
        return NEVER_AMORTIZES
    rate = _monthly_rate(to_decimal(annual_rate_percent))
    if rate <= 0:
        return math.ceil(balance / emi)
    if balance * rate >= emi:
        return NEVER_AMORTIZES
    numerator = (1 - balance * rate / emi).ln()
    denominator = (1 + rate).ln()
    return math.ceil(-(numerator / denominator))


def calculate_annual_interest_rate(principal, emi, tenure_months: int) -> Decimal:
    """Back out the annual rate (percent, 2 places) implied by an EMI.

    Bisects on [0, 500] percent; 40 halvings are far below a basis point.
    Returns zero when the inputs are non-positive or the EMI repays no more
    than the principal.
    """
    principal = to_decimal(principal)
    emi = to_decimal(emi)
    if principal <= 0 or emi <= 0 or tenure_months <= 0:
        return Decimal("0")
    if emi * tenure_months <= principal:
        return Decimal("0")
    low = Decimal("0")
    high = Decimal("500")
    mid = Decimal("0")
    for _ in range(40):
        mid = (low + high) / 2
        if calculate_emi(principal, mid, tenure_months) > emi:
            high = mid
        else:
            low = mid
    return mid.quantize(Decimal("0.01"))
