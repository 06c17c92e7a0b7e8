"""
Shared builders for contract fixtures.

Amounts are given as strings or ints and converted to ``Decimal`` so the
tests read like the figures a user would type in.
"""

from datetime import date
from decimal import Decimal

import pytest

from contract_calc.data_models import (
    BillingCycle,
    Contract,
    ContractStatus,
    ContractType,
    FixedMetadata,
    GrowingMetadata,
    ReducingMetadata,
)


def make_loan(
    contract_id="loan-1",
    emi="10000",
    balance="100000",
    rate="12",
    start=date(2025, 6, 1),
    end=None,
    status=ContractStatus.ACTIVE,
    paid_installments=0,
    tenure=24,
):
    return Contract(
        id=contract_id,
        name=f"Loan {contract_id}",
        type=ContractType.REDUCING,
        status=status,
        start_date=start,
        end_date=end,
        monthly_amount=Decimal(emi),
        metadata=ReducingMetadata(
            principal_amount=Decimal(balance),
            interest_rate_percent=Decimal(rate),
            tenure_months=tenure,
            remaining_balance=Decimal(balance),
            emi_amount=Decimal(emi),
            paid_installments=paid_installments,
        ),
    )


def make_sip(
    contract_id="sip-1",
    amount="5000",
    invested="60000",
    start=date(2025, 1, 1),
    end=None,
    status=ContractStatus.ACTIVE,
):
    return Contract(
        id=contract_id,
        name=f"SIP {contract_id}",
        type=ContractType.GROWING,
        status=status,
        start_date=start,
        end_date=end,
        monthly_amount=Decimal(amount),
        metadata=GrowingMetadata(
            current_value=Decimal(invested),
            total_invested=Decimal(invested),
        ),
    )


def make_subscription(
    contract_id="sub-1",
    amount="649",
    start=date(2025, 1, 1),
    end=None,
    status=ContractStatus.ACTIVE,
    coverage=None,
    is_liability=True,
):
    return Contract(
        id=contract_id,
        name=f"Subscription {contract_id}",
        type=ContractType.FIXED,
        status=status,
        start_date=start,
        end_date=end,
        monthly_amount=Decimal(amount),
        metadata=FixedMetadata(
            billing_cycle=BillingCycle.MONTHLY,
            coverage_amount=Decimal(coverage) if coverage is not None else None,
            is_liability=is_liability,
        ),
    )


@pytest.fixture
def mixed_contracts():
    """A loan, an investment and a subscription summing to 27000 a month."""
    return [
        make_loan("home", emi="15000", balance="500000", rate="9"),
        make_sip("index-fund", amount="10000"),
        make_subscription("insurance", amount="2000"),
    ]


@pytest.fixture
def mixed_contracts_payload():
    """The same contracts as ``mixed_contracts`` in their JSON form."""
    return [
        {
            "id": "home",
            "name": "Home loan",
            "type": "reducing",
            "status": "active",
            "start_date": "2025-06-01",
            "monthly_amount": 15000,
            "metadata": {
                "metadata_type": "reducing",
                "principal_amount": 500000,
                "interest_rate_percent": 9,
                "tenure_months": 48,
                "remaining_balance": 500000,
                "emi_amount": 15000,
            },
        },
        {
            "id": "index-fund",
            "name": "Index fund",
            "type": "growing",
            "start_date": "2025-01-01",
            "monthly_amount": "10000",
            "metadata": {"current_value": "60000", "total_invested": "60000"},
        },
        {
            "id": "insurance",
            "name": "Term insurance",
            "type": "fixed",
            "start_date": "2025-01",
            "monthly_amount": "2000",
            "metadata": {"billing_cycle": "monthly"},
        },
    ]
