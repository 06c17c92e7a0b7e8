"""Conversion between the data models and JSON-compatible dictionaries.

Contracts arrive from files or HTTP requests as dictionaries and every result
leaves the same way. Monetary values are written as strings so a ``Decimal``
survives the round trip unchanged; on input, numbers and numeric strings are
both accepted. Dates use ISO format.
"""

from __future__ import annotations

import json
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional

from .data_models import (
    AmortizationEntry,
    BillingCycle,
    Contract,
    ContractContribution,
    ContractStatus,
    ContractType,
    FixedMetadata,
    GrowingMetadata,
    LoanSummary,
    MonthlySnapshot,
    Projection,
    ReducingMetadata,
)
from .utils import InvalidInputError, parse_date, to_decimal


def _money(value: Optional[Decimal]) -> Optional[str]:
    return None if value is None else str(value)


def _iso(value: Optional[date]) -> Optional[str]:
    return None if value is None else value.isoformat()


def _required(data: Dict[str, Any], key: str) -> Any:
    try:
        return data[key]
    except KeyError:
        raise InvalidInputError(f"Missing required field: {key}") from None


def _decimal_field(data: Dict[str, Any], key: str, default=None) -> Optional[Decimal]:
    value = data.get(key, default)
    if value is None:
        return None
    try:
        return to_decimal(value)
    except InvalidInputError as exc:
        raise InvalidInputError(f"Field {key}: {exc}") from exc


def _required_decimal(data: Dict[str, Any], key: str) -> Decimal:
    _required(data, key)
    value = _decimal_field(data, key)
    if value is None:
        raise InvalidInputError(f"Field {key} must not be null")
    return value


def _date_field(data: Dict[str, Any], key: str) -> Optional[date]:
    value = data.get(key)
    if value is None:
        return None
    return parse_date(str(value))


def metadata_to_dict(contract: Contract) -> Dict[str, Any]:
    meta = contract.metadata
    if contract.type is ContractType.REDUCING:
        return {
            "metadata_type": meta.kind.value,
            "principal_amount": _money(meta.principal_amount),
            "interest_rate_percent": _money(meta.interest_rate_percent),
            "tenure_months": meta.tenure_months,
            "remaining_balance": _money(meta.remaining_balance),
            "emi_amount": _money(meta.emi_amount),
            "lender_name": meta.lender_name,
            "loan_type": meta.loan_type,
            "account_number": meta.account_number,
            "paid_installments": meta.paid_installments,
            "prepayments_made": _money(meta.prepayments_made),
        }
    if contract.type is ContractType.GROWING:
        return {
            "metadata_type": meta.kind.value,
            "current_value": _money(meta.current_value),
            "total_invested": _money(meta.total_invested),
            "expected_return_percent": _money(meta.expected_return_percent),
            "target_amount": _money(meta.target_amount),
            "target_date": _iso(meta.target_date),
            "investment_type": meta.investment_type,
            "provider_name": meta.provider_name,
            "sip_day": meta.sip_day,
            "paid_months": meta.paid_months,
        }
    return {
        "metadata_type": meta.kind.value,
        "billing_cycle": meta.billing_cycle.value,
        "renewal_date": _iso(meta.renewal_date),
        "auto_renew": meta.auto_renew,
        "category": meta.category,
        "provider_name": meta.provider_name,
        "policy_number": meta.policy_number,
        "coverage_amount": _money(meta.coverage_amount),
        "is_liability": meta.is_liability,
    }


def metadata_from_dict(contract_type: ContractType, data: Dict[str, Any]):
    """Build the metadata variant selected by ``contract_type``."""
    tag = data.get("metadata_type", contract_type.value)
    if tag != contract_type.value:
        raise InvalidInputError(
            f"metadata_type {tag!r} does not match contract type {contract_type.value!r}"
        )
    if contract_type is ContractType.REDUCING:
        return ReducingMetadata(
            principal_amount=_required_decimal(data, "principal_amount"),
            interest_rate_percent=_required_decimal(data, "interest_rate_percent"),
            tenure_months=int(_required(data, "tenure_months")),
            remaining_balance=_required_decimal(data, "remaining_balance"),
            emi_amount=_required_decimal(data, "emi_amount"),
            lender_name=data.get("lender_name"),
            loan_type=data.get("loan_type"),
            account_number=data.get("account_number"),
            paid_installments=int(data.get("paid_installments") or 0),
            prepayments_made=_decimal_field(data, "prepayments_made", "0"),
        )
    if contract_type is ContractType.GROWING:
        return GrowingMetadata(
            current_value=_decimal_field(data, "current_value", "0"),
            total_invested=_decimal_field(data, "total_invested", "0"),
            expected_return_percent=_decimal_field(data, "expected_return_percent"),
            target_amount=_decimal_field(data, "target_amount"),
            target_date=_date_field(data, "target_date"),
            investment_type=data.get("investment_type"),
            provider_name=data.get("provider_name"),
            sip_day=data.get("sip_day"),
            paid_months=int(data.get("paid_months") or 0),
        )
    return FixedMetadata(
        billing_cycle=BillingCycle.parse(data.get("billing_cycle", "monthly")),
        renewal_date=_date_field(data, "renewal_date"),
        auto_renew=bool(data.get("auto_renew", True)),
        category=data.get("category"),
        provider_name=data.get("provider_name"),
        policy_number=data.get("policy_number"),
        coverage_amount=_decimal_field(data, "coverage_amount"),
        is_liability=bool(data.get("is_liability", True)),
    )


def contract_to_dict(contract: Contract) -> Dict[str, Any]:
    return {
        "id": contract.id,
        "name": contract.name,
        "type": contract.type.value,
        "status": contract.status.value,
        "start_date": _iso(contract.start_date),
        "end_date": _iso(contract.end_date),
        "monthly_amount": _money(contract.monthly_amount),
        "metadata": metadata_to_dict(contract),
        "description": contract.description,
        "tags": list(contract.tags),
    }


def contract_from_dict(data: Dict[str, Any]) -> Contract:
    """Build a ``Contract`` from a dictionary.

    Raises
    ------
    InvalidInputError
        If a required field is missing or a value cannot be parsed.
    """
    contract_type = ContractType.parse(_required(data, "type"))
    return Contract(
        id=str(_required(data, "id")),
        name=_required(data, "name"),
        type=contract_type,
        status=ContractStatus.parse(data.get("status", "active")),
        start_date=parse_date(str(_required(data, "start_date"))),
        end_date=_date_field(data, "end_date"),
        monthly_amount=_required_decimal(data, "monthly_amount"),
        metadata=metadata_from_dict(contract_type, data.get("metadata") or {}),
        description=data.get("description"),
        tags=tuple(data.get("tags") or ()),
    )


def load_contracts(path: Path) -> List[Contract]:
    """Read contracts from a JSON file.

    The file may hold a list of contracts or an object with a ``contracts``
    list.
    """
    try:
        with Path(path).open("r", encoding="utf-8") as f:
            payload = json.load(f)
    except json.JSONDecodeError as exc:
        raise InvalidInputError(f"{path} is not valid JSON: {exc}") from exc
    return contracts_from_payload(payload)


def contracts_from_payload(payload: Any) -> List[Contract]:
    if isinstance(payload, dict):
        payload = payload.get("contracts", [])
    if not isinstance(payload, list):
        raise InvalidInputError("Expected a list of contracts")
    return [contract_from_dict(item) for item in payload]


def contribution_to_dict(contribution: ContractContribution) -> Dict[str, Any]:
    return {
        "contract_id": contribution.contract_id,
        "contract_name": contribution.contract_name,
        "contract_type": contribution.contract_type.value,
        "amount": _money(contribution.amount),
        "principal_portion": _money(contribution.principal_portion),
        "interest_portion": _money(contribution.interest_portion),
        "new_balance": _money(contribution.new_balance),
        "new_invested_total": _money(contribution.new_invested_total),
    }


def contribution_from_dict(data: Dict[str, Any]) -> ContractContribution:
    return ContractContribution(
        contract_id=data["contract_id"],
        contract_name=data["contract_name"],
        contract_type=ContractType.parse(data["contract_type"]),
        amount=to_decimal(data["amount"]),
        principal_portion=_decimal_field(data, "principal_portion"),
        interest_portion=_decimal_field(data, "interest_portion"),
        new_balance=_decimal_field(data, "new_balance"),
        new_invested_total=_decimal_field(data, "new_invested_total"),
    )


def snapshot_to_dict(snapshot: MonthlySnapshot) -> Dict[str, Any]:
    return {
        "month": snapshot.month,
        "year": snapshot.year,
        "total_income": _money(snapshot.total_income),
        "mandatory_outflow": _money(snapshot.mandatory_outflow),
        "free_balance": _money(snapshot.free_balance),
        "is_deficit": snapshot.is_deficit,
        "active_contract_count": snapshot.active_contract_count,
        "reducing_outflow": _money(snapshot.reducing_outflow),
        "growing_outflow": _money(snapshot.growing_outflow),
        "fixed_outflow": _money(snapshot.fixed_outflow),
        "total_wealth": _money(snapshot.total_wealth),
        "total_debt": _money(snapshot.total_debt),
        "contributions": [contribution_to_dict(c) for c in snapshot.contributions],
        "generated_at": snapshot.generated_at.isoformat() if snapshot.generated_at else None,
    }


def snapshot_from_dict(data: Dict[str, Any]) -> MonthlySnapshot:
    generated_at = data.get("generated_at")
    return MonthlySnapshot(
        month=int(data["month"]),
        year=int(data["year"]),
        total_income=to_decimal(data["total_income"]),
        mandatory_outflow=to_decimal(data["mandatory_outflow"]),
        active_contract_count=int(data["active_contract_count"]),
        reducing_outflow=to_decimal(data["reducing_outflow"]),
        growing_outflow=to_decimal(data["growing_outflow"]),
        fixed_outflow=to_decimal(data["fixed_outflow"]),
        contributions=tuple(contribution_from_dict(c) for c in data.get("contributions", [])),
        total_wealth=to_decimal(data.get("total_wealth", "0")),
        total_debt=to_decimal(data.get("total_debt", "0")),
        generated_at=datetime.fromisoformat(generated_at) if generated_at else None,
    )


def entry_to_dict(entry: AmortizationEntry) -> Dict[str, Any]:
    return {
        "month_number": entry.month_number,
        "payment_date": entry.payment_date.isoformat(),
        "emi_paid": _money(entry.emi_paid),
        "principal_portion": _money(entry.principal_portion),
        "interest_portion": _money(entry.interest_portion),
        "remaining_balance": _money(entry.remaining_balance),
        "cumulative_principal_paid": _money(entry.cumulative_principal_paid),
        "cumulative_interest_paid": _money(entry.cumulative_interest_paid),
    }


def loan_summary_to_dict(summary: LoanSummary) -> Dict[str, Any]:
    return {
        "principal": _money(summary.principal),
        "annual_interest_rate": _money(summary.annual_interest_rate),
        "tenure_months": summary.tenure_months,
        "emi": _money(summary.emi),
        "start_date": summary.start_date.isoformat(),
        "total_amount_payable": _money(summary.total_amount_payable),
        "total_interest_payable": _money(summary.total_interest_payable),
        "expected_closure_date": summary.expected_closure_date.isoformat(),
        "schedule": [entry_to_dict(e) for e in summary.schedule],
    }


def projection_to_dict(projection: Projection) -> Dict[str, Any]:
    return {
        "from": {"month": projection.from_month, "year": projection.from_year},
        "to": {"month": projection.to_month, "year": projection.to_year},
        "month_count": projection.month_count,
        "total_mandatory_outflow": _money(projection.total_mandatory_outflow),
        "total_income": _money(projection.total_income),
        "total_free_balance": _money(projection.total_free_balance),
        "average_monthly_outflow": _money(projection.average_monthly_outflow),
        "snapshots": [snapshot_to_dict(s) for s in projection.snapshots],
        "final_contracts": [contract_to_dict(c) for c in projection.final_contracts],
    }
