"""
Tests for the monthly execution engine and projections.
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from conftest import make_loan, make_sip, make_subscription
from contract_calc.data_models import ContractStatus, ContractType
from contract_calc.execution import (
    calculate_type_outflow,
    catch_up_contract,
    execute_month,
    generate_projection,
)
from contract_calc.utils import InvalidInputError


class TestExecuteMonth:
    def test_mixed_contracts_breakdown(self, mixed_contracts):
        snapshot = execute_month(mixed_contracts, 7, 2025, total_income=Decimal("100000"))
        assert snapshot.mandatory_outflow == Decimal("27000")
        assert snapshot.reducing_outflow == Decimal("15000")
        assert snapshot.growing_outflow == Decimal("10000")
        assert snapshot.fixed_outflow == Decimal("2000")
        assert snapshot.free_balance == Decimal("73000")
        assert snapshot.active_contract_count == 3
        assert not snapshot.is_deficit

    def test_outflow_is_sum_of_type_outflows(self, mixed_contracts):
        snapshot = execute_month(mixed_contracts, 7, 2025)
        assert snapshot.mandatory_outflow == sum(
            snapshot.outflow_for(t) for t in ContractType
        )
        assert snapshot.mandatory_outflow == sum(c.amount for c in snapshot.contributions)

    def test_contributions_follow_input_order(self, mixed_contracts):
        snapshot = execute_month(mixed_contracts, 7, 2025)
        assert [c.contract_id for c in snapshot.contributions] == ["home", "index-fund", "insurance"]

    def test_contract_not_yet_started_is_skipped(self, mixed_contracts):
        snapshot = execute_month(mixed_contracts, 5, 2025)
        assert snapshot.active_contract_count == 2
        assert snapshot.reducing_outflow == 0
        assert snapshot.mandatory_outflow == Decimal("12000")

    def test_contract_starting_late_in_month_is_included(self):
        loan = make_loan(start=date(2025, 6, 30))
        assert execute_month([loan], 6, 2025).active_contract_count == 1

    def test_contract_ending_mid_month_is_included_that_month_only(self):
        sub = make_subscription(end=date(2025, 3, 15))
        assert execute_month([sub], 3, 2025).active_contract_count == 1
        assert execute_month([sub], 4, 2025).active_contract_count == 0

    @pytest.mark.parametrize("status", [ContractStatus.PAUSED, ContractStatus.CLOSED])
    def test_inactive_contracts_are_skipped(self, status):
        snapshot = execute_month([make_sip(status=status)], 7, 2025)
        assert snapshot.has_no_contracts
        assert snapshot.mandatory_outflow == 0

    def test_no_contracts(self):
        snapshot = execute_month([], 1, 2026, total_income=Decimal("50000"))
        assert snapshot.has_no_contracts
        assert snapshot.mandatory_outflow == 0
        assert snapshot.free_balance == Decimal("50000")
        assert snapshot.contributions == ()

    def test_no_contracts_against_full_income(self):
        snapshot = execute_month([], 3, 2026, total_income=Decimal("100000"))
        assert snapshot.free_balance == Decimal("100000")
        assert snapshot.mandatory_outflow == 0
        assert snapshot.active_contract_count == 0

    def test_deficit(self, mixed_contracts):
        snapshot = execute_month(mixed_contracts, 7, 2025, total_income=Decimal("20000"))
        assert snapshot.free_balance == Decimal("-7000")
        assert snapshot.is_deficit

    def test_savings_rate_without_income_is_zero(self, mixed_contracts):
        snapshot = execute_month(mixed_contracts, 7, 2025)
        assert snapshot.savings_rate_percent == 0
        assert snapshot.is_deficit

    @pytest.mark.parametrize("month", [0, 13, -1])
    def test_invalid_month(self, month):
        with pytest.raises(InvalidInputError):
            execute_month([], month, 2025)

    def test_same_inputs_give_equal_snapshots(self, mixed_contracts):
        stamp = datetime(2025, 7, 1, 9, 30)
        first = execute_month(mixed_contracts, 7, 2025, Decimal("90000"), generated_at=stamp)
        second = execute_month(mixed_contracts, 7, 2025, Decimal("90000"), generated_at=stamp)
        assert first == second
        assert first.generated_at == stamp

    def test_generated_at_defaults_to_none(self):
        assert execute_month([], 7, 2025).generated_at is None

    def test_reducing_contribution_split(self):
        snapshot = execute_month([make_loan()], 7, 2025)
        contribution = snapshot.contributions[0]
        assert contribution.amount == Decimal("10000")
        assert contribution.interest_portion == Decimal("1000")
        assert contribution.principal_portion == Decimal("9000")
        assert contribution.new_balance == Decimal("91000")
        assert contribution.new_invested_total is None

    def test_growing_contribution(self):
        contribution = execute_month([make_sip()], 7, 2025).contributions[0]
        assert contribution.new_invested_total == Decimal("65000")
        assert contribution.principal_portion is None

    def test_fixed_contribution_carries_amount_only(self):
        contribution = execute_month([make_subscription()], 7, 2025).contributions[0]
        assert contribution.amount == Decimal("649")
        assert contribution.new_balance is None
        assert contribution.new_invested_total is None

    def test_input_contracts_untouched(self):
        loan = make_loan()
        execute_month([loan], 7, 2025)
        assert loan.reducing_metadata.remaining_balance == Decimal("100000")
        assert loan.reducing_metadata.paid_installments == 0


class TestWealthAndDebt:
    def test_loan_debt_is_remaining_installments_times_emi(self):
        snapshot = execute_month([make_loan()], 7, 2025)
        # 91000 left after this month clears in 10 more installments of 10000.
        assert snapshot.total_debt == Decimal("100000")
        assert snapshot.total_wealth == 0

    def test_investment_counts_as_wealth(self):
        snapshot = execute_month([make_sip()], 7, 2025)
        assert snapshot.total_wealth == Decimal("60000")

    def test_insurance_cover_counts_as_debt(self):
        snapshot = execute_month([make_subscription(coverage="1000000")], 7, 2025)
        assert snapshot.total_debt == Decimal("1000000")

    def test_non_liability_fixed_contract_counts_as_wealth(self):
        snapshot = execute_month([make_subscription(is_liability=False)], 7, 2025)
        assert snapshot.total_wealth == Decimal("649")
        assert snapshot.total_debt == 0


class TestGenerateProjection:
    def test_loan_balance_reduces_month_by_month(self):
        projection = generate_projection([make_loan()], 7, 2025, 3)
        balances = [s.contributions[0].new_balance for s in projection.snapshots]
        assert balances == [Decimal("91000"), Decimal("81910"), Decimal("72729.10")]
        final = projection.final_contracts[0].reducing_metadata
        assert final.remaining_balance == Decimal("72729.10")
        assert final.paid_installments == 3

    def test_three_months_from_january(self):
        projection = generate_projection([make_loan()], 1, 2026, 3)
        assert [s.contributions[0].new_balance for s in projection.snapshots] == [
            Decimal("91000"),
            Decimal("81910"),
            Decimal("72729.10"),
        ]
        assert (projection.to_month, projection.to_year) == (3, 2026)

    def test_installment_below_interest_keeps_balance_flat(self):
        loan = make_loan(emi="500", balance="100000", rate="12")
        projection = generate_projection([loan], 1, 2026, 3)
        for snapshot in projection.snapshots:
            contribution = snapshot.contributions[0]
            assert contribution.amount == Decimal("500")
            assert contribution.interest_portion == Decimal("1000")
            assert contribution.principal_portion == 0
            assert contribution.new_balance == Decimal("100000")
        final = projection.final_contracts[0]
        assert final.reducing_metadata.remaining_balance == Decimal("100000")
        assert final.reducing_metadata.paid_installments == 3
        assert final.is_active

    def test_contract_ending_mid_projection_drops_out(self):
        sub = make_subscription(end=date(2026, 2, 15))
        projection = generate_projection([sub], 1, 2026, 4)
        assert [s.active_contract_count for s in projection.snapshots] == [1, 1, 0, 0]
        assert projection.total_mandatory_outflow == Decimal("1298")

    def test_inputs_not_mutated(self):
        loan = make_loan()
        projection = generate_projection([loan], 7, 2025, 3)
        assert loan.reducing_metadata.remaining_balance == Decimal("100000")
        assert projection.final_contracts[0] is not loan

    def test_loan_closes_and_stops_contributing(self):
        loan = make_loan(balance="15000")
        projection = generate_projection([loan], 7, 2025, 4)
        first, second, third, fourth = projection.snapshots
        assert first.contributions[0].new_balance == Decimal("5150")
        assert second.reducing_outflow == Decimal("10000")
        assert second.contributions[0].new_balance == 0
        assert third.active_contract_count == 0
        assert fourth.reducing_outflow == 0
        final = projection.final_contracts[0]
        assert final.status is ContractStatus.CLOSED
        assert final.reducing_metadata.remaining_balance == 0
        assert final.reducing_metadata.paid_installments == 2

    def test_investment_accumulates(self):
        projection = generate_projection([make_sip()], 7, 2025, 3)
        assert [s.total_wealth for s in projection.snapshots] == [
            Decimal("60000"),
            Decimal("65000"),
            Decimal("70000"),
        ]
        final = projection.final_contracts[0].growing_metadata
        assert final.total_invested == Decimal("75000")
        assert final.current_value == Decimal("75000")
        assert final.paid_months == 3

    def test_year_rollover(self):
        projection = generate_projection([], 11, 2026, 4)
        assert [(s.month, s.year) for s in projection.snapshots] == [
            (11, 2026),
            (12, 2026),
            (1, 2027),
            (2, 2027),
        ]
        assert (projection.from_month, projection.from_year) == (11, 2026)
        assert (projection.to_month, projection.to_year) == (2, 2027)

    def test_contract_starting_mid_projection(self):
        projection = generate_projection([make_loan()], 4, 2025, 3)
        assert [s.active_contract_count for s in projection.snapshots] == [0, 0, 1]

    def test_paused_contract_is_returned_unchanged(self):
        sip = make_sip(status=ContractStatus.PAUSED)
        projection = generate_projection([sip], 7, 2025, 6)
        assert projection.total_mandatory_outflow == 0
        assert projection.final_contracts == (sip,)

    def test_totals(self, mixed_contracts):
        projection = generate_projection(
            mixed_contracts, 7, 2025, 3, monthly_income=Decimal("50000")
        )
        assert projection.month_count == 3
        assert projection.total_income == Decimal("150000")
        assert projection.total_mandatory_outflow == Decimal("81000")
        assert projection.total_free_balance == Decimal("69000")
        assert projection.average_monthly_outflow == Decimal("27000")
        assert projection.first_snapshot.month == 7
        assert projection.last_snapshot.month == 9

    def test_deterministic(self, mixed_contracts):
        assert generate_projection(mixed_contracts, 7, 2025, 12) == generate_projection(
            mixed_contracts, 7, 2025, 12
        )

    @pytest.mark.parametrize("count", [0, -3])
    def test_rejects_non_positive_month_count(self, count):
        with pytest.raises(InvalidInputError):
            generate_projection([], 1, 2025, count)

    def test_rejects_invalid_start_month(self):
        with pytest.raises(InvalidInputError):
            generate_projection([], 13, 2025, 3)

    def test_rejects_horizon_past_last_representable_year(self):
        with pytest.raises(InvalidInputError):
            generate_projection([], 12, 9999, 2)


class TestTypeOutflow:
    def test_closing_loan_outflow(self):
        loan = make_loan(balance="15000")
        total = calculate_type_outflow([loan], ContractType.REDUCING, 7, 2025, 4)
        assert total == Decimal("20000")

    def test_only_requested_type_is_counted(self, mixed_contracts):
        assert calculate_type_outflow(
            mixed_contracts, ContractType.FIXED, 7, 2025, 12
        ) == Decimal("24000")
        assert calculate_type_outflow(
            mixed_contracts, ContractType.GROWING, 7, 2025, 12
        ) == Decimal("120000")


class TestCatchUpContract:
    def test_loan_applies_elapsed_installments(self):
        caught_up = catch_up_contract(make_loan(), 9, 2025)
        meta = caught_up.reducing_metadata
        assert meta.paid_installments == 3
        assert meta.remaining_balance == Decimal("72729.10")

    def test_already_paid_installments_are_not_reapplied(self):
        caught_up = catch_up_contract(make_loan(paid_installments=1), 9, 2025)
        meta = caught_up.reducing_metadata
        assert meta.paid_installments == 3
        assert meta.remaining_balance == Decimal("81910")

    def test_investment_catches_up(self):
        caught_up = catch_up_contract(make_sip(), 4, 2025)
        meta = caught_up.growing_metadata
        assert meta.total_invested == Decimal("75000")
        assert meta.paid_months == 3

    def test_loan_closed_during_catch_up(self):
        caught_up = catch_up_contract(make_loan(balance="15000"), 12, 2025)
        assert caught_up.is_closed
        assert caught_up.reducing_metadata.paid_installments == 2

    def test_installment_below_interest_never_raises_balance(self):
        caught_up = catch_up_contract(make_loan(emi="500"), 9, 2025)
        meta = caught_up.reducing_metadata
        assert meta.paid_installments == 3
        assert meta.remaining_balance == Decimal("100000")

    def test_target_before_start_returns_contract(self):
        loan = make_loan()
        assert catch_up_contract(loan, 1, 2025) is loan

    def test_fixed_and_inactive_contracts_unchanged(self):
        sub = make_subscription()
        paused = make_loan(status=ContractStatus.PAUSED)
        assert catch_up_contract(sub, 12, 2025) is sub
        assert catch_up_contract(paused, 12, 2025) is paused
