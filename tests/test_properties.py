"""Property-based tests for Loan Risk Engine using Hypothesis."""

import pytest
from hypothesis import given, strategies as st, assume, settings
from decimal import Decimal
from datetime import date, timedelta

from loanrisk.core.config import RiskEngineConfig
from loanrisk.core.loan import LoanAccount, LifecycleStatus, REPAYABLE_STATUSES
from loanrisk.core.exceptions import OverpaymentError
from loanrisk.risk.aging import AgingBucket, AgingCalculator, bucket_for_days
from loanrisk.risk.staging import StageClassifier
from loanrisk.risk.scoring import RiskScorer, MIN_SCORE, MAX_SCORE
from loanrisk.servicing.allocator import allocate_repayment
from loanrisk.servicing.amortization import generate_schedule
from loanrisk.accounting.provisions import ProvisioningCalculator


CONFIG = RiskEngineConfig.load_default()
AS_OF = date(2024, 6, 15)

money = st.decimals(min_value=Decimal("0.01"), max_value=Decimal("1000000"), places=2)

# (lower, upper] days overdue per bucket
BUCKET_RANGES = {
    AgingBucket.CURRENT: (-1, 0),
    AgingBucket.D1_30: (0, 30),
    AgingBucket.D31_60: (30, 60),
    AgingBucket.D61_90: (60, 90),
    AgingBucket.D91_180: (90, 180),
    AgingBucket.D180_PLUS: (180, None),
}


# Strategies for generating test data
@st.composite
def repayable_loan_strategy(draw):
    """Strategy for generating disbursed loans that accept repayments."""
    principal = draw(st.decimals(min_value=Decimal("100"), max_value=Decimal("1000000"), places=2))
    balance = draw(st.decimals(min_value=Decimal("0.01"), max_value=principal, places=2))
    due = AS_OF + timedelta(days=draw(st.integers(min_value=-400, max_value=30)))

    return LoanAccount(
        loan_id=f"loan_{draw(st.integers(min_value=1, max_value=999999))}",
        principal_amount=principal,
        interest_rate=draw(st.decimals(min_value=Decimal("0"), max_value=Decimal("60"), places=2)),
        loan_term_months=draw(st.integers(min_value=1, max_value=120)),
        outstanding_balance=balance,
        disbursement_date=AS_OF - timedelta(days=500),
        next_payment_date=due,
        lifecycle_status=draw(st.sampled_from(sorted(REPAYABLE_STATUSES, key=lambda s: s.value))),
    )


class TestAllocationProperties:
    """Property tests for repayment allocation."""

    @given(repayable_loan_strategy(), money, st.booleans())
    def test_balance_stays_within_bounds(self, loan, amount, early_settlement):
        try:
            updated, repayment, allocation = allocate_repayment(
                loan, amount, AS_OF, CONFIG, early_settlement=early_settlement,
            )
        except OverpaymentError:
            assert not early_settlement
            return

        assert Decimal("0") <= updated.outstanding_balance <= updated.principal_amount
        assert updated.outstanding_balance <= loan.outstanding_balance
        assert repayment.total_paid + allocation.unapplied_amount == allocation.amount_received
        if updated.outstanding_balance == 0:
            assert updated.lifecycle_status == LifecycleStatus.CLOSED

    @given(repayable_loan_strategy(), money)
    def test_overpayment_never_mutates(self, loan, amount):
        snapshot = loan.model_dump()
        try:
            allocate_repayment(loan, amount, AS_OF, CONFIG)
        except OverpaymentError:
            pass
        assert loan.model_dump() == snapshot

    @settings(max_examples=50)
    @given(
        st.decimals(min_value=Decimal("100"), max_value=Decimal("500000"), places=2),
        st.decimals(min_value=Decimal("0"), max_value=Decimal("48"), places=2),
        st.integers(min_value=1, max_value=60),
    )
    def test_schedule_repays_principal(self, principal, rate, term):
        schedule = generate_schedule(principal, rate, term, AS_OF)

        assert sum(i.principal_amount for i in schedule.installments) == principal
        assert schedule.installments[-1].outstanding_balance == 0
        assert all(i.outstanding_balance >= 0 for i in schedule.installments)


class TestClassificationProperties:
    """Property tests for aging, staging and provisioning."""

    @given(st.integers(min_value=0, max_value=400))
    def test_every_day_count_has_one_bucket(self, days):
        matching = [
            bucket for bucket, (lower, upper) in BUCKET_RANGES.items()
            if days > lower and (upper is None or days <= upper)
        ]
        assert matching == [bucket_for_days(days)]

    @given(st.sampled_from(list(LifecycleStatus)), st.integers(min_value=-30, max_value=400))
    def test_staging_is_idempotent(self, status, offset):
        classifier = StageClassifier(CONFIG)
        aging = AgingCalculator(CONFIG).assess(AS_OF - timedelta(days=offset), AS_OF)

        first = classifier.classify(status, aging)
        assert classifier.classify(status, aging) == first

    @given(st.sampled_from(["STAGE_1", "STAGE_2", "STAGE_3"]), money, st.sampled_from(list(AgingBucket)))
    def test_provision_bounded_by_balance(self, stage, balance, bucket):
        record = ProvisioningCalculator(CONFIG).calculate("loan", stage, balance, AS_OF, bucket=bucket)
        assert Decimal("0") <= record.provision_amount <= balance


class TestRiskScoreProperties:
    """Property tests for the composite risk score."""

    @given(
        st.one_of(st.none(), st.integers(min_value=0, max_value=850)),
        st.sampled_from(list(LifecycleStatus)),
        st.one_of(st.none(), st.decimals(min_value=Decimal("0"), max_value=Decimal("2"), places=4)),
    )
    def test_score_bounds(self, credit_score, status, ratio):
        assessment = RiskScorer().score_components(credit_score, status, ratio)
        assert MIN_SCORE <= assessment.risk_score <= MAX_SCORE
        assert assessment.risk_score == min(
            MAX_SCORE,
            assessment.credit_component + assessment.status_component + assessment.utilization_component,
        )

    @given(st.integers(min_value=0, max_value=850), st.integers(min_value=0, max_value=850))
    def test_better_credit_never_scores_worse(self, a, b):
        assume(a != b)
        low, high = sorted((a, b))
        scorer = RiskScorer()
        assert (
            scorer.score_components(high, "ACTIVE", Decimal("0.5")).risk_score
            <= scorer.score_components(low, "ACTIVE", Decimal("0.5")).risk_score
        )
