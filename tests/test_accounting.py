"""Tests for IFRS 9 ECL estimation and statutory provisioning."""

import pytest
import logging
from decimal import Decimal
from datetime import date, datetime, timedelta, timezone

from loanrisk.core.config import RiskEngineConfig
from loanrisk.core.exceptions import ConfigurationError, InvalidInputError
from loanrisk.core.loan import LifecycleStatus
from loanrisk.accounting.ifrs9 import ECLEstimator
from loanrisk.accounting.provisions import (
    ProvisioningCalculator, RegulatoryClassification, classify_bucket, divergence_ratio,
)
from loanrisk.risk.aging import AgingBucket
from loanrisk.risk.staging import ECLStage


EFFECTIVE = date(2024, 6, 30)


class TestECLEstimator:
    """Test ECL estimation."""

    @pytest.fixture
    def estimator(self, test_config):
        return ECLEstimator(test_config)

    @pytest.mark.parametrize("stage,expected", [
        (ECLStage.STAGE_1, Decimal("100.00")),
        (ECLStage.STAGE_2, Decimal("500.00")),
        (ECLStage.STAGE_3, Decimal("2500.00")),
    ])
    def test_stage_loss_rates(self, estimator, stage, expected):
        result = estimator.estimate("loan_001", stage, Decimal("10000"), EFFECTIVE)
        assert result.ecl_value == expected
        assert result.ifrs9_stage == stage
        assert result.coverage_ratio == result.loss_rate

    def test_rounding_half_up(self, estimator):
        result = estimator.estimate("loan_001", "STAGE_1", Decimal("1234.50"), EFFECTIVE)
        # 12.345 rounds up
        assert result.ecl_value == Decimal("12.35")

    def test_negative_exposure_rejected(self, estimator):
        with pytest.raises(InvalidInputError):
            estimator.estimate("loan_001", "STAGE_1", Decimal("-1"), EFFECTIVE)

    def test_unknown_stage_rejected(self, estimator):
        with pytest.raises(InvalidInputError):
            estimator.estimate("loan_001", "STAGE_9", Decimal("100"), EFFECTIVE)

    def test_missing_loss_rate_fails_closed(self):
        estimator = ECLEstimator(RiskEngineConfig(ecl={"loss_rates": {"STAGE_1": "0.01"}}))
        with pytest.raises(ConfigurationError):
            estimator.estimate("loan_001", "STAGE_2", Decimal("100"), EFFECTIVE)

    def test_pd_lgd_parameters(self):
        config = RiskEngineConfig(ecl={"parameters": {"STAGE_2": {"pd": "0.10", "lgd": "0.45"}}})
        result = ECLEstimator(config).estimate("loan_001", "STAGE_2", Decimal("10000"), EFFECTIVE)
        assert result.ecl_value == Decimal("450.00")

    def test_exposure_basis(self, test_config, overdue_loan):
        assert ECLEstimator(test_config).exposure_for(overdue_loan) == Decimal("8000.00")

        config = test_config.model_copy(update={"ecl": {**test_config.ecl, "exposure_basis": "outstanding"}})
        assert ECLEstimator(config).exposure_for(overdue_loan) == Decimal("6500.00")

    def test_no_exposure_before_disbursement_or_after_closure(self, test_config, pending_loan, active_loan,
                                                              written_off_loan):
        estimator = ECLEstimator(test_config)
        closed = active_loan.apply(outstanding_balance=0, lifecycle_status=LifecycleStatus.CLOSED,
                                   next_payment_date=None, closure_date=date(2024, 6, 1))

        assert estimator.exposure_for(pending_loan) == Decimal("0")
        assert estimator.exposure_for(closed) == Decimal("0")
        assert estimator.estimate_for_loan(closed, "STAGE_1", EFFECTIVE).ecl_value == Decimal("0.00")
        # Written-off loans keep their exposure for the full provision
        assert estimator.exposure_for(written_off_loan) == Decimal("5000.00")

    def test_summary_by_stage(self, estimator):
        results = [
            estimator.estimate("a", "STAGE_1", Decimal("10000"), EFFECTIVE),
            estimator.estimate("b", "STAGE_1", Decimal("5000"), EFFECTIVE),
            estimator.estimate("c", "STAGE_3", Decimal("2000"), EFFECTIVE),
        ]
        summary = estimator.summarize(results)

        assert summary["total_loans"] == 3
        assert summary["total_ecl"] == Decimal("650.00")
        assert summary["stage_breakdown"]["STAGE_1"]["count"] == 2
        assert summary["stage_breakdown"]["STAGE_2"]["count"] == 0
        assert summary["stage_breakdown"]["STAGE_3"]["coverage_ratio"] == Decimal("0.25")

    def test_latest_by_loan(self, estimator):
        start = datetime(2024, 6, 30, tzinfo=timezone.utc)
        first = estimator.estimate("a", "STAGE_1", Decimal("100"), EFFECTIVE, calculation_timestamp=start)
        second = estimator.estimate("a", "STAGE_2", Decimal("100"), EFFECTIVE,
                                    calculation_timestamp=start + timedelta(hours=1))

        assert estimator.latest_by_loan([second, first])["a"] == second


class TestProvisioningCalculator:
    """Test statutory provisions and their reconciliation with ECL."""

    @pytest.fixture
    def calculator(self, test_config):
        return ProvisioningCalculator(test_config)

    def test_written_off_full_provision(self, calculator):
        record = calculator.calculate("loan_003", ECLStage.STAGE_3, Decimal("5000"), EFFECTIVE,
                                      bucket=AgingBucket.D180_PLUS)
        assert record.provision_percentage == Decimal("1.00")
        assert record.provision_amount == Decimal("5000.00")
        assert record.regulatory_classification == RegulatoryClassification.LOSS
        assert record.is_current

    @pytest.mark.parametrize("bucket,classification", [
        (AgingBucket.CURRENT, RegulatoryClassification.STANDARD),
        (AgingBucket.D1_30, RegulatoryClassification.STANDARD),
        (AgingBucket.D31_60, RegulatoryClassification.WATCH),
        (AgingBucket.D61_90, RegulatoryClassification.SUBSTANDARD),
        (AgingBucket.D91_180, RegulatoryClassification.DOUBTFUL),
        (AgingBucket.D180_PLUS, RegulatoryClassification.LOSS),
    ])
    def test_regulatory_classification(self, bucket, classification):
        assert classify_bucket(bucket) == classification

    def test_classification_basis(self, test_config):
        config = test_config.model_copy(
            update={"provisioning": {**test_config.provisioning, "basis": "classification"}}
        )
        record = ProvisioningCalculator(config).calculate(
            "loan_002", ECLStage.STAGE_2, Decimal("6500"), EFFECTIVE, bucket=AgingBucket.D91_180,
        )
        assert record.provision_percentage == Decimal("0.50")
        assert record.provision_amount == Decimal("3250.00")

    def test_divergence_ratio(self):
        assert divergence_ratio(Decimal("650"), Decimal("400")) == Decimal("0.625")
        # Denominator floors at 1
        assert divergence_ratio(Decimal("0.50"), Decimal("0")) == Decimal("0.5")

    def test_divergence_flags_review(self, calculator, caplog):
        with caplog.at_level(logging.WARNING):
            record = calculator.calculate("loan_003", ECLStage.STAGE_3, Decimal("5000"), EFFECTIVE,
                                          ecl_value=Decimal("1250"))
        assert record.requires_review
        assert record.divergence == Decimal("3")
        assert "loan_003" in caplog.text
        # Advisory only: the provision itself is unchanged
        assert record.provision_amount == Decimal("5000.00")

    def test_aligned_values_not_flagged(self, calculator):
        record = calculator.calculate("loan_001", ECLStage.STAGE_1, Decimal("10000"), EFFECTIVE,
                                      ecl_value=Decimal("100"))
        assert record.divergence == Decimal("0")
        assert not record.requires_review

    def test_negative_balance_rejected(self, calculator):
        with pytest.raises(InvalidInputError):
            calculator.calculate("loan_001", ECLStage.STAGE_1, Decimal("-10"), EFFECTIVE)

    def test_summary_uses_current_records(self, calculator):
        superseded = calculator.calculate("a", ECLStage.STAGE_1, Decimal("1000"), EFFECTIVE).model_copy(
            update={"superseded_at": datetime(2024, 7, 1, tzinfo=timezone.utc)}
        )
        records = [
            superseded,
            calculator.calculate("a", ECLStage.STAGE_2, Decimal("1000"), EFFECTIVE),
            calculator.calculate("b", ECLStage.STAGE_3, Decimal("400"), EFFECTIVE),
        ]
        summary = calculator.summarize(records)

        assert summary.stage_1_provisions == Decimal("0")
        assert summary.stage_2_provisions == Decimal("100.00")
        assert summary.stage_3_provisions == Decimal("400.00")
        assert summary.total_provisions == Decimal("500.00")
        assert summary.provision_to_loans_ratio == Decimal("0.357143")
