"""Main loan risk engine coordinating all derivations."""

from typing import Dict, Any, Optional, List, Iterable, Mapping
from datetime import date, datetime, timezone
import logging

from pydantic import BaseModel

from .config import RiskEngineConfig
from .loan import LoanAccount, CustomerRiskProfile
from .repository import LoanRepository
from ..risk.aging import AgingAssessment, AgingCalculator
from ..risk.staging import StageClassification, StageClassifier
from ..risk.scoring import RiskAssessment, RiskScorer
from ..accounting.ifrs9 import ECLEstimator, ECLResult
from ..accounting.provisions import ProvisionRecord, ProvisioningCalculator


logger = logging.getLogger(__name__)


class LoanRiskResult(BaseModel):
    """Everything the engine derives for one loan on one date."""

    loan_id: str
    as_of_date: date
    aging: AgingAssessment
    stage: StageClassification
    ecl: ECLResult
    provision: ProvisionRecord
    risk: RiskAssessment

    def get_summary(self) -> Dict[str, Any]:
        """Flat view for report formatters."""
        return {
            "loan_id": self.loan_id,
            "as_of_date": self.as_of_date.isoformat(),
            "days_overdue": self.aging.days_overdue,
            "aging_bucket": self.aging.bucket.value,
            "ifrs9_stage": self.stage.stage.value,
            "ecl_value": self.ecl.ecl_value,
            "provision_amount": self.provision.provision_amount,
            "provision_percentage": self.provision.provision_percentage,
            "regulatory_classification": self.provision.regulatory_classification.value,
            "requires_review": self.provision.requires_review,
            "risk_score": self.risk.risk_score,
            "risk_category": self.risk.risk_category.value,
            "recommended_action": self.risk.recommended_action,
        }


class LoanRiskEngine:
    """Runs aging -> staging -> {ECL, provisioning} -> scoring for loan snapshots.

    Evaluation is pure and safe to run in parallel across loans. Only
    ``recalculate`` writes, and only append/supersede snapshot rows.
    """

    def __init__(self, config: Optional[RiskEngineConfig] = None):
        """Initialize engine with configuration."""
        self.config = config or RiskEngineConfig.load_default()

        self.aging_calculator = AgingCalculator(self.config)
        self.stage_classifier = StageClassifier(self.config)
        self.ecl_estimator = ECLEstimator(self.config)
        self.provisioning_calculator = ProvisioningCalculator(self.config)
        self.risk_scorer = RiskScorer()

        logger.info("Loan risk engine initialized")

    def evaluate(self, loan: LoanAccount, customer: Optional[CustomerRiskProfile],
                 as_of: date, calculated_at: Optional[datetime] = None) -> LoanRiskResult:
        """Derive aging, stage, ECL, provision and risk score for one loan."""
        calculated_at = calculated_at or datetime.now(timezone.utc)

        aging = self.aging_calculator.assess(loan.next_payment_date, as_of)
        stage = self.stage_classifier.classify(loan.lifecycle_status, aging)

        ecl = self.ecl_estimator.estimate(
            loan.loan_id, stage.stage, self.ecl_estimator.exposure_for(loan),
            effective_date=as_of, calculation_timestamp=calculated_at,
        )
        provision = self.provisioning_calculator.calculate(
            loan.loan_id, stage.stage, loan.outstanding_balance,
            effective_date=as_of, bucket=aging.bucket, ecl_value=ecl.ecl_value,
            recorded_at=calculated_at,
        )
        risk = self.risk_scorer.score(loan, customer)

        return LoanRiskResult(
            loan_id=loan.loan_id,
            as_of_date=as_of,
            aging=aging,
            stage=stage,
            ecl=ecl,
            provision=provision,
            risk=risk,
        )

    def evaluate_portfolio(self, loans: Iterable[LoanAccount], as_of: date,
                           customers: Optional[Mapping[str, CustomerRiskProfile]] = None) -> List[LoanRiskResult]:
        """Evaluate many loans against one as-of date."""
        customers = customers or {}
        calculated_at = datetime.now(timezone.utc)

        results = [
            self.evaluate(loan, customers.get(loan.customer_id) if loan.customer_id else None,
                          as_of, calculated_at)
            for loan in loans
        ]
        logger.info(f"Evaluated {len(results)} loans as of {as_of.isoformat()}")
        return results

    def recalculate(self, loan_id: str, repository: LoanRepository,
                    customer: Optional[CustomerRiskProfile], as_of: date) -> LoanRiskResult:
        """Evaluate a stored loan and persist its ECL and provision snapshots."""
        loan = repository.get_loan(loan_id)
        result = self.evaluate(loan, customer, as_of)

        repository.append_ecl_result(result.ecl)
        repository.upsert_provision_record(result.provision)

        logger.info(f"Recalculated loan {loan_id} as of {as_of.isoformat()}: "
                    f"{result.stage.stage.value}, ECL {result.ecl.ecl_value}, "
                    f"provision {result.provision.provision_amount}")
        return result

    def validate_inputs(self, loans: Iterable[LoanAccount]) -> List[str]:
        """Data quality issues that do not stop evaluation but deserve attention."""
        issues = []
        seen = set()
        for loan in loans:
            if loan.loan_id in seen:
                issues.append(f"Duplicate loan id {loan.loan_id}")
            seen.add(loan.loan_id)

            if loan.is_live() and loan.next_payment_date is None:
                issues.append(f"Loan {loan.loan_id} is {loan.lifecycle_status.value} with no next payment date")
            if loan.is_disbursed() and loan.disbursement_date is None:
                issues.append(f"Loan {loan.loan_id} has no disbursement date")
            if loan.principal_amount == 0 and loan.is_disbursed():
                issues.append(f"Loan {loan.loan_id} has zero principal")
        return issues
