"""Services for Loan Risk Engine API."""

from typing import Dict, Any, List, Optional
import logging

from loanrisk.core.engine import LoanRiskEngine, LoanRiskResult
from loanrisk.core.config import RiskEngineConfig
from loanrisk.core.loan import LoanAccount, CustomerRiskProfile, parse_status
from loanrisk.core.repository import InMemoryLoanRepository
from loanrisk.metrics.portfolio import PortfolioAggregator
from loanrisk.servicing.allocator import RepaymentAllocator
from loanrisk.servicing.amortization import AmortizationSchedule, generate_schedule
from .models import (
    LoanData, CustomerData, EvaluateRequest, PortfolioRequest, ScheduleRequest,
    RepaymentRequest, RecalculateRequest, LoanResultResponse, PortfolioResponse,
    RepaymentResponse,
)

logger = logging.getLogger(__name__)


class LoanRiskService:
    """Service for loan risk evaluation and servicing."""

    def __init__(self, config: Optional[RiskEngineConfig] = None):
        self.config = config or RiskEngineConfig.load_default()
        self.engine = LoanRiskEngine(self.config)
        self.aggregator = PortfolioAggregator(self.engine)
        self.repository = InMemoryLoanRepository()
        self.allocator = RepaymentAllocator(self.repository, self.config)
        logger.info("Loan risk service initialized")

    async def evaluate(self, request: EvaluateRequest) -> LoanResultResponse:
        """Evaluate a single loan snapshot."""
        loan = self._convert_loan_data(request.loan)
        customer = self._convert_customer_data(request.customer) if request.customer else None
        result = self.engine.evaluate(loan, customer, request.as_of)
        return self._to_response(result)

    async def evaluate_portfolio(self, request: PortfolioRequest, calculation_id: str) -> PortfolioResponse:
        """Aggregate portfolio metrics, optionally with per-loan results."""
        loans = [self._convert_loan_data(data) for data in request.loans]
        customers = {c.customer_id: self._convert_customer_data(c) for c in request.customers}

        results = self.engine.evaluate_portfolio(loans, request.as_of, customers)
        summary = self.aggregator.summarize(loans, results, request.as_of)

        return PortfolioResponse(
            calculation_id=calculation_id,
            summary=summary.model_dump(mode="json"),
            validation_issues=self.engine.validate_inputs(loans),
            loans=[self._to_response(r) for r in results] if request.include_loans else None,
        )

    async def schedule(self, request: ScheduleRequest) -> AmortizationSchedule:
        return generate_schedule(
            request.principal_amount, request.interest_rate,
            request.loan_term_months, request.start_date,
        )

    def register_loan(self, data: LoanData) -> LoanAccount:
        loan = self._convert_loan_data(data)
        self.repository.add_loan(loan)
        logger.info(f"Registered loan {loan.loan_id} ({loan.lifecycle_status.value})")
        return self.repository.get_loan(loan.loan_id)

    def get_loan(self, loan_id: str) -> LoanAccount:
        return self.repository.get_loan(loan_id)

    def post_repayment(self, loan_id: str, request: RepaymentRequest) -> RepaymentResponse:
        allocation = self.allocator.post_repayment(
            loan_id, request.amount, request.repayment_date,
            early_settlement=request.early_settlement, actor=request.actor,
        )
        return RepaymentResponse(
            loan=self.repository.get_loan(loan_id).model_dump(mode="json"),
            repayment=allocation.repayment.model_dump(mode="json"),
            allocation=allocation.model_dump(mode="json", exclude={"repayment"}),
        )

    def recalculate(self, loan_id: str, request: RecalculateRequest) -> LoanResultResponse:
        customer = self._convert_customer_data(request.customer) if request.customer else None
        result = self.engine.recalculate(loan_id, self.repository, customer, request.as_of)
        return self._to_response(result)

    def history(self, loan_id: str) -> Dict[str, List[Dict[str, Any]]]:
        """Repayment ledger, ECL results and provision records for a stored loan."""
        self.repository.get_loan(loan_id)
        return {
            "repayments": [r.model_dump(mode="json") for r in self.repository.list_repayments(loan_id)],
            "ecl_results": [r.model_dump(mode="json") for r in self.repository.list_ecl_results(loan_id)],
            "provision_records": [r.model_dump(mode="json")
                                  for r in self.repository.list_provision_records(loan_id)],
        }

    def get_configuration(self) -> Dict[str, Any]:
        """Get current configuration."""
        return self.config.model_dump(mode="json")

    def _convert_loan_data(self, data: LoanData) -> LoanAccount:
        fields = data.model_dump()
        fields["lifecycle_status"] = parse_status(data.lifecycle_status)
        return LoanAccount(**fields)

    def _convert_customer_data(self, data: CustomerData) -> CustomerRiskProfile:
        return CustomerRiskProfile(**data.model_dump())

    def _to_response(self, result: LoanRiskResult) -> LoanResultResponse:
        return LoanResultResponse(
            loan_id=result.loan_id,
            as_of_date=result.as_of_date,
            days_overdue=result.aging.days_overdue,
            aging_bucket=result.aging.bucket.value,
            ifrs9_stage=result.stage.stage.value,
            stage_reason=result.stage.reason,
            exposure=result.ecl.exposure,
            ecl_value=result.ecl.ecl_value,
            provision_amount=result.provision.provision_amount,
            provision_percentage=result.provision.provision_percentage,
            regulatory_classification=result.provision.regulatory_classification.value,
            requires_review=result.provision.requires_review,
            risk_score=result.risk.risk_score,
            risk_category=result.risk.risk_category.value,
            recommended_action=result.risk.recommended_action,
        )
