"""Portfolio-level roll-ups consumed by dashboards and regulatory reports."""

from typing import Dict, Any, Optional, List, Iterable, Mapping
from decimal import Decimal
from datetime import date
import logging

import pandas as pd
from pydantic import BaseModel, Field

from ..core.engine import LoanRiskEngine, LoanRiskResult
from ..core.loan import LoanAccount, CustomerRiskProfile, LifecycleStatus
from ..core.money import ZERO, quantize_money, quantize_rate
from ..risk.aging import AgingBucket
from ..risk.scoring import RiskCategory
from ..risk.staging import ECLStage

logger = logging.getLogger(__name__)

PAR30_LOWER = 30
PAR90_LOWER = 90


class BucketTotals(BaseModel):
    count: int = 0
    amount: Decimal = ZERO


class PortfolioSummary(BaseModel):
    """Portfolio metrics as of one date."""

    as_of_date: date
    total_loans: int = Field(ge=0)
    counts_by_status: Dict[str, int]
    total_outstanding: Decimal = Field(ge=0)

    # Portfolio at risk over the live book
    live_outstanding: Decimal = Field(ge=0)
    par30_count: int = Field(ge=0)
    par30_amount: Decimal = Field(ge=0)
    par30_ratio: Decimal = Field(ge=0)
    par90_count: int = Field(ge=0)
    par90_amount: Decimal = Field(ge=0)
    par90_ratio: Decimal = Field(ge=0)

    total_ecl: Decimal = Field(ge=0)
    total_provisions: Decimal = Field(ge=0)
    stage_distribution: Dict[str, int]
    aging_distribution: Dict[str, BucketTotals]
    risk_distribution: Dict[str, int]
    average_risk_score: Decimal = Field(ge=0)
    loans_requiring_review: int = Field(ge=0)

    def get_summary_metrics(self) -> Dict[str, Any]:
        """Get summary of key metrics."""
        return {
            "portfolio": {
                "total_loans": self.total_loans,
                "total_outstanding": self.total_outstanding,
            },
            "portfolio_at_risk": {
                "par30": f"{self.par30_ratio:.2%}",
                "par90": f"{self.par90_ratio:.2%}",
            },
            "impairment": {
                "total_ecl": self.total_ecl,
                "total_provisions": self.total_provisions,
                "stage_distribution": self.stage_distribution,
            },
            "compliance": {
                "loans_requiring_review": self.loans_requiring_review,
            },
        }


class PortfolioAggregator:
    """Rolls per-loan engine output into portfolio metrics.

    Every call recomputes from the loan snapshots; nothing is cached between
    calls.
    """

    def __init__(self, engine: Optional[LoanRiskEngine] = None):
        self.engine = engine or LoanRiskEngine()
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def aggregate(self, loans: Iterable[LoanAccount], as_of: date,
                  customers: Optional[Mapping[str, CustomerRiskProfile]] = None) -> PortfolioSummary:
        loans = list(loans)
        results = self.engine.evaluate_portfolio(loans, as_of, customers)
        return self.summarize(loans, results, as_of)

    def summarize(self, loans: List[LoanAccount], results: List[LoanRiskResult],
                  as_of: date) -> PortfolioSummary:
        """Combine loans with their already-computed results (same order)."""
        if len(loans) != len(results):
            raise ValueError("Loans and results must have same length")

        counts_by_status = {status.value: 0 for status in LifecycleStatus}
        stage_distribution = {stage.value: 0 for stage in ECLStage}
        aging_distribution = {bucket.value: BucketTotals() for bucket in AgingBucket}
        risk_distribution = {category.value: 0 for category in RiskCategory}

        total_outstanding = ZERO
        live_outstanding = ZERO
        par30_count = par90_count = 0
        par30_amount = par90_amount = ZERO
        total_ecl = ZERO
        total_provisions = ZERO
        score_total = 0
        review = 0

        for loan, result in zip(loans, results):
            counts_by_status[loan.lifecycle_status.value] += 1
            risk_distribution[result.risk.risk_category.value] += 1
            total_outstanding += loan.outstanding_balance
            total_ecl += result.ecl.ecl_value
            total_provisions += result.provision.provision_amount
            score_total += result.risk.risk_score
            review += int(result.provision.requires_review)

            if loan.carries_credit_exposure():
                stage_distribution[result.stage.stage.value] += 1

            if not loan.is_live():
                continue

            live_outstanding += loan.outstanding_balance
            bucket = aging_distribution[result.aging.bucket.value]
            bucket.count += 1
            bucket.amount += loan.outstanding_balance

            dpd = result.aging.days_overdue
            if PAR30_LOWER < dpd <= PAR90_LOWER:
                par30_count += 1
                par30_amount += loan.outstanding_balance
            elif dpd > PAR90_LOWER:
                par90_count += 1
                par90_amount += loan.outstanding_balance

        def share(amount: Decimal) -> Decimal:
            return quantize_rate(amount / live_outstanding) if live_outstanding > 0 else ZERO

        summary = PortfolioSummary(
            as_of_date=as_of,
            total_loans=len(loans),
            counts_by_status=counts_by_status,
            total_outstanding=quantize_money(total_outstanding),
            live_outstanding=quantize_money(live_outstanding),
            par30_count=par30_count,
            par30_amount=quantize_money(par30_amount),
            par30_ratio=share(par30_amount),
            par90_count=par90_count,
            par90_amount=quantize_money(par90_amount),
            par90_ratio=share(par90_amount),
            total_ecl=quantize_money(total_ecl),
            total_provisions=quantize_money(total_provisions),
            stage_distribution=stage_distribution,
            aging_distribution=aging_distribution,
            risk_distribution=risk_distribution,
            average_risk_score=quantize_money(Decimal(score_total) / len(loans)) if loans else ZERO,
            loans_requiring_review=review,
        )
        self.logger.info(f"Portfolio as of {as_of.isoformat()}: {summary.total_loans} loans, "
                         f"PAR30 {par30_count}, PAR90 {par90_count}, ECL {summary.total_ecl}")
        return summary

    def to_frame(self, results: Iterable[LoanRiskResult]) -> pd.DataFrame:
        """One row per loan, for report formatters."""
        rows = [result.get_summary() for result in results]
        frame = pd.DataFrame(rows)
        if not frame.empty:
            frame = frame.set_index("loan_id")
        return frame
