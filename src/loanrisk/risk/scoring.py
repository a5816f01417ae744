"""Composite risk score and recommended action.

This is a rules-of-thumb scoring heuristic used to triage loans for
collections and credit review. It is not a statistical model and the score
must not be read as a calibrated probability of default.
"""

from typing import Any, Optional
from enum import Enum
from decimal import Decimal
import logging

from pydantic import BaseModel, ConfigDict, Field

from ..core.loan import LifecycleStatus, LoanAccount, CustomerRiskProfile, parse_status

logger = logging.getLogger(__name__)

MIN_SCORE = 0
MAX_SCORE = 100


class RiskCategory(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


RECOMMENDED_ACTIONS = {
    RiskCategory.LOW: "Monitor",
    RiskCategory.MEDIUM: "Review",
    RiskCategory.HIGH: "Escalate",
    RiskCategory.CRITICAL: "Immediate Action",
}

# (minimum score, points); first match wins, unknown scores fall through to the worst tier
CREDIT_SCORE_TIERS = [(750, 5), (650, 15), (550, 25)]
WORST_CREDIT_POINTS = 30

STATUS_POINTS = {
    LifecycleStatus.OVERDUE: 25,
    LifecycleStatus.DELINQUENT: 25,
    LifecycleStatus.DEFAULT: 35,
    LifecycleStatus.WRITTEN_OFF: 40,
}

# (ratio strictly above, points)
UTILIZATION_TIERS = [(Decimal("0.8"), 25), (Decimal("0.5"), 15), (Decimal("0.2"), 5)]

# Upper score bound of each category
CATEGORY_BANDS = [(20, RiskCategory.LOW), (50, RiskCategory.MEDIUM), (75, RiskCategory.HIGH)]


class RiskAssessment(BaseModel):
    """Derived triage outcome for one loan."""

    model_config = ConfigDict(frozen=True)

    risk_score: int = Field(ge=MIN_SCORE, le=MAX_SCORE)
    risk_category: RiskCategory
    recommended_action: str
    credit_component: int
    status_component: int
    utilization_component: int


def credit_component(credit_score: Optional[int]) -> int:
    if credit_score:
        for minimum, points in CREDIT_SCORE_TIERS:
            if credit_score >= minimum:
                return points
    return WORST_CREDIT_POINTS


def status_component(lifecycle_status: Any) -> int:
    return STATUS_POINTS.get(parse_status(lifecycle_status), 0)


def utilization_component(balance_ratio: Optional[Decimal]) -> int:
    if balance_ratio is None:
        return 0
    for threshold, points in UTILIZATION_TIERS:
        if balance_ratio > threshold:
            return points
    return 0


def categorize(score: int) -> RiskCategory:
    for upper, category in CATEGORY_BANDS:
        if score <= upper:
            return category
    return RiskCategory.CRITICAL


class RiskScorer:
    """Blends credit score, lifecycle status and balance utilization into 0-100."""

    def score(self, loan: LoanAccount, customer: Optional[CustomerRiskProfile] = None) -> RiskAssessment:
        ratio = loan.balance_ratio()
        if ratio is None and loan.outstanding_balance > 0:
            # Balance with no recorded principal: treat as fully utilized
            ratio = Decimal("1")
        return self.score_components(
            credit_score=customer.credit_score if customer else None,
            lifecycle_status=loan.lifecycle_status,
            balance_ratio=ratio,
        )

    def score_components(self, credit_score: Optional[int], lifecycle_status: Any,
                         balance_ratio: Optional[Decimal]) -> RiskAssessment:
        credit = credit_component(credit_score)
        status = status_component(lifecycle_status)
        utilization = utilization_component(balance_ratio)

        total = max(MIN_SCORE, min(MAX_SCORE, credit + status + utilization))
        category = categorize(total)

        return RiskAssessment(
            risk_score=total,
            risk_category=category,
            recommended_action=RECOMMENDED_ACTIONS[category],
            credit_component=credit,
            status_component=status,
            utilization_component=utilization,
        )
