"""Pydantic models for Loan Risk Engine API."""

from typing import Dict, Any, List, Optional
from decimal import Decimal
from datetime import date, datetime

from pydantic import BaseModel, Field, field_validator


class LoanData(BaseModel):
    """Loan snapshot for API requests."""

    loan_id: str
    customer_id: Optional[str] = None
    principal_amount: Decimal = Field(ge=0)
    interest_rate: Decimal = Field(ge=0, description="Annual rate in percent")
    loan_term_months: int
    outstanding_balance: Decimal = Field(default=Decimal("0"), ge=0)
    disbursement_date: Optional[date] = None
    next_payment_date: Optional[date] = None
    lifecycle_status: str = "PENDING_APPROVAL"
    closure_date: Optional[date] = None


class CustomerData(BaseModel):
    """Customer attributes for API requests."""

    customer_id: str
    credit_score: Optional[int] = Field(None, ge=0, le=850)
    kyc_verified: bool = False


class EvaluateRequest(BaseModel):
    """Request model for single-loan evaluation."""

    loan: LoanData
    customer: Optional[CustomerData] = None
    as_of: date


class PortfolioRequest(BaseModel):
    """Request model for portfolio aggregation."""

    loans: List[LoanData]
    customers: List[CustomerData] = Field(default_factory=list)
    as_of: date
    include_loans: bool = Field(default=False, description="Return per-loan results as well")

    @field_validator('loans')
    @classmethod
    def validate_loans(cls, v):
        if not v:
            raise ValueError("Portfolio must contain at least one loan")
        return v


class ScheduleRequest(BaseModel):
    """Request model for an amortization schedule."""

    principal_amount: Decimal = Field(ge=0)
    interest_rate: Decimal = Field(ge=0)
    loan_term_months: int
    start_date: date


class RepaymentRequest(BaseModel):
    """Request model for posting a repayment against a stored loan."""

    amount: Decimal
    repayment_date: date
    early_settlement: bool = False
    actor: str = "api"


class RecalculateRequest(BaseModel):
    """Request model for recalculating and persisting a stored loan's snapshots."""

    as_of: date
    customer: Optional[CustomerData] = None


class LoanResultResponse(BaseModel):
    """Per-loan evaluation outcome."""

    loan_id: str
    as_of_date: date
    days_overdue: int
    aging_bucket: str
    ifrs9_stage: str
    stage_reason: str
    exposure: Decimal
    ecl_value: Decimal
    provision_amount: Decimal
    provision_percentage: Decimal
    regulatory_classification: str
    requires_review: bool
    risk_score: int
    risk_category: str
    recommended_action: str


class PortfolioResponse(BaseModel):
    """Response model for portfolio aggregation."""

    calculation_id: str
    summary: Dict[str, Any]
    validation_issues: List[str] = Field(default_factory=list)
    loans: Optional[List[LoanResultResponse]] = None


class RepaymentResponse(BaseModel):
    """Response model for a posted repayment."""

    loan: Dict[str, Any]
    repayment: Dict[str, Any]
    allocation: Dict[str, Any]


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: datetime
    checks: Dict[str, Any]


class ErrorResponse(BaseModel):
    """Error response model."""

    error: str
    detail: str
    timestamp: datetime = Field(default_factory=datetime.now)
