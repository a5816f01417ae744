"""Loan account, repayment and customer risk profile definitions."""

from enum import Enum
from typing import Any, Optional
from decimal import Decimal
from datetime import date
import uuid

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator

from .exceptions import InvalidInputError, InvalidTermError
from .money import ZERO, quantize_money


class LifecycleStatus(str, Enum):
    """Lifecycle states of a loan account."""

    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    DISBURSED = "DISBURSED"
    ACTIVE = "ACTIVE"
    CURRENT = "CURRENT"
    OVERDUE = "OVERDUE"
    DELINQUENT = "DELINQUENT"
    DEFAULT = "DEFAULT"
    CLOSED = "CLOSED"
    WRITTEN_OFF = "WRITTEN_OFF"


# Statuses before money leaves the lender; balance is zero by construction
PRE_DISBURSEMENT_STATUSES = frozenset({
    LifecycleStatus.PENDING_APPROVAL,
    LifecycleStatus.APPROVED,
    LifecycleStatus.REJECTED,
})

PERFORMING_STATUSES = frozenset({
    LifecycleStatus.DISBURSED,
    LifecycleStatus.ACTIVE,
    LifecycleStatus.CURRENT,
})

ARREARS_STATUSES = frozenset({
    LifecycleStatus.OVERDUE,
    LifecycleStatus.DELINQUENT,
})

CREDIT_IMPAIRED_STATUSES = frozenset({
    LifecycleStatus.DEFAULT,
    LifecycleStatus.WRITTEN_OFF,
})

REPAYABLE_STATUSES = PERFORMING_STATUSES | ARREARS_STATUSES | {LifecycleStatus.DEFAULT}

ZERO_BALANCE_STATUSES = frozenset({
    LifecycleStatus.CLOSED,
    LifecycleStatus.WRITTEN_OFF,
})

TERMINAL_STATUSES = frozenset({
    LifecycleStatus.CLOSED,
    LifecycleStatus.WRITTEN_OFF,
    LifecycleStatus.REJECTED,
})


def parse_status(value: Any) -> LifecycleStatus:
    """Coerce a status value, failing loudly on anything unrecognized."""
    if isinstance(value, LifecycleStatus):
        return value
    try:
        return LifecycleStatus(str(value).strip().upper().replace("-", "_"))
    except ValueError as exc:
        raise InvalidInputError(f"Unrecognized lifecycle status: {value!r}") from exc


class CustomerRiskProfile(BaseModel):
    """Read-only customer attributes consumed by the risk scorer."""

    customer_id: str
    credit_score: Optional[int] = Field(None, ge=0, le=850, description="0 or None when unknown")
    kyc_verified: bool = False

    def has_known_score(self) -> bool:
        return bool(self.credit_score)


class LoanAccount(BaseModel):
    """Canonical loan record."""

    # Identification
    loan_id: str
    customer_id: Optional[str] = None

    # Contract terms
    principal_amount: Decimal = Field(ge=0, description="Amount disbursed")
    interest_rate: Decimal = Field(ge=0, description="Annual rate in percent, reducing balance")
    loan_term_months: int

    # Servicing state
    outstanding_balance: Decimal = Field(default=ZERO, ge=0)
    disbursement_date: Optional[date] = None
    next_payment_date: Optional[date] = None
    lifecycle_status: LifecycleStatus = LifecycleStatus.PENDING_APPROVAL
    closure_date: Optional[date] = None

    # Optimistic concurrency counter, bumped by the repository on every write
    version: int = Field(default=0, ge=0)

    @field_validator("loan_term_months")
    @classmethod
    def validate_term(cls, v: int) -> int:
        if v < 1:
            raise InvalidTermError(f"Loan term must be at least one month, got {v}")
        return v

    @field_validator("principal_amount", "outstanding_balance")
    @classmethod
    def round_amounts(cls, v: Decimal) -> Decimal:
        return quantize_money(v)

    @model_validator(mode="after")
    def check_balance_invariants(self) -> "LoanAccount":
        if self.outstanding_balance > self.principal_amount:
            raise InvalidInputError(
                f"Loan {self.loan_id}: outstanding balance {self.outstanding_balance} "
                f"exceeds principal {self.principal_amount}"
            )
        status = self.lifecycle_status
        if (
            self.outstanding_balance == ZERO
            and status not in ZERO_BALANCE_STATUSES
            and status not in PRE_DISBURSEMENT_STATUSES
        ):
            raise InvalidInputError(
                f"Loan {self.loan_id}: zero balance requires CLOSED or WRITTEN_OFF, got {status.value}"
            )
        return self

    def apply(self, **changes: Any) -> "LoanAccount":
        """Return a validated copy with ``changes`` applied."""
        return type(self).model_validate({**self.model_dump(), **changes})

    def balance_ratio(self) -> Optional[Decimal]:
        """Outstanding balance over principal, None when principal is zero."""
        if self.principal_amount <= ZERO:
            return None
        return self.outstanding_balance / self.principal_amount

    def is_disbursed(self) -> bool:
        return self.lifecycle_status not in PRE_DISBURSEMENT_STATUSES

    def is_live(self) -> bool:
        """Disbursed and still carrying collectable balance."""
        return self.is_disbursed() and self.lifecycle_status not in ZERO_BALANCE_STATUSES

    def carries_credit_exposure(self) -> bool:
        """Disbursed and not repaid. Written-off loans stay exposed until recovered."""
        return self.is_disbursed() and self.lifecycle_status != LifecycleStatus.CLOSED


class Repayment(BaseModel):
    """Immutable repayment ledger entry."""

    model_config = ConfigDict(frozen=True)

    repayment_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    loan_id: str
    repayment_date: date
    principal_portion: Decimal = Field(ge=0)
    interest_portion: Decimal = Field(ge=0)

    @computed_field
    @property
    def total_paid(self) -> Decimal:
        return self.principal_portion + self.interest_portion
