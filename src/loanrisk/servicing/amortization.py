"""Level-payment amortization for reducing-balance loans."""

from typing import List, Optional
from decimal import Decimal
from datetime import date
import logging

from dateutil.relativedelta import relativedelta
from pydantic import BaseModel, Field

from ..core.config import RiskEngineConfig
from ..core.exceptions import InvalidInputError, InvalidTermError, InvalidLoanStateError
from ..core.loan import LoanAccount, REPAYABLE_STATUSES
from ..core.money import ONE, ZERO, quantize_money, to_decimal

logger = logging.getLogger(__name__)

MONTHS_PER_YEAR = Decimal("12")
HUNDRED = Decimal("100")


class ScheduleInstallment(BaseModel):
    """One row of an amortization schedule."""

    payment_number: int = Field(ge=1)
    due_date: date
    principal_amount: Decimal
    interest_amount: Decimal
    total_payment: Decimal
    outstanding_balance: Decimal = Field(ge=0)
    cumulative_interest: Decimal = Field(ge=0)


class AmortizationSchedule(BaseModel):
    """Full repayment plan for a loan."""

    monthly_payment: Decimal
    total_interest: Decimal
    total_payment: Decimal
    installments: List[ScheduleInstallment] = Field(default_factory=list)


class EarlySettlementQuote(BaseModel):
    """Amount required to close a loan before maturity."""

    loan_id: str
    settlement_date: date
    outstanding_principal: Decimal
    interest_due: Decimal
    penalty: Decimal
    payoff_amount: Decimal


def monthly_rate(annual_rate) -> Decimal:
    """Annual percentage rate to a monthly decimal rate."""
    rate = to_decimal(annual_rate)
    if rate < ZERO:
        raise InvalidInputError(f"Interest rate cannot be negative: {rate}")
    return rate / MONTHS_PER_YEAR / HUNDRED


def _validate_terms(principal, term_months: int) -> Decimal:
    if term_months is None or term_months <= 0:
        raise InvalidTermError(f"Loan term must be at least one month, got {term_months}")
    principal = to_decimal(principal)
    if principal < ZERO:
        raise InvalidInputError(f"Principal cannot be negative: {principal}")
    return principal


def calculate_monthly_payment(principal, annual_rate, term_months: int) -> Decimal:
    """Level monthly payment: P * r / (1 - (1 + r)^-n), or P / n when r is zero."""
    principal = _validate_terms(principal, term_months)
    r = monthly_rate(annual_rate)

    if r == ZERO:
        return quantize_money(principal / term_months)

    payment = principal * r / (ONE - (ONE + r) ** -term_months)
    return quantize_money(payment)


def calculate_period_interest(balance, annual_rate) -> Decimal:
    """Interest accrued on ``balance`` over one monthly period."""
    balance = to_decimal(balance)
    if balance <= ZERO:
        return ZERO
    return quantize_money(balance * monthly_rate(annual_rate))


def generate_schedule(principal, annual_rate, term_months: int,
                      start_date: date) -> AmortizationSchedule:
    """Generate the amortization schedule starting one month after ``start_date``.

    The final installment absorbs rounding residue so the closing balance is
    exactly zero and the principal column sums to ``principal``.
    """
    principal = _validate_terms(principal, term_months)
    payment = calculate_monthly_payment(principal, annual_rate, term_months)

    installments = []
    balance = quantize_money(principal)
    cumulative_interest = ZERO

    for number in range(1, term_months + 1):
        interest = calculate_period_interest(balance, annual_rate)
        if number == term_months:
            principal_part = balance
        else:
            principal_part = min(payment - interest, balance)
        balance = balance - principal_part
        cumulative_interest += interest

        installments.append(ScheduleInstallment(
            payment_number=number,
            due_date=start_date + relativedelta(months=number),
            principal_amount=principal_part,
            interest_amount=interest,
            total_payment=principal_part + interest,
            outstanding_balance=balance,
            cumulative_interest=cumulative_interest,
        ))

    total_interest = quantize_money(cumulative_interest)
    return AmortizationSchedule(
        monthly_payment=payment,
        total_interest=total_interest,
        total_payment=quantize_money(principal) + total_interest,
        installments=installments,
    )


def quote_early_settlement(loan: LoanAccount, settlement_date: date,
                           config: Optional[RiskEngineConfig] = None) -> EarlySettlementQuote:
    """Payoff for closing ``loan`` now: balance, current period interest and penalty."""
    if loan.lifecycle_status not in REPAYABLE_STATUSES:
        raise InvalidLoanStateError(
            f"Cannot settle loan {loan.loan_id} in status {loan.lifecycle_status.value}"
        )
    config = config or RiskEngineConfig.load_default()

    interest_due = calculate_period_interest(loan.outstanding_balance, loan.interest_rate)
    penalty = quantize_money(loan.outstanding_balance * config.get_early_settlement_penalty_rate())

    return EarlySettlementQuote(
        loan_id=loan.loan_id,
        settlement_date=settlement_date,
        outstanding_principal=loan.outstanding_balance,
        interest_due=interest_due,
        penalty=penalty,
        payoff_amount=loan.outstanding_balance + interest_due + penalty,
    )
