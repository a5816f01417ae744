"""Interest-first repayment allocation with per-loan serialization."""

from typing import Callable, Optional, Tuple
from decimal import Decimal
from datetime import date
import threading
import weakref
import logging

from dateutil.relativedelta import relativedelta
from pydantic import BaseModel

from ..core.config import RiskEngineConfig
from ..core.exceptions import InvalidInputError, InvalidLoanStateError, OverpaymentError
from ..core.loan import (
    LoanAccount, LifecycleStatus, Repayment, ARREARS_STATUSES, REPAYABLE_STATUSES
)
from ..core.money import ZERO, quantize_money, to_decimal
from ..core.repository import LoanRepository
from .amortization import calculate_monthly_payment, calculate_period_interest, quote_early_settlement
from .lifecycle import LoanLifecycle, StatusTransition

logger = logging.getLogger(__name__)

# A full installment moves these back to ACTIVE once the due date is in the future
CURABLE_STATUSES = ARREARS_STATUSES | {LifecycleStatus.DISBURSED}


class RepaymentAllocation(BaseModel):
    """Breakdown of how one incoming payment was applied."""

    loan_id: str
    amount_received: Decimal
    interest_due: Decimal
    interest_portion: Decimal
    principal_portion: Decimal
    unapplied_amount: Decimal = ZERO
    balance_before: Decimal
    balance_after: Decimal
    scheduled_payment: Decimal
    due_date_advanced: bool = False
    loan_closed: bool = False
    early_settlement: bool = False
    repayment: Optional[Repayment] = None
    status_change: Optional[StatusTransition] = None


def allocate_repayment(loan: LoanAccount, amount, repayment_date: date,
                       config: RiskEngineConfig, early_settlement: bool = False,
                       lifecycle: Optional[LoanLifecycle] = None,
                       actor: str = "system") -> Tuple[LoanAccount, Repayment, RepaymentAllocation]:
    """Apply ``amount`` to ``loan`` without touching any store.

    Returns the updated loan, the ledger entry and the allocation breakdown.
    A status change is returned on ``allocation.status_change`` unrecorded;
    the caller records it once the loan is persisted.
    Raises ``OverpaymentError`` when the principal part would exceed the
    outstanding balance and ``early_settlement`` was not requested.
    """
    amount = quantize_money(to_decimal(amount))
    if amount <= ZERO:
        raise InvalidInputError(f"Repayment amount must be positive, got {amount}")
    if loan.lifecycle_status not in REPAYABLE_STATUSES:
        raise InvalidLoanStateError(
            f"Cannot post repayment for loan {loan.loan_id} in status {loan.lifecycle_status.value}"
        )

    balance_before = loan.outstanding_balance
    interest_due = calculate_period_interest(balance_before, loan.interest_rate)
    if early_settlement:
        interest_due += quote_early_settlement(loan, repayment_date, config).penalty

    interest_portion = min(amount, interest_due)
    principal_portion = amount - interest_portion
    unapplied = ZERO

    if principal_portion > balance_before:
        excess = principal_portion - balance_before
        if not early_settlement:
            raise OverpaymentError(loan.loan_id, amount, balance_before, excess)
        principal_portion = balance_before
        unapplied = excess

    scheduled_payment = calculate_monthly_payment(
        loan.principal_amount, loan.interest_rate, loan.loan_term_months
    )

    balance_after = balance_before - principal_portion
    closed = balance_after <= config.rounding_epsilon
    if closed:
        balance_after = ZERO

    changes = {"outstanding_balance": balance_after}
    lifecycle = lifecycle or LoanLifecycle()
    advanced = False
    status_change = None

    if closed:
        changes.update(next_payment_date=None, closure_date=repayment_date)
        updated, status_change = lifecycle.plan(
            loan, LifecycleStatus.CLOSED, actor=actor,
            reason="Balance repaid in full", occurred_on=repayment_date, changes=changes,
        )
    else:
        full_installment = amount >= scheduled_payment
        if loan.next_payment_date and (full_installment or config.partial_payment_advances_due_date()):
            changes["next_payment_date"] = loan.next_payment_date + relativedelta(months=1)
            advanced = True

        next_due = changes.get("next_payment_date", loan.next_payment_date)
        cured = (
            full_installment
            and loan.lifecycle_status in CURABLE_STATUSES
            and next_due is not None
            and next_due >= repayment_date
        )
        if cured:
            updated, status_change = lifecycle.plan(
                loan, LifecycleStatus.ACTIVE, actor=actor,
                reason="Installment received, arrears cleared", occurred_on=repayment_date,
                changes=changes,
            )
        else:
            updated = loan.apply(**changes)

    repayment = Repayment(
        loan_id=loan.loan_id,
        repayment_date=repayment_date,
        principal_portion=principal_portion,
        interest_portion=interest_portion,
    )

    allocation = RepaymentAllocation(
        loan_id=loan.loan_id,
        amount_received=amount,
        interest_due=interest_due,
        interest_portion=interest_portion,
        principal_portion=principal_portion,
        unapplied_amount=unapplied,
        balance_before=balance_before,
        balance_after=balance_after,
        scheduled_payment=scheduled_payment,
        due_date_advanced=advanced,
        loan_closed=closed,
        early_settlement=early_settlement,
        repayment=repayment,
        status_change=status_change,
    )

    logger.debug(f"Allocated {amount} on {loan.loan_id}: interest {interest_portion}, "
                 f"principal {principal_portion}, balance {balance_before} -> {balance_after}")

    return updated, repayment, allocation


class RepaymentAllocator:
    """Posts repayments through a repository, one allocation per loan at a time."""

    def __init__(self, repository: LoanRepository, config: Optional[RiskEngineConfig] = None,
                 audit_sink: Optional[Callable[[StatusTransition], None]] = None):
        self.repository = repository
        self.config = config or RiskEngineConfig.load_default()
        self.lifecycle = LoanLifecycle(audit_sink=audit_sink)
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

        # Entries drop out once no thread holds or waits on them
        self._locks: "weakref.WeakValueDictionary[str, threading.Lock]" = weakref.WeakValueDictionary()
        self._registry_lock = threading.Lock()

    def _lock_for(self, loan_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(loan_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[loan_id] = lock
            return lock

    def post_repayment(self, loan_id: str, amount, repayment_date: date,
                       early_settlement: bool = False,
                       actor: str = "system") -> RepaymentAllocation:
        """Allocate and persist a repayment.

        Errors propagate unchanged; the caller audit-logs rejected operations.
        A ``StaleSnapshotError`` means the loan changed outside this allocator
        between read and write and nothing was persisted. Status changes are
        audited only after the write succeeds.
        """
        with self._lock_for(loan_id):
            loan = self.repository.get_loan(loan_id)
            updated, repayment, allocation = allocate_repayment(
                loan, amount, repayment_date, self.config,
                early_settlement=early_settlement, lifecycle=self.lifecycle, actor=actor,
            )
            self.repository.update_loan(updated, expected_version=loan.version)
            self.repository.append_repayment(repayment)
            if allocation.status_change is not None:
                self.lifecycle.record(allocation.status_change)

        self.logger.info(
            f"Repayment {repayment.repayment_id} posted on loan {loan_id}: "
            f"{allocation.amount_received} received, balance {allocation.balance_after}"
        )
        return allocation

    def quote_early_settlement(self, loan_id: str, settlement_date: date):
        return quote_early_settlement(self.repository.get_loan(loan_id), settlement_date, self.config)

    def settle_early(self, loan_id: str, settlement_date: date,
                     actor: str = "system") -> RepaymentAllocation:
        """Post the quoted payoff amount and close the loan."""
        quote = self.quote_early_settlement(loan_id, settlement_date)
        return self.post_repayment(
            loan_id, quote.payoff_amount, settlement_date, early_settlement=True, actor=actor
        )
