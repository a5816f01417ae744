"""Loan lifecycle state machine and audit events."""

from typing import Any, Callable, Dict, FrozenSet, Optional, Tuple
from decimal import Decimal
from datetime import date, datetime, timezone
import logging

from dateutil.relativedelta import relativedelta
from pydantic import BaseModel, ConfigDict, Field

from ..core.exceptions import InvalidLoanStateError
from ..core.loan import LoanAccount, LifecycleStatus

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("loanrisk.audit")

_S = LifecycleStatus

_SERVICING_TARGETS = frozenset({
    _S.ACTIVE, _S.CURRENT, _S.OVERDUE, _S.DELINQUENT, _S.DEFAULT, _S.CLOSED,
})

ALLOWED_TRANSITIONS: Dict[LifecycleStatus, FrozenSet[LifecycleStatus]] = {
    _S.PENDING_APPROVAL: frozenset({_S.APPROVED, _S.REJECTED}),
    _S.APPROVED: frozenset({_S.DISBURSED}),
    _S.DISBURSED: _SERVICING_TARGETS,
    _S.ACTIVE: _SERVICING_TARGETS,
    _S.CURRENT: _SERVICING_TARGETS,
    _S.OVERDUE: _SERVICING_TARGETS,
    _S.DELINQUENT: _SERVICING_TARGETS,
    _S.DEFAULT: frozenset({_S.WRITTEN_OFF, _S.CLOSED, _S.ACTIVE}),
    _S.CLOSED: frozenset(),
    _S.WRITTEN_OFF: frozenset(),
    _S.REJECTED: frozenset(),
}


class StatusTransition(BaseModel):
    """Audit record for one lifecycle change."""

    model_config = ConfigDict(frozen=True)

    loan_id: str
    from_status: LifecycleStatus
    to_status: LifecycleStatus
    actor: str
    reason: Optional[str] = None
    effective_date: Optional[date] = None
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


def can_transition(from_status: LifecycleStatus, to_status: LifecycleStatus) -> bool:
    return to_status in ALLOWED_TRANSITIONS.get(from_status, frozenset())


class LoanLifecycle:
    """Applies staff/system-initiated status changes.

    Each successful transition is written to the ``loanrisk.audit`` logger and
    handed to ``audit_sink`` when one is configured.
    """

    def __init__(self, audit_sink: Optional[Callable[[StatusTransition], None]] = None):
        self.audit_sink = audit_sink
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def plan(self, loan: LoanAccount, to_status: LifecycleStatus, actor: str,
             reason: Optional[str] = None, occurred_on: Optional[date] = None,
             changes: Optional[Dict[str, Any]] = None) -> Tuple[LoanAccount, StatusTransition]:
        """Validate a transition and build its event without recording it."""
        from_status = loan.lifecycle_status
        if not can_transition(from_status, to_status):
            raise InvalidLoanStateError(
                f"Loan {loan.loan_id} cannot move from {from_status.value} to {to_status.value}"
            )

        updated = loan.apply(lifecycle_status=to_status, **(changes or {}))

        event = StatusTransition(
            loan_id=loan.loan_id,
            from_status=from_status,
            to_status=to_status,
            actor=actor,
            reason=reason,
            effective_date=occurred_on,
        )
        return updated, event

    def record(self, event: StatusTransition) -> None:
        """Write ``event`` to the audit log and sink. Call once the change is persisted."""
        audit_logger.info(
            f"Loan {event.loan_id}: {event.from_status.value} -> {event.to_status.value} by {event.actor}"
            + (f" ({event.reason})" if event.reason else "")
        )
        if self.audit_sink is not None:
            self.audit_sink(event)

    def transition(self, loan: LoanAccount, to_status: LifecycleStatus, actor: str,
                   reason: Optional[str] = None, occurred_on: Optional[date] = None,
                   changes: Optional[Dict[str, Any]] = None) -> LoanAccount:
        """Move ``loan`` to ``to_status``, applying any accompanying field changes."""
        updated, event = self.plan(loan, to_status, actor, reason=reason,
                                   occurred_on=occurred_on, changes=changes)
        self.record(event)
        return updated

    def approve(self, loan: LoanAccount, actor: str) -> LoanAccount:
        return self.transition(loan, _S.APPROVED, actor, reason="Application approved")

    def reject(self, loan: LoanAccount, actor: str, reason: str) -> LoanAccount:
        return self.transition(loan, _S.REJECTED, actor, reason=reason)

    def disburse(self, loan: LoanAccount, disbursement_date: date, actor: str,
                 first_payment_date: Optional[date] = None) -> LoanAccount:
        """Release funds: the balance becomes the principal and the first installment is scheduled."""
        if loan.principal_amount <= Decimal("0"):
            raise InvalidLoanStateError(f"Loan {loan.loan_id} has no principal to disburse")
        return self.transition(
            loan, _S.DISBURSED, actor, reason="Funds disbursed", occurred_on=disbursement_date,
            changes={
                "outstanding_balance": loan.principal_amount,
                "disbursement_date": disbursement_date,
                "next_payment_date": first_payment_date or disbursement_date + relativedelta(months=1),
            },
        )

    def mark_overdue(self, loan: LoanAccount, actor: str, on: Optional[date] = None) -> LoanAccount:
        return self.transition(loan, _S.OVERDUE, actor, reason="Installment missed", occurred_on=on)

    def mark_delinquent(self, loan: LoanAccount, actor: str, on: Optional[date] = None) -> LoanAccount:
        return self.transition(loan, _S.DELINQUENT, actor, reason="Arrears persisting", occurred_on=on)

    def mark_default(self, loan: LoanAccount, actor: str, reason: str,
                     on: Optional[date] = None) -> LoanAccount:
        return self.transition(loan, _S.DEFAULT, actor, reason=reason, occurred_on=on)

    def cure(self, loan: LoanAccount, actor: str, on: Optional[date] = None) -> LoanAccount:
        return self.transition(loan, _S.ACTIVE, actor, reason="Arrears cleared", occurred_on=on)

    def write_off(self, loan: LoanAccount, actor: str, reason: str, on: date) -> LoanAccount:
        """Write the loan off. The balance stays on record for provisioning and recovery."""
        return self.transition(
            loan, _S.WRITTEN_OFF, actor, reason=reason, occurred_on=on,
            changes={"closure_date": on},
        )
