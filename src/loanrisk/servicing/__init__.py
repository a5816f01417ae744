"""Loan servicing: amortization, repayment allocation and lifecycle."""

from .amortization import (
    AmortizationSchedule,
    EarlySettlementQuote,
    calculate_monthly_payment,
    generate_schedule,
    quote_early_settlement,
)
from .allocator import RepaymentAllocation, RepaymentAllocator, allocate_repayment
from .lifecycle import LoanLifecycle, StatusTransition, can_transition

__all__ = [
    "AmortizationSchedule",
    "EarlySettlementQuote",
    "calculate_monthly_payment",
    "generate_schedule",
    "quote_early_settlement",
    "RepaymentAllocation",
    "RepaymentAllocator",
    "allocate_repayment",
    "LoanLifecycle",
    "StatusTransition",
    "can_transition",
]
