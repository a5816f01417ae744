"""Core components of the Loan Risk Engine."""

from .exceptions import LoanRiskError, InvalidInputError, ConfigurationError
from .money import to_decimal, quantize_money
from .loan import LoanAccount, LifecycleStatus, Repayment, CustomerRiskProfile
from .config import RiskEngineConfig
from .repository import LoanRepository, InMemoryLoanRepository

__all__ = [
    "LoanRiskError",
    "InvalidInputError",
    "ConfigurationError",
    "to_decimal",
    "quantize_money",
    "LoanAccount",
    "LifecycleStatus",
    "Repayment",
    "CustomerRiskProfile",
    "RiskEngineConfig",
    "LoanRepository",
    "InMemoryLoanRepository",
]
