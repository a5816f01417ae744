"""Loan Risk Engine - loan servicing, IFRS 9 staging and regulatory provisioning."""

# Core engine and components
from .core.engine import LoanRiskEngine, LoanRiskResult
from .core.config import RiskEngineConfig
from .core.loan import LoanAccount, LifecycleStatus, Repayment, CustomerRiskProfile
from .core.repository import InMemoryLoanRepository
from .core.exceptions import (
    LoanRiskError,
    InvalidInputError,
    InvalidTermError,
    OverpaymentError,
    StaleSnapshotError,
    InvalidLoanStateError,
    LoanNotFoundError,
    DuplicateLoanError,
)

# Servicing
from .servicing.amortization import calculate_monthly_payment, generate_schedule
from .servicing.allocator import RepaymentAllocator
from .servicing.lifecycle import LoanLifecycle

# Risk classification
from .risk.aging import AgingBucket, AgingCalculator
from .risk.staging import ECLStage, StageClassifier
from .risk.scoring import RiskScorer, RiskCategory

# IFRS 9 and statutory provisioning
from .accounting.ifrs9 import ECLEstimator, ECLResult
from .accounting.provisions import ProvisioningCalculator, ProvisionRecord

# Portfolio metrics and simulation
from .metrics.portfolio import PortfolioAggregator, PortfolioSummary
from .simulator.loan_book import LoanBookGenerator

__version__ = "0.1.0"
__author__ = "Loan Risk Engine Contributors"

__all__ = [
    # Core components
    "LoanRiskEngine",
    "LoanRiskResult",
    "RiskEngineConfig",
    "LoanAccount",
    "LifecycleStatus",
    "Repayment",
    "CustomerRiskProfile",
    "InMemoryLoanRepository",

    # Errors
    "LoanRiskError",
    "InvalidInputError",
    "InvalidTermError",
    "OverpaymentError",
    "StaleSnapshotError",
    "InvalidLoanStateError",
    "LoanNotFoundError",
    "DuplicateLoanError",

    # Servicing
    "calculate_monthly_payment",
    "generate_schedule",
    "RepaymentAllocator",
    "LoanLifecycle",

    # Risk
    "AgingBucket",
    "AgingCalculator",
    "ECLStage",
    "StageClassifier",
    "RiskScorer",
    "RiskCategory",

    # Accounting
    "ECLEstimator",
    "ECLResult",
    "ProvisioningCalculator",
    "ProvisionRecord",

    # Metrics and simulation
    "PortfolioAggregator",
    "PortfolioSummary",
    "LoanBookGenerator",
]
