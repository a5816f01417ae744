"""Exception hierarchy for the loan risk engine."""


class LoanRiskError(Exception):
    """Base exception for all engine errors."""


class InvalidInputError(LoanRiskError):
    """Raised for negative exposures, unknown enum values and other bad inputs."""


class InvalidTermError(InvalidInputError):
    """Raised when a loan term is not a positive number of months."""


class OverpaymentError(LoanRiskError):
    """Raised when a repayment exceeds the outstanding balance without early settlement."""

    def __init__(self, loan_id: str, amount, outstanding_balance, excess):
        self.loan_id = loan_id
        self.amount = amount
        self.outstanding_balance = outstanding_balance
        self.excess = excess
        super().__init__(
            f"Repayment of {amount} on loan {loan_id} exceeds outstanding balance "
            f"{outstanding_balance} by {excess}; request early settlement explicitly"
        )


class StaleSnapshotError(LoanRiskError):
    """Raised when a loan changed underneath an allocation. Caller decides on retry."""

    def __init__(self, loan_id: str, expected_version: int, actual_version: int):
        self.loan_id = loan_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Loan {loan_id} was modified concurrently "
            f"(expected version {expected_version}, found {actual_version})"
        )


class InvalidLoanStateError(LoanRiskError):
    """Raised when an operation or transition is not allowed in the loan's status."""


class LoanNotFoundError(LoanRiskError, LookupError):
    """Raised when a referenced loan does not exist."""


class ConfigurationError(LoanRiskError):
    """Raised when policy configuration is invalid or incomplete."""


class DuplicateLoanError(LoanRiskError):
    """Raised when registering a loan id that is already on record."""

    def __init__(self, loan_id: str):
        self.loan_id = loan_id
        super().__init__(f"Loan {loan_id} is already registered; post servicing events instead")
