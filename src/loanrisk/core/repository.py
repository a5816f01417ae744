"""Narrow persistence boundary used by the engine."""

from typing import Dict, List, Optional, Protocol
import threading
import logging

from .exceptions import DuplicateLoanError, InvalidInputError, LoanNotFoundError, StaleSnapshotError
from .loan import LoanAccount, Repayment
from .money import ZERO

logger = logging.getLogger(__name__)


class LoanRepository(Protocol):
    """What the engine needs from the record store. Implemented by collaborators."""

    def get_loan(self, loan_id: str) -> LoanAccount: ...

    def update_loan(self, loan: LoanAccount, expected_version: int) -> LoanAccount: ...

    def append_repayment(self, repayment: Repayment) -> Repayment: ...

    def append_ecl_result(self, result) -> None: ...

    def upsert_provision_record(self, record): ...


class InMemoryLoanRepository:
    """Reference repository backed by dictionaries.

    Loans are versioned: ``update_loan`` rejects a write whose expected
    version no longer matches the stored one. Repayments and ECL results are
    append-only; provision records are superseded rather than replaced.
    """

    def __init__(self, loans: Optional[List[LoanAccount]] = None):
        self._loans: Dict[str, LoanAccount] = {}
        self._repayments: Dict[str, List[Repayment]] = {}
        self._ecl_results: Dict[str, list] = {}
        self._provisions: Dict[str, list] = {}
        self._lock = threading.Lock()
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

        for loan in loans or []:
            self.add_loan(loan)

    def add_loan(self, loan: LoanAccount) -> None:
        """Register a new loan. Existing loans change only through ``update_loan``."""
        with self._lock:
            if loan.loan_id in self._loans:
                raise DuplicateLoanError(loan.loan_id)
            self._loans[loan.loan_id] = loan

    def get_loan(self, loan_id: str) -> LoanAccount:
        with self._lock:
            loan = self._loans.get(loan_id)
        if loan is None:
            raise LoanNotFoundError(f"Loan {loan_id} not found")
        return loan.model_copy()

    def list_loans(self) -> List[LoanAccount]:
        with self._lock:
            return [loan.model_copy() for loan in self._loans.values()]

    def update_loan(self, loan: LoanAccount, expected_version: int) -> LoanAccount:
        """Compare-and-set write. Returns the stored loan with its new version."""
        with self._lock:
            current = self._loans.get(loan.loan_id)
            if current is None:
                raise LoanNotFoundError(f"Loan {loan.loan_id} not found")
            if current.version != expected_version:
                raise StaleSnapshotError(loan.loan_id, expected_version, current.version)
            stored = loan.apply(version=current.version + 1)
            self._loans[loan.loan_id] = stored
        self.logger.debug(f"Loan {loan.loan_id} stored at version {stored.version}")
        return stored.model_copy()

    def append_repayment(self, repayment: Repayment) -> Repayment:
        with self._lock:
            loan = self._loans.get(repayment.loan_id)
            if loan is None:
                raise LoanNotFoundError(f"Loan {repayment.loan_id} not found")
            ledger = self._repayments.setdefault(repayment.loan_id, [])
            repaid = sum((r.principal_portion for r in ledger), ZERO)
            if repaid + repayment.principal_portion > loan.principal_amount:
                raise InvalidInputError(
                    f"Repayments on loan {repayment.loan_id} would exceed principal "
                    f"{loan.principal_amount}"
                )
            ledger.append(repayment)
        return repayment

    def list_repayments(self, loan_id: str) -> List[Repayment]:
        with self._lock:
            return list(self._repayments.get(loan_id, []))

    def append_ecl_result(self, result) -> None:
        with self._lock:
            self._ecl_results.setdefault(result.loan_reference, []).append(result)

    def list_ecl_results(self, loan_id: str) -> list:
        with self._lock:
            return list(self._ecl_results.get(loan_id, []))

    def upsert_provision_record(self, record):
        """Store ``record`` as current, superseding the previous current record."""
        with self._lock:
            history = self._provisions.setdefault(record.loan_id, [])
            if history and history[-1].superseded_at is None:
                history[-1] = history[-1].model_copy(update={"superseded_at": record.recorded_at})
            history.append(record)
        return record

    def get_current_provision(self, loan_id: str):
        with self._lock:
            history = self._provisions.get(loan_id, [])
            if history and history[-1].superseded_at is None:
                return history[-1]
        return None

    def list_provision_records(self, loan_id: str) -> list:
        with self._lock:
            return list(self._provisions.get(loan_id, []))

    def snapshot_counts(self) -> Dict[str, int]:
        """Row counts per table, handy for diagnostics."""
        with self._lock:
            return {
                "loans": len(self._loans),
                "repayments": sum(len(v) for v in self._repayments.values()),
                "ecl_results": sum(len(v) for v in self._ecl_results.values()),
                "provision_records": sum(len(v) for v in self._provisions.values()),
            }
