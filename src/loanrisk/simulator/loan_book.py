"""Loan book generation for Loan Risk Engine testing and demonstrations."""

from typing import Dict, List, Optional, Tuple
from enum import Enum
from datetime import date, timedelta
import random
import uuid

import numpy as np
from dateutil.relativedelta import relativedelta

from ..core.loan import LoanAccount, LifecycleStatus, CustomerRiskProfile
from ..core.money import quantize_money, to_decimal


class BookProfile(str, Enum):
    """Credit quality profiles for generated books."""

    PERFORMING = "performing"     # Mostly current, thin arrears tail
    MIXED = "mixed"               # Typical microfinance book
    STRESSED = "stressed"         # Heavy arrears and defaults


# Relative weights of each lifecycle status per profile
STATUS_WEIGHTS: Dict[BookProfile, Dict[LifecycleStatus, float]] = {
    BookProfile.PERFORMING: {
        LifecycleStatus.ACTIVE: 0.70,
        LifecycleStatus.DISBURSED: 0.05,
        LifecycleStatus.OVERDUE: 0.08,
        LifecycleStatus.DELINQUENT: 0.02,
        LifecycleStatus.DEFAULT: 0.01,
        LifecycleStatus.CLOSED: 0.10,
        LifecycleStatus.PENDING_APPROVAL: 0.04,
    },
    BookProfile.MIXED: {
        LifecycleStatus.ACTIVE: 0.50,
        LifecycleStatus.DISBURSED: 0.05,
        LifecycleStatus.OVERDUE: 0.15,
        LifecycleStatus.DELINQUENT: 0.08,
        LifecycleStatus.DEFAULT: 0.05,
        LifecycleStatus.WRITTEN_OFF: 0.02,
        LifecycleStatus.CLOSED: 0.10,
        LifecycleStatus.PENDING_APPROVAL: 0.05,
    },
    BookProfile.STRESSED: {
        LifecycleStatus.ACTIVE: 0.30,
        LifecycleStatus.OVERDUE: 0.20,
        LifecycleStatus.DELINQUENT: 0.20,
        LifecycleStatus.DEFAULT: 0.15,
        LifecycleStatus.WRITTEN_OFF: 0.08,
        LifecycleStatus.CLOSED: 0.07,
    },
}

# Days-overdue range drawn for each status, inclusive
ARREARS_DAYS = {
    LifecycleStatus.OVERDUE: (1, 30),
    LifecycleStatus.DELINQUENT: (31, 90),
    LifecycleStatus.DEFAULT: (91, 365),
    LifecycleStatus.WRITTEN_OFF: (181, 540),
}

TERM_CHOICES = [6, 12, 18, 24, 36, 48, 60]


class LoanBookGenerator:
    """Generator for synthetic loan books with realistic characteristics.

    Every generated loan satisfies the ``LoanAccount`` invariants, so books can
    be fed straight into the engine and the repository.
    """

    def __init__(self, seed: Optional[int] = None):
        """Initialize generator with optional random seed for reproducibility."""
        self.seed = seed
        self.random = random.Random(seed)
        self.np_random = np.random.default_rng(seed)

    def generate_book(self, num_loans: int = 100, as_of: Optional[date] = None,
                      profile: BookProfile = BookProfile.MIXED) -> Tuple[List[LoanAccount], Dict[str, CustomerRiskProfile]]:
        """Generate loans and the customer profiles they reference."""
        as_of = as_of or date.today()
        weights = STATUS_WEIGHTS[profile]
        statuses = list(weights)

        loans = []
        customers = {}
        for _ in range(num_loans):
            customer = self.generate_customer()
            customers[customer.customer_id] = customer
            status = self.random.choices(statuses, weights=[weights[s] for s in statuses])[0]
            loans.append(self.generate_loan(status, as_of, customer_id=customer.customer_id))

        return loans, customers

    def generate_customer(self) -> CustomerRiskProfile:
        # About one in ten applicants has no bureau record
        if self.random.random() < 0.1:
            credit_score = None
        else:
            credit_score = int(np.clip(self.np_random.normal(650, 80), 300, 850))
        return CustomerRiskProfile(
            customer_id=f"customer_{uuid.UUID(int=self.random.getrandbits(128)).hex[:10]}",
            credit_score=credit_score,
            kyc_verified=self.random.random() < 0.9,
        )

    def generate_loan(self, status: LifecycleStatus, as_of: date,
                      customer_id: Optional[str] = None) -> LoanAccount:
        """Generate one loan consistent with ``status`` as of ``as_of``."""
        principal = quantize_money(max(500.0, self.np_random.lognormal(np.log(15000), 0.8)))
        term = self.random.choice(TERM_CHOICES)
        fields = dict(
            loan_id=f"loan_{uuid.UUID(int=self.random.getrandbits(128)).hex[:12]}",
            customer_id=customer_id,
            principal_amount=principal,
            interest_rate=quantize_money(self.random.uniform(8.0, 36.0)),
            loan_term_months=term,
            lifecycle_status=status,
        )

        if status in (LifecycleStatus.PENDING_APPROVAL, LifecycleStatus.APPROVED, LifecycleStatus.REJECTED):
            return LoanAccount(**fields)

        months_on_book = self.random.randint(1, term)
        fields["disbursement_date"] = as_of - relativedelta(months=months_on_book)

        if status == LifecycleStatus.CLOSED:
            fields["closure_date"] = as_of - timedelta(days=self.random.randint(0, 60))
            return LoanAccount(**fields)

        # Amortized share of principal still owed, never zero for a live loan
        remaining = max(0.05, 1.0 - months_on_book / term * self.random.uniform(0.6, 1.0))
        fields["outstanding_balance"] = quantize_money(principal * to_decimal(round(remaining, 4)))

        if status in ARREARS_DAYS:
            low, high = ARREARS_DAYS[status]
            fields["next_payment_date"] = as_of - timedelta(days=self.random.randint(low, high))
        else:
            fields["next_payment_date"] = as_of + timedelta(days=self.random.randint(0, 30))

        if status == LifecycleStatus.WRITTEN_OFF:
            fields["closure_date"] = as_of - timedelta(days=self.random.randint(0, 90))

        return LoanAccount(**fields)

