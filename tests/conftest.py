"""Pytest configuration and shared fixtures."""

import pytest
import tempfile
from datetime import date
from decimal import Decimal
from pathlib import Path

from loanrisk.core.config import RiskEngineConfig
from loanrisk.core.loan import LoanAccount, LifecycleStatus, CustomerRiskProfile
from loanrisk.core.repository import InMemoryLoanRepository
from loanrisk.core.engine import LoanRiskEngine
from loanrisk.simulator.loan_book import LoanBookGenerator, BookProfile


AS_OF = date(2024, 6, 15)


@pytest.fixture(scope="session")
def test_config():
    """Test configuration fixture."""
    return RiskEngineConfig.load_default()


@pytest.fixture
def temp_dir():
    """Temporary directory fixture."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def as_of():
    return AS_OF


@pytest.fixture
def active_loan():
    """Freshly disbursed 10,000 at 12% over 12 months, first installment due 1 June."""
    return LoanAccount(
        loan_id="loan_001",
        customer_id="cust_001",
        principal_amount=Decimal("10000.00"),
        interest_rate=Decimal("12"),
        loan_term_months=12,
        outstanding_balance=Decimal("10000.00"),
        disbursement_date=date(2024, 5, 1),
        next_payment_date=date(2024, 6, 1),
        lifecycle_status=LifecycleStatus.ACTIVE,
    )


@pytest.fixture
def overdue_loan():
    """45 days past due on 15 June 2024."""
    return LoanAccount(
        loan_id="loan_002",
        customer_id="cust_002",
        principal_amount=Decimal("8000.00"),
        interest_rate=Decimal("18"),
        loan_term_months=24,
        outstanding_balance=Decimal("6500.00"),
        disbursement_date=date(2023, 10, 1),
        next_payment_date=date(2024, 5, 1),
        lifecycle_status=LifecycleStatus.OVERDUE,
    )


@pytest.fixture
def written_off_loan():
    return LoanAccount(
        loan_id="loan_003",
        customer_id="cust_003",
        principal_amount=Decimal("5000.00"),
        interest_rate=Decimal("24"),
        loan_term_months=12,
        outstanding_balance=Decimal("5000.00"),
        disbursement_date=date(2023, 1, 1),
        next_payment_date=date(2023, 6, 1),
        lifecycle_status=LifecycleStatus.WRITTEN_OFF,
        closure_date=date(2024, 3, 31),
    )


@pytest.fixture
def pending_loan():
    return LoanAccount(
        loan_id="loan_004",
        customer_id="cust_004",
        principal_amount=Decimal("2500.00"),
        interest_rate=Decimal("15"),
        loan_term_months=6,
    )


@pytest.fixture
def good_customer():
    return CustomerRiskProfile(customer_id="cust_001", credit_score=780, kyc_verified=True)


@pytest.fixture
def repository(active_loan, overdue_loan, written_off_loan, pending_loan):
    """Repository seeded with one loan per fixture above."""
    return InMemoryLoanRepository([active_loan, overdue_loan, written_off_loan, pending_loan])


@pytest.fixture
def engine(test_config):
    return LoanRiskEngine(test_config)


@pytest.fixture
def mixed_book():
    """Reproducible synthetic book of 200 loans."""
    generator = LoanBookGenerator(seed=42)
    return generator.generate_book(num_loans=200, as_of=AS_OF, profile=BookProfile.MIXED)


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "property: marks tests as property-based tests"
    )


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers automatically."""
    for item in items:
        # Mark property-based tests
        if "test_properties" in item.nodeid:
            item.add_marker(pytest.mark.property)

        # Mark integration tests
        if "integration" in item.nodeid or "test_api" in item.nodeid:
            item.add_marker(pytest.mark.integration)

        # Mark slow tests
        if any(marker in item.nodeid for marker in ["concurrent", "large", "stressed"]):
            item.add_marker(pytest.mark.slow)


# Custom assertion helpers
def assert_balance_bounds(loan):
    """Assert that the outstanding balance stays within [0, principal]."""
    assert loan.outstanding_balance >= 0, f"Balance {loan.outstanding_balance} is negative"
    assert loan.outstanding_balance <= loan.principal_amount, (
        f"Balance {loan.outstanding_balance} exceeds principal {loan.principal_amount}"
    )
