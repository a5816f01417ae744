"""
End-to-end example: servicing, IFRS 9 staging, ECL, provisioning and portfolio metrics.

This example demonstrates how the modules work together for a month-end
credit risk run over a synthetic microfinance loan book.
"""

from datetime import date
from decimal import Decimal

from loanrisk import (
    LoanRiskEngine, LoanAccount, LifecycleStatus, InMemoryLoanRepository,
    RepaymentAllocator, LoanLifecycle, LoanBookGenerator, PortfolioAggregator,
    OverpaymentError, generate_schedule,
)
from loanrisk.simulator.loan_book import BookProfile


def main():
    """Run a month-end credit risk analysis."""

    print("Loan Risk Engine - Month-end Credit Risk Run")
    print("=" * 60)
    as_of = date(2024, 6, 30)

    # 1. Originate and service one loan
    print("\nOriginating a loan...")
    lifecycle = LoanLifecycle(audit_sink=lambda event: print(
        f"  audit: {event.from_status.value} -> {event.to_status.value} ({event.actor})"
    ))
    loan = LoanAccount(
        loan_id="DEMO_001",
        customer_id="CUST_001",
        principal_amount=Decimal("10000"),
        interest_rate=Decimal("12"),
        loan_term_months=12,
    )
    loan = lifecycle.approve(loan, actor="credit_officer")
    loan = lifecycle.disburse(loan, date(2024, 5, 1), actor="branch_teller")

    schedule = generate_schedule(loan.principal_amount, loan.interest_rate, loan.loan_term_months,
                                 loan.disbursement_date)
    print(f"  Monthly payment: {schedule.monthly_payment}")
    print(f"  Total interest over term: {schedule.total_interest}")

    repository = InMemoryLoanRepository([loan])
    allocator = RepaymentAllocator(repository)

    print("\nPosting repayments...")
    allocation = allocator.post_repayment("DEMO_001", schedule.monthly_payment, date(2024, 6, 1))
    print(f"  Interest {allocation.interest_portion}, principal {allocation.principal_portion}, "
          f"balance {allocation.balance_after}")

    try:
        allocator.post_repayment("DEMO_001", Decimal("20000"), date(2024, 6, 15))
    except OverpaymentError as exc:
        print(f"  Rejected: {exc}")

    quote = allocator.quote_early_settlement("DEMO_001", as_of)
    print(f"  Early settlement payoff on {as_of}: {quote.payoff_amount}")

    # 2. Evaluate the stored loan
    print("\nEvaluating the serviced loan...")
    engine = LoanRiskEngine()
    result = engine.recalculate("DEMO_001", repository, None, as_of)
    for key, value in result.get_summary().items():
        print(f"  {key}: {value}")

    # 3. Portfolio analysis over a synthetic book
    print("\nGenerating synthetic loan book...")
    generator = LoanBookGenerator(seed=2024)
    loans, customers = generator.generate_book(num_loans=500, as_of=as_of, profile=BookProfile.MIXED)
    print(f"Generated {len(loans)} loans")

    issues = engine.validate_inputs(loans)
    if issues:
        print(f"  {len(issues)} data quality issues, first: {issues[0]}")

    aggregator = PortfolioAggregator(engine)
    results = engine.evaluate_portfolio(loans, as_of, customers)
    summary = aggregator.summarize(loans, results, as_of)

    print("\nPortfolio at risk:")
    print(f"  Live outstanding: {summary.live_outstanding:,.2f}")
    print(f"  PAR30: {summary.par30_count} loans, {summary.par30_amount:,.2f} ({summary.par30_ratio:.2%})")
    print(f"  PAR90: {summary.par90_count} loans, {summary.par90_amount:,.2f} ({summary.par90_ratio:.2%})")

    print("\nImpairment:")
    print(f"  Total ECL: {summary.total_ecl:,.2f}")
    print(f"  Total provisions: {summary.total_provisions:,.2f}")
    for stage, count in summary.stage_distribution.items():
        print(f"  {stage}: {count} loans")
    print(f"  Loans flagged for provision/ECL review: {summary.loans_requiring_review}")

    print("\nRisk categories:")
    for category, count in summary.risk_distribution.items():
        print(f"  {category}: {count}")

    frame = aggregator.to_frame(results)
    watchlist = frame[frame["risk_category"].isin(["HIGH", "CRITICAL"])]
    print(f"\nWatchlist ({len(watchlist)} loans), top 5 by score:")
    print(watchlist.sort_values("risk_score", ascending=False).head()[
        ["ifrs9_stage", "aging_bucket", "risk_score", "recommended_action"]
    ])

    written_off = [loan for loan in loans if loan.lifecycle_status == LifecycleStatus.WRITTEN_OFF]
    print(f"\nWritten-off loans still provisioned: {len(written_off)}")


if __name__ == "__main__":
    main()
