"""Main FastAPI application for Loan Risk Engine."""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from typing import Dict, Any
import logging
from datetime import datetime
import uuid

from loanrisk import __version__
from loanrisk.core.exceptions import (
    LoanRiskError, LoanNotFoundError, StaleSnapshotError, DuplicateLoanError,
)
from loanrisk.core.loan import LoanAccount
from loanrisk.servicing.amortization import AmortizationSchedule
from .models import (
    LoanData, EvaluateRequest, PortfolioRequest, ScheduleRequest, RepaymentRequest,
    RecalculateRequest, LoanResultResponse, PortfolioResponse, RepaymentResponse,
    HealthResponse, ErrorResponse,
)
from .services import LoanRiskService

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Loan Risk Engine API",
    description="Loan servicing, IFRS 9 staging, ECL and regulatory provisioning",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc"
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Initialize services
risk_service = LoanRiskService()


@app.get("/", response_model=Dict[str, str])
async def root():
    """Root endpoint with API information."""
    return {
        "name": "Loan Risk Engine API",
        "version": __version__,
        "description": "Loan risk classification and provisioning engine",
        "docs": "/docs",
        "health": "/health"
    }


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    checks = {
        "api": "ok",
        "risk_service": "ok" if risk_service else "error",
        "repository": risk_service.repository.snapshot_counts(),
        "timestamp": datetime.now().isoformat()
    }
    status = "unhealthy" if "error" in checks.values() else "healthy"
    return HealthResponse(status=status, timestamp=datetime.now(), checks=checks)


@app.post("/evaluate", response_model=LoanResultResponse)
async def evaluate_loan(request: EvaluateRequest):
    """Derive aging, stage, ECL, provision and risk score for one loan."""
    logger.info(f"Evaluating loan {request.loan.loan_id} as of {request.as_of}")
    return await risk_service.evaluate(request)


@app.post("/portfolio", response_model=PortfolioResponse)
async def evaluate_portfolio(request: PortfolioRequest):
    """Aggregate portfolio metrics for a set of loans."""
    calculation_id = str(uuid.uuid4())
    logger.info(f"Calculating portfolio metrics for request {calculation_id}")

    response = await risk_service.evaluate_portfolio(request, calculation_id)

    logger.info(f"Portfolio calculation completed: {calculation_id}")
    return response


@app.post("/schedule", response_model=AmortizationSchedule)
async def amortization_schedule(request: ScheduleRequest):
    """Generate an amortization schedule."""
    return await risk_service.schedule(request)


@app.post("/loans", response_model=LoanAccount, status_code=201)
async def register_loan(data: LoanData):
    """Store a loan in the service's repository."""
    return risk_service.register_loan(data)


@app.get("/loans/{loan_id}", response_model=LoanAccount)
async def get_loan(loan_id: str):
    return risk_service.get_loan(loan_id)


@app.post("/loans/{loan_id}/repayments", response_model=RepaymentResponse)
async def post_repayment(loan_id: str, request: RepaymentRequest):
    """Allocate a repayment to interest then principal and persist it."""
    return risk_service.post_repayment(loan_id, request)


@app.post("/loans/{loan_id}/recalculate", response_model=LoanResultResponse)
async def recalculate_loan(loan_id: str, request: RecalculateRequest):
    """Evaluate a stored loan and append its ECL and provision snapshots."""
    return risk_service.recalculate(loan_id, request)


@app.get("/loans/{loan_id}/history", response_model=Dict[str, Any])
async def loan_history(loan_id: str):
    return risk_service.history(loan_id)


@app.get("/config", response_model=Dict[str, Any])
async def get_configuration():
    """Get current policy configuration."""
    return risk_service.get_configuration()


# Error handlers
def error_response(status_code: int, error: str, detail: str) -> JSONResponse:
    body = ErrorResponse(error=error, detail=detail)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


@app.exception_handler(LoanNotFoundError)
async def not_found_handler(request: Request, exc: LoanNotFoundError):
    logger.warning(f"Rejected {request.method} {request.url.path}: {exc}")
    return error_response(404, type(exc).__name__, str(exc))


@app.exception_handler(StaleSnapshotError)
@app.exception_handler(DuplicateLoanError)
async def conflict_handler(request: Request, exc: LoanRiskError):
    """Conflicts with the stored loan record."""
    logger.warning(f"Rejected {request.method} {request.url.path}: {exc}")
    return error_response(409, type(exc).__name__, str(exc))


@app.exception_handler(LoanRiskError)
async def loan_risk_error_handler(request: Request, exc: LoanRiskError):
    """Engine rejections are client errors."""
    logger.warning(f"Rejected {request.method} {request.url.path}: {exc}")
    return error_response(400, type(exc).__name__, str(exc))


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    """Handle ValueError exceptions."""
    logger.error(f"ValueError: {str(exc)}")
    return error_response(400, "ValueError", f"Invalid input: {str(exc)}")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
