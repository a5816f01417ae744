"""IFRS 9 Expected Credit Loss estimation for loan accounts."""

from typing import Dict, List, Optional, Any, Iterable
from decimal import Decimal
from datetime import date, datetime, timezone
import uuid
import logging

from pydantic import BaseModel, ConfigDict, Field

from ..core.config import RiskEngineConfig
from ..core.exceptions import InvalidInputError
from ..core.loan import LoanAccount
from ..core.money import ZERO, quantize_money, to_decimal
from ..risk.staging import ECLStage, parse_stage

logger = logging.getLogger(__name__)


class ECLResult(BaseModel):
    """Expected Credit Loss snapshot. Append-only: recalculation adds a new row."""

    model_config = ConfigDict(frozen=True)

    result_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    loan_reference: str
    ecl_value: Decimal = Field(ge=0, description="Expected Credit Loss amount")
    ifrs9_stage: ECLStage
    exposure: Decimal = Field(ge=0, description="Exposure at Default proxy")
    loss_rate: Decimal = Field(ge=0, le=1)
    effective_date: date
    calculation_timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def coverage_ratio(self) -> Decimal:
        """ECL / exposure."""
        if self.exposure > ZERO:
            return self.ecl_value / self.exposure
        return ZERO


class ECLEstimator:
    """
    Stage-driven ECL estimator.

    ECL = exposure x loss_rate(stage). Loss rates are policy data from
    ``RiskEngineConfig``; a missing rate is a configuration error, never a
    silent zero.
    """

    def __init__(self, config: Optional[RiskEngineConfig] = None):
        """Initialize ECL estimator."""
        self.config = config or RiskEngineConfig.load_default()
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def exposure_for(self, loan: LoanAccount) -> Decimal:
        """Exposure at default proxy per the configured basis.

        Never-disbursed and closed loans carry no exposure.
        """
        if not loan.carries_credit_exposure():
            return ZERO
        if self.config.get_exposure_basis() == "outstanding":
            return loan.outstanding_balance
        return loan.principal_amount

    def estimate(self, loan_reference: str, stage: Any, exposure: Any,
                 effective_date: date,
                 calculation_timestamp: Optional[datetime] = None) -> ECLResult:
        """Calculate ECL for one exposure."""
        stage = parse_stage(stage)
        exposure = quantize_money(to_decimal(exposure))
        if exposure < ZERO:
            raise InvalidInputError(f"Exposure for {loan_reference} cannot be negative: {exposure}")

        loss_rate = self.config.get_loss_rate(stage.value)
        ecl_value = quantize_money(exposure * loss_rate)

        self.logger.debug(f"{stage.value} ECL for {loan_reference}: {ecl_value} "
                          f"(exposure: {exposure}, loss rate: {loss_rate})")

        fields = dict(
            loan_reference=loan_reference,
            ecl_value=ecl_value,
            ifrs9_stage=stage,
            exposure=exposure,
            loss_rate=loss_rate,
            effective_date=effective_date,
        )
        if calculation_timestamp is not None:
            fields["calculation_timestamp"] = calculation_timestamp
        return ECLResult(**fields)

    def estimate_for_loan(self, loan: LoanAccount, stage: Any, effective_date: date) -> ECLResult:
        return self.estimate(loan.loan_id, stage, self.exposure_for(loan), effective_date)

    def summarize(self, results: Iterable[ECLResult]) -> Dict[str, Any]:
        """Portfolio-level ECL summary by stage."""
        stage_summary = {stage: {'count': 0, 'exposure': ZERO, 'ecl': ZERO} for stage in ECLStage}

        for result in results:
            stage_summary[result.ifrs9_stage]['count'] += 1
            stage_summary[result.ifrs9_stage]['exposure'] += result.exposure
            stage_summary[result.ifrs9_stage]['ecl'] += result.ecl_value

        total_exposure = sum((s['exposure'] for s in stage_summary.values()), ZERO)
        total_ecl = sum((s['ecl'] for s in stage_summary.values()), ZERO)

        return {
            'total_loans': sum(s['count'] for s in stage_summary.values()),
            'total_exposure': total_exposure,
            'total_ecl': total_ecl,
            'overall_coverage_ratio': total_ecl / total_exposure if total_exposure > 0 else ZERO,
            'stage_breakdown': {
                stage.value: {
                    'count': data['count'],
                    'exposure': data['exposure'],
                    'ecl': data['ecl'],
                    'coverage_ratio': data['ecl'] / data['exposure'] if data['exposure'] > 0 else ZERO,
                }
                for stage, data in stage_summary.items()
            }
        }

    def latest_by_loan(self, history: List[ECLResult]) -> Dict[str, ECLResult]:
        """Most recent result per loan from an append-only history."""
        latest: Dict[str, ECLResult] = {}
        for result in sorted(history, key=lambda r: r.calculation_timestamp):
            latest[result.loan_reference] = result
        return latest
