"""Statutory (BoZ-style) loan loss provisioning and ECL reconciliation."""

from typing import Any, Dict, Iterable, Optional
from enum import Enum
from decimal import Decimal
from datetime import date, datetime, timezone
import uuid
import logging

from pydantic import BaseModel, ConfigDict, Field

from ..core.config import RiskEngineConfig
from ..core.exceptions import InvalidInputError
from ..core.money import ONE, ZERO, quantize_money, quantize_rate, to_decimal
from ..risk.aging import AgingBucket
from ..risk.staging import ECLStage, parse_stage

logger = logging.getLogger(__name__)


class RegulatoryClassification(str, Enum):
    """Prudential loan classification by days overdue."""

    STANDARD = "STANDARD"
    WATCH = "WATCH"
    SUBSTANDARD = "SUBSTANDARD"
    DOUBTFUL = "DOUBTFUL"
    LOSS = "LOSS"


BUCKET_CLASSIFICATION = {
    AgingBucket.CURRENT: RegulatoryClassification.STANDARD,
    AgingBucket.D1_30: RegulatoryClassification.STANDARD,
    AgingBucket.D31_60: RegulatoryClassification.WATCH,
    AgingBucket.D61_90: RegulatoryClassification.SUBSTANDARD,
    AgingBucket.D91_180: RegulatoryClassification.DOUBTFUL,
    AgingBucket.D180_PLUS: RegulatoryClassification.LOSS,
}


class ProvisionRecord(BaseModel):
    """Provision held against one loan. Superseded, never deleted."""

    model_config = ConfigDict(frozen=True)

    record_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    loan_id: str
    provision_amount: Decimal = Field(ge=0)
    provision_percentage: Decimal = Field(ge=0, le=1)
    ifrs9_stage_classification: ECLStage
    regulatory_classification: RegulatoryClassification
    outstanding_balance: Decimal = Field(ge=0)
    effective_date: date
    recorded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    superseded_at: Optional[datetime] = None

    # Reconciliation against IFRS 9 ECL, advisory only
    ecl_value: Optional[Decimal] = None
    divergence: Optional[Decimal] = None
    requires_review: bool = False

    @property
    def is_current(self) -> bool:
        return self.superseded_at is None


class ProvisionSummary(BaseModel):
    """Provision totals across a set of records."""

    total_provisions: Decimal = Field(ge=0)
    stage_1_provisions: Decimal = Field(ge=0)
    stage_2_provisions: Decimal = Field(ge=0)
    stage_3_provisions: Decimal = Field(ge=0)
    by_classification: Dict[str, Decimal] = Field(default_factory=dict)
    provision_to_loans_ratio: Decimal = Field(ge=0)
    records_requiring_review: int = 0


def classify_bucket(bucket: AgingBucket) -> RegulatoryClassification:
    return BUCKET_CLASSIFICATION[bucket]


def divergence_ratio(provision_amount: Decimal, ecl_value: Decimal) -> Decimal:
    """|provision - ECL| / max(ECL, 1)."""
    return quantize_rate(abs(provision_amount - ecl_value) / max(ecl_value, ONE))


class ProvisioningCalculator:
    """Computes statutory provisions, separately from and reconciled against ECL."""

    def __init__(self, config: Optional[RiskEngineConfig] = None):
        """Initialize provisioning calculator."""
        self.config = config or RiskEngineConfig.load_default()
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def provision_rate(self, stage: ECLStage, classification: RegulatoryClassification) -> Decimal:
        if self.config.get_provisioning_basis() == "classification":
            return self.config.get_classification_provision_rate(classification.value)
        return self.config.get_stage_provision_rate(stage.value)

    def calculate(self, loan_id: str, stage: Any, outstanding_balance: Any,
                  effective_date: date, bucket: AgingBucket = AgingBucket.CURRENT,
                  ecl_value: Optional[Any] = None,
                  recorded_at: Optional[datetime] = None) -> ProvisionRecord:
        """Provision for one loan, optionally reconciled against its ECL."""
        stage = parse_stage(stage)
        balance = quantize_money(to_decimal(outstanding_balance))
        if balance < ZERO:
            raise InvalidInputError(f"Outstanding balance for {loan_id} cannot be negative: {balance}")

        classification = classify_bucket(bucket)
        rate = self.provision_rate(stage, classification)
        amount = quantize_money(balance * rate)

        fields: Dict[str, Any] = dict(
            loan_id=loan_id,
            provision_amount=amount,
            provision_percentage=rate,
            ifrs9_stage_classification=stage,
            regulatory_classification=classification,
            outstanding_balance=balance,
            effective_date=effective_date,
        )
        if recorded_at is not None:
            fields["recorded_at"] = recorded_at

        if ecl_value is not None:
            ecl = quantize_money(to_decimal(ecl_value))
            divergence = divergence_ratio(amount, ecl)
            threshold = self.config.get_divergence_threshold()
            fields.update(ecl_value=ecl, divergence=divergence, requires_review=divergence > threshold)
            if divergence > threshold:
                self.logger.warning(
                    f"Provision/ECL divergence on loan {loan_id}: provision {amount}, ECL {ecl}, "
                    f"divergence {divergence} > {threshold}; flagged for compliance review"
                )

        return ProvisionRecord(**fields)

    def summarize(self, records: Iterable[ProvisionRecord]) -> ProvisionSummary:
        """Totals by stage and classification over current records."""
        by_stage = {stage: ZERO for stage in ECLStage}
        by_classification = {c.value: ZERO for c in RegulatoryClassification}
        total_balance = ZERO
        review = 0

        for record in records:
            if not record.is_current:
                continue
            by_stage[record.ifrs9_stage_classification] += record.provision_amount
            by_classification[record.regulatory_classification.value] += record.provision_amount
            total_balance += record.outstanding_balance
            review += int(record.requires_review)

        total = sum(by_stage.values(), ZERO)
        return ProvisionSummary(
            total_provisions=total,
            stage_1_provisions=by_stage[ECLStage.STAGE_1],
            stage_2_provisions=by_stage[ECLStage.STAGE_2],
            stage_3_provisions=by_stage[ECLStage.STAGE_3],
            by_classification=by_classification,
            provision_to_loans_ratio=quantize_rate(total / total_balance) if total_balance > 0 else ZERO,
            records_requiring_review=review,
        )
