"""IFRS 9 stage classification from lifecycle status and aging."""

from typing import Any, Optional
from enum import Enum
import logging

from pydantic import BaseModel, ConfigDict

from ..core.config import RiskEngineConfig
from ..core.exceptions import InvalidInputError
from ..core.loan import parse_status, ARREARS_STATUSES, CREDIT_IMPAIRED_STATUSES
from .aging import AgingAssessment, AgingBucket

logger = logging.getLogger(__name__)


class ECLStage(str, Enum):
    """IFRS 9 ECL staging classification."""

    STAGE_1 = "STAGE_1"  # 12-month ECL
    STAGE_2 = "STAGE_2"  # Lifetime ECL (not credit-impaired)
    STAGE_3 = "STAGE_3"  # Lifetime ECL (credit-impaired)


def parse_stage(value: Any) -> ECLStage:
    """Accepts enum members, ``STAGE_2``, ``stage_2`` or ``Stage 2``."""
    if isinstance(value, ECLStage):
        return value
    try:
        return ECLStage(str(value).strip().upper().replace(" ", "_"))
    except ValueError as exc:
        raise InvalidInputError(f"Unrecognized IFRS 9 stage: {value!r}") from exc


class StageClassification(BaseModel):
    """Stage plus the rule that produced it."""

    model_config = ConfigDict(frozen=True)

    stage: ECLStage
    reason: str


class StageClassifier:
    """Deterministic, first-match-wins IFRS 9 staging.

    1. DEFAULT / WRITTEN_OFF -> Stage 3
    2. OVERDUE / DELINQUENT, or aged 31+ days -> Stage 2
    3. otherwise Stage 1

    Nothing is carried between calls: a loan that cures is Stage 1 again on
    the next run.
    """

    def __init__(self, config: Optional[RiskEngineConfig] = None):
        self.config = config or RiskEngineConfig.load_default()
        self.credit_impaired_days = self.config.get_credit_impaired_days()

    def classify(self, lifecycle_status: Any, aging: AgingAssessment) -> StageClassification:
        status = parse_status(lifecycle_status)

        if status in CREDIT_IMPAIRED_STATUSES:
            return StageClassification(stage=ECLStage.STAGE_3, reason=f"status {status.value}")

        if self.credit_impaired_days is not None and aging.days_overdue > self.credit_impaired_days:
            return StageClassification(
                stage=ECLStage.STAGE_3,
                reason=f"{aging.days_overdue} days past due exceeds {self.credit_impaired_days}",
            )

        if status in ARREARS_STATUSES:
            return StageClassification(stage=ECLStage.STAGE_2, reason=f"status {status.value}")

        if aging.bucket.at_least(AgingBucket.D31_60):
            return StageClassification(stage=ECLStage.STAGE_2, reason=f"aging bucket {aging.bucket.value}")

        return StageClassification(stage=ECLStage.STAGE_1, reason="performing")
