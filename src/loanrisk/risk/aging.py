"""Delinquency aging: days overdue and regulatory aging buckets."""

from typing import List, Optional
from enum import Enum
from datetime import date
import logging

from pydantic import BaseModel, ConfigDict, Field

from ..core.config import RiskEngineConfig, DEFAULT_AGING_BOUNDARIES

logger = logging.getLogger(__name__)


class AgingBucket(str, Enum):
    """Days-overdue buckets, ordered from least to most delinquent."""

    CURRENT = "CURRENT"
    D1_30 = "D1_30"
    D31_60 = "D31_60"
    D61_90 = "D61_90"
    D91_180 = "D91_180"
    D180_PLUS = "D180_PLUS"

    @property
    def rank(self) -> int:
        return _BUCKET_ORDER.index(self)

    def at_least(self, other: "AgingBucket") -> bool:
        return self.rank >= other.rank


_BUCKET_ORDER = list(AgingBucket)


class AgingAssessment(BaseModel):
    """Derived delinquency position of a loan on a given date. Never persisted."""

    model_config = ConfigDict(frozen=True)

    days_overdue: int = Field(ge=0)
    bucket: AgingBucket
    as_of_date: date


def days_overdue(next_payment_date: Optional[date], as_of: date) -> int:
    """Whole days past the due date, zero when not yet due or nothing scheduled."""
    if next_payment_date is None:
        return 0
    return max(0, (as_of - next_payment_date).days)


def bucket_for_days(days: int, boundaries: Optional[List[int]] = None) -> AgingBucket:
    """Map days overdue to a bucket using inclusive upper bounds."""
    bounds = boundaries or DEFAULT_AGING_BOUNDARIES
    for bucket, upper in zip(_BUCKET_ORDER, bounds):
        if days <= upper:
            return bucket
    return AgingBucket.D180_PLUS


class AgingCalculator:
    """Computes ``AgingAssessment`` values against configured boundaries."""

    def __init__(self, config: Optional[RiskEngineConfig] = None):
        self.config = config or RiskEngineConfig.load_default()
        self.boundaries = self.config.get_aging_boundaries()

    def assess(self, next_payment_date: Optional[date], as_of: date) -> AgingAssessment:
        days = days_overdue(next_payment_date, as_of)
        return AgingAssessment(
            days_overdue=days,
            bucket=bucket_for_days(days, self.boundaries),
            as_of_date=as_of,
        )

    def bucket_labels(self) -> dict:
        """Human-readable day ranges per bucket for report headers."""
        labels = {AgingBucket.CURRENT: "Current"}
        for bucket, (lower, upper) in zip(_BUCKET_ORDER[1:], zip(self.boundaries, self.boundaries[1:])):
            labels[bucket] = f"{lower + 1}-{upper} days"
        labels[AgingBucket.D180_PLUS] = f"{self.boundaries[-1] + 1}+ days"
        return labels
