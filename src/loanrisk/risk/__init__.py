"""Delinquency aging, IFRS 9 staging and risk scoring."""

from .aging import AgingBucket, AgingAssessment, AgingCalculator
from .staging import ECLStage, StageClassification, StageClassifier
from .scoring import RiskCategory, RiskAssessment, RiskScorer

__all__ = [
    "AgingBucket",
    "AgingAssessment",
    "AgingCalculator",
    "ECLStage",
    "StageClassification",
    "StageClassifier",
    "RiskCategory",
    "RiskAssessment",
    "RiskScorer",
]
