"""Accounting standards module for IFRS 9 and statutory provisioning."""

from .ifrs9 import ECLEstimator, ECLResult
from .provisions import ProvisioningCalculator, ProvisionRecord, RegulatoryClassification

__all__ = [
    "ECLEstimator",
    "ECLResult",
    "ProvisioningCalculator",
    "ProvisionRecord",
    "RegulatoryClassification",
]
