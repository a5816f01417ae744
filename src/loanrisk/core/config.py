"""Policy configuration for the loan risk engine."""

from pathlib import Path
from typing import Any, Dict, List, Optional
from decimal import Decimal
import yaml
from pydantic import BaseModel, Field

from .exceptions import ConfigurationError
from .money import to_decimal

DEFAULT_AGING_BOUNDARIES = [0, 30, 60, 90, 180]


class RiskEngineConfig(BaseModel):
    """Jurisdiction- and portfolio-tunable policy tables.

    Everything a regulator can change lives here so that a new rulebook is a
    configuration change rather than a code change.
    """

    rounding_epsilon: Decimal = Field(default=Decimal("0.01"), ge=0)
    aging: Dict[str, Any] = Field(default_factory=dict)
    staging: Dict[str, Any] = Field(default_factory=dict)
    ecl: Dict[str, Any] = Field(default_factory=dict)
    provisioning: Dict[str, Any] = Field(default_factory=dict)
    repayment: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def load_default(cls) -> "RiskEngineConfig":
        """Load default configuration from package yaml file."""
        config_path = Path(__file__).parent.parent / "config.yaml"
        return cls.load_from_file(config_path)

    @classmethod
    def load_from_file(cls, config_path: Path) -> "RiskEngineConfig":
        """Load configuration from YAML file."""
        with open(config_path, "r", encoding="utf-8") as f:
            config_data = yaml.safe_load(f) or {}
        return cls(**config_data)

    def save_to_file(self, config_path: Path) -> None:
        """Save configuration to YAML file."""
        with open(config_path, "w", encoding="utf-8") as f:
            yaml.dump(self.model_dump(mode="json"), f, default_flow_style=False, indent=2)

    def get_aging_boundaries(self) -> List[int]:
        """Upper bounds for the five bounded aging buckets."""
        boundaries = [int(b) for b in self.aging.get("boundaries", DEFAULT_AGING_BOUNDARIES)]
        if len(boundaries) != len(DEFAULT_AGING_BOUNDARIES):
            raise ConfigurationError(
                f"Expected {len(DEFAULT_AGING_BOUNDARIES)} aging boundaries, got {boundaries}"
            )
        if boundaries[0] != 0:
            raise ConfigurationError("The CURRENT bucket must end at 0 days overdue")
        if any(later <= earlier for earlier, later in zip(boundaries, boundaries[1:])):
            raise ConfigurationError(f"Aging boundaries must be strictly increasing: {boundaries}")
        return boundaries

    def get_credit_impaired_days(self) -> Optional[int]:
        days = self.staging.get("credit_impaired_days")
        return int(days) if days is not None else None

    def get_exposure_basis(self) -> str:
        basis = self.ecl.get("exposure_basis", "principal")
        if basis not in ("principal", "outstanding"):
            raise ConfigurationError(f"Unknown ECL exposure basis: {basis}")
        return basis

    def get_loss_rate(self, stage: str) -> Decimal:
        """Loss rate for a stage: explicit table first, then PD x LGD."""
        loss_rates = self.ecl.get("loss_rates") or {}
        if stage in loss_rates:
            return self._rate(loss_rates[stage], f"ecl.loss_rates.{stage}")

        parameters = (self.ecl.get("parameters") or {}).get(stage)
        if parameters:
            pd = self._rate(parameters.get("pd"), f"ecl.parameters.{stage}.pd")
            lgd = self._rate(parameters.get("lgd"), f"ecl.parameters.{stage}.lgd")
            return pd * lgd

        raise ConfigurationError(f"No ECL loss rate configured for {stage}")

    def get_provisioning_basis(self) -> str:
        basis = self.provisioning.get("basis", "stage")
        if basis not in ("stage", "classification"):
            raise ConfigurationError(f"Unknown provisioning basis: {basis}")
        return basis

    def get_stage_provision_rate(self, stage: str) -> Decimal:
        rates = self.provisioning.get("stage_rates") or {}
        if stage not in rates:
            raise ConfigurationError(f"No provisioning rate configured for {stage}")
        return self._rate(rates[stage], f"provisioning.stage_rates.{stage}")

    def get_classification_provision_rate(self, classification: str) -> Decimal:
        rates = self.provisioning.get("classification_rates") or {}
        if classification not in rates:
            raise ConfigurationError(f"No provisioning rate configured for {classification}")
        return self._rate(rates[classification], f"provisioning.classification_rates.{classification}")

    def get_divergence_threshold(self) -> Decimal:
        return to_decimal(self.provisioning.get("divergence_threshold", "0.50"))

    def partial_payment_advances_due_date(self) -> bool:
        return bool(self.repayment.get("partial_payment_advances_due_date", False))

    def get_early_settlement_penalty_rate(self) -> Decimal:
        return self._rate(
            self.repayment.get("early_settlement_penalty_rate", "0"),
            "repayment.early_settlement_penalty_rate",
        )

    @staticmethod
    def _rate(value: Any, name: str) -> Decimal:
        if value is None:
            raise ConfigurationError(f"Missing rate {name}")
        rate = to_decimal(value)
        if rate < 0 or rate > 1:
            raise ConfigurationError(f"Rate {name} must be between 0 and 1, got {rate}")
        return rate
