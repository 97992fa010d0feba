"""Public risk report models for upgrade_gate."""

from enum import Enum
from typing import Tuple

from pydantic import BaseModel, ConfigDict, model_validator


class RiskLevel(str, Enum):
    """Severity bucket of a normalized risk, in display priority order."""

    HIGH = "HIGH RISK"
    MEDIUM = "MEDIUM RISK"
    LOW = "LOW RISK"


class RiskItem(BaseModel):
    """A single detected risk.

    Empty strings mean "not applicable"; renderers skip them.
    """
    level: RiskLevel
    category: str = ""  # e.g. "Forced Upgrade Logic", "Upgrade Path Validation"
    component: str = ""
    parameter: str = ""
    scope: str = ""
    current: str = ""
    new_default: str = ""
    impact: str = ""
    suggestion: str = ""
    reason: str = ""
    comments: str = ""  # optional R&D comments for additional context

    model_config = ConfigDict(frozen=True, extra="forbid")


class Summary(BaseModel):
    """Aggregated counters by severity."""
    high: int
    medium: int
    low: int
    total: int


class RiskReport(BaseModel):
    """All risks found by one precheck run, bucketed by severity."""
    source_version: str = ""
    target_version: str = ""
    high: Tuple[RiskItem, ...] = ()
    medium: Tuple[RiskItem, ...] = ()
    low: Tuple[RiskItem, ...] = ()

    model_config = ConfigDict(frozen=True, extra="forbid")

    @model_validator(mode="after")
    def validate_buckets(self):
        """Every item must sit in the bucket matching its own level."""
        for level, items in self.buckets():
            for item in items:
                if item.level is not level:
                    raise ValueError(
                        f"Risk item {item.parameter or item.category!r} has level "
                        f"{item.level.value!r} but is stored under {level.value!r}"
                    )
        return self

    def buckets(self) -> Tuple[Tuple[RiskLevel, Tuple[RiskItem, ...]], ...]:
        """Return ``(level, items)`` pairs in display order."""
        return (
            (RiskLevel.HIGH, self.high),
            (RiskLevel.MEDIUM, self.medium),
            (RiskLevel.LOW, self.low),
        )

    def items(self) -> Tuple[RiskItem, ...]:
        """All items, High first."""
        return self.high + self.medium + self.low

    def summary(self) -> Summary:
        high, medium, low = len(self.high), len(self.medium), len(self.low)
        return Summary(high=high, medium=medium, low=low, total=high + medium + low)
