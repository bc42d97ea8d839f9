"""Finding and Evidence data models for scheck.

Findings are produced by the external invariant checker and re-derived on
every scan. scheck never mutates them; identity is attached by wrapping a
finding in an IdentifiedFinding.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Severity(str, Enum):
    """Finding severity. P0 is the most severe."""

    P0 = "P0"
    P1 = "P1"
    P2 = "P2"

    @property
    def rank(self) -> int:
        """Numeric rank for comparison (higher = more severe)."""
        return _SEVERITY_RANK[self]

    def at_or_above(self, threshold: "Severity") -> bool:
        """Check if this severity is at least as severe as the threshold."""
        return self.rank >= threshold.rank


_SEVERITY_RANK = {Severity.P0: 2, Severity.P1: 1, Severity.P2: 0}

# Most severe first, used for stable ordering in summaries.
SEVERITY_ORDER = [Severity.P0, Severity.P1, Severity.P2]


class Evidence(BaseModel):
    """A code location supporting a finding."""

    model_config = ConfigDict(frozen=True)

    file: str
    line: Optional[int] = None
    symbol: Optional[str] = None
    context: Optional[str] = None


class Finding(BaseModel):
    """A single reported violation of a named invariant.

    Attributes:
        invariant_id: Identifier of the violated rule (e.g. "WEBHOOK.IDEMPOTENT").
        severity: P0, P1 or P2.
        message: Human-readable description. Not part of the identity.
        evidence: Evidence trail; the first element is the primary location.
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    invariant_id: str
    severity: Severity
    message: str = ""
    evidence: tuple[Evidence, ...] = ()

    @property
    def primary(self) -> Evidence | None:
        """The primary (first) evidence entry, if any."""
        return self.evidence[0] if self.evidence else None


class IdentifiedFinding(BaseModel):
    """A finding paired with its stable FindingId."""

    model_config = ConfigDict(frozen=True)

    finding: Finding
    finding_id: str = Field(min_length=1)
