"""Categorization result models for scheck."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

from scheck.models.finding import SEVERITY_ORDER, Evidence, Finding, Severity
from scheck.models.store import BaselineEntry, WaiverEntry


class Category(str, Enum):
    """How a finding was resolved against the baseline and waiver stores."""

    NEW = "new"
    BASELINED = "baselined"
    WAIVED = "waived"
    WAIVER_EXPIRED = "waiver_expired"

    @property
    def can_fail(self) -> bool:
        """Whether findings in this category count toward CI failure."""
        return self in (Category.NEW, Category.WAIVER_EXPIRED)


CATEGORY_ORDER = [
    Category.NEW,
    Category.WAIVER_EXPIRED,
    Category.BASELINED,
    Category.WAIVED,
]


class CategorizedFinding(BaseModel):
    """A finding with its suppression status resolved.

    Attributes:
        finding: The original finding, untouched.
        finding_id: Stable identifier of the finding.
        category: Resolved category.
        baseline_entry: Matching baseline entry (when the id is baselined).
        waiver: Matching waiver, active or expired (when one exists).
        evidence: All evidence locations; extends the finding's own evidence
            when colliding findings were merged.
        severity: Effective severity (the most severe of a merged group).
        merged_count: Number of raw findings merged into this one.
    """

    model_config = ConfigDict(frozen=True)

    finding: Finding
    finding_id: str
    category: Category
    baseline_entry: Optional[BaselineEntry] = None
    waiver: Optional[WaiverEntry] = None
    evidence: tuple[Evidence, ...] = ()
    severity: Severity
    merged_count: int = 1

    @property
    def invariant_id(self) -> str:
        return self.finding.invariant_id


def _zero_severity_counts() -> dict[Severity, int]:
    return {severity: 0 for severity in SEVERITY_ORDER}


@dataclass
class CategorizationResult:
    """Categorized findings plus aggregate counts.

    Counts are derived from ``findings`` at construction time; build a new
    result (see ``with_findings``) rather than editing the list in place.

    Attributes:
        findings: Categorized findings in input order.
        by_category: Number of findings per category.
        by_severity: Number of findings per severity.
        exit_code: CI verdict when every severity fails.
    """

    findings: list[CategorizedFinding] = field(default_factory=list)
    by_category: dict[Category, int] = field(init=False)
    by_severity: dict[Severity, int] = field(init=False)
    exit_code: int = field(init=False)

    def __post_init__(self) -> None:
        self.by_category = {category: 0 for category in CATEGORY_ORDER}
        self.by_severity = _zero_severity_counts()
        failing = False
        for item in self.findings:
            self.by_category[item.category] += 1
            self.by_severity[item.severity] += 1
            if item.category.can_fail:
                failing = True
        self.exit_code = 1 if failing else 0

    @property
    def total(self) -> int:
        return len(self.findings)

    def in_category(self, category: Category) -> list[CategorizedFinding]:
        """Get the findings in one category, in input order."""
        return [item for item in self.findings if item.category == category]

    def with_findings(self, findings: list[CategorizedFinding]) -> CategorizationResult:
        """Build a new result over a different list of findings."""
        return CategorizationResult(findings=list(findings))


@dataclass
class CISummary:
    """Counts of findings per category crossed with severity.

    Attributes:
        total: Total number of (merged) findings.
        by_category: Number of findings per category.
        matrix: Per category, the number of findings per severity.
        failing: Number of findings that fail CI at the configured threshold.
        fail_on: Severity threshold, or None when every severity fails.
        exit_code: CI verdict at the configured threshold.
    """

    total: int
    by_category: dict[Category, int]
    matrix: dict[Category, dict[Severity, int]]
    failing: int
    fail_on: Optional[Severity]
    exit_code: int

    def describe(self) -> str:
        """One-line human-readable summary."""
        if self.total == 0:
            return "No findings detected."

        parts: list[str] = []
        if self.failing > 0:
            parts.append(f"{self.failing} finding(s) require attention")
        else:
            parts.append("All findings are baselined, waived or below the threshold")

        expired = self.by_category[Category.WAIVER_EXPIRED]
        if expired:
            parts.append(f"{expired} with expired waivers")
        baselined = self.by_category[Category.BASELINED]
        if baselined:
            parts.append(f"{baselined} baselined")
        waived = self.by_category[Category.WAIVED]
        if waived:
            parts.append(f"{waived} waived")

        return ", ".join(parts) + "."

    def to_dict(self) -> dict:
        """Convert to a JSON-serializable dictionary."""
        return {
            "total": self.total,
            "failing": self.failing,
            "fail_on": self.fail_on.value if self.fail_on else None,
            "exit_code": self.exit_code,
            "by_category": {c.value: n for c, n in self.by_category.items()},
            "by_category_and_severity": {
                c.value: {s.value: n for s, n in row.items()}
                for c, row in self.matrix.items()
            },
        }
