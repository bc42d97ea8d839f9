"""Baseline and waiver matching for scheck.

Applies the baseline and waiver stores to a fresh set of findings and
categorizes each one for CI decisions.

Each finding gets exactly one category, in this order of precedence:
1. waived - an unexpired waiver exists for its findingId
2. baselined - the findingId is in the baseline
3. waiver_expired - a waiver exists but has expired
4. new - none of the above

Only ``new`` and ``waiver_expired`` findings can fail CI.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from scheck.core.baseline import is_in_baseline
from scheck.core.finding_id import AnchorRegistry, generate_finding_id
from scheck.core.waiver import get_valid_waiver, get_waiver
from scheck.models.finding import SEVERITY_ORDER, Finding, Severity
from scheck.models.result import (
    CATEGORY_ORDER,
    CategorizationResult,
    CategorizedFinding,
    Category,
    CISummary,
)
from scheck.models.store import BaselineFile, WaiverFile, resolve_now


def categorize_finding(
    finding: Finding,
    baseline: BaselineFile,
    waivers: WaiverFile,
    now: datetime,
    registry: Optional[AnchorRegistry] = None,
) -> CategorizedFinding:
    """Resolve the category of a single finding."""
    finding_id = generate_finding_id(finding, registry)
    baseline_entry = baseline.entries.get(finding_id)
    waiver = get_valid_waiver(waivers, finding_id, now)

    if waiver is not None:
        category = Category.WAIVED
    elif is_in_baseline(baseline, finding_id):
        category = Category.BASELINED
    else:
        waiver = get_waiver(waivers, finding_id)
        category = Category.WAIVER_EXPIRED if waiver is not None else Category.NEW

    return CategorizedFinding(
        finding=finding,
        finding_id=finding_id,
        category=category,
        baseline_entry=baseline_entry,
        waiver=waiver,
        evidence=finding.evidence,
        severity=finding.severity,
    )


def categorize_findings(
    findings: Iterable[Finding],
    baseline: BaselineFile,
    waivers: WaiverFile,
    now: Optional[datetime] = None,
    registry: Optional[AnchorRegistry] = None,
) -> CategorizationResult:
    """Categorize findings against the baseline and waivers.

    Args:
        findings: Fresh findings from the detection engine.
        baseline: Loaded baseline.
        waivers: Loaded waiver file.
        now: Time used to decide waiver expiry (defaults to the UTC clock).
        registry: Anchor registry used to compute findingIds.

    Returns:
        CategorizationResult with findings in input order.
    """
    now = resolve_now(now)
    return CategorizationResult(
        findings=[
            categorize_finding(finding, baseline, waivers, now, registry)
            for finding in findings
        ]
    )


def _most_severe(a: Severity, b: Severity) -> Severity:
    return a if a.rank >= b.rank else b


def resolve_collisions(result: CategorizationResult) -> CategorizationResult:
    """Merge findings that share a findingId.

    Two distinct findings can map to the same findingId when their anchors
    are not specific enough (or, very rarely, on a true hash collision).
    Each group is merged into its first occurrence, which keeps its position
    and category; evidence from later members is appended in input order and
    the severity becomes the most severe of the group.

    Returns:
        A new CategorizationResult; the input is not modified.
    """
    merged: dict[str, CategorizedFinding] = {}
    for item in result.findings:
        first = merged.get(item.finding_id)
        if first is None:
            merged[item.finding_id] = item
            continue
        merged[item.finding_id] = first.model_copy(update={
            "evidence": first.evidence + item.evidence,
            "severity": _most_severe(first.severity, item.severity),
            "merged_count": first.merged_count + item.merged_count,
        })
    return result.with_findings(list(merged.values()))


def has_collisions(result: CategorizationResult) -> bool:
    """Check if any findings share a findingId or were merged."""
    seen: set[str] = set()
    for item in result.findings:
        if item.merged_count > 1 or item.finding_id in seen:
            return True
        seen.add(item.finding_id)
    return False


def _fails(item: CategorizedFinding, fail_on: Optional[Severity]) -> bool:
    if not item.category.can_fail:
        return False
    return fail_on is None or item.severity.at_or_above(fail_on)


def get_ci_exit_code(result: CategorizationResult, fail_on: Optional[Severity] = None) -> int:
    """Determine the CI exit status.

    Args:
        result: Categorized findings.
        fail_on: Minimum severity that fails CI. None means any severity fails.

    Returns:
        1 if a ``new`` or ``waiver_expired`` finding is at or above the
        threshold, otherwise 0.
    """
    return 1 if any(_fails(item, fail_on) for item in result.findings) else 0


def get_ci_summary(result: CategorizationResult, fail_on: Optional[Severity] = None) -> CISummary:
    """Count findings per category and severity for reporting."""
    matrix = {
        category: {severity: 0 for severity in SEVERITY_ORDER}
        for category in CATEGORY_ORDER
    }
    failing = 0
    for item in result.findings:
        matrix[item.category][item.severity] += 1
        if _fails(item, fail_on):
            failing += 1

    return CISummary(
        total=result.total,
        by_category=dict(result.by_category),
        matrix=matrix,
        failing=failing,
        fail_on=fail_on,
        exit_code=1 if failing else 0,
    )
