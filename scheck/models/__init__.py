"""Data models for scheck."""

from scheck.models.finding import (
    SEVERITY_ORDER,
    Evidence,
    Finding,
    IdentifiedFinding,
    Severity,
)
from scheck.models.result import (
    CATEGORY_ORDER,
    CategorizationResult,
    CategorizedFinding,
    Category,
    CISummary,
)
from scheck.models.store import (
    BASELINE_SCHEMA_VERSION,
    WAIVER_SCHEMA_VERSION,
    BaselineEntry,
    BaselineFile,
    WaiverEntry,
    WaiverFile,
    WaiverReasonKey,
    create_empty_baseline,
    create_empty_waiver_file,
    get_generated_by,
    resolve_now,
    utc_now,
)

__all__ = [
    "BASELINE_SCHEMA_VERSION",
    "BaselineEntry",
    "BaselineFile",
    "CATEGORY_ORDER",
    "CISummary",
    "CategorizationResult",
    "CategorizedFinding",
    "Category",
    "Evidence",
    "Finding",
    "IdentifiedFinding",
    "SEVERITY_ORDER",
    "Severity",
    "WAIVER_SCHEMA_VERSION",
    "WaiverEntry",
    "WaiverFile",
    "WaiverReasonKey",
    "create_empty_baseline",
    "create_empty_waiver_file",
    "get_generated_by",
    "resolve_now",
    "utc_now",
]
