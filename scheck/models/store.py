"""Baseline and waiver data models for scheck.

Baselines are permanent suppressions used to adopt scheck on an existing
codebase. Waivers are temporary, justified suppressions that expire.
Both files share the same envelope and are keyed by findingId.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, PrivateAttr, model_validator
from pydantic.alias_generators import to_camel

from scheck import __version__

BASELINE_SCHEMA_VERSION = "1.0.0"
WAIVER_SCHEMA_VERSION = "1.1.0"

PACKAGE_NAME = "scheck"


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps on disk are treated as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


def resolve_now(now: Optional[datetime] = None) -> datetime:
    """Return ``now`` as an aware UTC datetime, or the UTC clock when None.

    Naive values are taken to be UTC, as on disk.
    """
    return utc_now() if now is None else _as_utc(now)


def get_generated_by(version: str = __version__) -> str:
    """Get the generatedBy provenance string (package@version)."""
    return f"{PACKAGE_NAME}@{version}"


class WaiverReasonKey(str, Enum):
    """Structured waiver reasons."""

    FALSE_POSITIVE = "false_positive"
    ACCEPTABLE_RISK = "acceptable_risk"
    WILL_FIX_LATER = "will_fix_later"
    NOT_APPLICABLE = "not_applicable"
    OTHER = "other"


_CAMEL = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    frozen=False,
    validate_assignment=True,
)


class BaselineEntry(BaseModel):
    """A known finding that should not fail CI.

    Attributes:
        finding_id: Stable finding ID (invariantId:hash).
        invariant_id: The invariant this finding belongs to.
        file: File where the finding was detected (as reported).
        symbol: Function/class name if available.
        created_at: When this was first added to the baseline.
        last_seen_at: When this was last added or re-observed.
        notes: Optional explanation of why this is baselined.
    """

    model_config = _CAMEL

    finding_id: str
    invariant_id: str
    file: str = ""
    symbol: Optional[str] = None
    created_at: UtcDatetime
    last_seen_at: UtcDatetime
    notes: Optional[str] = None


class WaiverEntry(BaseModel):
    """A temporary, justified suppression of one finding.

    Expired waivers stay in the file (and are reported) until pruned.
    """

    model_config = _CAMEL

    finding_id: str
    invariant_id: str
    file: str = ""
    symbol: Optional[str] = None
    reason_key: Optional[WaiverReasonKey] = None
    reason: str
    owner: str
    created_at: UtcDatetime
    expires_at: UtcDatetime

    def is_active(self, now: datetime) -> bool:
        """Check if the waiver still suppresses its finding at ``now``."""
        return resolve_now(now) < self.expires_at


class _StoreFile(BaseModel):
    """Envelope shared by the baseline and waiver files."""

    model_config = _CAMEL

    schema_version: str
    tool_version: str = __version__
    generated_by: str = get_generated_by()
    updated_at: UtcDatetime = Field(default_factory=utc_now)

    # Digest of the bytes this file was loaded from, None if never on disk
    _source_digest: Optional[str] = PrivateAttr(default=None)

    @model_validator(mode="after")
    def _check_entry_keys(self):
        for key, entry in self.entries.items():
            if key != entry.finding_id:
                raise ValueError(
                    f"entry key '{key}' does not match findingId '{entry.finding_id}'"
                )
        return self


class BaselineFile(_StoreFile):
    """The baseline file format (.scheck/baseline.json)."""

    schema_version: str = BASELINE_SCHEMA_VERSION
    collector_schema_version: Optional[str] = None
    entries: dict[str, BaselineEntry] = {}


class WaiverFile(_StoreFile):
    """The waiver file format (.scheck/waivers.json)."""

    schema_version: str = WAIVER_SCHEMA_VERSION
    entries: dict[str, WaiverEntry] = {}


def create_empty_baseline(version: str = __version__) -> BaselineFile:
    """Create an empty, schema-stamped baseline."""
    return BaselineFile(
        schema_version=BASELINE_SCHEMA_VERSION,
        tool_version=version,
        generated_by=get_generated_by(version),
        updated_at=utc_now(),
    )


def create_empty_waiver_file(version: str = __version__) -> WaiverFile:
    """Create an empty, schema-stamped waiver file."""
    return WaiverFile(
        schema_version=WAIVER_SCHEMA_VERSION,
        tool_version=version,
        generated_by=get_generated_by(version),
        updated_at=utc_now(),
    )
