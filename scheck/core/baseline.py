"""Baseline store for scheck.

The baseline holds known findings that should not fail CI. It is used to
adopt scheck incrementally on an existing codebase: current findings are
recorded once, and only findings outside the baseline fail later runs.

Entries are created on first add, refreshed (lastSeenAt) whenever the same
finding is added again and removed only by pruning.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Iterable, Optional

from scheck.core.errors import InvalidArgumentError
from scheck.core.finding_id import AnchorRegistry, generate_finding_id
from scheck.core.storage import StoreIO
from scheck.models.finding import Finding
from scheck.models.store import (
    BASELINE_SCHEMA_VERSION,
    BaselineEntry,
    BaselineFile,
    create_empty_baseline,
    resolve_now,
)

DEFAULT_PRUNE_DAYS = 90

_io: StoreIO[BaselineFile] = StoreIO(
    BaselineFile, BASELINE_SCHEMA_VERSION, "baseline", create_empty_baseline
)


def load_baseline(path: Path, logger: Optional[logging.Logger] = None) -> BaselineFile:
    """Load the baseline file.

    Returns an empty baseline if the file does not exist.

    Raises:
        CorruptStoreError: If the file exists but cannot be used.
    """
    return _io.load(path, logger=logger)


def load_baseline_or_empty(path: Path, logger: Optional[logging.Logger] = None) -> BaselineFile:
    """Load the baseline file, falling back to an empty one with a warning."""
    return _io.load_or_empty(path, logger=logger)


def save_baseline(
    path: Path,
    baseline: BaselineFile,
    collector_schema_version: Optional[str] = None,
    logger: Optional[logging.Logger] = None,
) -> None:
    """Save the baseline file atomically with deterministic ordering."""
    if collector_schema_version:
        baseline.collector_schema_version = collector_schema_version
    _io.save(path, baseline, logger=logger)


def add_to_baseline(
    baseline: BaselineFile,
    findings: Iterable[Finding],
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
    registry: Optional[AnchorRegistry] = None,
) -> int:
    """Add findings to the baseline.

    New findings get an entry with createdAt = lastSeenAt = now. Findings
    already present only have lastSeenAt refreshed; when ``notes`` is given
    it replaces the stored notes, otherwise existing notes are kept.

    Args:
        baseline: Baseline to mutate.
        findings: Findings to record.
        notes: Optional explanation stored on the entries.
        now: Current time (defaults to the UTC clock).
        registry: Anchor registry used to compute findingIds.

    Returns:
        Number of newly inserted entries (refreshed entries don't count).
    """
    now = resolve_now(now)
    added = 0

    for finding in findings:
        finding_id = generate_finding_id(finding, registry)
        entry = baseline.entries.get(finding_id)

        if entry is None:
            primary = finding.primary
            baseline.entries[finding_id] = BaselineEntry(
                finding_id=finding_id,
                invariant_id=finding.invariant_id,
                file=primary.file if primary else "",
                symbol=primary.symbol if primary else None,
                created_at=now,
                last_seen_at=now,
                notes=notes or None,
            )
            added += 1
        else:
            entry.last_seen_at = now
            if notes:
                entry.notes = notes

    return added


def is_in_baseline(baseline: BaselineFile, finding_id: str) -> bool:
    """Check if a findingId is in the baseline."""
    return finding_id in baseline.entries


def prune_baseline(
    baseline: BaselineFile,
    stale_days: int = DEFAULT_PRUNE_DAYS,
    now: Optional[datetime] = None,
) -> int:
    """Remove entries that haven't been seen in ``stale_days`` days.

    An entry is removed when its lastSeenAt is strictly older than the
    cutoff; an entry exactly ``stale_days`` old is kept.

    Returns:
        Number of entries removed.

    Raises:
        InvalidArgumentError: If stale_days is negative.
    """
    if stale_days < 0:
        raise InvalidArgumentError(f"stale_days must be >= 0, got {stale_days}")

    cutoff = resolve_now(now) - timedelta(days=stale_days)
    stale = [fid for fid, entry in baseline.entries.items() if entry.last_seen_at < cutoff]
    for fid in stale:
        del baseline.entries[fid]
    return len(stale)
