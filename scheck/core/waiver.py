"""Waiver store for scheck.

Waivers temporarily suppress a finding. Unlike baseline entries they require
a reason and an owner, and they expire. An expired waiver no longer
suppresses its finding but stays in the file until it is pruned, so the
finding can be reported as ``waiver_expired`` rather than silently ``new``.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

from scheck.core.errors import InvalidArgumentError, InvalidWaiverError
from scheck.core.finding_id import AnchorRegistry, generate_finding_id
from scheck.core.storage import StoreIO
from scheck.models.finding import Finding
from scheck.models.store import (
    WAIVER_SCHEMA_VERSION,
    WaiverEntry,
    WaiverFile,
    WaiverReasonKey,
    create_empty_waiver_file,
    resolve_now,
)

DEFAULT_EXPIRY_DAYS = 30
DEFAULT_EXPIRING_DAYS = 7

_io: StoreIO[WaiverFile] = StoreIO(
    WaiverFile, WAIVER_SCHEMA_VERSION, "waiver", create_empty_waiver_file
)


def load_waivers(path: Path, logger: Optional[logging.Logger] = None) -> WaiverFile:
    """Load the waiver file.

    Returns an empty waiver file if none exists.

    Raises:
        CorruptStoreError: If the file exists but cannot be used.
    """
    return _io.load(path, logger=logger)


def load_waivers_or_empty(path: Path, logger: Optional[logging.Logger] = None) -> WaiverFile:
    """Load the waiver file, falling back to an empty one with a warning."""
    return _io.load_or_empty(path, logger=logger)


def save_waivers(path: Path, waivers: WaiverFile, logger: Optional[logging.Logger] = None) -> None:
    """Save the waiver file atomically with deterministic ordering."""
    _io.save(path, waivers, logger=logger)


def parse_expiration(value: str) -> int:
    """Parse an expiration like ``30d`` into a number of days.

    Raises:
        InvalidArgumentError: If the value is not of the form ``<N>d``.
    """
    match = re.fullmatch(r"(\d+)d", value.strip(), re.IGNORECASE)
    if not match:
        raise InvalidArgumentError(
            f"Invalid expiration '{value}'. Use a number of days such as 7d, 30d or 90d"
        )
    return int(match.group(1))


def parse_reason_key(value: Optional[str]) -> Optional[WaiverReasonKey]:
    """Parse a reason key, or None when no key was given.

    Raises:
        InvalidArgumentError: If the value is not a known reason key.
    """
    if not value:
        return None
    try:
        return WaiverReasonKey(value)
    except ValueError:
        valid = ", ".join(key.value for key in WaiverReasonKey)
        raise InvalidArgumentError(
            f"Invalid reason key '{value}'. Valid reason keys: {valid}"
        ) from None


def create_waiver(
    finding: Finding,
    reason: str,
    owner: str,
    expires_in_days: int = DEFAULT_EXPIRY_DAYS,
    reason_key: Optional[WaiverReasonKey] = None,
    now: Optional[datetime] = None,
    registry: Optional[AnchorRegistry] = None,
) -> WaiverEntry:
    """Build a waiver entry anchored to a finding.

    The entry is not validated or stored; pass it to ``add_waiver``.
    """
    now = resolve_now(now)
    primary = finding.primary
    return WaiverEntry(
        finding_id=generate_finding_id(finding, registry),
        invariant_id=finding.invariant_id,
        file=primary.file if primary else "",
        symbol=primary.symbol if primary else None,
        reason_key=reason_key,
        reason=reason,
        owner=owner,
        created_at=now,
        expires_at=now + timedelta(days=expires_in_days),
    )


def add_waiver(
    waivers: WaiverFile,
    entry: WaiverEntry,
    now: Optional[datetime] = None,
) -> WaiverEntry:
    """Validate a waiver and store it, replacing any waiver for the same finding.

    Raises:
        InvalidWaiverError: If the reason or owner is blank, or the expiry is
            not strictly after both the creation time and now.
    """
    now = resolve_now(now)

    if not entry.reason or not entry.reason.strip():
        raise InvalidWaiverError(f"Waiver for {entry.finding_id} requires a reason")
    if not entry.owner or not entry.owner.strip():
        raise InvalidWaiverError(f"Waiver for {entry.finding_id} requires an owner")
    if entry.expires_at <= entry.created_at:
        raise InvalidWaiverError(
            f"Waiver for {entry.finding_id} must expire after it is created"
        )
    if entry.expires_at <= now:
        raise InvalidWaiverError(
            f"Waiver for {entry.finding_id} must expire in the future"
        )

    waivers.entries[entry.finding_id] = entry
    return entry


def get_waiver(waivers: WaiverFile, finding_id: str) -> Optional[WaiverEntry]:
    """Get the waiver for a findingId regardless of expiry."""
    return waivers.entries.get(finding_id)


def get_valid_waiver(
    waivers: WaiverFile,
    finding_id: str,
    now: Optional[datetime] = None,
) -> Optional[WaiverEntry]:
    """Get the waiver for a findingId if it has not expired.

    A waiver is valid while now < expiresAt. Expired waivers are not deleted.
    """
    entry = waivers.entries.get(finding_id)
    if entry is None:
        return None
    if not entry.is_active(resolve_now(now)):
        return None
    return entry


def prune_expired_waivers(waivers: WaiverFile, now: Optional[datetime] = None) -> int:
    """Delete waivers with expiresAt <= now.

    Returns:
        Number of waivers removed.
    """
    now = resolve_now(now)
    expired = [fid for fid, entry in waivers.entries.items() if entry.expires_at <= now]
    for fid in expired:
        del waivers.entries[fid]
    return len(expired)


def get_expiring_waivers(
    waivers: WaiverFile,
    now: Optional[datetime] = None,
    within_days: int = DEFAULT_EXPIRING_DAYS,
) -> list[WaiverEntry]:
    """Get active waivers that expire within ``within_days`` days.

    Returns entries with now < expiresAt <= now + within_days, soonest first.
    """
    now = resolve_now(now)
    threshold = now + timedelta(days=within_days)
    expiring = [
        entry for entry in waivers.entries.values()
        if now < entry.expires_at <= threshold
    ]
    return sorted(expiring, key=lambda entry: (entry.expires_at, entry.finding_id))
