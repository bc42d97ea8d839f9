"""Core logic for scheck.

This module provides the core functionality:
- finding_id: Stable finding IDs and the anchor registry
- baseline: Baseline store (known findings)
- waiver: Waiver store (temporary, expiring suppressions)
- categorize: Categorization and CI decisions
- ConfigLoader: Configuration file loading
- PluginManager: Anchor plugin discovery and registration
"""

from scheck.core.artifact import load_findings
from scheck.core.baseline import (
    add_to_baseline,
    is_in_baseline,
    load_baseline,
    load_baseline_or_empty,
    prune_baseline,
    save_baseline,
)
from scheck.core.categorize import (
    categorize_findings,
    get_ci_exit_code,
    get_ci_summary,
    has_collisions,
    resolve_collisions,
)
from scheck.core.config import Config, ConfigLoader
from scheck.core.errors import (
    AnchorConflictError,
    ArtifactInvalidError,
    ArtifactNotFoundError,
    ConfigError,
    CorruptStoreError,
    InvalidArgumentError,
    InvalidWaiverError,
    ScheckError,
)
from scheck.core.finding_id import (
    AnchorRegistry,
    attach_finding_id,
    attach_finding_ids,
    default_registry,
    extract_identity_payload,
    generate_finding_id,
    hash_payload,
    normalize_path,
)
from scheck.core.plugin import PluginError, PluginManager
from scheck.core.waiver import (
    add_waiver,
    create_waiver,
    get_expiring_waivers,
    get_valid_waiver,
    load_waivers,
    load_waivers_or_empty,
    parse_expiration,
    prune_expired_waivers,
    save_waivers,
)

__all__ = [
    "AnchorConflictError",
    "AnchorRegistry",
    "ArtifactInvalidError",
    "ArtifactNotFoundError",
    "Config",
    "ConfigError",
    "ConfigLoader",
    "CorruptStoreError",
    "InvalidArgumentError",
    "InvalidWaiverError",
    "PluginError",
    "PluginManager",
    "ScheckError",
    "add_to_baseline",
    "add_waiver",
    "attach_finding_id",
    "attach_finding_ids",
    "categorize_findings",
    "create_waiver",
    "default_registry",
    "extract_identity_payload",
    "generate_finding_id",
    "get_ci_exit_code",
    "get_ci_summary",
    "get_expiring_waivers",
    "get_valid_waiver",
    "has_collisions",
    "hash_payload",
    "is_in_baseline",
    "load_baseline",
    "load_baseline_or_empty",
    "load_findings",
    "load_waivers",
    "load_waivers_or_empty",
    "normalize_path",
    "parse_expiration",
    "prune_baseline",
    "prune_expired_waivers",
    "resolve_collisions",
    "save_baseline",
    "save_waivers",
]
