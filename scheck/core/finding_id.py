"""Stable finding ID generation.

A FindingId survives re-runs, evidence reordering and message rewording,
and changes when the file, symbol or invariant-specific anchor changes.

Format: ``{invariantId}:{hash12}`` (e.g. ``WEBHOOK.IDEMPOTENT:9c31f0a2b4d1``).

The hash covers a small identity payload:
- invariantId (lowercased)
- file of the primary evidence (normalized)
- symbol of the primary evidence (lowercased)
- anchors: extra fields contributed by an invariant-specific extractor

Line numbers and message text are not part of the identity.
"""

from __future__ import annotations

import hashlib
import logging
import re
from typing import Callable, Iterable, Optional

from scheck.core.errors import AnchorConflictError
from scheck.models.finding import Finding, IdentifiedFinding

HASH_LENGTH = 12

BASE_KEYS = frozenset({"invariantId", "file", "symbol"})

AnchorExtractor = Callable[[Finding], dict[str, str]]

_default_logger = logging.getLogger(__name__)


class AnchorRegistry:
    """Registry of invariant-specific anchor extractors.

    Each extractor is a pure function that inspects a finding and returns
    extra identity fields. Invariants without an extractor hash on the base
    payload only.

    Example usage:
        registry = AnchorRegistry()

        @registry.extractor("CACHE.TTL")
        def cache_anchor(finding):
            return {"cacheName": ...}
    """

    def __init__(
        self,
        extractors: Optional[dict[str, AnchorExtractor]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._extractors: dict[str, AnchorExtractor] = {}
        self.logger = logger or _default_logger
        for invariant_id, func in (extractors or {}).items():
            self.register(invariant_id, func)

    def register(
        self,
        invariant_id: str,
        extractor: AnchorExtractor,
        replace: bool = False,
    ) -> None:
        """Register an extractor for an invariant.

        Raises:
            AnchorConflictError: If the invariant already has an extractor
                and ``replace`` is False.
        """
        if invariant_id in self._extractors and not replace:
            raise AnchorConflictError(
                f"An anchor extractor is already registered for '{invariant_id}'"
            )
        self._extractors[invariant_id] = extractor

    def extractor(self, invariant_id: str) -> Callable[[AnchorExtractor], AnchorExtractor]:
        """Decorator form of ``register``."""
        def decorator(func: AnchorExtractor) -> AnchorExtractor:
            self.register(invariant_id, func)
            return func
        return decorator

    def get(self, invariant_id: str) -> Optional[AnchorExtractor]:
        return self._extractors.get(invariant_id)

    def invariants(self) -> list[str]:
        """List invariants that have an extractor, sorted."""
        return sorted(self._extractors)

    def copy(self) -> AnchorRegistry:
        return AnchorRegistry(dict(self._extractors), logger=self.logger)

    def extract(self, finding: Finding) -> dict[str, str]:
        """Run the extractor registered for the finding's invariant.

        An extractor that raises is logged and the finding keeps its base
        identity only.

        Raises:
            ValueError: If the extractor returns a base identity key.
        """
        func = self._extractors.get(finding.invariant_id)
        if func is None:
            return {}
        try:
            anchors = func(finding)
        except Exception as e:
            self.logger.warning(
                "Anchor extractor for %s failed: %s; using the base identity",
                finding.invariant_id,
                e,
            )
            return {}
        reserved = BASE_KEYS.intersection(anchors)
        if reserved:
            raise ValueError(
                f"Anchor extractor for '{finding.invariant_id}' returned reserved "
                f"key(s): {', '.join(sorted(reserved))}"
            )
        return {str(k): str(v) for k, v in anchors.items()}


def _primary_context(finding: Finding) -> str:
    primary = finding.primary
    return (primary.context or "") if primary else ""


def _match_group(pattern: str, text: str, flags: int = re.IGNORECASE) -> str:
    match = re.search(pattern, text, flags)
    return match.group(1).lower() if match else ""


def _webhook_anchor(finding: Finding) -> dict[str, str]:
    # Context looks like "stripe: handleStripeWebhook"
    return {"provider": _match_group(r"^(stripe|github|slack|svix|generic):", _primary_context(finding))}


def _transaction_anchor(finding: Finding) -> dict[str, str]:
    # Message looks like "... contains email side effect ..."
    return {"sideEffectType": _match_group(r"contains (\w+) side effect", finding.message)}


def _membership_anchor(finding: Finding) -> dict[str, str]:
    return {"mutationType": _match_group(r"mutationType[:\s]+(\w+)", _primary_context(finding))}


def _keys_anchor(finding: Finding) -> dict[str, str]:
    return {"entity": _match_group(r"entity[:\s]+(\w+)", _primary_context(finding))}


BUILTIN_EXTRACTORS: dict[str, AnchorExtractor] = {
    "WEBHOOK.IDEMPOTENT": _webhook_anchor,
    "TRANSACTION.POST_COMMIT.SIDE_EFFECTS": _transaction_anchor,
    "AUTHZ.MEMBERSHIP.REVOCATION.IMMEDIATE": _membership_anchor,
    "AUTHZ.KEYS.REVOCATION.IMMEDIATE": _keys_anchor,
}


def default_registry(logger: Optional[logging.Logger] = None) -> AnchorRegistry:
    """Create a registry holding the built-in extractors."""
    return AnchorRegistry(BUILTIN_EXTRACTORS, logger=logger)


_DEFAULT_REGISTRY = default_registry()


def normalize_path(path: str) -> str:
    """Normalize a file path for consistent hashing.

    Converts backslashes to forward slashes, strips one leading ``./`` and
    then one leading ``/``, lowercases and trims whitespace.
    """
    normalized = path.strip().replace("\\", "/")
    if normalized.startswith("./"):
        normalized = normalized[2:]
    if normalized.startswith("/"):
        normalized = normalized[1:]
    return normalized.lower()


def extract_identity_payload(
    finding: Finding,
    registry: Optional[AnchorRegistry] = None,
) -> dict[str, str]:
    """Extract the identity payload that gets hashed into the findingId.

    Args:
        finding: The finding to identify.
        registry: Anchor registry to use (defaults to the built-in one).

    Returns:
        Mapping of identity keys to string values.
    """
    if registry is None:
        registry = _DEFAULT_REGISTRY
    primary = finding.primary

    payload = {
        "invariantId": finding.invariant_id.lower(),
        "file": normalize_path(primary.file if primary else ""),
        "symbol": ((primary.symbol if primary else None) or "").lower(),
    }
    payload.update(registry.extract(finding))
    return payload


def hash_payload(payload: dict[str, str]) -> str:
    """Hash a payload into a short, stable hex digest.

    Keys are sorted and joined as ``key:value`` pairs separated by ``|``
    before hashing with SHA-256.
    """
    canonical = "|".join(f"{key}:{payload[key]}" for key in sorted(payload))
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
    return digest[:HASH_LENGTH]


def generate_finding_id(
    finding: Finding,
    registry: Optional[AnchorRegistry] = None,
) -> str:
    """Generate the stable findingId for a finding.

    Example:
        generate_finding_id(finding)  # "WEBHOOK.IDEMPOTENT:9c31f0a2b4d1"
    """
    payload = extract_identity_payload(finding, registry)
    return f"{finding.invariant_id}:{hash_payload(payload)}"


def attach_finding_id(
    finding: Finding,
    registry: Optional[AnchorRegistry] = None,
) -> IdentifiedFinding:
    """Pair a finding with its findingId without modifying it."""
    return IdentifiedFinding(finding=finding, finding_id=generate_finding_id(finding, registry))


def attach_finding_ids(
    findings: Iterable[Finding],
    registry: Optional[AnchorRegistry] = None,
) -> list[IdentifiedFinding]:
    """Pair every finding in a list with its findingId."""
    return [attach_finding_id(finding, registry) for finding in findings]
