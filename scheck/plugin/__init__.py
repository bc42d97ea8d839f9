"""Public API for scheck anchor plugins.

An anchor plugin teaches scheck which extra fields identify a finding of a
given invariant, so that two findings in the same file and symbol still get
distinct findingIds::

    from scheck.plugin import ScheckPlugin, hookimpl

    class CacheAnchors(ScheckPlugin):
        name = "cache-anchors"

        @hookimpl
        def get_anchor_extractors(self):
            return {"CACHE.TTL": lambda finding: {"cacheName": ...}}

Expose the class under the ``scheck.anchors`` entry point group to have it
picked up by every scheck command.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pluggy

from scheck.plugin.hookspec import ScheckHookSpec

if TYPE_CHECKING:
    from scheck.core.finding_id import AnchorExtractor

hookimpl = pluggy.HookimplMarker("scheck")

__all__ = ["ScheckPlugin", "hookimpl", "ScheckHookSpec"]


class ScheckPlugin:
    """Base class for anchor plugins.

    ``name`` must be set and unique among installed plugins.
    """

    name: str = ""
    version: str = "0.0.0"
    description: str = ""

    def get_anchor_extractors(self) -> dict[str, "AnchorExtractor"]:
        return {}
