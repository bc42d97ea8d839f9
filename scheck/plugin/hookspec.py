"""pluggy hooks that anchor plugins implement."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    from scheck.core.finding_id import AnchorExtractor

hookspec = pluggy.HookspecMarker("scheck")


class ScheckHookSpec:
    """Hooks called by scheck.core.plugin.PluginManager."""

    @hookspec
    def get_anchor_extractors(self) -> dict[str, "AnchorExtractor"]:
        """Get anchor extractors contributed by this plugin.

        An anchor extractor adds invariant-specific identity fields to the
        payload hashed into a findingId (for example the webhook provider of
        a webhook finding). Extractors must be pure functions of the finding
        and must not return the base keys ``invariantId``, ``file`` or
        ``symbol``.

        Returns:
            Mapping of invariantId to extractor function. Each function takes
            a Finding and returns a dict of string keys to string values.
        """
