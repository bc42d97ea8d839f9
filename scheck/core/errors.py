"""Error types for scheck.

Every error carries a deterministic code of the form SC_<CATEGORY>_<NUMBER>
so that CI logs can be searched and documented independently of wording.
"""

from pathlib import Path
from typing import Optional


class ScheckError(Exception):
    """Base class for all scheck errors.

    Attributes:
        code: Deterministic error code (e.g. "SC_STORE_701").
        path: File the error relates to (if any).
    """

    code = "SC_UNKNOWN_000"

    def __init__(self, message: str, path: Optional[Path] = None):
        self.path = path
        if path:
            full_message = f"Error in {path}: {message}"
        else:
            full_message = message
        super().__init__(full_message)


class InvalidArgumentError(ScheckError):
    """Raised for malformed command input. Never retried."""

    code = "SC_CLI_401"


class ArtifactNotFoundError(ScheckError):
    """Raised when a findings artifact does not exist."""

    code = "SC_ARTIFACT_501"


class ArtifactInvalidError(ScheckError):
    """Raised when a findings artifact cannot be parsed."""

    code = "SC_ARTIFACT_502"


class CorruptStoreError(ScheckError):
    """Raised when a baseline or waiver file exists but cannot be used.

    Covers unparseable JSON, entries that fail validation and files written
    with an incompatible schema version.
    """

    code = "SC_STORE_701"


class InvalidWaiverError(ScheckError):
    """Raised when a waiver is rejected before it is persisted."""

    code = "SC_WAIVER_801"


class AnchorConflictError(ScheckError):
    """Raised when two anchor extractors are registered for one invariant."""

    code = "SC_ANCHOR_901"


class PluginError(ScheckError):
    """Raised when an anchor plugin cannot be loaded or registered."""

    code = "SC_ANCHOR_902"


class ConfigError(ScheckError):
    """Exception raised for configuration parsing errors.

    Attributes:
        line: Line number where error occurred (if available)
        path: Path to the config file (if available)
    """

    code = "SC_CONFIG_002"

    def __init__(
        self,
        message: str,
        line: Optional[int] = None,
        path: Optional[Path] = None
    ):
        self.line = line
        if line is not None:
            message = f"at line {line}: {message}"
        super().__init__(message, path=path)
