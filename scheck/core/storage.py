"""JSON persistence shared by the baseline and waiver stores.

Both stores follow a read-modify-write discipline: the whole file is loaded,
mutated in memory and written back atomically. A write goes to a temporary
file in the destination directory which is then moved over the target with
os.replace, so an interrupted process leaves either the old or the new file.

There is no locking between processes. The digest of the bytes a store was
loaded from is remembered, and a save that finds different bytes on disk
logs a warning before overwriting them (last writer wins).
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Callable, Generic, Optional, TypeVar

from pydantic import ValidationError

from scheck import __version__
from scheck.core.errors import CorruptStoreError
from scheck.models.store import BaselineFile, WaiverFile, get_generated_by, utc_now
from scheck.utils.git import STATE_DIR

_default_logger = logging.getLogger(__name__)

SCHECK_DIR = STATE_DIR
BASELINE_FILENAME = "baseline.json"
WAIVER_FILENAME = "waivers.json"

# Envelope keys in the order they are written
ENVELOPE_ORDER = [
    "schemaVersion",
    "toolVersion",
    "collectorSchemaVersion",
    "generatedBy",
    "updatedAt",
    "entries",
]

StoreT = TypeVar("StoreT", BaselineFile, WaiverFile)


def get_baseline_path(root: Path) -> Path:
    """Path of the baseline file for a project root."""
    return Path(root) / SCHECK_DIR / BASELINE_FILENAME


def get_waiver_path(root: Path) -> Path:
    """Path of the waiver file for a project root."""
    return Path(root) / SCHECK_DIR / WAIVER_FILENAME


def is_compatible_schema(found: str, supported: str) -> bool:
    """Check whether a file schema version can be read by this release.

    Versions are compatible when their major components are equal.
    """
    try:
        return int(found.split(".")[0]) == int(supported.split(".")[0])
    except (ValueError, AttributeError):
        return False


def _digest(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def atomic_write_text(path: Path, text: str) -> None:
    """Write text to a file atomically.

    Args:
        path: Destination file. Parent directories are created.
        text: Content to write (UTF-8).
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent)
    )
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(str(tmp), str(path))
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise


class StoreIO(Generic[StoreT]):
    """Loader and writer for one kind of store file.

    Example usage:
        io = StoreIO(BaselineFile, BASELINE_SCHEMA_VERSION, "baseline", BaselineFile)
        baseline = io.load(path)
        ...
        io.save(path, baseline)
    """

    def __init__(
        self,
        model: type[StoreT],
        schema_version: str,
        label: str,
        empty_factory: Callable[[], StoreT],
    ):
        self.model = model
        self.schema_version = schema_version
        self.label = label
        self.empty_factory = empty_factory

    def load(self, path: Path, logger: Optional[logging.Logger] = None) -> StoreT:
        """Load a store file.

        Args:
            path: Path to the JSON file.
            logger: Logger for diagnostics (defaults to the module logger).

        Returns:
            The parsed store, or an empty schema-stamped store if the file
            does not exist.

        Raises:
            CorruptStoreError: If the file exists but cannot be parsed, fails
                validation or has an incompatible schema version.
        """
        log = logger or _default_logger
        path = Path(path)

        if not path.exists():
            log.debug("No %s file at %s, starting empty", self.label, path)
            return self.empty_factory()

        try:
            raw = path.read_bytes()
            data = json.loads(raw.decode("utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise CorruptStoreError(f"Could not parse {self.label} file: {e}", path=path) from e

        if not isinstance(data, dict):
            raise CorruptStoreError(
                f"Expected a JSON object in {self.label} file, got {type(data).__name__}",
                path=path,
            )

        found_version = data.get("schemaVersion")
        if not found_version:
            log.debug("Stamping %s file %s with schema %s", self.label, path, self.schema_version)
            data["schemaVersion"] = self.schema_version
        elif not is_compatible_schema(str(found_version), self.schema_version):
            raise CorruptStoreError(
                f"Incompatible {self.label} schema version {found_version} "
                f"(supported: {self.schema_version})",
                path=path,
            )
        data.setdefault("toolVersion", __version__)
        data.setdefault("generatedBy", get_generated_by())
        data.setdefault("entries", {})

        try:
            store = self.model.model_validate(data)
        except ValidationError as e:
            raise CorruptStoreError(
                f"Invalid {self.label} file: {e.error_count()} validation error(s): "
                f"{e.errors()[0]['msg']}",
                path=path,
            ) from e

        store._source_digest = _digest(raw)
        log.debug("Loaded %d %s entries from %s", len(store.entries), self.label, path)
        return store

    def load_or_empty(self, path: Path, logger: Optional[logging.Logger] = None) -> StoreT:
        """Load a store file, treating a corrupt file as empty.

        The parse or schema problem is logged as a warning.
        """
        log = logger or _default_logger
        try:
            return self.load(path, logger=log)
        except CorruptStoreError as e:
            log.warning("%s; using an empty %s", e, self.label)
            return self.empty_factory()

    def save(
        self,
        path: Path,
        store: StoreT,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        """Write a store file atomically with deterministic ordering.

        Updates ``updatedAt``, ``toolVersion`` and ``generatedBy``. Entries
        are written sorted by findingId with a 2-space indent and a trailing
        newline so that diffs stay small.
        """
        log = logger or _default_logger
        path = Path(path)

        if path.exists():
            try:
                on_disk = _digest(path.read_bytes())
            except OSError:
                on_disk = None
            if on_disk != store._source_digest:
                log.warning(
                    "%s was modified by another process since it was loaded; overwriting",
                    path,
                )

        store.updated_at = utc_now()
        store.tool_version = __version__
        store.generated_by = get_generated_by()

        dumped = store.model_dump(mode="json", by_alias=True, exclude_none=True)
        dumped["entries"] = {key: dumped["entries"][key] for key in sorted(dumped["entries"])}
        ordered = {key: dumped[key] for key in ENVELOPE_ORDER if key in dumped}

        text = json.dumps(ordered, indent=2, ensure_ascii=False) + "\n"
        atomic_write_text(path, text)
        store._source_digest = _digest(text.encode("utf-8"))
        log.debug("Saved %d %s entries to %s", len(store.entries), self.label, path)
