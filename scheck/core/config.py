"""scheck.toml configuration.

Settings are grouped in four tables (``[ci]``, ``[baseline]``, ``[waivers]``
and ``[output]``), each parsed into its own dataclass. ConfigLoader finds the
user, git root and project files and layers them.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import tomli

from scheck.core.baseline import DEFAULT_PRUNE_DAYS
from scheck.core.errors import ConfigError
from scheck.core.waiver import DEFAULT_EXPIRING_DAYS, DEFAULT_EXPIRY_DAYS
from scheck.models.finding import Severity
from scheck.utils.git import find_git_root

CONFIG_FILENAME = "scheck.toml"

_default_logger = logging.getLogger(__name__)


def _non_negative_int(data: dict, key: str, default: int, section: str) -> int:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConfigError(f"[{section}] {key} must be a non-negative integer, got {value!r}")
    return value


@dataclass
class CIConfig:
    """CI gating settings.

    Attributes:
        fail_on: Minimum severity that fails CI. None means any severity.
    """

    fail_on: Optional[Severity] = None

    @classmethod
    def from_dict(cls, data: dict) -> "CIConfig":
        """Create CIConfig from a dictionary."""
        fail_on = data.get("fail_on")
        if fail_on is None:
            return cls()
        try:
            return cls(fail_on=Severity(str(fail_on).upper()))
        except ValueError:
            valid = ", ".join(s.value for s in Severity)
            raise ConfigError(f"[ci] fail_on must be one of {valid}, got {fail_on!r}") from None


@dataclass
class BaselineConfig:
    """Baseline settings."""

    prune_days: int = DEFAULT_PRUNE_DAYS

    @classmethod
    def from_dict(cls, data: dict) -> "BaselineConfig":
        """Create BaselineConfig from a dictionary."""
        return cls(
            prune_days=_non_negative_int(data, "prune_days", DEFAULT_PRUNE_DAYS, "baseline")
        )


@dataclass
class WaiversConfig:
    """Waiver settings."""

    default_expiry_days: int = DEFAULT_EXPIRY_DAYS
    expiring_days: int = DEFAULT_EXPIRING_DAYS

    @classmethod
    def from_dict(cls, data: dict) -> "WaiversConfig":
        """Create WaiversConfig from a dictionary."""
        return cls(
            default_expiry_days=_non_negative_int(
                data, "default_expiry_days", DEFAULT_EXPIRY_DAYS, "waivers"
            ),
            expiring_days=_non_negative_int(data, "expiring_days", DEFAULT_EXPIRING_DAYS, "waivers"),
        )


@dataclass
class OutputConfig:
    """Console output settings."""

    color: bool = True
    verbose: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> "OutputConfig":
        """Create OutputConfig from a dictionary."""
        flags = {}
        for key in ("color", "verbose"):
            if key in data:
                if not isinstance(data[key], bool):
                    raise ConfigError(f"[output] {key} must be true or false, got {data[key]!r}")
                flags[key] = data[key]
        return cls(**flags)


SECTIONS = {
    "ci": CIConfig,
    "baseline": BaselineConfig,
    "waivers": WaiversConfig,
    "output": OutputConfig,
}


@dataclass
class Config:
    """Complete scheck configuration.

    Attributes:
        ci: CI gating settings like fail_on
        baseline: Baseline settings like prune_days
        waivers: Waiver expiry settings
        output: Output settings like color and verbosity
    """

    ci: CIConfig = field(default_factory=CIConfig)
    baseline: BaselineConfig = field(default_factory=BaselineConfig)
    waivers: WaiversConfig = field(default_factory=WaiversConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    @classmethod
    def from_dict(cls, data: dict) -> "Config":
        """Create Config from parsed TOML data.

        Raises:
            ConfigError: If a section is not a table, or a value has the wrong
                type or is out of range.
        """
        sections = {}
        for name, section_cls in SECTIONS.items():
            table = data.get(name, {})
            if not isinstance(table, dict):
                raise ConfigError(f"[{name}] must be a table")
            sections[name] = section_cls.from_dict(table)
        return cls(**sections)


def user_config_path() -> Path:
    """Location of the per-user configuration file."""
    return Path(os.path.expanduser("~")) / ".config" / "scheck" / "config.toml"


def merge_config_data(base: dict, override: dict) -> dict:
    """Merge two parsed config tables, ``override`` winning key by key.

    Neither argument is modified.
    """
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = merge_config_data(current, value)
        else:
            merged[key] = value
    return merged


def _toml_error_line(error: tomli.TOMLDecodeError) -> Optional[int]:
    lineno = getattr(error, "lineno", None)
    if lineno is not None:
        return lineno
    match = re.search(r"line (\d+)", str(error))
    return int(match.group(1)) if match else None


class ConfigLoader:
    """Reads scheck.toml files and layers them into one Config.

    Layers, lowest precedence first: the user config, the git root's
    scheck.toml, then the project's own scheck.toml. Command-line flags
    are applied by the caller on top of the result.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or _default_logger

    def load(self, path: Optional[Path]) -> Config:
        """Load a single configuration file, or defaults when path is None.

        Raises:
            ConfigError: If the file is not valid TOML or holds invalid values.
            FileNotFoundError: If path is given but does not exist.
        """
        if path is None:
            return Config()
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        return self._validate(self._read(path), path)

    def _read(self, path: Path) -> dict:
        try:
            return tomli.loads(path.read_text(encoding="utf-8"))
        except tomli.TOMLDecodeError as e:
            raise ConfigError(str(e), line=_toml_error_line(e), path=path) from e
        except UnicodeDecodeError as e:
            raise ConfigError(f"not valid UTF-8: {e}", path=path) from e
        except OSError as e:
            raise ConfigError(f"cannot be read: {e.strerror or e}", path=path) from e

    def _validate(self, data: dict, path: Path) -> Config:
        unknown = sorted(set(data) - set(SECTIONS))
        if unknown:
            self.logger.warning("Ignoring unknown config section(s) in %s: %s", path, ", ".join(unknown))
        try:
            return Config.from_dict(data)
        except ConfigError as e:
            raise ConfigError(str(e), path=path) from e

    def discover_configs(self, start_path: Optional[Path] = None) -> list[Path]:
        """Existing config files for ``start_path``, lowest precedence first.

        A file reachable as both the git root config and the project config
        is listed once.
        """
        start = Path.cwd() if start_path is None else Path(start_path).resolve()
        candidates = [user_config_path()]
        git_root = find_git_root(start)
        if git_root:
            candidates.append(git_root / CONFIG_FILENAME)
        candidates.append(start / CONFIG_FILENAME)

        found: list[Path] = []
        seen: set[Path] = set()
        for candidate in candidates:
            if candidate.is_file() and candidate.resolve() not in seen:
                seen.add(candidate.resolve())
                found.append(candidate)
        return found

    def load_merged(self, start_path: Optional[Path] = None) -> Config:
        """Layer every discovered config file into one Config.

        Each file is validated on its own first so errors name the file
        they came from.

        Raises:
            ConfigError: If any file is not valid TOML or holds invalid values.
        """
        merged: dict = {}
        for path in self.discover_configs(start_path):
            data = self._read(path)
            self._validate(data, path)
            self.logger.debug("Loaded config %s", path)
            merged = merge_config_data(merged, data)
        return Config.from_dict(merged)
