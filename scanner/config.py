"""Scan configuration and the optional daggermap.yaml project file."""

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional, Set

import yaml

from .discovery import DEFAULT_EXCLUDE_DIRS, DEFAULT_EXTENSIONS
from .errors import ConfigError


CONFIG_FILE_NAMES = ("daggermap.yaml", "daggermap.yml")
DEFAULT_WORKERS = 4


@dataclass(frozen=True)
class ScanConfig:
    """
    Options controlling discovery and parsing.

    ``qualifiers`` and ``scopes`` name extra annotations to treat as
    qualifiers or scopes, on top of the built-in ones and those declared in
    the scanned sources.
    """

    extensions: Set[str] = field(default_factory=lambda: set(DEFAULT_EXTENSIONS))
    exclude_dirs: Set[str] = field(default_factory=lambda: set(DEFAULT_EXCLUDE_DIRS))
    max_depth: Optional[int] = None
    workers: int = DEFAULT_WORKERS
    qualifiers: Set[str] = field(default_factory=set)
    scopes: Set[str] = field(default_factory=set)

    def merged(self, **overrides: Any) -> "ScanConfig":
        """Return a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def _string_set(data: Dict[str, Any], key: str) -> Optional[Set[str]]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigError(f"'{key}' must be a list of strings")
    return set(value)


def _optional_int(data: Dict[str, Any], key: str, minimum: int) -> Optional[int]:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise ConfigError(f"'{key}' must be an integer >= {minimum}")
    return value


def normalize_extensions(extensions) -> Set[str]:
    """Lower-case extensions and make sure each starts with a dot."""
    normalized = set()
    for ext in extensions:
        if not ext.startswith("."):
            ext = "." + ext
        normalized.add(ext.lower())
    return normalized


def load_config(path: Path, base: Optional[ScanConfig] = None) -> ScanConfig:
    """
    Load a YAML configuration file.

    Args:
        path: Path to the YAML file.
        base: Configuration the file values are applied on top of.

    Returns:
        The merged ScanConfig.

    Raises:
        ConfigError: If the file cannot be read or contains invalid values.
    """
    base = base or ScanConfig()
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return base
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    known = {"extensions", "exclude_dirs", "max_depth", "workers", "qualifiers", "scopes"}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown config keys in {path}: {', '.join(map(str, unknown))}")

    extensions = _string_set(data, "extensions")
    exclude_dirs = _string_set(data, "exclude_dirs")
    return base.merged(
        extensions=normalize_extensions(extensions) if extensions is not None else None,
        exclude_dirs=(exclude_dirs | DEFAULT_EXCLUDE_DIRS) if exclude_dirs is not None else None,
        max_depth=_optional_int(data, "max_depth", 0),
        workers=_optional_int(data, "workers", 1),
        qualifiers=_string_set(data, "qualifiers"),
        scopes=_string_set(data, "scopes"),
    )


def find_config(root: Path) -> Optional[Path]:
    """Return the project config file in ``root``, if there is one."""
    for name in CONFIG_FILE_NAMES:
        candidate = root / name
        if candidate.is_file():
            return candidate
    return None
