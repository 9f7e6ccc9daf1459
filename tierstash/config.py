"""Load and validate the tierstash YAML config."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator

import yaml

from tierstash.errors import ConfigError
from tierstash.retention.horizons import Retention


# Default config values
DEFAULTS: dict[str, Any] = {
    "folder": "/var/backups/tierstash/",
    "log_dir": None,
    "min_free_bytes": 5_000_000_000,
    "databases": [],
    "files": [],
}

DATABASE_DEFAULTS: dict[str, Any] = {
    "enabled": True,
    "container": None,
    "user": {"type": "constant", "value": "root"},
    "password": {"type": "constant", "value": ""},
    "database": None,
}

FILES_DEFAULTS: dict[str, Any] = {
    "enabled": True,
    "files": [],
    "exclude": [],
    "compress": True,
}

PROJECT_NAME_RE = re.compile(r"^[a-z0-9\-_]+$")
VARIABLE_TYPES = ("constant", "env")
PROJECT_KINDS = ("database", "files")


@dataclass(frozen=True)
class ProjectConfig:
    """One configured backup project, database dump or file archive."""

    kind: str
    name: str
    enabled: bool
    retention: Retention
    options: dict[str, Any] = field(default_factory=dict)


def _deep_merge(base: dict, override: dict) -> dict:
    """Merge override into base recursively. Override wins on conflicts."""
    result = base.copy()
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _validate_variable(project: str, key: str, variable: Any) -> None:
    if variable is None:
        return
    if not isinstance(variable, dict):
        raise ConfigError(f"'{project}.{key}' must be a mapping with 'type' and 'value'")
    var_type = variable.get("type", "constant")
    if var_type not in VARIABLE_TYPES:
        raise ConfigError(
            f"'{project}.{key}.type' must be one of {', '.join(VARIABLE_TYPES)}, got '{var_type}'"
        )
    if not isinstance(variable.get("value", ""), str):
        raise ConfigError(f"'{project}.{key}.value' must be a string")


def _validate_project(kind: str, project: Any, seen: set[str]) -> None:
    if not isinstance(project, dict):
        raise ConfigError(f"Each entry under '{kind}' must be a mapping")
    name = project.get("name")
    if not isinstance(name, str) or not PROJECT_NAME_RE.match(name):
        raise ConfigError(
            f"Invalid project name {name!r}: use lowercase letters, digits, '-' and '_'"
        )
    if name in seen:
        raise ConfigError(f"Duplicate project name '{name}'")
    seen.add(name)
    if not isinstance(project.get("interval"), dict):
        raise ConfigError(f"'{name}.interval' must be a mapping")
    Retention.from_mapping(project["interval"])

    if kind == "databases":
        for key in ("user", "password", "database"):
            _validate_variable(name, key, project.get(key))
        if not project.get("container"):
            raise ConfigError(f"'{name}.container' is required")
        if not project.get("database"):
            raise ConfigError(f"'{name}.database' is required")
    else:
        files = project.get("files")
        if not isinstance(files, list) or not files:
            raise ConfigError(f"'{name}.files' must be a non-empty list of paths")
        if not all(isinstance(f, str) and f for f in files):
            raise ConfigError(f"'{name}.files' entries must be non-empty strings")
        exclude = project.get("exclude")
        if not isinstance(exclude, list) or not all(isinstance(p, str) for p in exclude):
            raise ConfigError(f"'{name}.exclude' must be a list of patterns")


def _validate(config: dict) -> None:
    """Validate required fields in config."""
    folder = config.get("folder")
    if not isinstance(folder, str) or not Path(folder).is_absolute():
        raise ConfigError("'folder' must be an absolute path")
    if not Path(folder).is_dir():
        raise ConfigError(f"Backup folder does not exist: {folder}")

    min_free = config.get("min_free_bytes")
    if isinstance(min_free, bool) or not isinstance(min_free, int) or min_free < 0:
        raise ConfigError("'min_free_bytes' must be a non-negative integer")

    seen: set[str] = set()
    for kind in ("databases", "files"):
        projects = config.get(kind)
        if not isinstance(projects, list):
            raise ConfigError(f"'{kind}' must be a list")
        for project in projects:
            _validate_project(kind, project, seen)


def load_config(config_path: Path) -> dict:
    """Load config from *config_path*.

    Merges with DEFAULTS (and the per-project defaults) so callers always
    get a full config dict.
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise ConfigError(f"Config not found: {config_path}")

    try:
        with open(config_path) as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config is not valid YAML: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError(f"Config must be a YAML mapping, got {type(raw).__name__}")

    config = _deep_merge(DEFAULTS, raw)
    for kind, defaults in (("databases", DATABASE_DEFAULTS), ("files", FILES_DEFAULTS)):
        if isinstance(config.get(kind), list):
            config[kind] = [
                _deep_merge(defaults, p) if isinstance(p, dict) else p
                for p in config[kind]
            ]
    _validate(config)
    return config


def iter_projects(config: dict) -> Iterator[ProjectConfig]:
    """Yield databases first, then file projects, in config order."""
    for kind, key in (("database", "databases"), ("files", "files")):
        for project in config[key]:
            options = {
                k: v for k, v in project.items() if k not in ("name", "enabled", "interval")
            }
            yield ProjectConfig(
                kind=kind,
                name=project["name"],
                enabled=bool(project["enabled"]),
                retention=Retention.from_mapping(project["interval"]),
                options=options,
            )


def project_root(config: dict, name: str) -> Path:
    """Directory holding one project's horizons."""
    return Path(config["folder"]) / name


def resolve_log_dir(config: dict) -> Path | None:
    """Log directory, relative paths taken from the backup folder."""
    log_dir = config.get("log_dir")
    if not log_dir:
        return None
    path = Path(log_dir).expanduser()
    return path if path.is_absolute() else Path(config["folder"]) / path
