"""Project directory tree: ``<root>/{daily,weekly,monthly}/``."""

from __future__ import annotations

import logging
from pathlib import Path

from tierstash.errors import ConfigError, StorageError
from tierstash.retention.horizons import CHAIN, Horizon

log = logging.getLogger(__name__)


def horizon_dir(project_root: Path, horizon: Horizon) -> Path:
    return Path(project_root) / horizon.directory


def _ensure_dir(path: Path) -> bool:
    """Create *path* exclusively. Return True if it was created."""
    try:
        path.mkdir()
    except FileExistsError:
        if path.is_dir():
            return False
        raise ConfigError(f"{path} exists and is not a directory") from None
    except OSError as exc:
        raise StorageError(f"Cannot create {path}: {exc}", path) from exc
    log.info("Created directory %s", path)
    return True


def ensure_tree(project_root: Path) -> list[Path]:
    """Make sure the project root and its horizon directories exist.

    Returns the directories that had to be created; an already correct
    tree returns an empty list and is left untouched. A file (or a link
    to one) sitting where a directory belongs raises :class:`ConfigError`.
    """
    root = Path(project_root)
    created: list[Path] = []
    if not root.parent.is_dir():
        raise ConfigError(f"Backup folder {root.parent} does not exist")
    if _ensure_dir(root):
        created.append(root)
    for horizon in CHAIN:
        path = horizon_dir(root, horizon)
        if _ensure_dir(path):
            created.append(path)
    return created
