"""List the dated artifacts stored in one horizon directory."""

from __future__ import annotations

import os
from pathlib import Path

from tierstash.errors import StorageError
from tierstash.retention.naming import is_artifact


def list_artifacts(horizon_dir: Path) -> list[str]:
    """Return the artifact filenames found directly in *horizon_dir*.

    Only names carrying the ``_YYYY-MM-DD.`` token are returned. Symlinks
    count as entries (dangling or not); subdirectories never do. No
    ordering is guaranteed, use :func:`naming.sort_by_date` when it matters.
    """
    try:
        entries = list(os.scandir(horizon_dir))
    except OSError as exc:
        raise StorageError(f"Cannot list {horizon_dir}: {exc}", horizon_dir) from exc

    names: list[str] = []
    for entry in entries:
        if not is_artifact(entry.name):
            continue
        try:
            if entry.is_dir(follow_symlinks=False):
                continue
        except OSError as exc:
            raise StorageError(f"Cannot stat {entry.path}: {exc}", entry.path) from exc
        names.append(entry.name)
    return names
