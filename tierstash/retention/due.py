"""Decide, per horizon, whether a new artifact is needed today."""

from __future__ import annotations

import logging
import os
from datetime import date
from pathlib import Path

from tierstash.errors import ConfigError, StorageError
from tierstash.retention.history import list_artifacts
from tierstash.retention.horizons import CHAIN, DAILY, MONTHLY, WEEKLY, DueSet, Horizon, Retention
from tierstash.retention.layout import horizon_dir

log = logging.getLogger(__name__)

# date.weekday(): Monday is 0
MEDIUM_WEEKDAY = 0


def calendar_due(horizon: Horizon, today: date) -> bool:
    """Calendar rule alone, ignoring what is already on disk."""
    if horizon == DAILY:
        return True
    if horizon == WEEKLY:
        return today.weekday() == MEDIUM_WEEKDAY
    if horizon == MONTHLY:
        return today.day == 1
    raise ValueError(f"Unknown horizon: {horizon.name}")


def _exists(path: Path) -> bool:
    # lexists: a dangling link still occupies the name
    try:
        os.lstat(path)
    except FileNotFoundError:
        return False
    except OSError as exc:
        raise StorageError(f"Cannot stat {path}: {exc}", path) from exc
    return True


def evaluate_due(
    project_root: Path,
    filename: str,
    retention: Retention,
    today: date | None = None,
) -> DueSet:
    """Build the :class:`DueSet` for *filename* in *project_root*.

    A horizon is due when it is enabled, does not already hold *filename*,
    and either its calendar rule fires today or it holds no artifacts at
    all. The empty-history case lets a newly enabled horizon start right
    away instead of waiting for its next calendar boundary.

    This goes beyond the per-horizon rule above: if any horizon, enabled or
    not, already holds *filename*, nothing is due anywhere. A second
    production would give the same identity two real files. A horizon
    enabled after today's artifact was placed starts on the next run.
    """
    if not retention.any_enabled():
        raise ConfigError("All keep-counts are zero; nothing would ever be retained")
    today = today or date.today()
    due = DueSet()

    holders = [h for h in CHAIN if _exists(horizon_dir(project_root, h) / filename)]
    if holders:
        log.info(
            "File %s already exists in %s", filename, ", ".join(h.name for h in holders)
        )
        return due

    for horizon in CHAIN:
        if not retention.enabled(horizon):
            continue
        directory = horizon_dir(project_root, horizon)
        if calendar_due(horizon, today) or not list_artifacts(directory):
            due.set_due(horizon, True)
    return due
