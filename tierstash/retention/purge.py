"""Enforce keep-counts, relocating real data still linked from a faster horizon."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from tierstash.errors import IntegrityError, StorageError
from tierstash.retention.history import list_artifacts
from tierstash.retention.horizons import PURGE_ORDER, Horizon, Retention, faster_chain
from tierstash.retention.layout import horizon_dir
from tierstash.retention.naming import sort_by_date

log = logging.getLogger(__name__)


@dataclass
class PurgeReport:
    """What one horizon's purge did."""

    horizon: str
    deleted: list[Path] = field(default_factory=list)
    relocated: list[tuple[Path, Path]] = field(default_factory=list)

    @property
    def removed(self) -> int:
        return len(self.deleted) + len(self.relocated)


def _identity(path: Path) -> tuple[int, int]:
    st = os.stat(path)
    return st.st_dev, st.st_ino


def find_referencing_link(project_root: Path, horizon: Horizon, filename: str) -> Path | None:
    """Find the faster-horizon link that still resolves to ``horizon/filename``.

    Faster horizons are searched nearest first, moving on only while the
    nearer one has no entry of that name. The first entry found must be a
    link resolving to the same file; anything else raises
    :class:`IntegrityError`. Returns None when no faster horizon holds it.
    """
    expiring = horizon_dir(project_root, horizon) / filename
    for faster in faster_chain(horizon):
        candidate = horizon_dir(project_root, faster) / filename
        if not os.path.lexists(candidate):
            continue
        if not candidate.is_symlink():
            raise IntegrityError(
                f"{candidate} is a real file; {faster.name} may only link to {horizon.name}",
                candidate,
            )
        try:
            same = _identity(candidate) == _identity(expiring)
        except FileNotFoundError:
            raise IntegrityError(f"{candidate} does not resolve", candidate) from None
        except OSError as exc:
            raise StorageError(f"Cannot stat {candidate}: {exc}", candidate) from exc
        if not same:
            raise IntegrityError(
                f"{candidate} resolves somewhere other than {expiring}", candidate
            )
        return candidate
    return None


def purge_horizon(project_root: Path, horizon: Horizon, keep: int) -> PurgeReport:
    """Remove the oldest artifacts of *horizon* beyond *keep*.

    An expiring entry still referenced by a faster horizon is moved into
    that link's place instead of being deleted, so the faster horizon
    keeps its data and its entry count. A disabled horizon (``keep <= 0``)
    is left alone.
    """
    report = PurgeReport(horizon=horizon.name)
    if keep <= 0:
        return report

    directory = horizon_dir(project_root, horizon)
    artifacts = sort_by_date(list_artifacts(directory))
    excess = len(artifacts) - keep
    if excess <= 0:
        return report

    for filename in artifacts[:excess]:
        path = directory / filename
        link = find_referencing_link(project_root, horizon, filename)
        try:
            if link is not None:
                # Same directory depth, so a relative link being moved still resolves.
                os.unlink(link)
                os.rename(path, link)
                report.relocated.append((path, link))
                log.info("Moved %s to %s", path, link)
            else:
                os.unlink(path)
                report.deleted.append(path)
                log.info("Removed %s", path)
        except OSError as exc:
            raise StorageError(f"Cannot purge {path}: {exc}", path) from exc
    return report


def purge_all(project_root: Path, retention: Retention) -> list[PurgeReport]:
    """Purge every enabled horizon, fastest first.

    Stops at the first failing horizon; horizons already purged stay purged.
    """
    reports: list[PurgeReport] = []
    for horizon in PURGE_ORDER:
        if not retention.enabled(horizon):
            continue
        reports.append(purge_horizon(project_root, horizon, retention.keep(horizon)))
    return reports
