"""Store a freshly produced artifact once and link it into every due horizon."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from tierstash.errors import PlacementError
from tierstash.retention.horizons import CHAIN, DueSet, Horizon
from tierstash.retention.layout import horizon_dir

log = logging.getLogger(__name__)


@dataclass
class Placement:
    """Where an artifact ended up."""

    real_path: Path
    links: list[Path] = field(default_factory=list)
    placed: list[str] = field(default_factory=list)


def link_target(previous: Horizon, filename: str) -> str:
    """Relative target of a link pointing one hop back to *previous*."""
    return os.path.join(os.pardir, previous.directory, filename)


def place_artifact(artifact_path: Path, project_root: Path, due: DueSet) -> Placement:
    """Move *artifact_path* into the slowest due horizon, link the others.

    Horizons are walked slowest to fastest. The first due horizon receives
    the real file; each later due horizon gets a relative link to the entry
    in the horizon placed just before it. Existing entries are never
    overwritten.

    The caller hands over ownership of *artifact_path*. On failure a
    :class:`PlacementError` is raised listing what was already placed;
    nothing is rolled back.
    """
    artifact_path = Path(artifact_path)
    filename = artifact_path.name
    if not due.any():
        raise PlacementError(f"No horizon is due for {filename}", artifact_path)

    result: Placement | None = None
    last_placed: Horizon | None = None
    current = artifact_path

    for horizon in CHAIN:
        if not due.is_due(horizon):
            continue
        target = horizon_dir(project_root, horizon) / filename
        placed = result.placed if result else []
        try:
            if os.path.lexists(target):
                raise FileExistsError(f"{target} already exists")
            if last_placed is None:
                os.rename(current, target)
                current = target
                result = Placement(real_path=target)
                log.info("Stored %s in %s", filename, horizon.name)
            else:
                os.symlink(link_target(last_placed, filename), target)
                result.links.append(target)
                log.info("Linked %s in %s -> %s", filename, horizon.name, last_placed.name)
        except OSError as exc:
            raise PlacementError(
                f"Cannot place {filename} in {horizon.name}: {exc}",
                target,
                placed=placed,
                artifact=current,
            ) from exc
        result.placed.append(horizon.name)
        last_placed = horizon

    return result
