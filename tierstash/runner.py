"""Drive one backup run per project: ensure, evaluate, produce, place, purge."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Callable

from tierstash.config import ProjectConfig, iter_projects, project_root
from tierstash.errors import PlacementError, ProduceError, TierstashError
from tierstash.producers import Producer, artifact_name_for, get_producer
from tierstash.retention import (
    DueSet,
    Placement,
    PurgeReport,
    ensure_tree,
    evaluate_due,
    place_artifact,
    purge_all,
)

log = logging.getLogger(__name__)


class RunState(str, Enum):
    IDLE = "idle"
    DIRECTORIES_ENSURED = "directories_ensured"
    DUE_EVALUATED = "due_evaluated"
    SKIPPED = "skipped"
    ARTIFACT_PRODUCED = "artifact_produced"
    PLACED = "placed"
    PURGED = "purged"


@dataclass
class ProjectResult:
    """Outcome of one project's run. ``state`` is the last state reached."""

    name: str
    state: RunState = RunState.IDLE
    due: DueSet | None = None
    placement: Placement | None = None
    purges: list[PurgeReport] = field(default_factory=list)
    error: TierstashError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def run_project(
    project: ProjectConfig,
    root: Path,
    produce: Producer,
    today: date | None = None,
) -> ProjectResult:
    """Run the full sequence for one project.

    Any :class:`TierstashError` (or an ``OSError`` escaping the producer)
    stops the remaining steps and is stored on the result; it never
    propagates, so sibling projects keep running.
    """
    today = today or date.today()
    result = ProjectResult(name=project.name)
    try:
        ensure_tree(root)
        result.state = RunState.DIRECTORIES_ENSURED

        filename = artifact_name_for(project, today)
        result.due = evaluate_due(root, filename, project.retention, today)
        result.state = RunState.DUE_EVALUATED
        if not result.due.any():
            log.info("No backup required today for: %s", project.name)
            result.state = RunState.SKIPPED
            return result
        log.info("%s due: %s", project.name, result.due)

        try:
            artifact = produce(project, root, today)
        except OSError as exc:
            raise ProduceError(f"Producer for '{project.name}' failed: {exc}") from exc
        result.state = RunState.ARTIFACT_PRODUCED

        result.placement = place_artifact(artifact, root, result.due)
        result.state = RunState.PLACED

        result.purges = purge_all(root, project.retention)
        result.state = RunState.PURGED
        removed = sum(r.removed for r in result.purges)
        if removed:
            log.info("%s: %d expired artifact(s) rotated out", project.name, removed)
    except PlacementError as exc:
        result.error = exc
        log.error("Placement failed for %s: %s", project.name, exc)
    except TierstashError as exc:
        result.error = exc
        log.error("Backup of %s failed after %s: %s", project.name, result.state.value, exc)
    return result


def run_all(
    config: dict,
    today: date | None = None,
    only: str | None = None,
    producer_for: Callable[[str, int], Producer] = get_producer,
) -> list[ProjectResult]:
    """Run every enabled project sequentially (or just *only*)."""
    today = today or date.today()
    results: list[ProjectResult] = []
    for project in iter_projects(config):
        if only is not None and project.name != only:
            continue
        if not project.enabled:
            log.info("Skipping backup of %s: %s (is disabled)", project.kind, project.name)
            continue
        log.info("Starting backup of %s: %s", project.kind, project.name)
        produce = producer_for(project.kind, config["min_free_bytes"])
        results.append(run_project(project, project_root(config, project.name), produce, today))
    return results
