"""Tiered retention core: due evaluation, placement and purging of artifacts."""

from tierstash.retention.due import calendar_due, evaluate_due
from tierstash.retention.history import list_artifacts
from tierstash.retention.horizons import (
    CHAIN,
    DAILY,
    MONTHLY,
    WEEKLY,
    DueSet,
    Horizon,
    Retention,
    faster_chain,
)
from tierstash.retention.layout import ensure_tree, horizon_dir
from tierstash.retention.placement import Placement, place_artifact
from tierstash.retention.purge import PurgeReport, purge_all, purge_horizon

__all__ = [
    "CHAIN",
    "DAILY",
    "MONTHLY",
    "WEEKLY",
    "DueSet",
    "Horizon",
    "Placement",
    "PurgeReport",
    "Retention",
    "calendar_due",
    "ensure_tree",
    "evaluate_due",
    "faster_chain",
    "horizon_dir",
    "list_artifacts",
    "place_artifact",
    "purge_all",
    "purge_horizon",
]
