"""Tests for tierstash.retention.layout."""

from __future__ import annotations

from pathlib import Path

import pytest

from tierstash.errors import ConfigError
from tierstash.retention.horizons import WEEKLY
from tierstash.retention.layout import ensure_tree, horizon_dir


def _snapshot(root: Path) -> dict[str, int]:
    return {str(p): p.stat().st_mtime_ns for p in [root, *root.rglob("*")]}


class TestEnsureTree:
    def test_creates_root_and_horizons(self, tmp_path: Path) -> None:
        root = tmp_path / "shop"
        created = ensure_tree(root)
        assert created == [root, root / "monthly", root / "weekly", root / "daily"]
        for name in ("daily", "weekly", "monthly"):
            assert (root / name).is_dir()

    def test_idempotent(self, tmp_path: Path) -> None:
        root = tmp_path / "shop"
        ensure_tree(root)
        before = _snapshot(root)
        assert ensure_tree(root) == []
        assert _snapshot(root) == before

    def test_fills_in_missing_horizon(self, tmp_path: Path) -> None:
        root = tmp_path / "shop"
        ensure_tree(root)
        (root / "weekly").rmdir()
        assert ensure_tree(root) == [root / "weekly"]

    def test_file_collision_on_root(self, tmp_path: Path) -> None:
        (tmp_path / "shop").write_text("oops")
        with pytest.raises(ConfigError, match="not a directory"):
            ensure_tree(tmp_path / "shop")

    def test_file_collision_on_horizon(self, tmp_path: Path) -> None:
        root = tmp_path / "shop"
        root.mkdir()
        (root / "daily").write_text("oops")
        with pytest.raises(ConfigError, match="daily"):
            ensure_tree(root)

    def test_missing_backup_folder(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="does not exist"):
            ensure_tree(tmp_path / "missing" / "shop")


def test_horizon_dir(tmp_path: Path) -> None:
    assert horizon_dir(tmp_path, WEEKLY) == tmp_path / "weekly"
