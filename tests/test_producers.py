"""Tests for tierstash.producers."""

from __future__ import annotations

import gzip
import tarfile
from collections import namedtuple
from datetime import date
from pathlib import Path
from unittest.mock import patch

import pytest

from tierstash.config import ProjectConfig
from tierstash.errors import InsufficientSpaceError, ProduceError
from tierstash.producers import (
    archive_files,
    artifact_name_for,
    check_free_space,
    dump_database,
    get_producer,
    mysqldump_command,
    required_space,
)
from tierstash.retention.horizons import Retention

DAY = date(2026, 10, 5)
DiskUsage = namedtuple("DiskUsage", "total used free")


def _db(**options: object) -> ProjectConfig:
    opts = {
        "container": "mysql",
        "user": {"type": "constant", "value": "root"},
        "password": {"type": "constant", "value": ""},
        "database": {"type": "constant", "value": "shop"},
    }
    opts.update(options)
    return ProjectConfig("database", "shop", True, Retention(daily=1), opts)


def _files(sources: list[str], **options: object) -> ProjectConfig:
    opts = {"files": sources, "exclude": [], "compress": True}
    opts.update(options)
    return ProjectConfig("files", "uploads", True, Retention(daily=1), opts)


@pytest.fixture
def sources(tmp_path: Path) -> Path:
    src = tmp_path / "src"
    (src / "cache").mkdir(parents=True)
    (src / "a.txt").write_text("a" * 100)
    (src / "b.tmp").write_text("b" * 50)
    (src / "cache" / "c.bin").write_bytes(b"c" * 30)
    return src


class TestArtifactNameFor:
    def test_database(self) -> None:
        assert artifact_name_for(_db(), DAY) == "shop_2026-10-05.sql.gz"

    def test_files_compressed(self) -> None:
        assert artifact_name_for(_files(["/x"]), DAY) == "uploads_2026-10-05.tar.gz"

    def test_files_uncompressed(self) -> None:
        assert artifact_name_for(_files(["/x"], compress=False), DAY) == "uploads_2026-10-05.tar"


class TestMysqldumpCommand:
    def test_constant_values_quoted(self) -> None:
        cmd = mysqldump_command(_db(password={"type": "constant", "value": "s3cr3t pw"}))
        assert cmd[:5] == ["docker", "exec", "mysql", "sh", "-c"]
        assert cmd[5] == "exec mysqldump -u root '-ps3cr3t pw' shop"

    def test_env_values_expand_in_container(self) -> None:
        cmd = mysqldump_command(
            _db(
                user={"type": "env", "value": "MYSQL_USER"},
                password={"type": "env", "value": "MYSQL_PASSWORD"},
                database={"type": "env", "value": "MYSQL_DATABASE"},
            )
        )
        assert cmd[5] == (
            'exec mysqldump -u "${MYSQL_USER}" "-p${MYSQL_PASSWORD}" "${MYSQL_DATABASE}"'
        )

    def test_empty_password_omitted(self) -> None:
        assert mysqldump_command(_db())[5] == "exec mysqldump -u root shop"

    def test_missing_user_defaults_to_root(self) -> None:
        assert "-u root" in mysqldump_command(_db(user=None))[5]

    def test_invalid_env_name(self) -> None:
        with pytest.raises(ProduceError, match="environment variable"):
            mysqldump_command(_db(password={"type": "env", "value": "$(rm -rf /)"}))

    def test_missing_database(self) -> None:
        with pytest.raises(ProduceError, match="No database"):
            mysqldump_command(_db(database=None))


class TestDumpDatabase:
    def test_streams_gzip_output(self, tmp_path: Path) -> None:
        with patch(
            "tierstash.producers.mysqldump_command",
            return_value=["sh", "-c", "printf 'CREATE TABLE t;'"],
        ):
            path = dump_database(_db(), tmp_path, DAY)
        assert path == tmp_path / "shop_2026-10-05.sql.gz"
        with gzip.open(path) as f:
            assert f.read() == b"CREATE TABLE t;"

    def test_failure_removes_partial_file(self, tmp_path: Path) -> None:
        with patch(
            "tierstash.producers.mysqldump_command",
            return_value=["sh", "-c", "printf partial; echo 'access denied' >&2; exit 2"],
        ):
            with pytest.raises(ProduceError, match="access denied"):
                dump_database(_db(), tmp_path, DAY)
        assert list(tmp_path.iterdir()) == []

    def test_missing_executable(self, tmp_path: Path) -> None:
        with patch(
            "tierstash.producers.mysqldump_command",
            return_value=["definitely-not-a-real-binary-tierstash"],
        ):
            with pytest.raises(ProduceError):
                dump_database(_db(), tmp_path, DAY)
        assert list(tmp_path.iterdir()) == []


class TestRequiredSpace:
    def test_sums_sources(self, sources: Path) -> None:
        assert required_space([str(sources)], []) == 180

    def test_skips_excluded(self, sources: Path) -> None:
        assert required_space([str(sources)], ["*.tmp", "cache"]) == 100

    def test_missing_source(self, tmp_path: Path) -> None:
        with pytest.raises(ProduceError, match="does not exist"):
            required_space([str(tmp_path / "nope")], [])

    def test_vanished_file_is_produce_error(self, sources: Path) -> None:
        with patch(
            "tierstash.producers.os.path.getsize",
            side_effect=FileNotFoundError(2, "vanished"),
        ):
            with pytest.raises(ProduceError, match="Cannot measure"):
                required_space([str(sources)], [])

    def test_unreadable_disk_is_produce_error(self, tmp_path: Path) -> None:
        with patch(
            "tierstash.producers.shutil.disk_usage",
            side_effect=PermissionError(13, "denied"),
        ):
            with pytest.raises(ProduceError, match="free space"):
                check_free_space(tmp_path, 1, 0)


class TestArchiveFiles:
    def test_creates_compressed_archive(self, tmp_path: Path, sources: Path) -> None:
        root = tmp_path / "uploads"
        root.mkdir()
        path = archive_files(_files([str(sources)], exclude=["*.tmp"]), root, DAY)
        assert path == root / "uploads_2026-10-05.tar.gz"
        with tarfile.open(path, "r:gz") as tar:
            names = tar.getnames()
        assert any(n.endswith("src/a.txt") for n in names)
        assert any(n.endswith("src/cache/c.bin") for n in names)
        assert not any(n.endswith("b.tmp") for n in names)

    def test_uncompressed(self, tmp_path: Path, sources: Path) -> None:
        root = tmp_path / "uploads"
        root.mkdir()
        path = archive_files(_files([str(sources)], compress=False), root, DAY)
        assert path.name == "uploads_2026-10-05.tar"
        with tarfile.open(path, "r:") as tar:
            assert tar.getnames()

    def test_insufficient_space(self, tmp_path: Path, sources: Path) -> None:
        root = tmp_path / "uploads"
        root.mkdir()
        with patch(
            "tierstash.producers.shutil.disk_usage",
            return_value=DiskUsage(1000, 900, 100),
        ):
            with pytest.raises(InsufficientSpaceError, match="Not enough disk space"):
                archive_files(_files([str(sources)]), root, DAY)
        assert list(root.iterdir()) == []

    def test_reserve_counts_against_free_space(self, tmp_path: Path, sources: Path) -> None:
        root = tmp_path / "uploads"
        root.mkdir()
        with patch(
            "tierstash.producers.shutil.disk_usage",
            return_value=DiskUsage(10_000, 0, 10_000),
        ):
            with pytest.raises(InsufficientSpaceError):
                archive_files(_files([str(sources)]), root, DAY, min_free_bytes=9_900)


class TestGetProducer:
    def test_database(self) -> None:
        assert get_producer("database") is dump_database

    def test_files_binds_reserve(self) -> None:
        producer = get_producer("files", 123)
        assert producer.func is archive_files  # type: ignore[attr-defined]
        assert producer.keywords == {"min_free_bytes": 123}  # type: ignore[attr-defined]

    def test_unknown(self) -> None:
        with pytest.raises(ValueError):
            get_producer("postgres")
