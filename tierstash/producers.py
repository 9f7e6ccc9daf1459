"""Create backup artifacts: MySQL dumps from Docker containers and tar archives.

Producers write the artifact into the project root, next to the horizon
directories, and hand the path to placement. They never touch the
horizons themselves.
"""

from __future__ import annotations

import fnmatch
import gzip
import logging
import os
import re
import shlex
import shutil
import subprocess
import tarfile
import tempfile
from datetime import date
from functools import partial
from pathlib import Path
from typing import Callable, Iterable

from tierstash.config import ProjectConfig
from tierstash.errors import InsufficientSpaceError, ProduceError
from tierstash.retention.naming import artifact_filename

log = logging.getLogger(__name__)

Producer = Callable[[ProjectConfig, Path, date], Path]

ENV_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def artifact_name_for(project: ProjectConfig, day: date) -> str:
    """Basename the project's producer will create for *day*."""
    if project.kind == "database":
        return artifact_filename(project.name, day, "sql.gz")
    extension = "tar.gz" if project.options.get("compress", True) else "tar"
    return artifact_filename(project.name, day, extension)


# --- database dumps ---


def _shell_value(variable: dict | None, default: str, prefix: str = "") -> str | None:
    """Render a config variable as a shell word for ``sh -c`` in the container.

    ``constant`` values are quoted literally; ``env`` values expand from the
    container's environment. Returns None when the value is empty.
    """
    if not variable or not variable.get("value"):
        return shlex.quote(prefix + default) if default else None
    value = variable["value"]
    if variable.get("type", "constant") == "env":
        if not ENV_NAME_RE.match(value):
            raise ProduceError(f"Invalid environment variable name: {value!r}")
        return f'"{prefix}${{{value}}}"'
    return shlex.quote(prefix + value)


def mysqldump_command(project: ProjectConfig) -> list[str]:
    """``docker exec`` argv running mysqldump inside the project's container."""
    options = project.options
    words = ["exec", "mysqldump"]
    user = _shell_value(options.get("user"), "root")
    if user:
        words += ["-u", user]
    password = _shell_value(options.get("password"), "", prefix="-p")
    if password:
        words.append(password)
    database = _shell_value(options.get("database"), "")
    if not database:
        raise ProduceError(f"No database configured for '{project.name}'")
    words.append(database)
    return ["docker", "exec", options["container"], "sh", "-c", " ".join(words)]


def dump_database(project: ProjectConfig, project_root: Path, day: date) -> Path:
    """Dump the project's database to ``<root>/<name>_<date>.sql.gz``.

    Output is streamed through gzip; a failed dump leaves no file behind.
    """
    target = Path(project_root) / artifact_name_for(project, day)
    cmd = mysqldump_command(project)
    log.info("Dumping database %s to %s", project.name, target)

    proc: subprocess.Popen | None = None
    with tempfile.TemporaryFile() as stderr:
        try:
            with gzip.open(target, "wb", compresslevel=9) as out:
                proc = subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=stderr)
                with proc.stdout:
                    shutil.copyfileobj(proc.stdout, out)
                returncode = proc.wait()
        except OSError as exc:
            if proc is not None and proc.poll() is None:
                proc.kill()
                proc.wait()
            target.unlink(missing_ok=True)
            raise ProduceError(f"Dump of '{project.name}' failed: {exc}") from exc

        stderr.seek(0)
        errors = stderr.read().decode(errors="replace").strip()

    for line in errors.splitlines():
        log.warning("mysqldump (%s): %s", project.name, line)
    if returncode != 0:
        target.unlink(missing_ok=True)
        raise ProduceError(
            f"Dump of '{project.name}' exited with {returncode}: {errors or 'no output'}"
        )
    return target


# --- file archives ---


def _excluded(path: str, patterns: Iterable[str]) -> bool:
    """Match exclude patterns against the basename and the full path."""
    name = os.path.basename(path.rstrip("/"))
    return any(fnmatch.fnmatch(name, p) or fnmatch.fnmatch(path, p) for p in patterns)


def required_space(sources: Iterable[str], exclude: Iterable[str]) -> int:
    """Total size in bytes of *sources*, skipping excluded entries."""
    try:
        return _required_space(sources, list(exclude))
    except OSError as exc:
        raise ProduceError(f"Cannot measure sources: {exc}") from exc


def _required_space(sources: Iterable[str], exclude: list[str]) -> int:
    total = 0
    for source in sources:
        if not os.path.exists(source):
            raise ProduceError(f"Source does not exist: {source}")
        if _excluded(source, exclude):
            continue
        if not os.path.isdir(source):
            total += os.path.getsize(source)
            continue
        for dirpath, dirnames, filenames in os.walk(source):
            dirnames[:] = [
                d for d in dirnames if not _excluded(os.path.join(dirpath, d), exclude)
            ]
            for filename in filenames:
                path = os.path.join(dirpath, filename)
                if _excluded(path, exclude) or os.path.islink(path):
                    continue
                total += os.path.getsize(path)
    return total


def check_free_space(target_dir: Path, required: int, min_free_bytes: int) -> None:
    """Raise if *target_dir*'s disk cannot take *required* bytes plus the reserve."""
    try:
        available = shutil.disk_usage(target_dir).free - min_free_bytes
    except OSError as exc:
        raise ProduceError(f"Cannot read free space of {target_dir}: {exc}") from exc
    if required > available:
        raise InsufficientSpaceError(
            f"Not enough disk space in {target_dir}: need {required:,} bytes, "
            f"{max(available, 0):,} available above the {min_free_bytes:,} byte reserve"
        )


def archive_files(
    project: ProjectConfig,
    project_root: Path,
    day: date,
    min_free_bytes: int = 0,
) -> Path:
    """Archive the project's sources into ``<root>/<name>_<date>.tar[.gz]``.

    The disk preflight ignores compression, so it may overestimate.
    """
    sources = [str(Path(s).expanduser()) for s in project.options.get("files", [])]
    exclude = list(project.options.get("exclude") or [])
    compress = project.options.get("compress", True)
    target = Path(project_root) / artifact_name_for(project, day)

    check_free_space(Path(project_root), required_space(sources, exclude), min_free_bytes)

    def _filter(info: tarfile.TarInfo) -> tarfile.TarInfo | None:
        return None if _excluded("/" + info.name, exclude) else info

    log.info("Archiving %d source(s) for %s to %s", len(sources), project.name, target)
    try:
        with tarfile.open(target, "w:gz" if compress else "w") as tar:
            for source in sources:
                tar.add(source, filter=_filter)
    except (OSError, tarfile.TarError) as exc:
        target.unlink(missing_ok=True)
        raise ProduceError(f"Archive of '{project.name}' failed: {exc}") from exc
    return target


def get_producer(kind: str, min_free_bytes: int = 0) -> Producer:
    """Map a project kind to its producer."""
    if kind == "database":
        return dump_database
    if kind == "files":
        return partial(archive_files, min_free_bytes=min_free_bytes)
    raise ValueError(f"Unknown project kind: {kind}")
