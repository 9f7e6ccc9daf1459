"""CLI entry point for tierstash."""

from __future__ import annotations

from datetime import date
from pathlib import Path

import click
from jinja2 import Environment, FileSystemLoader

from tierstash.errors import TierstashError

_TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

config_option = click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, resolve_path=True),
    default="tierstash.yaml",
    help="Config file (default: ./tierstash.yaml).",
)

date_option = click.option(
    "--date",
    "run_date",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="Pretend today is this date (YYYY-MM-DD).",
)


def render_config_template(folder: str, example: bool = True) -> str:
    """Render the starter config for ``tierstash init``."""
    env = Environment(
        loader=FileSystemLoader(str(_TEMPLATES_DIR)),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )
    from tierstash.config import DEFAULTS

    return env.get_template("config.yaml.j2").render(
        folder=folder,
        log_dir="logs",
        min_free_bytes=DEFAULTS["min_free_bytes"],
        example=example,
    )


def _load(config_path: str) -> dict:
    from tierstash.config import load_config

    try:
        return load_config(Path(config_path))
    except TierstashError as exc:
        raise click.ClickException(str(exc)) from exc


def _today(run_date: object) -> date:
    return run_date.date() if run_date else date.today()  # type: ignore[union-attr]


@click.group()
def cli() -> None:
    """tierstash: dated backups kept across daily, weekly and monthly horizons."""


@cli.command()
@config_option
@click.option(
    "--folder",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    required=True,
    help="Backup folder that will hold one directory per project.",
)
@click.option("--example/--no-example", default=True, help="Include disabled example projects.")
def init(config_path: str, folder: str, example: bool) -> None:
    """Write a starter config file."""
    path = Path(config_path)
    if path.exists():
        click.echo(f"Config already exists at {path}")
        raise SystemExit(1)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_config_template(folder, example=example))
    _load(config_path)
    click.echo(f"Created {path}")


@cli.command()
@config_option
def check(config_path: str) -> None:
    """Validate the config and list its projects."""
    from tierstash.config import iter_projects

    config = _load(config_path)
    projects = list(iter_projects(config))
    click.echo(f"Config OK: {len(projects)} project(s) in {config['folder']}")
    for project in projects:
        r = project.retention
        state = "" if project.enabled else " (disabled)"
        click.echo(
            f"  {project.kind:<8} {project.name}: "
            f"daily={r.daily} weekly={r.weekly} monthly={r.monthly}{state}"
        )


@cli.command()
@config_option
@date_option
def plan(config_path: str, run_date: object) -> None:
    """Show which horizons are due, without producing anything."""
    from tierstash.config import iter_projects, project_root
    from tierstash.producers import artifact_name_for
    from tierstash.retention import ensure_tree, evaluate_due

    config = _load(config_path)
    today = _today(run_date)
    failed = False
    for project in iter_projects(config):
        if not project.enabled:
            click.echo(f"{project.name}: disabled")
            continue
        root = project_root(config, project.name)
        filename = artifact_name_for(project, today)
        try:
            ensure_tree(root)
            due = evaluate_due(root, filename, project.retention, today)
        except TierstashError as exc:
            click.echo(f"{project.name}: error: {exc}")
            failed = True
            continue
        click.echo(f"{project.name}: {filename} -> {due}")
    if failed:
        raise SystemExit(1)


@cli.command()
@config_option
@date_option
@click.option("--project", default=None, help="Only run this project.")
def run(config_path: str, run_date: object, project: str | None) -> None:
    """Produce, place and rotate backups for every enabled project."""
    from tierstash.config import iter_projects, resolve_log_dir
    from tierstash.logs import setup_logging
    from tierstash.runner import run_all

    config = _load(config_path)
    today = _today(run_date)
    if project is not None and project not in {p.name for p in iter_projects(config)}:
        raise click.ClickException(f"Unknown project: {project}")
    try:
        setup_logging(resolve_log_dir(config), today)
    except TierstashError as exc:
        raise click.ClickException(str(exc)) from exc

    results = run_all(config, today, only=project)
    for result in results:
        if result.ok:
            click.echo(f"{result.name}: {result.state.value}")
        else:
            click.echo(f"{result.name}: FAILED at {result.state.value}: {result.error}")
    failures = [r for r in results if not r.ok]
    click.echo(f"Done: {len(results) - len(failures)} ok, {len(failures)} failed.")
    if failures:
        raise SystemExit(1)


@cli.command()
@config_option
def status(config_path: str) -> None:
    """Show entry counts per project and horizon."""
    from tierstash.config import iter_projects, project_root
    from tierstash.retention import CHAIN, horizon_dir, list_artifacts
    from tierstash.retention.naming import sort_by_date

    config = _load(config_path)
    for project in iter_projects(config):
        root = project_root(config, project.name)
        click.echo(f"{project.name}:")
        if not root.is_dir():
            click.echo("  (no backups yet)")
            continue
        for horizon in CHAIN:
            directory = horizon_dir(root, horizon)
            keep = project.retention.keep(horizon)
            if not directory.is_dir():
                click.echo(f"  {horizon.name:<8} missing (keep {keep})")
                continue
            try:
                names = sort_by_date(list_artifacts(directory))
            except TierstashError as exc:
                click.echo(f"  {horizon.name:<8} error: {exc}")
                continue
            click.echo(f"  {horizon.name:<8} {len(names)}/{keep}")
            for name in names:
                marker = " -> link" if (directory / name).is_symlink() else ""
                click.echo(f"    {name}{marker}")
