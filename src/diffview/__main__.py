"""CLI entry point for diffview."""

from __future__ import annotations

import asyncio
import difflib
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

import click

from diffview import __version__
from diffview.adapters.local import LoggingNotifier
from diffview.cli.session import open_session
from diffview.core.config import DiffViewConfig
from diffview.core.errors import DiffViewError
from diffview.core.models.entities import DiffEntityOptions
from diffview.core.models.enums import CommitMode, ViewMode
from diffview.core.paths import get_debug_log_path
from diffview.debug_log import setup_debug_logging

if TYPE_CHECKING:
    from collections.abc import Coroutine, Sequence

    from diffview.core.models.entities import ViewState

_SEVERITY_COLORS = {"success": "green", "error": "red", "info": "cyan"}


class _EchoNotifier(LoggingNotifier):
    """Echoes notifications to the terminal and remembers whether any failed."""

    def __init__(self) -> None:
        super().__init__(sink=self._echo)
        self.failed = False

    def _echo(self, level: str, message: str, detail: str | None) -> None:
        if level == "error":
            self.failed = True
        click.secho(message, fg=_SEVERITY_COLORS.get(level), err=level == "error")
        if detail:
            click.echo(f"  {detail}", err=level == "error")


def _load_config(config_path: Path | None) -> DiffViewConfig:
    try:
        return DiffViewConfig.load(config_path)
    except (OSError, ValueError) as exc:
        raise click.ClickException(f"Could not load configuration: {exc}") from exc


def _roots(paths: Sequence[Path]) -> list[Path]:
    return list(paths) or [Path.cwd()]


def _relative(path: str) -> str:
    try:
        return str(Path(path).relative_to(Path.cwd()))
    except ValueError:
        return path


@click.group(invoke_without_command=True)
@click.option("--version", is_flag=True, help="Show version and exit")
@click.option("--debug", is_flag=True, help="Log debug output and export it on exit")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path to config.toml",
)
@click.pass_context
def cli(ctx: click.Context, version: bool, debug: bool, config_path: Path | None) -> None:
    """Inspect and commit working-copy changes across git repositories."""
    if version:
        click.echo(f"diffview {__version__}")
        ctx.exit(0)

    if debug:
        debug_buffer = setup_debug_logging(logging.DEBUG)
        ctx.call_on_close(lambda: debug_buffer.export(get_debug_log_path()))
    else:
        logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

    ctx.obj = _load_config(config_path)

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
@click.argument("roots", nargs=-1, type=click.Path(exists=True, path_type=Path))
@click.pass_obj
def status(config: DiffViewConfig, roots: tuple[Path, ...]) -> None:
    """Show dirty files of every repository under ROOTS."""
    notifier = _EchoNotifier()

    async def _run() -> None:
        async with open_session(_roots(roots), config, notifier) as session:
            view_model = session.view_model
            state = view_model.get_state()
            for stack in view_model.registry.stacks:
                repository = stack.get_repository()
                marker = "*" if stack is view_model.registry.active_stack else " "
                click.secho(f"{marker} {repository.get_project_directory()}", bold=True)
            if not state.dirty_file_changes:
                click.echo("No uncommitted changes.")
            for path, change in sorted(state.dirty_file_changes.items()):
                click.echo(f"  {change.value} {_relative(path)}")
            head = await view_model.modes.get_active_head_commit_message()
            if head:
                click.echo()
                click.echo(f"HEAD: {head.splitlines()[0]}")

    _run_async(_run())
    if notifier.failed:
        sys.exit(1)


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=True, path_type=Path))
@click.option(
    "--mode",
    type=click.Choice([mode.value for mode in ViewMode]),
    default=ViewMode.BROWSE.value,
    show_default=True,
    help="What to compare the file against",
)
@click.pass_obj
def diff(config: DiffViewConfig, file: Path, mode: str) -> None:
    """Print the diff of FILE (or the first dirty file in a directory)."""
    notifier = _EchoNotifier()
    resolved = file.resolve()

    async def _run() -> None:
        async with open_session([resolved.parent], config, notifier) as session:
            view_model = session.view_model
            view_mode = ViewMode(mode)
            entity = "directory" if resolved.is_dir() else "file"
            view_model.diff_entity(
                DiffEntityOptions(
                    **{entity: str(resolved)},
                    view_mode=view_mode,
                    commit_mode=CommitMode.COMMIT if view_mode == ViewMode.COMMIT else None,
                )
            )
            await session.settle()
            _print_diff(view_model.get_state())

    _run_async(_run())
    if notifier.failed:
        sys.exit(1)


def _print_diff(state: ViewState) -> None:
    if not state.file_path:
        click.echo("Nothing to diff.")
        return
    lines = difflib.unified_diff(
        state.old_contents.splitlines(keepends=True),
        state.new_contents.splitlines(keepends=True),
        fromfile=state.from_revision_title,
        tofile=state.to_revision_title,
    )
    for line in lines:
        color = None
        if line.startswith("+") and not line.startswith("+++"):
            color = "green"
        elif line.startswith("-") and not line.startswith("---"):
            color = "red"
        elif line.startswith("@@"):
            color = "cyan"
        click.secho(line.rstrip("\n"), fg=color)


@cli.command()
@click.option("--message", "-m", required=True, help="Commit message")
@click.option("--amend", is_flag=True, help="Amend the head commit instead")
@click.argument("root", required=False, type=click.Path(exists=True, path_type=Path))
@click.pass_obj
def commit(config: DiffViewConfig, message: str, amend: bool, root: Path | None) -> None:
    """Commit (or amend) every tracked change in ROOT's repository."""
    notifier = _EchoNotifier()

    async def _run() -> None:
        async with open_session(_roots([root] if root else []), config, notifier) as session:
            view_model = session.view_model
            view_model.set_view_mode(ViewMode.COMMIT, load_mode_state=False)
            view_model.set_commit_mode(
                CommitMode.AMEND if amend else CommitMode.COMMIT, load_mode_state=False
            )
            await view_model.commit(message)
            await session.settle()

    _run_async(_run())
    if notifier.failed:
        sys.exit(1)


def _run_async(coro: Coroutine[Any, Any, None]) -> None:
    try:
        asyncio.run(coro)
    except DiffViewError as exc:
        raise click.ClickException(str(exc)) from exc


if __name__ == "__main__":
    cli()
