# cli.py
from __future__ import annotations

import logging
import os
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import click

from .config import CONFIG_ENV, ProjectConfig, discover_config
from .errors import SteplineError
from .git_facts.git import find_repo_root
from .model import DEFAULT_ACTIONS_FILE, ActionCollection, load_actions
from .plan import ExecutionPlanner
from .release import WORKFLOWS, init_project, next_release, release, workflow_from_config
from .runner import Executor
from .ui.console import Console, get_console, set_console
from .version import Version, get_version, set_version, strategies_from_config

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


def discover_actions(config_arg: str | None) -> Path:
    """
    Find the action collection file from argument or default.

    Raises:
        SystemExit: If no collection file can be found
    """
    console = get_console()

    path = Path(config_arg) if config_arg else Path(DEFAULT_ACTIONS_FILE)
    if not path.exists():
        if config_arg:
            console.print_error(
                "Action file not found",
                f"Could not find action file: {config_arg}",
                suggestion="Specify a different path:\n  stepline action NAME --config my_actions.json",
            )
        else:
            console.print_error(
                "No action file found",
                f"Could not find {DEFAULT_ACTIONS_FILE} in {Path('.').resolve()}",
                suggestion=f"Create {DEFAULT_ACTIONS_FILE} or specify one explicitly:\n  stepline action NAME --config my_actions.json",
            )
        sys.exit(1)
    return path


@contextmanager
def handle_errors() -> Iterator[None]:
    """Report stepline errors through the console and exit non-zero."""
    console = get_console()
    try:
        yield
    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    except (SteplineError, FileNotFoundError) as e:
        console.print_exception(e)
        sys.exit(1)


def _chdir_repo_root() -> Optional[Path]:
    root = find_repo_root()
    if root is not None:
        os.chdir(root)
    return root


def _project(ctx: click.Context) -> tuple[Path, ProjectConfig]:
    """Move to the repository root and load the project config found there."""
    root = _chdir_repo_root() or Path(".").resolve()
    path = discover_config(ctx.obj.get("project_config"), root)
    get_console().print_debug(f"Project config: {path}")
    return root, ProjectConfig.load(path)


def _parse_version(text: str) -> Version:
    return Version.parse(text[1:] if text.startswith("v") else text)


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and detailed output)",
)
@click.option(
    "--project-config",
    envvar=CONFIG_ENV,
    default=None,
    help="Project config file (defaults to stepline.json at the repository root)",
)
@click.pass_context
def cli(ctx, debug, project_config):
    """stepline: action runner and release helper."""
    console = Console(debug=debug)
    set_console(console)
    logging.basicConfig(level=logging.DEBUG if debug else logging.WARNING, format=LOG_FORMAT)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    ctx.obj["project_config"] = project_config


# ----------------------------------------------------------------------
# Actions
# ----------------------------------------------------------------------

@cli.command()
@click.argument("name")
@click.option("-c", "--config", "config_arg", default=None, help=f"Action file (defaults to {DEFAULT_ACTIONS_FILE})")
@click.option("--linear/--concurrent", default=False, show_default=True, help="Run steps one by one instead of in parallel fronts")
@click.option("--workers", default=None, type=int, help="Number of parallel workers per front")
@click.pass_context
def action(ctx, name, config_arg, linear, workers):
    """Execute an action and everything it depends on."""
    console = get_console()
    path = discover_actions(config_arg)

    with handle_errors():
        collection = load_actions(path)
        executor = Executor(collection, max_workers=workers, console=console)

        plan, _ = executor.prepare(name)
        console.print_run_started(
            action=name,
            config=path.name,
            step_count=len(plan),
            mode="linear" if linear else "concurrent",
        )

        result = executor.execute(name, linear=linear)
        console.print_results(result)

        if not result.ok:
            sys.exit(1)


@cli.command()
@click.option("-c", "--config", "config_arg", default=None, help=f"Action file (defaults to {DEFAULT_ACTIONS_FILE})")
@click.pass_context
def actions(ctx, config_arg):
    """List actions and their steps in execution order."""
    console = get_console()
    path = discover_actions(config_arg)

    with handle_errors():
        collection: ActionCollection = load_actions(path)
        failed = False
        for name in collection.names():
            try:
                plan = ExecutionPlanner(collection).plan(name)
            except SteplineError as e:
                console.print_info(f"{name}: {e}")
                failed = True
                continue
            console.print_plan(name, [str(r) for r in plan])

        if failed:
            sys.exit(1)


# ----------------------------------------------------------------------
# Project / release
# ----------------------------------------------------------------------

@cli.command()
@click.option("-d", "--directory", default=".", show_default=True, help="Directory to initialize")
@click.option(
    "--workflow",
    "workflow_type",
    type=click.Choice(sorted(WORKFLOWS)),
    default="multi_branch",
    show_default=True,
    help="Release workflow",
)
@click.pass_context
def init(ctx, directory, workflow_type):
    """Initialize an empty directory as a releasable repository."""
    console = get_console()
    with handle_errors():
        branch = init_project(directory, workflow_type)
        console.print_info(f"Initialized {Path(directory).resolve()} on branch {branch}")


class ReleaseGroup(click.Group):
    """Routes ``release VERSION`` to the hidden ``version`` subcommand."""

    def parse_args(self, ctx, args):
        if args and not args[0].startswith("-") and args[0] not in self.commands:
            args = ["version", *args]
        return super().parse_args(ctx, args)


@cli.group("release", cls=ReleaseGroup)
def release_cmd():
    """Release a version, or prepare the next release branch."""


@release_cmd.command("version", hidden=True)
@click.argument("version")
@click.pass_context
def release_version(ctx, version):
    """Release VERSION with the configured workflow."""
    console = get_console()
    with handle_errors():
        root, config = _project(ctx)
        workflow = workflow_from_config(config.get("release.workflow"), where=str(config.path))
        strategies = strategies_from_config(config, root)

        tag = release(root, _parse_version(version), workflow, strategies)
        console.print_info(f"Released {version} as {tag}")


@release_cmd.command("next")
@click.argument("kind", required=False, type=click.Choice(["major", "minor"]))
@click.option("-v", "--version", "current", default=None, help="Current version (defaults to the project version)")
@click.pass_context
def release_next(ctx, kind, current):
    """Create the release branch for the next major or minor version."""
    console = get_console()
    if kind is None:
        kind = click.prompt("Release type", type=click.Choice(["major", "minor"]), default="minor")

    with handle_errors():
        root, config = _project(ctx)
        workflow = workflow_from_config(config.get("release.workflow"), where=str(config.path))
        strategies = strategies_from_config(config, root)

        base = _parse_version(current) if current else get_version(strategies)
        nv = next_release(root, base, kind, workflow, strategies)
        console.print_info(f"Next version: {nv} on {workflow.branch(nv)}")


# ----------------------------------------------------------------------
# Version
# ----------------------------------------------------------------------

@cli.group()
def version():
    """Read or write the project version."""


@version.command("get")
@click.pass_context
def version_get(ctx):
    """Print the project version."""
    console = get_console()
    with handle_errors():
        root, config = _project(ctx)
        strategies = strategies_from_config(config, root)
        if console.debug:
            console.print_versions({
                f"{s.name}[{i}]": str(v) for s in strategies for i, v in enumerate(s.get())
            })
        console.print_info(str(get_version(strategies)))


@version.command("set")
@click.argument("value")
@click.pass_context
def version_set(ctx, value):
    """Write VALUE through every version strategy."""
    console = get_console()
    with handle_errors():
        root, config = _project(ctx)
        strategies = strategies_from_config(config, root)
        v = _parse_version(value)
        set_version(strategies, v)
        console.print_info(f"Version set to {v}")


if __name__ == "__main__":
    cli()
