"""tether command-line interface."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Any, NoReturn

import typer

from . import __version__
from .config import Config, ConfigError, load_config
from .loaders import FileSystemLoader
from .logging import configure_logging
from .manager import ModuleManager
from .resolver import Resolver
from .scheduler import TaskFailure
from .types import ModuleRecord, ModuleStatus

app = typer.Typer(help="Dependency-aware module loader.")
LOGGER = logging.getLogger(__name__)


@dataclass
class CLIState:
    """Stores shared CLI options."""

    config_path: Path | None
    log_level: str | None = None


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"tether {__version__}")
        raise typer.Exit()


@app.callback()
def _tether(
    ctx: typer.Context,
    config: Annotated[
        Path | None,
        typer.Option(
            "-c",
            "--config",
            help="Path to tether config (env TETHER_CONFIG or ~/.config/tether/config.yaml).",
        ),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            help="Override the configured log level (debug, info, warning, error).",
        ),
    ] = None,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show the version and exit.",
        ),
    ] = False,
) -> None:
    """Capture global CLI options."""

    resolved = config.expanduser() if config else None
    ctx.obj = CLIState(config_path=resolved, log_level=log_level)


@app.command()
def resolve(
    ctx: typer.Context,
    identifiers: Annotated[list[str], typer.Argument(help="Identifiers to resolve.")],
    referrer: Annotated[
        str | None,
        typer.Option(
            "--from",
            help="Canonical identifier of the referring module, for relative identifiers.",
        ),
    ] = None,
) -> None:
    """Print the canonical form of each identifier."""

    state = _state(ctx)
    config = _load_environment(state)
    resolver = Resolver(
        base=config.base,
        alias=config.alias,
        default_extension=config.default_extension,
    )
    for identifier in identifiers:
        canonical = resolver.resolve_one(referrer, identifier)
        typer.echo(f"{identifier} -> {canonical}{resolver.params_for(canonical)}")


@app.command()
def run(
    ctx: typer.Context,
    entries: Annotated[list[str], typer.Argument(help="Entry module identifiers.")],
    root: Annotated[
        Path | None,
        typer.Option(
            "--root",
            help="Directory relative identifiers are read from (defaults to the working directory).",
        ),
    ] = None,
    max_ticks: Annotated[
        int | None,
        typer.Option(
            "--max-ticks",
            min=1,
            help="Stop draining the scheduler after this many ticks.",
        ),
    ] = None,
    show_modules: Annotated[
        bool,
        typer.Option(
            "--show-modules",
            help="List every registered module with its status.",
        ),
    ] = False,
) -> None:
    """Load entry modules from disk, initialize them and print their exports."""

    state = _state(ctx)
    config = _load_environment(state)
    manager = ModuleManager.from_config(config)
    manager.attach_loader(FileSystemLoader(manager, root=root))
    LOGGER.debug("Running entries %s (base=%r)", ", ".join(entries), config.base)

    try:
        entry = manager.use(entries, lambda *exports: exports)
    except Exception as exc:
        typer.secho(f"Entry failed: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1) from exc

    failures = manager.run(max_ticks)

    if entry.status is ModuleStatus.INITIALIZED:
        for identifier, exports in zip(entries, entry.exports):
            typer.echo(f"{identifier}: {exports!r}")

    if show_modules:
        _print_modules(manager.modules())

    ok = _report(manager, entry, failures)
    if not ok:
        raise typer.Exit(1)


def _report(manager: ModuleManager, entry: ModuleRecord, failures: Sequence[TaskFailure]) -> bool:
    modules = manager.modules()
    ready = sum(1 for record in modules if record.status is ModuleStatus.INITIALIZED)
    typer.echo(f"Modules: {len(modules)} defined, {ready} initialized")

    ok = entry.status is ModuleStatus.INITIALIZED and not failures
    for failure in failures:
        typer.secho(f"Failed: {failure.error}", fg=typer.colors.RED, err=True)
    for record in manager.broken():
        ok = False
        typer.secho(f"Broken: {record.label}", fg=typer.colors.RED, err=True)
    for record in manager.stalled():
        ok = False
        blocked = ", ".join(_unready(manager, record)) or "nothing"
        typer.secho(f"Stalled: {record.label} (waiting on {blocked})", fg=typer.colors.YELLOW, err=True)
    for cycle in manager.cycles():
        typer.secho(
            f"Cycle: {' -> '.join([*cycle, cycle[0]])}",
            fg=typer.colors.YELLOW,
            err=True,
        )
    for identifier in manager.registry.loading():
        typer.secho(f"Never defined: {identifier}", fg=typer.colors.YELLOW, err=True)
    return ok


def _print_modules(modules: Sequence[ModuleRecord]) -> None:
    typer.echo("Registered modules:")
    for record in modules:
        typer.echo(f"  {record.status.name.lower():<12} {record.label}")


def _unready(manager: ModuleManager, record: ModuleRecord) -> list[str]:
    unready: list[str] = []
    for identifier in record.dependencies:
        dependency = manager.get(identifier)
        if dependency is None or not dependency.is_ready:
            unready.append(identifier)
    return unready


def _state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise RuntimeError("CLI state missing from context.")
    return state


def _load_environment(state: CLIState) -> Config:
    config = _load_config(state.config_path)
    try:
        configure_logging(config.logging, state.log_level)
    except ConfigError as exc:
        _config_failure(exc)
    return config


def _load_config(path: Path | None) -> Config:
    try:
        return load_config(path)
    except ConfigError as exc:
        _config_failure(exc)


def _config_failure(exc: ConfigError) -> NoReturn:
    typer.secho(f"Configuration error: {exc}", fg=typer.colors.RED, err=True)
    raise typer.Exit(2) from exc


def main(argv: Sequence[str] | None = None) -> Any:
    return app(args=list(argv) if argv is not None else None, prog_name="tether")


__all__ = ["app", "main"]
