"""
CLI commands for artifact-sync.

Provides the `artifact-sync` command-line interface for project
initialization, one-off synchronization, audits and watch mode.
"""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional, Tuple

import click
from rich.console import Console
from rich.table import Table

from config.loader import ConfigurationLoader
from core.models.config import GlobalSettings, SyncConfig
from core.models.outcomes import BatchReport, SyncAction
from core.registry.paths import normalize_path
from core.sync.engine import SyncEngine
from core.sync.validator import RegistryConsistencyValidator
from core.sync.watcher import SourceTreeWatcher

console = Console()

ACTION_STYLES = {
    SyncAction.CREATED: "green",
    SyncAction.RELOCATED: "cyan",
    SyncAction.SKIPPED: "dim",
    SyncAction.WARNING: "yellow",
    SyncAction.ERROR: "red",
}


def configure_logging(settings: GlobalSettings, level: Optional[str] = None) -> None:
    """Configure root logging from global settings"""
    handlers = [logging.StreamHandler(sys.stderr)]
    log_file = settings.get_log_file()
    if log_file is not None:
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))

    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True
    )


def _load_config(ctx: click.Context) -> SyncConfig:
    loader: ConfigurationLoader = ctx.obj['loader']
    return loader.load_config(ctx.obj['root'])


def _project_path(config: SyncConfig, raw: str) -> str:
    """Root-relative form of a path argument; relative arguments are taken from the root"""
    path = Path(raw)
    if not path.is_absolute():
        path = config.root / path
    return normalize_path(path, root=config.root)


def _print_report(report: BatchReport, title: str) -> None:
    if not report.outcomes:
        console.print("[dim]Nothing to do[/dim]")
        return

    table = Table(title=title)
    table.add_column("Artifact", style="cyan", no_wrap=True)
    table.add_column("Action", style="white")
    table.add_column("Source", style="white")
    table.add_column("Details", style="dim")

    for outcome in report.outcomes:
        style = ACTION_STYLES[outcome.action]
        table.add_row(
            outcome.path,
            f"[{style}]{outcome.action.value}[/{style}]",
            outcome.source_path or "",
            outcome.detail
        )

    console.print(table)

    summary = ", ".join(
        f"{count} {action.value}" for action, count in report.counts().items() if count
    )
    console.print(f"[blue]{summary}[/blue]")


def _exit_for(report: BatchReport) -> None:
    if report.has_errors:
        sys.exit(1)


@click.group()
@click.version_option(version="1.0.0", prog_name="artifact-sync")
@click.option(
    '--root', '-r',
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=Path('.'),
    help='Project root (default: current directory)'
)
@click.option(
    '--log-level',
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'], case_sensitive=False),
    default=None,
    help='Override the configured log level'
)
@click.pass_context
def main(ctx: click.Context, root: Path, log_level: Optional[str]):
    """
    artifact-sync CLI.

    Keeps generated artifacts linked one-to-one with their source files.
    """
    settings = GlobalSettings()
    configure_logging(settings, log_level)

    ctx.ensure_object(dict)
    ctx.obj['root'] = root.resolve()
    ctx.obj['settings'] = settings
    ctx.obj['loader'] = ConfigurationLoader(settings)


@main.command()
@click.option('--force', '-f', is_flag=True, help='Overwrite existing configuration')
@click.pass_context
def init(ctx: click.Context, force: bool):
    """Write the default configuration for the project."""
    config = _load_config(ctx)

    if config.is_initialized and not force:
        console.print("[yellow]⚠️  Project already initialized. Use --force to overwrite.[/yellow]")
        return

    loader: ConfigurationLoader = ctx.obj['loader']
    if not loader.save_config(config):
        console.print("[red]❌ Failed to write configuration[/red]")
        sys.exit(1)

    console.print(f"[green]✅ Created {config.get_config_file()}[/green]")
    console.print(f"[blue]Sources: *{config.source_extension} deriving from {', '.join(config.base_classes)}[/blue]")
    console.print(f"[blue]Artifacts: *{config.artifact_extension}[/blue]")


@main.command()
@click.argument('paths', nargs=-1)
@click.option('--all', 'sync_all', is_flag=True, help='Synchronize every source under the root')
@click.option('--json', 'as_json', is_flag=True, help='Print the report as JSON')
@click.pass_context
def sync(ctx: click.Context, paths: Tuple[str, ...], sync_all: bool, as_json: bool):
    """Process created/imported sources."""
    config = _load_config(ctx)
    engine = SyncEngine.for_project(config)

    if sync_all:
        candidates = list(engine.resolver.discover(config.source_extension, config.ignored_directories))
    else:
        candidates = [_project_path(config, path) for path in paths]

    if not candidates:
        console.print("[yellow]No sources given. Pass paths or use --all.[/yellow]")
        return

    report = engine.sync_paths(candidates)

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
    else:
        _print_report(report, "Synchronization")
    _exit_for(report)


@main.command()
@click.argument('old_path')
@click.argument('new_path')
@click.pass_context
def move(ctx: click.Context, old_path: str, new_path: str):
    """Process a source that was moved from OLD_PATH to NEW_PATH."""
    config = _load_config(ctx)
    engine = SyncEngine.for_project(config)

    report = engine.process_move(
        _project_path(config, old_path),
        _project_path(config, new_path)
    )
    _print_report(report, "Move")
    _exit_for(report)


@main.command()
@click.argument('source')
@click.option('--name', help='Display name for the artifact identifier')
@click.pass_context
def create(ctx: click.Context, source: str, name: Optional[str]):
    """Create the artifact for a single SOURCE."""
    config = _load_config(ctx)
    engine = SyncEngine.for_project(config)

    report = engine.create_for_source(
        _project_path(config, source),
        display_name=name
    )
    if not report.outcomes:
        console.print(f"[yellow]Not a *{config.source_extension} source: {source}[/yellow]")
        return
    _print_report(report, "Create")
    _exit_for(report)


@main.command()
@click.option('--json', 'as_json', is_flag=True, help='Print the result as JSON')
@click.pass_context
def audit(ctx: click.Context, as_json: bool):
    """Check the registry for duplicate links and misplaced artifacts."""
    config = _load_config(ctx)
    engine = SyncEngine.for_project(config)
    resolver = engine.resolver

    validator = RegistryConsistencyValidator(
        registry=engine.registry,
        resolver=resolver,
        source_paths=resolver.discover(config.source_extension, config.ignored_directories),
        artifact_extension=config.artifact_extension
    )
    result = validator.validate()

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        table = Table(title="Registry Audit")
        table.add_column("Issue", style="cyan", no_wrap=True)
        table.add_column("Artifact", style="white")
        table.add_column("Severity", style="white")
        table.add_column("Details", style="dim")
        for issue in result.issues:
            table.add_row(issue.issue_type, issue.artifact_path, issue.severity, issue.description)

        if result.issues:
            console.print(table)
        for path in result.unreadable_artifacts:
            console.print(f"[yellow]⚠️  Unreadable artifact: {path}[/yellow]")
        for error in result.errors:
            console.print(f"[red]❌ {error}[/red]")

        console.print(
            f"[blue]{result.artifacts_checked} artifacts, {result.sources_scanned} sources, "
            f"{len(result.issues)} issues[/blue]"
        )

    if not result.is_healthy:
        sys.exit(1)


@main.command()
@click.pass_context
def watch(ctx: click.Context):
    """Watch the project and synchronize as files change."""
    config = _load_config(ctx)
    engine = SyncEngine.for_project(config)

    def on_report(report: BatchReport) -> None:
        if any(outcome.action != SyncAction.SKIPPED for outcome in report.outcomes):
            _print_report(report, "Batch")

    async def run() -> None:
        watcher = SourceTreeWatcher(
            root=config.root,
            engine=engine,
            debounce_ms=config.debounce_ms,
            ignored_directories=config.ignored_directories,
            report_callback=on_report
        )
        if not await watcher.start_monitoring():
            console.print("[red]❌ Failed to start watching[/red]")
            sys.exit(1)

        console.print(f"[blue]👀 Watching {config.root} (Ctrl+C to stop)[/blue]")
        try:
            while True:
                await asyncio.sleep(1.0)
        finally:
            await watcher.stop_monitoring()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        console.print("\n[blue]Stopped[/blue]")


if __name__ == "__main__":
    main()
