"""Command-line interface for the backup tool."""

import sys
from pathlib import Path
from typing import Optional, Tuple

import click
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from . import __version__
from .config.settings import BackupSettings, CredentialsConfig, StrategyName
from .destinations.classifier import parse_destinations
from .destinations.remote import build_uploader
from .engine.base import create_strategy
from .engine.coordinator import FanOutCoordinator, RunResult
from .engine.errors import ValidationError
from .utils.logging import setup_logging

console = Console()

DEFAULT_CONFIG = Path('config/config.yaml')
DEFAULT_CREDENTIALS = Path('config/credentials.yaml')


@click.group()
@click.version_option(version=__version__)
def cli():
    """Directory Backup Tool

    Copies or archives a directory to one or more local paths or cloud
    destinations (s3://, azure://) in parallel.
    """
    pass


def _load_settings(config: Optional[Path]) -> BackupSettings:
    if config is not None:
        return BackupSettings.from_yaml(config)
    if DEFAULT_CONFIG.exists():
        return BackupSettings.from_yaml(DEFAULT_CONFIG)
    return BackupSettings()


@cli.command()
@click.option('--source', '-s', required=True,
              help='Source directory to back up')
@click.option('--dest', '-d', 'dest', multiple=True, required=True,
              help='Destination directories or URLs (comma-separated, repeatable)')
@click.option('--strategy', '-t',
              type=click.Choice([s.value for s in StrategyName], case_sensitive=False),
              default=None,
              help='Backup strategy: copy, compress/archive (default: from config, else copy)')
@click.option('--config', '-c',
              type=click.Path(exists=True, dir_okay=False, path_type=Path),
              default=None,
              help='Path to configuration file')
@click.option('--credentials',
              type=click.Path(dir_okay=False, path_type=Path),
              default=DEFAULT_CREDENTIALS,
              help='Path to credentials file (cloud destinations)')
@click.option('--workers', '-w', type=click.IntRange(min=1), default=None,
              help='Maximum number of destinations backed up at once')
@click.option('--log-level',
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
              default=None,
              help='Console log level')
@click.option('--log-file', type=click.Path(dir_okay=False, path_type=Path), default=None,
              help='Log file path (default: from config)')
def backup(source: str, dest: Tuple[str, ...], strategy: Optional[str], config: Optional[Path],
           credentials: Path, workers: Optional[int], log_level: Optional[str],
           log_file: Optional[Path]):
    """Back up a directory to one or more destinations."""
    try:
        settings = _load_settings(config)
    except Exception as e:
        console.print(f"❌ Error loading configuration: {e}", style="red bold")
        sys.exit(1)

    log_options = settings.logging
    logger = setup_logging(
        log_level=log_level or log_options.level,
        log_file=log_file or log_options.file,
        log_to_console=log_options.console,
        max_file_size=log_options.max_file_size,
        backup_count=log_options.backup_count,
    )

    try:
        destinations = parse_destinations(dest)
    except ValueError as e:
        console.print(f"❌ Invalid destination: {e}", style="red bold")
        sys.exit(1)

    strategy_name = strategy or settings.strategy.value
    backup_strategy = create_strategy(strategy_name, settings=settings, logger=logger)

    uploader = None
    if any(destination.is_remote for destination in destinations):
        try:
            creds = CredentialsConfig.from_yaml(credentials).merged_with_env()
        except Exception as e:
            logger.error(f"Could not load credentials from {credentials}: {e}")
            console.print(f"❌ Error loading credentials: {e}", style="red bold")
            sys.exit(1)
        uploader = build_uploader(creds)

    coordinator = FanOutCoordinator(
        max_workers=workers or settings.max_workers,
        uploader=uploader,
        logger=logger,
    )

    try:
        result = coordinator.run(source, destinations, backup_strategy)
    except ValidationError as e:
        logger.error(f"Invalid input: {e}")
        console.print(f"❌ {e}", style="red bold")
        sys.exit(1)

    _display_results(result)

    if not result.succeeded:
        first = result.first_failure
        console.print(f"❌ Backup failed: {first.destination}: {first.error}", style="red bold")
        sys.exit(1)

    console.print("✅ Backup completed successfully.", style="green bold")


def _display_results(result: RunResult):
    """Display per-destination outcomes in a table."""
    table = Table(title="Backup Results")
    table.add_column("Destination", style="cyan")
    table.add_column("Type")
    table.add_column("Status", style="magenta")
    table.add_column("Duration", justify="right")
    table.add_column("Error", style="red")

    for outcome in result.outcomes:
        status_style = "green" if outcome.succeeded else "red"
        destination = outcome.destination
        table.add_row(
            destination.target,
            destination.platform.value,
            f"[{status_style}]{outcome.status}[/{status_style}]",
            f"{outcome.duration:.1f}s",
            "" if outcome.succeeded else str(outcome.error),
        )

    console.print(table)
    rprint(f"\n📊 [bold]Summary:[/bold] {len(result.outcomes) - len(result.failures)} succeeded, "
           f"[red]{len(result.failures)}[/red] failed")


@cli.command()
@click.option('--config', '-c',
              type=click.Path(dir_okay=False, path_type=Path),
              default=DEFAULT_CONFIG,
              help='Path to save configuration file')
def init(config: Path):
    """Initialize a new configuration file."""
    if config.exists():
        if not click.confirm(f"Configuration file {config} already exists. Overwrite?"):
            return

    BackupSettings().to_yaml(config)

    console.print(f"✅ Configuration saved to {config}", style="green")
    console.print("\n📝 Next steps:")
    console.print("1. Edit the configuration file to match your setup")
    console.print("2. Create credentials.yaml if you back up to s3:// or azure://")
    console.print("3. Run 'backup-tool backup --source <dir> --dest <dest>'")


@cli.command()
@click.option('--config', '-c',
              type=click.Path(exists=True, dir_okay=False, path_type=Path),
              default=None,
              help='Path to configuration file')
@click.option('--dest', '-d', 'dest', multiple=True,
              help='Destinations to classify (comma-separated, repeatable)')
def status(config: Optional[Path], dest: Tuple[str, ...]):
    """Show the effective configuration and how destinations are classified."""
    try:
        settings = _load_settings(config)
        destinations = parse_destinations(dest)
    except Exception as e:
        console.print(f"❌ Error: {e}", style="red bold")
        sys.exit(1)

    console.print("⚙️ [bold]Configuration:[/bold]")
    rprint(f"   • Strategy: {settings.strategy.value}")
    rprint(f"   • Workers: {settings.max_workers or 'one per destination'}")
    rprint(f"   • Compression level: {settings.archive.compression_level}")
    rprint(f"   • Archive time format: {settings.archive.time_format}")
    rprint(f"   • Log file: {settings.logging.file or 'disabled'}")

    if destinations:
        table = Table(title="Destinations")
        table.add_column("Target", style="cyan")
        table.add_column("Kind", style="magenta")
        table.add_column("Platform")
        for destination in destinations:
            table.add_row(destination.target, destination.kind.value, destination.platform.value)
        console.print(table)


if __name__ == '__main__':
    cli()
