"""Command-line interface for the files uploader."""

import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import NoReturn, Tuple

import click
from rich import print as rprint
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .config.settings import CredentialsConfig, UploaderConfig
from .exceptions import ConfigurationError
from .models import CycleReport
from .sync.service import UploaderService
from .utils.file_utils import FileHelper
from .utils.logging import get_logger, setup_logging

console = Console()
logger = get_logger("cli")

DEFAULT_CONFIG = Path('config/config.yaml')
DEFAULT_CREDENTIALS = Path('config/credentials.yaml')

config_option = click.option(
    '--config', '-c',
    type=click.Path(dir_okay=False, path_type=Path),
    default=DEFAULT_CONFIG,
    help='Path to configuration file',
)
credentials_option = click.option(
    '--credentials',
    type=click.Path(dir_okay=False, path_type=Path),
    default=DEFAULT_CREDENTIALS,
    help='Path to credentials file',
)


@click.group()
@click.version_option(version=__version__)
def cli():
    """Files Uploader

    Periodically uploads everything in a staging folder to Azure Blob
    Storage, deleting each local file once it is safely stored, and keeps
    only the newest files of each remote folder.
    """
    pass


def _load_settings(config: Path, credentials: Path) -> Tuple[UploaderConfig, CredentialsConfig]:
    app_config = UploaderConfig.from_yaml(config)
    creds_config = CredentialsConfig.load(credentials)
    creds_config.validate_for_azure()
    return app_config, creds_config


def _configure_logging(app_config: UploaderConfig) -> None:
    log = app_config.logging
    setup_logging(
        log_level=log.level,
        log_file=log.file,
        log_to_console=log.console,
        max_file_size=log.max_file_size,
        backup_count=log.backup_count,
    )


def _fail_startup(message: str) -> NoReturn:
    """Report a fatal startup problem, flush logs and exit."""
    console.print(f"❌ Error: {escape(message)}", style="red bold")
    logger.critical(f"Files uploader failed to start: {message}")
    logging.shutdown()
    sys.exit(1)


@cli.command()
@config_option
@credentials_option
def run(config: Path, credentials: Path):
    """Run the periodic upload loop until interrupted."""
    try:
        app_config, creds_config = _load_settings(config, credentials)
    except ConfigurationError as e:
        _fail_startup(str(e))

    _configure_logging(app_config)
    logger.info("=" * 68)
    logger.info(f"Files uploader starts. Version: {__version__}")

    try:
        asyncio.run(_run_service(app_config, creds_config))
    except ConfigurationError as e:
        _fail_startup(str(e))
    except Exception as e:
        logger.exception("Files uploader terminated unexpectedly")
        _fail_startup(str(e))

    logger.info("=" * 68)
    logging.shutdown()


async def _run_service(app_config: UploaderConfig, creds_config: CredentialsConfig) -> None:
    stop_event = asyncio.Event()
    _install_signal_handlers(stop_event)

    service = UploaderService(app_config)
    service.initialize_auth(creds_config)
    async with service:
        await service.run(stop_event)


def _install_signal_handlers(stop_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()

    def _request_stop(signame: str) -> None:
        if not stop_event.is_set():
            logger.info(f"Received {signame}, stopping after the current operation")
            stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _request_stop, sig.name)
        except (NotImplementedError, RuntimeError):
            # Windows event loops do not support signal handlers; Ctrl+C still
            # raises KeyboardInterrupt which ends asyncio.run
            pass


@cli.command()
@config_option
@credentials_option
def scan(config: Path, credentials: Path):
    """Run a single upload-and-prune cycle."""
    try:
        app_config, creds_config = _load_settings(config, credentials)
    except ConfigurationError as e:
        _fail_startup(str(e))

    _configure_logging(app_config)
    report = asyncio.run(_run_once(app_config, creds_config))
    if report is not None:
        _display_cycle_report(report)
    has_errors = report is None or bool(report.errors) or (
        report.scan is not None and report.scan.enumeration_error is not None
    )
    sys.exit(1 if has_errors else 0)


async def _run_once(app_config: UploaderConfig, creds_config: CredentialsConfig):
    service = UploaderService(app_config)
    service.initialize_auth(creds_config)
    async with service:
        return await service.run_once()


def _display_cycle_report(report: CycleReport) -> None:
    """Display cycle results in a table."""
    scan_report = report.scan
    if scan_report is not None and scan_report.results:
        table = Table(title="Upload Results")
        table.add_column("File", style="cyan")
        table.add_column("Size", justify="right")
        table.add_column("Status", style="magenta")
        table.add_column("Error", style="red")

        for result in scan_report.results:
            if result.succeeded:
                status = "[green]uploaded[/green]"
            elif result.uploaded:
                status = "[yellow]uploaded, local copy kept[/yellow]"
            else:
                status = f"[red]{result.failure.value} failed[/red]"
            table.add_row(
                escape(result.relative_path),
                FileHelper.format_file_size(result.size),
                status,
                escape(result.error or ""),
            )
        console.print(table)

    summary = UploaderService.get_cycle_summary([report])
    rprint(f"\n📊 [bold]Cycle {report.number} summary:[/bold]")
    rprint(f"   • Files found: {summary['files_found']}")
    rprint(f"   • Files uploaded: [green]{summary['files_uploaded']}[/green]")
    rprint(f"   • Files failed: [red]{summary['files_failed']}[/red]")
    rprint(f"   • Data transferred: {FileHelper.format_file_size(summary['bytes_transferred'])}")
    if report.prune is not None and report.prune.enabled:
        rprint(f"   • Outdated files deleted: {summary['objects_pruned']}")
        if summary['prune_failures']:
            rprint(f"   • Delete failures: [red]{summary['prune_failures']}[/red]")
    rprint(f"   • Duration: {report.duration:.1f}s")

    problems = list(report.errors)
    if scan_report is not None and scan_report.enumeration_error:
        problems.append(scan_report.enumeration_error)
    if report.prune is not None and report.prune.listing_error:
        problems.append(report.prune.listing_error)
    if problems:
        rprint(f"\n⚠️ [yellow]{len(problems)} errors occurred:[/yellow]")
        for problem in problems:
            rprint(f"   • [red]{escape(problem)}[/red]")


@cli.command()
@config_option
@credentials_option
def test(config: Path, credentials: Path):
    """Test the connection to the configured storage account."""
    try:
        app_config, creds_config = _load_settings(config, credentials)
    except ConfigurationError as e:
        _fail_startup(str(e))

    console.print("🔍 Testing connections...\n")
    results = asyncio.run(_test_connections(app_config, creds_config))

    table = Table(title="Connection Test Results")
    table.add_column("Service", style="cyan")
    table.add_column("Status", style="magenta")
    for service_name, ok in results.items():
        status_text = "✅ Connected" if ok else "❌ Failed"
        status_style = "green" if ok else "red"
        table.add_row(service_name, f"[{status_style}]{status_text}[/{status_style}]")
    console.print(table)

    if results and all(results.values()):
        console.print("\n🎉 All connections successful!", style="green bold")
    else:
        console.print("\n⚠️ Some connections failed. Check your configuration.", style="yellow bold")
        sys.exit(1)


async def _test_connections(app_config: UploaderConfig, creds_config: CredentialsConfig):
    service = UploaderService(app_config)
    service.initialize_auth(creds_config)
    async with service:
        return await service.test_connections()


@cli.command()
@config_option
def status(config: Path):
    """Show the effective configuration."""
    try:
        app_config = UploaderConfig.from_yaml(config)
    except ConfigurationError as e:
        _fail_startup(str(e))

    table = Table(title="Files Uploader Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("Scan folder", app_config.scan_folder)
    table.add_row("Container", app_config.container)
    table.add_row("Scan interval", f"{app_config.scan_interval_minutes} min")
    if app_config.max_files_to_store is None:
        table.add_row("Retention", "[yellow]disabled[/yellow]")
    else:
        table.add_row("Retention", f"newest {app_config.max_files_to_store} per folder")
    table.add_row("Parallel uploads", str(app_config.parallel_uploads))
    table.add_row("Log file", str(app_config.logging.file or "-"))
    console.print(table)

    if app_config.max_files_to_store == 0:
        console.print("⚠️ max_files_to_store is 0: every object is deleted each cycle", style="yellow bold")


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

    console.print("🚀 Creating new configuration file...")

    sample_config = UploaderConfig.from_dict({
        'scan_interval_minutes': 5,
        'scan_folder': 'staging',
        'container': 'uploads',
        'max_files_to_store': 100,
        'parallel_uploads': 1,
    }, apply_env=False)
    sample_config.to_yaml(config)

    console.print(f"✅ Configuration saved to {config}", style="green")
    console.print("\n📝 Next steps:")
    console.print("1. Edit the configuration file to match your setup")
    console.print("2. Create credentials.yaml with azure_storage_connection_string")
    console.print("3. Run 'files-uploader test' to verify the connection")
    console.print("4. Run 'files-uploader run' to start uploading")


if __name__ == '__main__':
    cli()
