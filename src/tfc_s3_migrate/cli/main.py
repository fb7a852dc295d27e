"""Main CLI entry point for the Terraform Cloud to S3 migrator."""

import sys
import asyncio
from typing import List, Optional
from pathlib import Path

import click
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    Progress,
    SpinnerColumn,
    TextColumn,
    BarColumn,
    TaskProgressColumn,
)
from rich.table import Table

from .. import __version__
from ..config.config import Config, LoggingConfig
from ..utils.logging import setup_logging
from ..migration.engine import MigrationEngine
from ..migration.exceptions import MigrationIncompleteError
from ..migration.planner import MigrationPlan
from ..migration.stats import MigrationStats
from ..migration.strategy import MigrationOptions

console = Console()

DEFAULT_CONFIG_PATHS = [
    Path('config.yaml'),
    Path('config.yml'),
    Path('config') / 'config.yaml',
    Path.home() / '.terraform-migrator' / 'config.yaml',
]


@click.group()
@click.version_option(version=__version__, prog_name='tfc-s3-migrate')
@click.option(
    '--config',
    '-c',
    type=click.Path(exists=True),
    help='Path to configuration file',
)
@click.option(
    '--verbose',
    '-v',
    is_flag=True,
    help='Enable verbose logging',
)
@click.pass_context
def cli(ctx: click.Context, config: Optional[str], verbose: bool) -> None:
    """Terraform Cloud to S3 Migrator - Copy workspace states into an S3 bucket."""
    ctx.ensure_object(dict)

    if config:
        ctx.obj['config_path'] = config
    ctx.obj['verbose'] = verbose

    setup_logging('DEBUG' if verbose else 'INFO')


@cli.command()
@click.option(
    '--output',
    '-o',
    default='config.yaml',
    help='Output configuration file path',
)
@click.pass_context
def init(ctx: click.Context, output: str) -> None:
    """Initialize a new configuration file."""
    console.print(
        Panel.fit(
            '[bold green]Terraform Cloud to S3 Migrator[/bold green]\n'
            'Initializing configuration...',
            border_style='green',
        )
    )

    try:
        Config.create_template(output)

        console.print(f'[green]✓[/green] Configuration template created at: {output}')
        console.print(
            f'[yellow]Please edit {output} with your Terraform Cloud and S3 details[/yellow]'
        )

    except Exception as e:
        console.print(f'[red]✗[/red] Failed to create configuration: {e}')
        sys.exit(1)


@cli.command(name='list')
@click.pass_context
def list_workspaces(ctx: click.Context) -> None:
    """List every workspace of the organization and whether it has state."""
    try:
        config = _load_config(ctx)
        _setup_logging_with_config(ctx, config)

        with MigrationEngine(config) as engine:
            workspaces = engine.list_workspaces()

        table = Table(
            title=f"Workspaces in organization '{config.terraform_cloud.organization}'"
        )
        table.add_column('#', style='dim')
        table.add_column('State')
        table.add_column('Name', style='cyan')
        table.add_column('ID', style='blue')
        table.add_column('State Version', style='green')
        table.add_column('Description')

        for index, workspace in enumerate(workspaces, start=1):
            table.add_row(
                str(index),
                '✅ WITH STATE' if workspace.has_state else '❌ NO STATE',
                workspace.name,
                workspace.id,
                workspace.current_state_version or '-',
                workspace.description or '',
            )

        console.print(table)

        with_state = sum(1 for workspace in workspaces if workspace.has_state)
        console.print('\n[bold]Summary:[/bold]')
        console.print(f'  • Total workspaces: {len(workspaces)}')
        console.print(f'  • With state (migratable): {with_state}')
        console.print(f'  • Without state (ignored): {len(workspaces) - with_state}')

        if with_state:
            console.print('\n[yellow]To migrate every workspace with state:[/yellow]')
            console.print('  tfc-s3-migrate migrate')
            console.print('[yellow]To migrate specific workspaces:[/yellow]')
            console.print('  tfc-s3-migrate migrate --projects "workspace1,workspace2"')
            console.print('[yellow]To simulate the migration first:[/yellow]')
            console.print('  tfc-s3-migrate migrate --dry-run')

    except Exception as e:
        console.print(f'[red]✗[/red] Failed to list workspaces: {e}')
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(1)


@cli.command()
@click.option(
    '--dry-run',
    is_flag=True,
    help='Perform a dry run without making changes',
)
@click.option(
    '--batch-size',
    type=int,
    default=0,
    help='Number of workspaces processed per batch',
)
@click.option(
    '--projects',
    default='',
    help='Comma-separated workspace names to migrate (default: all)',
)
@click.option(
    '--log-level',
    default=None,
    help='Log level (debug, info, warn, error)',
)
@click.pass_context
def migrate(
    ctx: click.Context,
    dry_run: bool,
    batch_size: int,
    projects: str,
    log_level: Optional[str],
) -> None:
    """Migrate workspace states from Terraform Cloud to S3.

    Workspaces without state are ignored and workspaces already present in
    the bucket are skipped.
    """
    console.print(
        Panel.fit(
            '[bold blue]Terraform Cloud to S3 Migrator[/bold blue]\n'
            'Starting migration process...',
            border_style='blue',
        )
    )

    if dry_run:
        console.print(
            '[yellow]Running in dry-run mode - no changes will be made[/yellow]'
        )

    try:
        config = _load_config(ctx)

        if batch_size > 0:
            config.migration.batch_size = batch_size
        if log_level:
            config.logging = LoggingConfig(
                level=log_level,
                file=config.logging.file,
                format=config.logging.format,
            )

        _setup_logging_with_config(ctx, config)

        project_list = _parse_projects(projects)
        if project_list:
            logger.info(f'Selected workspaces: {", ".join(project_list)}')

        options = MigrationOptions(dry_run=dry_run, projects=project_list)

        logger.info(
            f'Batch size {config.migration.batch_size}, '
            f'{config.migration.concurrent_uploads} concurrent uploads, '
            f'bucket {config.aws.bucket}, '
            f'organization {config.terraform_cloud.organization}'
        )

        asyncio.run(_run_migration(config, options))

    except MigrationIncompleteError as e:
        console.print(
            f'[red]✗[/red] Migration finished with {e.stats.failed} failed workspaces'
        )
        sys.exit(1)
    except Exception as e:
        console.print(f'[red]✗[/red] Migration failed: {e}')
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(1)


@cli.command()
@click.pass_context
def validate(ctx: click.Context) -> None:
    """Validate connectivity to Terraform Cloud and S3."""
    console.print(
        Panel.fit(
            '[bold cyan]Terraform Cloud to S3 Migrator[/bold cyan]\n'
            'Validating connections...',
            border_style='cyan',
        )
    )

    try:
        config = _load_config(ctx)
        _setup_logging_with_config(ctx, config)

        with MigrationEngine(config) as engine:
            engine.validate_connections()

        console.print('[green]✓[/green] Connectivity validation passed')
        console.print('[green]✓[/green] Configuration validation completed')

    except Exception as e:
        console.print(f'[red]✗[/red] Validation failed: {e}')
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(1)


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show the effective migration configuration."""
    console.print(
        Panel.fit(
            '[bold magenta]Terraform Cloud to S3 Migrator[/bold magenta]\n'
            'Migration Status',
            border_style='magenta',
        )
    )

    try:
        config = _load_config(ctx)
        _setup_logging_with_config(ctx, config)

        table = Table(title='Migration Configuration')
        table.add_column('Setting', style='cyan')
        table.add_column('Value', style='green')

        table.add_row('Terraform Cloud URL', config.terraform_cloud.url)
        table.add_row('Organization', config.terraform_cloud.organization)
        table.add_row('S3 Bucket', config.aws.bucket)
        table.add_row('S3 Prefix', config.aws.prefix or '-')
        table.add_row('AWS Region', config.aws.region)
        table.add_row('Batch Size', str(config.migration.batch_size))
        table.add_row('Concurrent Uploads', str(config.migration.concurrent_uploads))
        table.add_row('Retry Attempts', str(config.migration.retry_attempts))

        console.print(table)

    except Exception as e:
        console.print(f'[red]✗[/red] Failed to load status: {e}')
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(1)


def _parse_projects(projects: str) -> List[str]:
    """Split the ``--projects`` value into trimmed workspace names."""
    return [name.strip() for name in projects.split(',') if name.strip()]


def _load_config(ctx: click.Context) -> Config:
    """Load configuration from file or environment."""
    config_path = ctx.obj.get('config_path')

    if config_path:
        if not Path(config_path).exists():
            raise FileNotFoundError(f'Configuration file not found: {config_path}')
        return Config.from_file(config_path)

    for path in DEFAULT_CONFIG_PATHS:
        if path.exists():
            return Config.from_file(str(path))

    try:
        return Config.from_env()
    except Exception:
        raise FileNotFoundError(
            'No configuration found. Use --config to specify a file or run '
            '"tfc-s3-migrate init" to create one.'
        )


def _setup_logging_with_config(ctx: click.Context, config: Config) -> None:
    """Setup logging with configuration from config file."""
    verbose = ctx.obj.get('verbose', False)

    log_level = 'DEBUG' if verbose else config.logging.level
    setup_logging(
        level=log_level, log_file=config.logging.file, log_format=config.logging.format
    )


async def _run_migration(config: Config, options: MigrationOptions) -> MigrationStats:
    """Run the migration with a progress bar and print the summary."""
    label = 'Dry run' if options.dry_run else 'Migration'

    with Progress(
        SpinnerColumn(),
        TextColumn('[progress.description]{task.description}'),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
    ) as progress:
        task = progress.add_task(f'[blue]{label} planning...', total=None)

        def update_progress(
            batch_number: int, total_batches: int, processed: int, total: int
        ) -> None:
            progress.update(
                task,
                completed=processed,
                total=total,
                description=f'[blue]{label} batch {batch_number}/{total_batches}',
            )

        engine = MigrationEngine(config, progress_callback=update_progress)
        try:
            stats = await engine.migrate(options)
        except MigrationIncompleteError as e:
            progress.update(task, description=f'[red]{label} finished with failures')
            progress.stop()
            _display_migration_summary(e.stats, engine.last_plan, options.dry_run)
            raise
        finally:
            engine.close()

        progress.update(task, description=f'[green]{label} completed')

    _display_migration_summary(stats, engine.last_plan, options.dry_run)
    console.print(f'[green]✓[/green] {label} completed successfully')
    return stats


def _display_migration_summary(
    stats: MigrationStats, plan: Optional[MigrationPlan], dry_run: bool = False
) -> None:
    """Display migration summary results."""
    table = Table(title='Dry Run Summary' if dry_run else 'Migration Summary')
    table.add_column('Metric', style='cyan')
    table.add_column('Value', style='green')

    table.add_row('Total', str(stats.total))
    table.add_row('Successful', str(stats.successful))
    table.add_row('Failed', str(stats.failed))
    table.add_row('Duration', str(stats.duration))
    table.add_row('Success Rate', f'{stats.success_rate:.1f}%')

    if plan is not None:
        table.add_row('Without State', str(len(plan.without_state)))
        table.add_row('Already Migrated', str(len(plan.already_migrated)))
        if plan.not_found:
            table.add_row('Not Found', ', '.join(plan.not_found))
        if plan.collisions:
            table.add_row('Name Collisions', ', '.join(plan.collisions))

    console.print(table)

    if stats.failed_items:
        console.print(f'\n[red]Failed workspaces ({len(stats.failed_items)}):[/red]')
        for failed in stats.failed_items:
            console.print(f'  • {failed.workspace_name}: {failed.error}')


def main() -> None:
    """Main entry point for the CLI application."""
    try:
        cli()
    except KeyboardInterrupt:
        console.print('\n[red]Migration interrupted by user[/red]')
        sys.exit(1)
    except Exception as e:
        console.print(f'[red]Error: {e}[/red]')
        sys.exit(1)


if __name__ == '__main__':
    main()
