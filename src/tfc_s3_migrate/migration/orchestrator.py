"""Batch scheduling and bounded-concurrency execution of workspace migrations."""

import asyncio
from typing import Callable, List, Optional

from loguru import logger

from ..models.workspace import Workspace
from .stats import MigrationStats
from .strategy import MigrationContext, MigrationOptions, StateMigrationStrategy

# (batch number, total batches, workspaces processed so far, total workspaces)
ProgressCallback = Callable[[int, int, int, int], None]


def split_batches(workspaces: List[Workspace], batch_size: int) -> List[List[Workspace]]:
    """Split workspaces into contiguous batches; the last one may be smaller."""
    return [
        workspaces[i : i + batch_size] for i in range(0, len(workspaces), batch_size)
    ]


class MigrationOrchestrator:
    """Runs workspace migrations batch by batch."""

    def __init__(
        self,
        context: MigrationContext,
        strategy: Optional[StateMigrationStrategy] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        """Initialize migration orchestrator.

        Args:
            context: Migration context with clients and settings
            strategy: Per-workspace migration strategy
            progress_callback: Called before each batch starts
        """
        self.context = context
        self.strategy = strategy or StateMigrationStrategy(context)
        self.progress_callback = progress_callback
        self.logger = logger.bind(component='MigrationOrchestrator')

    async def run_batches(
        self,
        workspaces: List[Workspace],
        options: MigrationOptions,
        stats: MigrationStats,
    ) -> None:
        """Process workspaces in sequential batches.

        A failing batch is logged and the next batch still runs. Between two
        batches the orchestrator pauses ``batch_delay`` seconds to ease the
        load on the Terraform Cloud API.

        Args:
            workspaces: Planned workspaces, in order
            options: Run options
            stats: Shared run statistics
        """
        batches = split_batches(workspaces, self.context.batch_size)
        total_batches = len(batches)
        processed = 0

        for batch_number, batch in enumerate(batches, start=1):
            progress = processed / len(workspaces) * 100
            self.logger.info(
                f'Processing batch {batch_number}/{total_batches} '
                f'({len(batch)} workspaces, {progress:.1f}% done, '
                f'{stats.successful} successful, {stats.failed} failed '
                f'of {stats.processed} processed)'
            )
            if self.progress_callback:
                self.progress_callback(
                    batch_number, total_batches, processed, len(workspaces)
                )

            try:
                await self.run_batch(batch, options, stats)
            except Exception as e:
                self.logger.error(f'Batch {batch_number} failed: {e}')

            processed += len(batch)

            if batch_number < total_batches:
                await asyncio.sleep(self.context.batch_delay)

        if self.progress_callback and total_batches:
            self.progress_callback(
                total_batches, total_batches, processed, len(workspaces)
            )

    async def run_batch(
        self,
        batch: List[Workspace],
        options: MigrationOptions,
        stats: MigrationStats,
    ) -> None:
        """Migrate one batch with at most ``concurrent_uploads`` in flight.

        Returns once every workspace of the batch has an outcome recorded in
        ``stats``; individual failures are not raised.
        """
        semaphore = asyncio.Semaphore(self.context.concurrent_uploads)

        async def migrate_workspace(workspace: Workspace) -> None:
            async with semaphore:
                try:
                    await self.strategy.migrate_entity(workspace, options.dry_run)
                except Exception as e:
                    stats.record_failure(workspace.name, str(e))
                    self.logger.bind(workspace=workspace.name).error(
                        f'Migration of workspace {workspace.name} failed: {e}'
                    )
                else:
                    stats.record_success(workspace.name)
                    self.logger.bind(workspace=workspace.name).info(
                        f'Workspace {workspace.name} migrated successfully'
                    )

        tasks = [migrate_workspace(workspace) for workspace in batch]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        for workspace, result in zip(batch, results):
            if isinstance(result, BaseException):
                self.logger.error(
                    f'Unexpected error while migrating {workspace.name}: {result}'
                )
