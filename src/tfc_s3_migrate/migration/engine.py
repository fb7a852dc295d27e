"""Migration engine - main entry point for migration operations."""

import asyncio
from typing import List, Optional

from loguru import logger

from ..api.client import TerraformCloudClient
from ..api.exceptions import StorageError, TerraformCloudAPIError
from ..config.config import Config
from ..models.workspace import Workspace
from ..storage.s3 import S3StateStore
from .exceptions import ConnectionValidationError, MigrationIncompleteError
from .orchestrator import MigrationOrchestrator, ProgressCallback
from .planner import MigrationPlan, MigrationPlanner
from .stats import MigrationStats
from .strategy import MigrationContext, MigrationOptions


class MigrationEngine:
    """Main migration engine that coordinates the entire migration process."""

    def __init__(
        self,
        config: Config,
        source_client: Optional[TerraformCloudClient] = None,
        state_store: Optional[S3StateStore] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        """Initialize migration engine.

        Args:
            config: Migration configuration
            source_client: Terraform Cloud client (built from config if omitted)
            state_store: S3 state store (built from config if omitted)
            progress_callback: Called before each batch starts
        """
        self.config = config
        self.logger = logger.bind(component='MigrationEngine')

        self.source_client = source_client or TerraformCloudClient(
            config.terraform_cloud
        )
        self.state_store = state_store or S3StateStore(config.aws)

        self.context = MigrationContext(
            source_client=self.source_client,
            state_store=self.state_store,
            organization=config.terraform_cloud.organization,
            batch_size=config.migration.batch_size,
            concurrent_uploads=config.migration.concurrent_uploads,
            retry_attempts=config.migration.retry_attempts,
            batch_delay=config.migration.batch_delay,
            retry_backoff=config.migration.retry_backoff,
        )

        self.planner = MigrationPlanner(
            self.source_client, self.state_store, self.context.organization
        )
        self.orchestrator = MigrationOrchestrator(
            self.context, progress_callback=progress_callback
        )
        self.last_plan: Optional[MigrationPlan] = None

    def validate_connections(self) -> None:
        """Validate connectivity to Terraform Cloud and S3.

        Raises:
            ConnectionValidationError: If either side cannot be reached
        """
        self.logger.info('Validating connections')

        try:
            self.source_client.validate_connection()
        except TerraformCloudAPIError as e:
            raise ConnectionValidationError(
                f'Terraform Cloud validation failed: {e}'
            ) from e

        try:
            self.state_store.validate_connection()
        except StorageError as e:
            raise ConnectionValidationError(f'S3 validation failed: {e}') from e

        self.logger.info('All connections validated')

    def list_workspaces(self) -> List[Workspace]:
        """List every workspace of the organization after validating connections."""
        self.validate_connections()
        return self.source_client.list_workspaces()

    async def migrate(self, options: Optional[MigrationOptions] = None) -> MigrationStats:
        """Run a full migration.

        Args:
            options: Run options (migrate everything for real if omitted)

        Returns:
            Final statistics

        Raises:
            ConnectionValidationError: If a connection check fails
            PlanningError: If the workspace inventory cannot be built
            MigrationIncompleteError: If any workspace failed; carries the stats
        """
        options = options or MigrationOptions()

        # Planning blocks on HTTP and S3 calls; keep it off the event loop.
        await asyncio.to_thread(self.validate_connections)

        stats = MigrationStats()

        plan = await asyncio.to_thread(self.planner.plan, options.projects)
        self.last_plan = plan
        stats.total = plan.to_migrate

        if stats.total == 0:
            self.logger.warning('No workspaces to migrate')
            stats.finalize()
            return stats

        self.logger.info(
            f'Starting migration of {stats.total} workspaces '
            f'(batch size {self.context.batch_size}, dry run: {options.dry_run})'
        )

        await self.orchestrator.run_batches(plan.workspaces, options, stats)

        stats.finalize()
        self._log_final_stats(stats, options.dry_run)

        if stats.failed > 0:
            raise MigrationIncompleteError(stats)

        return stats

    def _log_final_stats(self, stats: MigrationStats, dry_run: bool) -> None:
        """Log the end-of-run summary and every failure."""
        mode = 'Dry run' if dry_run else 'Migration'

        self.logger.info(
            f'{mode} finished: {stats.total} total, {stats.successful} successful, '
            f'{stats.failed} failed in {stats.duration}'
        )

        if stats.failed_items:
            self.logger.error('Workspaces that failed:')
            for failed in stats.failed_items:
                self.logger.error(f'  {failed.workspace_name}: {failed.error}')

        self.logger.info(f'Success rate: {stats.success_rate:.1f}%')

    def close(self) -> None:
        """Release the Terraform Cloud session."""
        self.source_client.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
