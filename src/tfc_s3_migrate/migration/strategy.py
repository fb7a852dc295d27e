"""Per-workspace state migration."""

import asyncio
from typing import Any, List

from loguru import logger
from pydantic import BaseModel, Field

from ..models.workspace import Workspace
from .exceptions import WorkspaceMigrationError
from .normalizer import normalize_name


class MigrationOptions(BaseModel):
    """Options for a single migration run."""

    dry_run: bool = Field(default=False, description='Simulate without writing to S3')
    projects: List[str] = Field(
        default_factory=list, description='Workspace names to migrate (empty = all)'
    )

    class Config:
        """Pydantic configuration."""

        frozen = True


class MigrationContext(BaseModel):
    """Context for migration operations."""

    source_client: Any = Field(..., description='Terraform Cloud client')
    state_store: Any = Field(..., description='S3 state store')
    organization: str = Field(..., description='Terraform Cloud organization')

    # Migration settings
    batch_size: int = Field(default=5, description='Workspaces per batch')
    concurrent_uploads: int = Field(
        default=3, description='Maximum concurrent migrations per batch'
    )
    retry_attempts: int = Field(default=3, description='Upload attempts')
    batch_delay: float = Field(default=1.0, description='Pause between batches')
    retry_backoff: float = Field(default=1.0, description='Linear backoff unit')

    class Config:
        """Pydantic configuration."""

        arbitrary_types_allowed = True


class StateMigrationStrategy:
    """Moves the current state of one workspace into the S3 store."""

    def __init__(self, context: MigrationContext):
        """Initialize migration strategy.

        Args:
            context: Migration context with clients and settings
        """
        self.context = context
        self.logger = logger.bind(strategy=self.__class__.__name__)

    async def migrate_entity(self, workspace: Workspace, dry_run: bool = False) -> None:
        """Migrate the state of a single workspace.

        State fetch failures are not retried. Uploads are attempted up to
        ``retry_attempts`` times, waiting ``attempt * retry_backoff`` seconds
        between attempts.

        Args:
            workspace: Workspace to migrate
            dry_run: Fetch the state but skip the upload

        Raises:
            WorkspaceMigrationError: If the state cannot be fetched or uploaded
        """
        log = self.logger.bind(workspace=workspace.name)

        try:
            state = await self.context.source_client.get_workspace_state(workspace.id)
        except Exception as e:
            raise WorkspaceMigrationError(
                f'Error fetching state: {e}', workspace_name=workspace.name
            ) from e

        if dry_run:
            log.info(
                f'Dry run: would migrate state of {workspace.name} '
                f'({state.size} bytes)'
            )
            return

        state_name = normalize_name(workspace.name)
        attempts = self.context.retry_attempts
        last_error = None

        for attempt in range(1, attempts + 1):
            try:
                await asyncio.to_thread(
                    self.context.state_store.upload_state,
                    self.context.organization,
                    state_name,
                    state.content,
                    state.metadata,
                )
                return
            except Exception as e:
                last_error = e

            if attempt < attempts:
                delay = attempt * self.context.retry_backoff
                log.warning(
                    f'Upload failed for {workspace.name} (attempt {attempt}/{attempts}), '
                    f'retrying in {delay:g}s: {last_error}'
                )
                await asyncio.sleep(delay)

        raise WorkspaceMigrationError(
            f'Upload failed after {attempts} attempts: {last_error}',
            workspace_name=workspace.name,
            attempts=attempts,
        ) from last_error
