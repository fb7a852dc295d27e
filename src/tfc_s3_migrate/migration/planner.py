"""Selection of the workspaces a run will migrate."""

from typing import Dict, Iterable, List, Optional

from loguru import logger
from pydantic import BaseModel, Field

from ..api.exceptions import TerraformCloudAPIError, TerraformCloudNotFoundError
from ..models.workspace import Workspace
from .exceptions import PlanningError
from .normalizer import normalize_name


class MigrationPlan(BaseModel):
    """Workspaces selected for migration plus the planning diagnostics."""

    workspaces: List[Workspace] = Field(
        default_factory=list, description='Workspaces to migrate, in order'
    )
    total_found: int = Field(default=0, description='Workspaces resolved')
    not_found: List[str] = Field(
        default_factory=list, description='Requested names that did not resolve'
    )
    without_state: List[str] = Field(
        default_factory=list, description='Workspaces without a current state'
    )
    already_migrated: List[str] = Field(
        default_factory=list, description='Workspaces whose state is already in S3'
    )
    collisions: Dict[str, str] = Field(
        default_factory=dict,
        description='Skipped workspace -> workspace already claiming its S3 name',
    )

    @property
    def with_state(self) -> int:
        return self.total_found - len(self.without_state)

    @property
    def to_migrate(self) -> int:
        return len(self.workspaces)


class MigrationPlanner:
    """Resolves the project filter and drops workspaces that need no work."""

    def __init__(self, source_client, state_store, organization: str):
        """Initialize the planner.

        Args:
            source_client: Terraform Cloud client
            state_store: S3 state store
            organization: Terraform Cloud organization
        """
        self.source_client = source_client
        self.state_store = state_store
        self.organization = organization
        self.logger = logger.bind(component='MigrationPlanner')

    def plan(self, projects: Optional[Iterable[str]] = None) -> MigrationPlan:
        """Build the migration plan.

        Args:
            projects: Workspace names to migrate; empty means every workspace

        Returns:
            Migration plan

        Raises:
            PlanningError: If the inventory or a lookup call fails
        """
        plan = MigrationPlan()
        workspaces = self._resolve_workspaces(list(projects or []), plan)
        plan.total_found = len(workspaces)

        claimed: Dict[str, str] = {}

        for workspace in workspaces:
            if not workspace.has_state:
                self.logger.debug(f'Workspace {workspace.name} has no state, skipping')
                plan.without_state.append(workspace.name)
                continue

            clean_name = normalize_name(workspace.name)

            if clean_name in claimed:
                self.logger.warning(
                    f'Workspace {workspace.name} maps to {clean_name}, already used '
                    f'by {claimed[clean_name]}; skipping to avoid overwriting it'
                )
                plan.collisions[workspace.name] = claimed[clean_name]
                continue

            if self._state_exists(workspace, clean_name):
                self.logger.debug(
                    f'State for {workspace.name} already exists in S3, skipping'
                )
                plan.already_migrated.append(workspace.name)
                claimed[clean_name] = workspace.name
                continue

            claimed[clean_name] = workspace.name
            plan.workspaces.append(workspace)

        self.logger.info(
            f'Workspace analysis completed: {plan.total_found} found, '
            f'{plan.with_state} with state, {len(plan.without_state)} without state, '
            f'{len(plan.already_migrated)} already migrated, '
            f'{plan.to_migrate} to migrate'
        )

        if plan.without_state:
            self.logger.info(
                f'Workspaces without state (ignored): {", ".join(plan.without_state)}'
            )
        if plan.already_migrated:
            self.logger.info(
                f'Workspaces already migrated (skipped): '
                f'{", ".join(plan.already_migrated)}'
            )
        if plan.collisions:
            self.logger.warning(
                f'Workspaces skipped because of S3 name collisions: '
                f'{", ".join(plan.collisions)}'
            )

        return plan

    def _resolve_workspaces(
        self, projects: List[str], plan: MigrationPlan
    ) -> List[Workspace]:
        """Turn the project filter into workspace records."""
        if not projects:
            self.logger.info('Migrating ALL workspaces of the organization')
            try:
                return self.source_client.list_workspaces()
            except TerraformCloudAPIError as e:
                raise PlanningError(f'Error listing workspaces: {e}') from e

        self.logger.info(f'Migrating selected workspaces: {", ".join(projects)}')
        workspaces = []
        seen = set()

        for name in projects:
            if name in seen:
                continue
            seen.add(name)

            try:
                workspaces.append(self.source_client.get_workspace_by_name(name))
            except TerraformCloudNotFoundError:
                self.logger.warning(f'Workspace {name} not found')
                plan.not_found.append(name)
            except TerraformCloudAPIError as e:
                raise PlanningError(f'Error looking up workspace {name}: {e}') from e

        if plan.not_found:
            self.logger.warning(
                f'Some requested workspaces were not found: {", ".join(plan.not_found)}'
            )

        return workspaces

    def _state_exists(self, workspace: Workspace, clean_name: str) -> bool:
        """Check S3 for an existing state, treating errors as missing."""
        try:
            return self.state_store.check_state_exists(self.organization, clean_name)
        except Exception as e:
            self.logger.warning(
                f'Error checking S3 for {workspace.name}, assuming not migrated: {e}'
            )
            return False
