"""Migration run exceptions."""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .stats import MigrationStats


class MigrationError(Exception):
    """Base exception for migration runs."""

    pass


class ConnectionValidationError(MigrationError):
    """Terraform Cloud or S3 could not be reached."""

    pass


class PlanningError(MigrationError):
    """The workspace inventory could not be built."""

    pass


class WorkspaceMigrationError(MigrationError):
    """A single workspace could not be migrated."""

    def __init__(
        self, message: str, workspace_name: str, attempts: Optional[int] = None
    ):
        """Initialize workspace migration error.

        Args:
            message: Error message
            workspace_name: Workspace that failed
            attempts: Upload attempts made, if the upload stage was reached
        """
        super().__init__(message)
        self.workspace_name = workspace_name
        self.attempts = attempts


class MigrationIncompleteError(MigrationError):
    """The run finished but at least one workspace failed."""

    def __init__(self, stats: 'MigrationStats'):
        super().__init__(f'Migration finished with {stats.failed} failures')
        self.stats = stats
