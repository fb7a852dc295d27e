"""Aggregate statistics for a migration run."""

import threading
from datetime import datetime, timedelta
from typing import List, Optional

from loguru import logger
from pydantic import BaseModel, Field, PrivateAttr


class FailedMigration(BaseModel):
    """A workspace that could not be migrated."""

    workspace_name: str = Field(..., description='Workspace name')
    error: str = Field(..., description='Error message')


class MigrationStats(BaseModel):
    """Counts and failures shared by every task of one run.

    All mutation goes through the ``record_*`` methods, which hold a single
    lock for the duration of the update only.
    """

    total: int = Field(default=0, description='Workspaces planned for migration')
    successful: int = Field(default=0, description='Successful migrations')
    failed: int = Field(default=0, description='Failed migrations')

    started_at: datetime = Field(
        default_factory=datetime.now, description='Migration start time'
    )
    completed_at: Optional[datetime] = Field(
        default=None, description='Migration completion time'
    )
    duration: Optional[timedelta] = Field(default=None, description='Run duration')

    failed_items: List[FailedMigration] = Field(
        default_factory=list, description='Failed workspaces in completion order'
    )

    _lock: threading.Lock = PrivateAttr(default_factory=threading.Lock)

    def record_success(self, workspace_name: str) -> None:
        """Count a migrated workspace."""
        with self._lock:
            self.successful += 1
            processed = self.successful + self.failed
        logger.debug(
            f'Workspace {workspace_name} succeeded ({processed}/{self.total} processed)'
        )

    def record_failure(self, workspace_name: str, error: str) -> None:
        """Count a failed workspace and keep its error."""
        with self._lock:
            self.failed += 1
            self.failed_items.append(
                FailedMigration(workspace_name=workspace_name, error=error)
            )

    @property
    def processed(self) -> int:
        with self._lock:
            return self.successful + self.failed

    @property
    def success_rate(self) -> float:
        """Percentage of planned workspaces migrated successfully."""
        if self.total == 0:
            return 0.0
        return self.successful / self.total * 100

    def finalize(self) -> None:
        """Stamp the end time and compute the run duration."""
        with self._lock:
            self.completed_at = datetime.now()
            self.duration = self.completed_at - self.started_at
