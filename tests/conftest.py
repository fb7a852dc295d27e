"""Shared fixtures and fakes for the migrator tests."""

import threading
import time
from typing import Dict, List, Optional, Set

import pytest

from tfc_s3_migrate.api.exceptions import (
    StateNotAvailableError,
    StorageError,
    TerraformCloudNotFoundError,
)
from tfc_s3_migrate.config.config import (
    AWSConfig,
    Config,
    MigrationConfig,
    TerraformCloudConfig,
)
from tfc_s3_migrate.models.workspace import StateData, Workspace


def make_workspace(name: str, has_state: bool = True) -> Workspace:
    return Workspace(
        id=f'ws-{name}',
        name=name,
        has_state=has_state,
        current_state_version=f'sv-{name}' if has_state else None,
    )


class FakeSourceClient:
    """In-memory Terraform Cloud client."""

    def __init__(self, workspaces: List[Workspace], broken_states: Set[str] = None):
        self.workspaces = list(workspaces)
        self.broken_states = broken_states or set()
        self.state_requests: List[str] = []
        self.closed = False

    def validate_connection(self) -> None:
        pass

    def list_workspaces(self) -> List[Workspace]:
        return list(self.workspaces)

    def get_workspace_by_name(self, name: str) -> Workspace:
        for workspace in self.workspaces:
            if workspace.name == name:
                return workspace
        raise TerraformCloudNotFoundError(f'Workspace {name} not found')

    async def get_workspace_state(self, workspace_id: str) -> StateData:
        self.state_requests.append(workspace_id)
        workspace = next(w for w in self.workspaces if w.id == workspace_id)
        if workspace.name in self.broken_states:
            raise StateNotAvailableError(f'Workspace {workspace.name} has no current state')
        content = f'{{"serial": 1, "workspace": "{workspace.name}"}}'.encode()
        return StateData(
            workspace_name=workspace.name,
            content=content,
            version=1,
            state_id=f'sv-{workspace.name}',
            metadata={'workspace_name': workspace.name, 'serial': 1},
        )

    def close(self) -> None:
        self.closed = True


class FakeStateStore:
    """Thread-safe in-memory S3 store that tracks concurrent uploads."""

    def __init__(
        self,
        existing: Optional[Set[str]] = None,
        failing: Optional[Set[str]] = None,
        upload_delay: float = 0.0,
        check_error: bool = False,
    ):
        self.objects: Dict[str, bytes] = {}
        self.metadata: Dict[str, dict] = {}
        for name in existing or set():
            self.objects[name] = b'{}'
        self.failing = failing or set()
        self.upload_delay = upload_delay
        self.check_error = check_error
        self.upload_calls: List[str] = []
        self.check_calls: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def validate_connection(self) -> None:
        pass

    def check_state_exists(self, organization: str, workspace_name: str) -> bool:
        self.check_calls.append(workspace_name)
        if self.check_error:
            raise StorageError('head_object timed out')
        return workspace_name in self.objects

    def upload_state(self, organization, workspace_name, content, metadata) -> None:
        with self._lock:
            self.upload_calls.append(workspace_name)
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.upload_delay:
                time.sleep(self.upload_delay)
            if workspace_name in self.failing:
                raise StorageError(f'Access denied for {workspace_name}')
            with self._lock:
                self.objects[workspace_name] = content
                self.metadata[workspace_name] = metadata
        finally:
            with self._lock:
                self.in_flight -= 1


@pytest.fixture
def config():
    return Config(
        terraform_cloud=TerraformCloudConfig(token='tfc-token', organization='acme'),
        aws=AWSConfig(bucket='states-bucket'),
        migration=MigrationConfig(
            batch_size=3,
            concurrent_uploads=2,
            retry_attempts=3,
            batch_delay=0,
            retry_backoff=0,
        ),
    )
