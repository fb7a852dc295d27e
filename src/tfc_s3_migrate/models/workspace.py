"""Workspace and state entity models."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class Workspace(BaseModel):
    """Terraform Cloud workspace model."""

    id: str = Field(..., description='Workspace ID')
    name: str = Field(..., description='Workspace name')
    description: Optional[str] = Field(
        default=None, description='Workspace description'
    )
    has_state: bool = Field(
        default=False, description='Workspace has a current state version'
    )
    current_state_version: Optional[str] = Field(
        default=None, description='Current state version ID'
    )

    class Config:
        """Pydantic configuration."""

        frozen = True

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'Workspace':
        """Build a workspace from a JSON:API workspace resource.

        Args:
            data: The ``data`` object of a workspace document

        Returns:
            Parsed workspace
        """
        attributes = data.get('attributes') or {}
        relationships = data.get('relationships') or {}
        state_relation = (relationships.get('current-state-version') or {}).get(
            'data'
        )
        state_version_id = state_relation.get('id') if state_relation else None

        return cls(
            id=data['id'],
            name=attributes.get('name', ''),
            description=attributes.get('description') or None,
            has_state=state_version_id is not None,
            current_state_version=state_version_id,
        )


class StateData(BaseModel):
    """State payload downloaded for one workspace."""

    workspace_name: str = Field(..., description='Workspace name')
    content: bytes = Field(..., description='Raw state file content')
    version: int = Field(default=0, description='State serial')
    state_id: str = Field(..., description='State version ID')
    metadata: Dict[str, Any] = Field(
        default_factory=dict, description='Descriptive metadata for the upload'
    )

    @property
    def size(self) -> int:
        """Size of the state content in bytes."""
        return len(self.content)
