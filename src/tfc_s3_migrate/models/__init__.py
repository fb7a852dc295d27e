"""Data models for Terraform Cloud entities."""

from .workspace import StateData, Workspace

__all__ = [
    'StateData',
    'Workspace',
]
