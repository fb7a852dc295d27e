"""Configuration models and loaders."""

from .config import AWSConfig, Config, LoggingConfig, MigrationConfig, TerraformCloudConfig

__all__ = [
    'AWSConfig',
    'Config',
    'LoggingConfig',
    'MigrationConfig',
    'TerraformCloudConfig',
]
