"""Terraform Cloud to S3 State Migrator

Copies the current state of Terraform Cloud workspaces into an S3 bucket,
in batches and with bounded concurrency.
"""

__version__ = '0.1.0'
__author__ = 'Terraform Migration Team'
__email__ = 'team@example.com'

__all__ = ['__version__']
