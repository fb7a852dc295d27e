"""Terraform Cloud API access."""

from .client import APIResponse, TerraformCloudClient
from .exceptions import (
    StateNotAvailableError,
    StorageError,
    TerraformCloudAPIError,
    TerraformCloudAuthenticationError,
    TerraformCloudNotFoundError,
    TerraformCloudRateLimitError,
)
from .rate_limiter import RateLimiter

__all__ = [
    'APIResponse',
    'RateLimiter',
    'StateNotAvailableError',
    'StorageError',
    'TerraformCloudAPIError',
    'TerraformCloudAuthenticationError',
    'TerraformCloudClient',
    'TerraformCloudNotFoundError',
    'TerraformCloudRateLimitError',
]
