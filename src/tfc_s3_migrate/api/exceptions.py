"""Terraform Cloud API and S3 storage exceptions."""

from typing import Optional


class TerraformCloudAPIError(Exception):
    """Base exception for Terraform Cloud API errors."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_data: Optional[dict] = None,
    ):
        """Initialize Terraform Cloud API error.

        Args:
            message: Error message
            status_code: HTTP status code
            response_data: Response data from API
        """
        super().__init__(message)
        self.status_code = status_code
        self.response_data = response_data


class TerraformCloudAuthenticationError(TerraformCloudAPIError):
    """Authentication error with Terraform Cloud API."""

    pass


class TerraformCloudRateLimitError(TerraformCloudAPIError):
    """Rate limit exceeded error."""

    def __init__(self, message: str, retry_after: float = 60.0, **kwargs):
        """Initialize rate limit error.

        Args:
            message: Error message
            retry_after: Seconds to wait before retry
            **kwargs: Additional arguments for base class
        """
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class TerraformCloudNotFoundError(TerraformCloudAPIError):
    """Resource not found error."""

    pass


class StateNotAvailableError(TerraformCloudAPIError):
    """Workspace has no current state or no downloadable state."""

    pass


class StorageError(Exception):
    """Error talking to the S3 destination."""

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.key = key
