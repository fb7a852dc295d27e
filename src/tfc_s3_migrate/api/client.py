"""Terraform Cloud API client implementation."""

import asyncio
import json
import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import urljoin

import aiohttp
import requests
from loguru import logger
from pydantic import BaseModel

from ..config.config import TerraformCloudConfig
from ..models.workspace import StateData, Workspace
from .exceptions import (
    StateNotAvailableError,
    TerraformCloudAPIError,
    TerraformCloudAuthenticationError,
    TerraformCloudNotFoundError,
    TerraformCloudRateLimitError,
)
from .rate_limiter import RateLimiter

USER_AGENT = 'tfc-s3-migrate/0.1.0'
JSON_API_CONTENT_TYPE = 'application/vnd.api+json'
DEFAULT_RETRY_AFTER = 60.0


class APIResponse(BaseModel):
    """Standard API response wrapper."""

    status_code: int
    data: Any
    headers: Dict[str, str]
    success: bool


def _error_message(status_code: int, error_data: Any, fallback: str) -> str:
    """Extract a readable message from a JSON:API error document."""
    if isinstance(error_data, dict):
        errors = error_data.get('errors') or []
        if errors and isinstance(errors[0], dict):
            first = errors[0]
            return first.get('detail') or first.get('title') or fallback
        if error_data.get('message'):
            return error_data['message']
    return fallback or f'HTTP {status_code}'


def _parse_retry_after(value: Optional[str]) -> float:
    """Parse a Retry-After header given in seconds or as an HTTP date."""
    if not value:
        return DEFAULT_RETRY_AFTER

    try:
        return max(0.0, float(value))
    except ValueError:
        pass

    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return DEFAULT_RETRY_AFTER
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=timezone.utc)
    return max(0.0, (retry_at - datetime.now(timezone.utc)).total_seconds())


def _raise_for_status(
    status_code: int, headers: Mapping[str, str], error_data: Any, text: str = ''
) -> None:
    """Map an HTTP error status to the matching API exception.

    ``headers`` should be the case-insensitive mapping of the HTTP library.
    """
    if status_code == 429:
        retry_after = _parse_retry_after(headers.get('Retry-After'))
        raise TerraformCloudRateLimitError(
            f'Rate limit exceeded. Retry after {retry_after:g} seconds',
            status_code=429,
            retry_after=retry_after,
        )

    if status_code == 401:
        raise TerraformCloudAuthenticationError('Authentication failed')

    if status_code == 404:
        raise TerraformCloudNotFoundError('Resource not found', status_code=404)

    if status_code >= 400:
        fallback = f'HTTP {status_code}: {text}' if text else f'HTTP {status_code}'
        message = _error_message(status_code, error_data, fallback)
        raise TerraformCloudAPIError(
            f'API request failed: {message}',
            status_code=status_code,
            response_data=error_data if isinstance(error_data, dict) else None,
        )


class TerraformCloudClient:
    """Terraform Cloud API client scoped to one organization."""

    def __init__(
        self, config: TerraformCloudConfig, rate_limiter: Optional[RateLimiter] = None
    ):
        """Initialize Terraform Cloud client.

        Args:
            config: Terraform Cloud configuration
            rate_limiter: Optional shared rate limiter
        """
        self.config = config
        self.organization = config.organization
        self.base_url = config.url.rstrip('/') + '/api/v2'
        self.rate_limiter = rate_limiter or RateLimiter(config.rate_limit_per_second)
        self.logger = logger.bind(
            component='terraform-client', organization=config.organization
        )

        if not config.token:
            raise TerraformCloudAuthenticationError('No authentication token provided')

        self.session = requests.Session()
        self.session.headers.update(self._headers())

        self.logger.info(f'Initialized Terraform Cloud client for {config.url}')

    def _headers(self) -> Dict[str, str]:
        return {
            'Authorization': f'Bearer {self.config.token}',
            'Content-Type': JSON_API_CONTENT_TYPE,
            'User-Agent': USER_AGENT,
        }

    def _build_url(self, endpoint: str) -> str:
        """Build full API URL from endpoint.

        Args:
            endpoint: API endpoint path

        Returns:
            Full API URL
        """
        return urljoin(self.base_url + '/', endpoint.lstrip('/'))

    def _handle_response(self, response: requests.Response) -> APIResponse:
        """Handle API response and convert to standard format.

        Args:
            response: Raw HTTP response

        Returns:
            Standardized API response

        Raises:
            TerraformCloudAPIError: For various API errors
        """
        headers = dict(response.headers)

        if response.status_code >= 400:
            try:
                error_data = response.json()
            except ValueError:
                error_data = None
            _raise_for_status(
                response.status_code,
                response.headers,
                error_data,
                getattr(response, 'text', ''),
            )

        try:
            data = response.json() if response.content else None
        except ValueError:
            data = response.text

        return APIResponse(
            status_code=response.status_code,
            data=data,
            headers=headers,
            success=200 <= response.status_code < 300,
        )

    def get(
        self, endpoint: str, params: Optional[Dict[str, Any]] = None, **kwargs
    ) -> APIResponse:
        """Make GET request.

        Requests answered with HTTP 429 are retried up to
        ``rate_limit_retries`` times after waiting for ``Retry-After``.

        Args:
            endpoint: API endpoint
            params: Query parameters
            **kwargs: Additional request arguments

        Returns:
            API response
        """
        url = self._build_url(endpoint)
        retries = self.config.rate_limit_retries

        for attempt in range(retries + 1):
            self.rate_limiter.acquire_sync()

            try:
                response = self.session.get(
                    url, params=params, timeout=self.config.timeout, **kwargs
                )
            except requests.RequestException as e:
                self.logger.error(f'Network error during GET request: {e}')
                raise TerraformCloudAPIError(f'Network error: {e}')

            try:
                return self._handle_response(response)
            except TerraformCloudRateLimitError as e:
                if attempt >= retries:
                    raise
                self._log_rate_limited(endpoint, e, attempt, retries)
                time.sleep(e.retry_after)

    def _log_rate_limited(
        self,
        endpoint: str,
        error: TerraformCloudRateLimitError,
        attempt: int,
        retries: int,
    ) -> None:
        self.logger.warning(
            f'Rate limited on {endpoint}, retrying in {error.retry_after:g}s '
            f'(retry {attempt + 1}/{retries})'
        )

    async def _make_request_async(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        **kwargs,
    ) -> APIResponse:
        """Make asynchronous API request, retrying rate-limited responses.

        Args:
            method: HTTP method
            endpoint: API endpoint
            params: Query parameters
            **kwargs: Additional request arguments

        Returns:
            API response
        """
        retries = self.config.rate_limit_retries

        for attempt in range(retries + 1):
            try:
                return await self._send_async(method, endpoint, params, **kwargs)
            except TerraformCloudRateLimitError as e:
                if attempt >= retries:
                    raise
                self._log_rate_limited(endpoint, e, attempt, retries)
                await asyncio.sleep(e.retry_after)

    async def _send_async(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        **kwargs,
    ) -> APIResponse:
        url = self._build_url(endpoint)
        await self.rate_limiter.acquire()

        timeout = aiohttp.ClientTimeout(total=self.config.timeout)
        async with aiohttp.ClientSession(
            headers=self._headers(), timeout=timeout
        ) as session:
            try:
                async with session.request(
                    method=method, url=url, params=params, **kwargs
                ) as response:
                    response_headers = dict(response.headers)
                    response_text = await response.text()

                    try:
                        response_data = (
                            json.loads(response_text) if response_text else None
                        )
                    except ValueError:
                        response_data = response_text

                    if response.status >= 400:
                        _raise_for_status(
                            response.status,
                            response.headers,
                            response_data,
                            response_text,
                        )

                    return APIResponse(
                        status_code=response.status,
                        data=response_data,
                        headers=response_headers,
                        success=200 <= response.status < 300,
                    )

            except aiohttp.ClientError as e:
                self.logger.error(f'Network error during API request: {e}')
                raise TerraformCloudAPIError(f'Network error: {e}')

    async def get_async(
        self, endpoint: str, params: Optional[Dict[str, Any]] = None, **kwargs
    ) -> APIResponse:
        """Make asynchronous GET request."""
        return await self._make_request_async('GET', endpoint, params=params, **kwargs)

    async def _download_async(self, url: str) -> bytes:
        """Download a raw file from a pre-signed archivist URL.

        Args:
            url: Absolute download URL

        Returns:
            Downloaded bytes
        """
        await self.rate_limiter.acquire()

        timeout = aiohttp.ClientTimeout(total=self.config.timeout)
        async with aiohttp.ClientSession(
            headers={'User-Agent': USER_AGENT}, timeout=timeout
        ) as session:
            try:
                async with session.get(url) as response:
                    if response.status >= 400:
                        raise TerraformCloudAPIError(
                            f'State download failed: HTTP {response.status}',
                            status_code=response.status,
                        )
                    return await response.read()
            except aiohttp.ClientError as e:
                self.logger.error(f'Network error during state download: {e}')
                raise TerraformCloudAPIError(f'Network error: {e}')

    def get_paginated(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        per_page: int = 100,
    ) -> List[Dict[str, Any]]:
        """Get all pages of a paginated JSON:API endpoint.

        Args:
            endpoint: API endpoint
            params: Query parameters
            per_page: Items per page

        Returns:
            List of all resources from all pages
        """
        all_items = []
        page = 1

        params = dict(params or {})
        params['page[size]'] = per_page

        while True:
            params['page[number]'] = page
            response = self.get(endpoint, params=params)

            document = response.data or {}
            items = document.get('data') or []
            all_items.extend(items)

            pagination = (document.get('meta') or {}).get('pagination') or {}
            next_page = pagination.get('next-page')
            if not next_page or not items:
                break

            page = next_page

        self.logger.debug(f'Retrieved {len(all_items)} items from {endpoint}')
        return all_items

    def list_workspaces(self) -> List[Workspace]:
        """List every workspace of the organization.

        Returns:
            Workspaces in API order
        """
        self.logger.info('Listing workspaces')

        items = self.get_paginated(f'/organizations/{self.organization}/workspaces')
        workspaces = [Workspace.from_api(item) for item in items]

        self.logger.info(f'Listed {len(workspaces)} workspaces')
        return workspaces

    def get_workspace_by_name(self, name: str) -> Workspace:
        """Look up a workspace by name.

        Raises:
            TerraformCloudNotFoundError: If the workspace does not exist
        """
        self.logger.debug(f'Looking up workspace {name}')

        try:
            response = self.get(f'/organizations/{self.organization}/workspaces/{name}')
        except TerraformCloudNotFoundError:
            raise TerraformCloudNotFoundError(
                f'Workspace {name} not found', status_code=404
            )

        return Workspace.from_api(response.data['data'])

    async def get_workspace_state(self, workspace_id: str) -> StateData:
        """Download the current state of a workspace.

        Args:
            workspace_id: Workspace ID

        Returns:
            State content with descriptive metadata

        Raises:
            StateNotAvailableError: If the workspace has no downloadable state
            TerraformCloudAPIError: On API or download failure
        """
        self.logger.debug(f'Fetching state for workspace {workspace_id}')

        response = await self.get_async(f'/workspaces/{workspace_id}')
        workspace = Workspace.from_api(response.data['data'])

        if not workspace.has_state:
            raise StateNotAvailableError(
                f'Workspace {workspace.name} has no current state'
            )

        response = await self.get_async(
            f'/workspaces/{workspace_id}/current-state-version'
        )
        state_version = response.data['data']
        attributes = state_version.get('attributes') or {}

        download_url = attributes.get('hosted-state-download-url')
        if not download_url:
            raise StateNotAvailableError(
                f'No download URL available for the state of workspace {workspace.name}'
            )

        content = await self._download_async(download_url)

        serial = attributes.get('serial') or 0
        metadata = {
            'workspace_id': workspace.id,
            'workspace_name': workspace.name,
            'organization': self.organization,
            'state_version_id': state_version['id'],
            'serial': serial,
            'created_at': attributes.get('created-at'),
            'terraform_version': attributes.get('terraform-version'),
            'source': 'terraform_cloud',
        }
        if attributes.get('vcs-commit-sha'):
            metadata['vcs_commit_sha'] = attributes['vcs-commit-sha']

        self.logger.debug(
            f'Fetched state serial {serial} for {workspace.name} ({len(content)} bytes)'
        )

        return StateData(
            workspace_name=workspace.name,
            content=content,
            version=int(serial),
            state_id=state_version['id'],
            metadata=metadata,
        )

    def validate_connection(self) -> None:
        """Check that the organization is reachable with the configured token.

        Raises:
            TerraformCloudAPIError: If the organization cannot be read
        """
        self.logger.debug('Validating Terraform Cloud connection')
        self.get(f'/organizations/{self.organization}')
        self.logger.info('Terraform Cloud connection validated')

    def test_connection(self) -> bool:
        """Test connection to Terraform Cloud.

        Returns:
            True if connection successful, False otherwise
        """
        try:
            self.validate_connection()
            return True
        except TerraformCloudAPIError as e:
            self.logger.error(f'Connection test failed: {e}')
            return False

    def close(self):
        """Close the client session."""
        self.session.close()
        self.logger.debug('Terraform Cloud client session closed')

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
