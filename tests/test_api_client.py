"""Tests for Terraform Cloud API client."""

import pytest
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from unittest.mock import AsyncMock, Mock, patch, MagicMock, call
import requests
from requests.structures import CaseInsensitiveDict

from tfc_s3_migrate.api.client import (
    DEFAULT_RETRY_AFTER,
    TerraformCloudClient,
    APIResponse,
    _parse_retry_after,
)
from tfc_s3_migrate.api.exceptions import (
    StateNotAvailableError,
    TerraformCloudAPIError,
    TerraformCloudAuthenticationError,
    TerraformCloudNotFoundError,
    TerraformCloudRateLimitError,
)
from tfc_s3_migrate.config.config import TerraformCloudConfig


def _workspace_resource(ws_id, name, state_version=None):
    relation = {'data': {'id': state_version, 'type': 'state-versions'}}
    return {
        'id': ws_id,
        'type': 'workspaces',
        'attributes': {'name': name, 'description': None},
        'relationships': {
            'current-state-version': relation if state_version else {}
        },
    }


def _json_response(payload, status_code=200):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = payload
    response.headers = {'Content-Type': 'application/vnd.api+json'}
    response.content = b'{}'
    return response


class TestAPIResponse:
    """Test API response model."""

    def test_api_response_creation(self):
        """Test API response creation."""
        response = APIResponse(
            status_code=200,
            data={'data': []},
            headers={'Content-Type': 'application/vnd.api+json'},
            success=True,
        )

        assert response.status_code == 200
        assert response.data == {'data': []}
        assert response.success is True


class TestTerraformCloudClient:
    """Test Terraform Cloud API client."""

    def setup_method(self):
        """Set up test fixtures."""
        self.config = TerraformCloudConfig(
            token='test-token',
            organization='acme',
            url='https://tfc.example.com',
            timeout=30,
            rate_limit_per_second=100,
        )

    def test_client_initialization(self):
        """Test client initialization."""
        client = TerraformCloudClient(self.config)

        assert client.config == self.config
        assert client.organization == 'acme'
        assert client.base_url == 'https://tfc.example.com/api/v2'
        assert client.session.headers['Authorization'] == 'Bearer test-token'
        assert client.session.headers['Content-Type'] == 'application/vnd.api+json'

    def test_build_url(self):
        """Test URL building."""
        client = TerraformCloudClient(self.config)

        assert (
            client._build_url('/organizations/acme')
            == 'https://tfc.example.com/api/v2/organizations/acme'
        )
        assert (
            client._build_url('workspaces/ws-1')
            == 'https://tfc.example.com/api/v2/workspaces/ws-1'
        )

    @patch('requests.Session.get')
    def test_get_request_success(self, mock_get):
        """Test successful GET request."""
        mock_get.return_value = _json_response({'data': {'id': 'acme'}})

        client = TerraformCloudClient(self.config)
        response = client.get('/organizations/acme')

        assert response.success is True
        assert response.data == {'data': {'id': 'acme'}}
        mock_get.assert_called_once_with(
            'https://tfc.example.com/api/v2/organizations/acme',
            params=None,
            timeout=30,
        )

    @patch('requests.Session.get')
    def test_get_request_404(self, mock_get):
        """Test GET request with 404 error."""
        mock_response = Mock()
        mock_response.status_code = 404
        mock_response.headers = {}
        mock_get.return_value = mock_response

        client = TerraformCloudClient(self.config)

        with pytest.raises(TerraformCloudNotFoundError):
            client.get('/workspaces/ws-missing')

    @patch('requests.Session.get')
    def test_get_request_401(self, mock_get):
        """Test GET request with authentication error."""
        mock_response = Mock()
        mock_response.status_code = 401
        mock_response.headers = {}
        mock_get.return_value = mock_response

        client = TerraformCloudClient(self.config)

        with pytest.raises(TerraformCloudAuthenticationError):
            client.get('/organizations/acme')

    @patch('tfc_s3_migrate.api.client.time.sleep')
    @patch('requests.Session.get')
    def test_get_request_429(self, mock_get, mock_sleep):
        """Test GET request with rate limit error once retries run out."""
        mock_response = Mock()
        mock_response.status_code = 429
        mock_response.headers = {'Retry-After': '30'}
        mock_get.return_value = mock_response

        client = TerraformCloudClient(self.config)

        with pytest.raises(TerraformCloudRateLimitError) as exc_info:
            client.get('/organizations/acme')

        assert exc_info.value.retry_after == 30
        assert exc_info.value.status_code == 429
        assert mock_get.call_count == 4
        assert mock_sleep.call_args_list == [call(30.0)] * 3

    @patch('tfc_s3_migrate.api.client.time.sleep')
    @patch('requests.Session.get')
    def test_rate_limited_page_is_retried(self, mock_get, mock_sleep):
        """Test a 429 followed by a 200 still lists the workspaces."""
        limited = Mock()
        limited.status_code = 429
        limited.headers = CaseInsensitiveDict({'retry-after': '1'})
        mock_get.side_effect = [
            limited,
            _json_response(
                {
                    'data': [_workspace_resource('ws-1', 'a', 'sv-1')],
                    'meta': {'pagination': {'next-page': None}},
                }
            ),
        ]

        client = TerraformCloudClient(self.config)
        workspaces = client.list_workspaces()

        assert [w.name for w in workspaces] == ['a']
        mock_sleep.assert_called_once_with(1.0)

    @patch('tfc_s3_migrate.api.client.time.sleep')
    @patch('requests.Session.get')
    def test_rate_limit_without_retries(self, mock_get, mock_sleep):
        """Test rate_limit_retries=0 raises on the first 429."""
        mock_response = Mock()
        mock_response.status_code = 429
        mock_response.headers = {'Retry-After': '0.5'}
        mock_get.return_value = mock_response
        config = TerraformCloudConfig(
            token='test-token',
            organization='acme',
            url='https://tfc.example.com',
            rate_limit_per_second=100,
            rate_limit_retries=0,
        )

        client = TerraformCloudClient(config)

        with pytest.raises(TerraformCloudRateLimitError) as exc_info:
            client.get('/organizations/acme')

        assert exc_info.value.retry_after == 0.5
        mock_get.assert_called_once()
        mock_sleep.assert_not_called()

    @patch('requests.Session.get')
    def test_get_request_500_uses_error_detail(self, mock_get):
        """Test JSON:API error details end up in the exception message."""
        mock_get.return_value = _json_response(
            {'errors': [{'status': '500', 'title': 'internal', 'detail': 'db down'}]},
            status_code=500,
        )

        client = TerraformCloudClient(self.config)

        with pytest.raises(TerraformCloudAPIError) as exc_info:
            client.get('/organizations/acme')

        assert exc_info.value.status_code == 500
        assert 'db down' in str(exc_info.value)

    @patch('requests.Session.get')
    def test_network_error(self, mock_get):
        """Test transport errors are wrapped."""
        mock_get.side_effect = requests.ConnectionError('connection refused')

        client = TerraformCloudClient(self.config)

        with pytest.raises(TerraformCloudAPIError, match='Network error'):
            client.get('/organizations/acme')

    @patch('requests.Session.get')
    def test_get_paginated(self, mock_get):
        """Test paginated GET request follows meta.pagination.next-page."""
        mock_get.side_effect = [
            _json_response(
                {
                    'data': [{'id': 'ws-1'}, {'id': 'ws-2'}],
                    'meta': {'pagination': {'current-page': 1, 'next-page': 2}},
                }
            ),
            _json_response(
                {
                    'data': [{'id': 'ws-3'}],
                    'meta': {'pagination': {'current-page': 2, 'next-page': None}},
                }
            ),
        ]

        client = TerraformCloudClient(self.config)
        items = client.get_paginated('/organizations/acme/workspaces', per_page=2)

        assert items == [{'id': 'ws-1'}, {'id': 'ws-2'}, {'id': 'ws-3'}]
        assert mock_get.call_count == 2
        last_params = mock_get.call_args.kwargs['params']
        assert last_params['page[size]'] == 2
        assert last_params['page[number]'] == 2

    @patch('requests.Session.get')
    def test_list_workspaces(self, mock_get):
        """Test workspace listing parses the state relationship."""
        mock_get.return_value = _json_response(
            {
                'data': [
                    _workspace_resource('ws-1', 'network-prod', 'sv-1'),
                    _workspace_resource('ws-2', 'sandbox'),
                ],
                'meta': {'pagination': {'next-page': None}},
            }
        )

        client = TerraformCloudClient(self.config)
        workspaces = client.list_workspaces()

        assert [w.name for w in workspaces] == ['network-prod', 'sandbox']
        assert workspaces[0].has_state is True
        assert workspaces[0].current_state_version == 'sv-1'
        assert workspaces[1].has_state is False

    @patch('requests.Session.get')
    def test_get_workspace_by_name(self, mock_get):
        """Test workspace lookup by name."""
        mock_get.return_value = _json_response(
            {'data': _workspace_resource('ws-1', 'app', 'sv-9')}
        )

        client = TerraformCloudClient(self.config)
        workspace = client.get_workspace_by_name('app')

        assert workspace.id == 'ws-1'
        assert workspace.has_state is True
        assert mock_get.call_args.args[0].endswith('/organizations/acme/workspaces/app')

    @patch('requests.Session.get')
    def test_get_workspace_by_name_not_found(self, mock_get):
        """Test a missing workspace names itself in the error."""
        mock_response = Mock()
        mock_response.status_code = 404
        mock_response.headers = {}
        mock_get.return_value = mock_response

        client = TerraformCloudClient(self.config)

        with pytest.raises(TerraformCloudNotFoundError, match='ghost'):
            client.get_workspace_by_name('ghost')

    @patch('requests.Session.get')
    def test_test_connection_success(self, mock_get):
        """Test successful connection test."""
        mock_get.return_value = _json_response({'data': {'id': 'acme'}})

        client = TerraformCloudClient(self.config)

        assert client.test_connection() is True
        mock_get.assert_called_once_with(
            'https://tfc.example.com/api/v2/organizations/acme',
            params=None,
            timeout=30,
        )

    @patch('requests.Session.get')
    def test_test_connection_failure(self, mock_get):
        """Test failed connection test."""
        mock_get.side_effect = requests.RequestException('Connection failed')

        client = TerraformCloudClient(self.config)

        assert client.test_connection() is False

    def test_context_manager(self):
        """Test client as context manager."""
        with patch.object(TerraformCloudClient, 'close') as mock_close:
            with TerraformCloudClient(self.config) as client:
                assert isinstance(client, TerraformCloudClient)
            mock_close.assert_called_once()


class TestAsyncMethods:
    """Test asynchronous API methods."""

    def setup_method(self):
        """Set up test fixtures."""
        self.config = TerraformCloudConfig(
            token='test-token',
            organization='acme',
            rate_limit_per_second=100,
        )

    @pytest.mark.asyncio
    async def test_get_async_404(self):
        """Test async GET request with 404 error."""
        mock_response = MagicMock()
        mock_response.status = 404
        mock_response.headers = {}
        mock_response.text = AsyncMock(return_value='')
        mock_response.__aenter__.return_value = mock_response
        mock_response.__aexit__.return_value = None

        mock_session = MagicMock()
        mock_session.request.return_value = mock_response
        mock_session.__aenter__.return_value = mock_session
        mock_session.__aexit__.return_value = None

        with patch('aiohttp.ClientSession', return_value=mock_session):
            client = TerraformCloudClient(self.config)

            with pytest.raises(TerraformCloudNotFoundError):
                await client.get_async('/workspaces/ws-missing')

    @pytest.mark.asyncio
    async def test_get_async_success(self):
        """Test successful async GET request."""
        mock_response = MagicMock()
        mock_response.status = 200
        mock_response.headers = {'Content-Type': 'application/vnd.api+json'}
        mock_response.text = AsyncMock(return_value='{"data": {"id": "ws-1"}}')
        mock_response.__aenter__.return_value = mock_response
        mock_response.__aexit__.return_value = None

        mock_session = MagicMock()
        mock_session.request.return_value = mock_response
        mock_session.__aenter__.return_value = mock_session
        mock_session.__aexit__.return_value = None

        with patch('aiohttp.ClientSession', return_value=mock_session):
            client = TerraformCloudClient(self.config)
            response = await client.get_async('/workspaces/ws-1')

        assert response.success is True
        assert response.data == {'data': {'id': 'ws-1'}}

    @pytest.mark.asyncio
    async def test_get_workspace_state(self):
        """Test state download with metadata."""
        client = TerraformCloudClient(self.config)
        workspace_doc = APIResponse(
            status_code=200,
            data={'data': _workspace_resource('ws-1', 'app-prod', 'sv-7')},
            headers={},
            success=True,
        )
        state_doc = APIResponse(
            status_code=200,
            data={
                'data': {
                    'id': 'sv-7',
                    'type': 'state-versions',
                    'attributes': {
                        'serial': 12,
                        'created-at': '2024-05-01T10:00:00Z',
                        'terraform-version': '1.7.5',
                        'vcs-commit-sha': 'abc123',
                        'hosted-state-download-url': 'https://archivist.example/sv-7',
                    },
                }
            },
            headers={},
            success=True,
        )

        with patch.object(
            client, 'get_async', new=AsyncMock(side_effect=[workspace_doc, state_doc])
        ) as mock_get, patch.object(
            client, '_download_async', new=AsyncMock(return_value=b'{"serial": 12}')
        ) as mock_download:
            state = await client.get_workspace_state('ws-1')

        assert mock_get.await_args_list[1].args[0] == '/workspaces/ws-1/current-state-version'
        mock_download.assert_awaited_once_with('https://archivist.example/sv-7')
        assert state.workspace_name == 'app-prod'
        assert state.content == b'{"serial": 12}'
        assert state.version == 12
        assert state.state_id == 'sv-7'
        assert state.size == 14
        assert state.metadata['organization'] == 'acme'
        assert state.metadata['terraform_version'] == '1.7.5'
        assert state.metadata['vcs_commit_sha'] == 'abc123'
        assert state.metadata['source'] == 'terraform_cloud'

    @pytest.mark.asyncio
    async def test_get_workspace_state_without_state(self):
        """Test a workspace without current state is rejected."""
        client = TerraformCloudClient(self.config)
        workspace_doc = APIResponse(
            status_code=200,
            data={'data': _workspace_resource('ws-2', 'sandbox')},
            headers={},
            success=True,
        )

        with patch.object(client, 'get_async', new=AsyncMock(return_value=workspace_doc)):
            with pytest.raises(StateNotAvailableError):
                await client.get_workspace_state('ws-2')

    @pytest.mark.asyncio
    async def test_get_workspace_state_without_download_url(self):
        """Test a state version without a download URL is rejected."""
        client = TerraformCloudClient(self.config)
        workspace_doc = APIResponse(
            status_code=200,
            data={'data': _workspace_resource('ws-1', 'app', 'sv-1')},
            headers={},
            success=True,
        )
        state_doc = APIResponse(
            status_code=200,
            data={'data': {'id': 'sv-1', 'attributes': {'serial': 1}}},
            headers={},
            success=True,
        )

        with patch.object(
            client, 'get_async', new=AsyncMock(side_effect=[workspace_doc, state_doc])
        ):
            with pytest.raises(StateNotAvailableError, match='download URL'):
                await client.get_workspace_state('ws-1')

    @pytest.mark.asyncio
    async def test_get_async_retries_rate_limit(self):
        """Test an async 429 is retried after Retry-After."""
        client = TerraformCloudClient(self.config)
        ok = APIResponse(status_code=200, data={'data': {}}, headers={}, success=True)
        send = AsyncMock(
            side_effect=[TerraformCloudRateLimitError('slow down', retry_after=0.5), ok]
        )

        with patch.object(client, '_send_async', new=send), patch(
            'tfc_s3_migrate.api.client.asyncio.sleep', new_callable=AsyncMock
        ) as mock_sleep:
            response = await client.get_async('/workspaces/ws-1')

        assert response is ok
        assert send.await_count == 2
        mock_sleep.assert_awaited_once_with(0.5)

    @pytest.mark.asyncio
    async def test_get_async_rate_limit_exhausted(self):
        """Test the async path gives up after rate_limit_retries."""
        client = TerraformCloudClient(self.config)
        send = AsyncMock(
            side_effect=TerraformCloudRateLimitError('slow down', retry_after=2)
        )

        with patch.object(client, '_send_async', new=send), patch(
            'tfc_s3_migrate.api.client.asyncio.sleep', new_callable=AsyncMock
        ):
            with pytest.raises(TerraformCloudRateLimitError):
                await client.get_async('/workspaces/ws-1')

        assert send.await_count == 4


class TestRetryAfter:
    """Test Retry-After header parsing."""

    @pytest.mark.parametrize(
        'value, expected',
        [
            ('30', 30.0),
            ('0.5', 0.5),
            ('-3', 0.0),
            (None, DEFAULT_RETRY_AFTER),
            ('', DEFAULT_RETRY_AFTER),
            ('soon', DEFAULT_RETRY_AFTER),
        ],
    )
    def test_parse_retry_after(self, value, expected):
        """Test seconds values and fallbacks."""
        assert _parse_retry_after(value) == expected

    def test_parse_http_date(self):
        """Test an HTTP date is turned into the seconds left."""
        retry_at = datetime.now(timezone.utc) + timedelta(seconds=120)

        delay = _parse_retry_after(format_datetime(retry_at, usegmt=True))

        assert 100 < delay <= 120

    def test_parse_past_http_date(self):
        """Test a date in the past means no wait."""
        assert _parse_retry_after('Wed, 21 Oct 2015 07:28:00 GMT') == 0.0
