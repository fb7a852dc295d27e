"""S3 destination for migrated Terraform state files."""

import json
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from ..api.exceptions import StorageError
from ..config.config import AWSConfig

STATE_FILENAME = 'terraform.tfstate'
METADATA_FILENAME = 'metadata.json'

_NOT_FOUND_CODES = {'404', 'NoSuchKey', 'NotFound'}


class S3StateStore:
    """Writes state files and their metadata into an S3 bucket.

    Keys are laid out as ``{prefix}{workspace}/terraform.tfstate`` and
    ``{prefix}{workspace}/metadata.json``.
    """

    def __init__(self, config: AWSConfig, client: Optional[Any] = None):
        """Initialize the store.

        Args:
            config: Destination bucket configuration
            client: Optional pre-built boto3 S3 client
        """
        self.config = config
        self.bucket = config.bucket
        self.prefix = config.prefix
        self.logger = logger.bind(
            component='s3-client', bucket=config.bucket, region=config.region
        )

        if client is None:
            session = boto3.session.Session(
                profile_name=config.profile, region_name=config.region
            )
            client = session.client('s3', endpoint_url=config.endpoint_url)
        self.client = client

    def state_key(self, workspace_name: str, filename: str = STATE_FILENAME) -> str:
        """Build the object key for a workspace file."""
        return f'{self.prefix}{workspace_name}/{filename}'

    def validate_connection(self) -> None:
        """Check that the bucket is reachable.

        Raises:
            StorageError: If the bucket cannot be accessed
        """
        self.logger.debug('Validating S3 connection')

        try:
            self.client.head_bucket(Bucket=self.bucket)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Cannot access S3 bucket '{self.bucket}': {e}")

        self.logger.info('S3 connection validated')

    def check_state_exists(self, organization: str, workspace_name: str) -> bool:
        """Check whether a state file was already uploaded for a workspace.

        Args:
            organization: Source organization (kept for key layout changes)
            workspace_name: Normalized workspace name

        Returns:
            True if the state object exists

        Raises:
            StorageError: For errors other than a missing object
        """
        key = self.state_key(workspace_name)

        try:
            self.client.head_object(Bucket=self.bucket, Key=key)
            return True
        except ClientError as e:
            code = str(e.response.get('Error', {}).get('Code'))
            if code in _NOT_FOUND_CODES:
                return False
            raise StorageError(f'Error checking state existence: {e}', key=key)
        except BotoCoreError as e:
            raise StorageError(f'Error checking state existence: {e}', key=key)

    def upload_state(
        self,
        organization: str,
        workspace_name: str,
        content: bytes,
        metadata: Dict[str, Any],
    ) -> None:
        """Upload a state file and its metadata document.

        Args:
            organization: Source organization
            workspace_name: Normalized workspace name
            content: Raw state bytes
            metadata: Descriptive metadata, stored as pretty-printed JSON

        Raises:
            StorageError: If either object cannot be written
        """
        state_key = self.state_key(workspace_name)
        metadata_key = self.state_key(workspace_name, METADATA_FILENAME)

        self.logger.info(
            f'Uploading state for {workspace_name} to {state_key} '
            f'({len(content)} bytes)'
        )

        try:
            self._put_object(
                state_key, content, workspace_name, organization, 'terraform-state'
            )
        except StorageError as e:
            raise StorageError(
                f'Error uploading state of workspace {workspace_name}: {e}',
                key=state_key,
            )

        metadata_json = json.dumps(metadata, indent=2, default=str).encode('utf-8')

        try:
            self._put_object(
                metadata_key, metadata_json, workspace_name, organization, 'metadata'
            )
        except StorageError as e:
            raise StorageError(
                f'Error uploading metadata of workspace {workspace_name}: {e}',
                key=metadata_key,
            )

        self.logger.info(f'Upload completed for {workspace_name}')

    def _put_object(
        self,
        key: str,
        body: bytes,
        workspace_name: str,
        organization: str,
        file_type: str,
    ) -> None:
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=body,
                ContentType='application/json',
                Metadata={
                    'workspace': workspace_name,
                    'organization': organization,
                    'file-type': file_type,
                },
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f'S3 upload failed: {e}', key=key)
