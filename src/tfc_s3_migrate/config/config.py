"""Configuration management for the Terraform Cloud to S3 migrator."""

from typing import Optional, Dict, Any
from pathlib import Path
import os

from pydantic import BaseModel, Field, validator
import yaml
from dotenv import load_dotenv


DEFAULT_LOG_FORMAT = '{time:YYYY-MM-DD HH:mm:ss} | {level} | {name} | {message}'


class TerraformCloudConfig(BaseModel):
    """Configuration for the Terraform Cloud organization."""

    token: str = Field(..., description='Terraform Cloud API token')
    organization: str = Field(..., description='Terraform Cloud organization name')
    url: str = Field(
        default='https://app.terraform.io', description='Terraform Cloud URL'
    )
    timeout: int = Field(default=30, description='Request timeout in seconds')
    rate_limit_per_second: float = Field(
        default=20.0, description='API requests per second limit'
    )
    rate_limit_retries: int = Field(
        default=3, description='Retries of a request answered with HTTP 429'
    )

    @validator('url')
    def validate_url(cls, v):
        """Validate Terraform Cloud URL format."""
        if not v.startswith(('http://', 'https://')):
            raise ValueError('URL must start with http:// or https://')
        return v.rstrip('/')

    @validator('token')
    def validate_token(cls, v):
        """Ensure the API token is present."""
        if not v or not v.strip():
            raise ValueError('Terraform Cloud token is required')
        return v

    @validator('organization')
    def validate_organization(cls, v):
        """Ensure the organization is present."""
        if not v or not v.strip():
            raise ValueError('Terraform Cloud organization is required')
        return v.strip()

    @validator('rate_limit_per_second')
    def validate_rate_limit(cls, v):
        """Validate rate limit is positive."""
        if v <= 0:
            raise ValueError('Rate limit must be positive')
        return v

    @validator('rate_limit_retries')
    def validate_rate_limit_retries(cls, v):
        """Validate the retry count is not negative."""
        if v < 0:
            raise ValueError('rate_limit_retries cannot be negative')
        return v


class AWSConfig(BaseModel):
    """Destination bucket configuration."""

    region: str = Field(default='us-east-1', description='AWS region')
    bucket: str = Field(..., description='S3 bucket receiving the state files')
    prefix: str = Field(
        default='terraform-states/', description='Key prefix inside the bucket'
    )
    profile: Optional[str] = Field(
        default=None, description='Named AWS profile for credentials'
    )
    endpoint_url: Optional[str] = Field(
        default=None, description='Custom S3 endpoint (S3-compatible stores)'
    )

    @validator('bucket')
    def validate_bucket(cls, v):
        """Ensure the bucket name is present."""
        if not v or not v.strip():
            raise ValueError('S3 bucket is required')
        return v.strip()

    @validator('prefix')
    def validate_prefix(cls, v):
        """Normalize the key prefix to end with a single slash."""
        v = (v or '').strip().strip('/')
        return f'{v}/' if v else ''


class MigrationConfig(BaseModel):
    """Migration-specific configuration."""

    batch_size: int = Field(default=5, description='Workspaces processed per batch')
    concurrent_uploads: int = Field(
        default=3, description='Maximum concurrent workspace migrations per batch'
    )
    retry_attempts: int = Field(default=3, description='Upload attempts per workspace')

    batch_delay: float = Field(
        default=1.0, description='Pause between batches in seconds'
    )
    retry_backoff: float = Field(
        default=1.0, description='Linear backoff unit between upload attempts'
    )

    @validator('batch_size')
    def validate_batch_size(cls, v):
        """Validate batch size is positive."""
        if v <= 0:
            raise ValueError('batch_size must be greater than 0')
        return v

    @validator('concurrent_uploads')
    def validate_concurrent_uploads(cls, v):
        """Validate concurrency is positive."""
        if v <= 0:
            raise ValueError('concurrent_uploads must be greater than 0')
        return v

    @validator('retry_attempts')
    def validate_retry_attempts(cls, v):
        """Validate at least one upload attempt is made."""
        if v < 1:
            raise ValueError('retry_attempts must be at least 1')
        return v

    @validator('batch_delay', 'retry_backoff')
    def validate_delays(cls, v):
        """Validate delays are not negative."""
        if v < 0:
            raise ValueError('Delays cannot be negative')
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default='INFO', description='Log level')
    file: Optional[str] = Field(default='migration.log', description='Log file path')
    format: str = Field(default=DEFAULT_LOG_FORMAT, description='Log format')

    @validator('level')
    def validate_log_level(cls, v):
        """Validate log level."""
        level = v.upper()
        if level == 'WARN':
            level = 'WARNING'
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if level not in valid_levels:
            raise ValueError(f'Log level must be one of: {valid_levels}')
        return level


class Config(BaseModel):
    """Main configuration class for the migrator."""

    terraform_cloud: TerraformCloudConfig = Field(
        ..., description='Terraform Cloud source'
    )
    aws: AWSConfig = Field(..., description='S3 destination')
    migration: MigrationConfig = Field(
        default_factory=MigrationConfig, description='Migration settings'
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description='Logging settings'
    )

    class Config:
        """Pydantic configuration."""

        extra = 'forbid'

    @classmethod
    def from_file(cls, config_path: str) -> 'Config':
        """Load configuration from YAML file."""
        config_file = Path(config_path)

        if not config_file.exists():
            raise FileNotFoundError(f'Configuration file not found: {config_path}')

        with open(config_file, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f) or {}

        return cls(**config_data)

    @classmethod
    def from_env(cls) -> 'Config':
        """Load configuration from environment variables."""
        load_dotenv()

        config_data = {
            'terraform_cloud': {
                'token': os.getenv('TFC_TOKEN'),
                'organization': os.getenv('TFC_ORGANIZATION'),
                'url': os.getenv('TFC_URL'),
            },
            'aws': {
                'region': os.getenv('AWS_REGION'),
                'bucket': os.getenv('S3_BUCKET'),
                'prefix': os.getenv('S3_PREFIX'),
                'profile': os.getenv('AWS_PROFILE'),
                'endpoint_url': os.getenv('S3_ENDPOINT_URL'),
            },
            'migration': {
                'batch_size': int(os.getenv('MIGRATION_BATCH_SIZE', 5)),
                'concurrent_uploads': int(
                    os.getenv('MIGRATION_CONCURRENT_UPLOADS', 3)
                ),
                'retry_attempts': int(os.getenv('MIGRATION_RETRY_ATTEMPTS', 3)),
            },
            'logging': {
                'level': os.getenv('LOG_LEVEL', 'INFO'),
                'file': os.getenv('LOG_FILE'),
            },
        }

        config_data = cls._remove_none_values(config_data)

        return cls(**config_data)

    @staticmethod
    def _remove_none_values(data: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively remove None values from dictionary."""
        if isinstance(data, dict):
            return {
                k: Config._remove_none_values(v)
                for k, v in data.items()
                if v is not None
            }
        return data

    def to_file(self, config_path: str) -> None:
        """Save configuration to YAML file."""
        config_file = Path(config_path)
        config_file.parent.mkdir(parents=True, exist_ok=True)

        with open(config_file, 'w', encoding='utf-8') as f:
            yaml.dump(
                self.dict(), f, default_flow_style=False, indent=2, sort_keys=False
            )

    @staticmethod
    def create_template(output_path: str) -> None:
        """Create a configuration template file."""
        template_config = {
            'terraform_cloud': {
                'token': 'your-terraform-cloud-api-token',
                'organization': 'your-organization',
                'url': 'https://app.terraform.io',
                'timeout': 30,
            },
            'aws': {
                'region': 'us-east-1',
                'bucket': 'your-terraform-states-bucket',
                'prefix': 'terraform-states/',
                'profile': 'default',
            },
            'migration': {
                'batch_size': 5,
                'concurrent_uploads': 3,
                'retry_attempts': 3,
            },
            'logging': {
                'level': 'INFO',
                'file': 'migration.log',
                'format': DEFAULT_LOG_FORMAT,
            },
        }

        config_file = Path(output_path)
        config_file.parent.mkdir(parents=True, exist_ok=True)

        with open(config_file, 'w', encoding='utf-8') as f:
            yaml.dump(
                template_config, f, default_flow_style=False, indent=2, sort_keys=False
            )
