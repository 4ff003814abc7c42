"""Configuration settings and models for the backup application."""

import os
from enum import Enum
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import BaseModel, Field, field_validator


class StrategyName(str, Enum):
    """Strategy names accepted on the command line and in config files."""
    COPY = "copy"
    ARCHIVE = "archive"
    COMPRESS = "compress"  # alias of archive


class ArchiveOptions(BaseModel):
    """Options for the archive strategy."""
    compression_level: int = 6
    time_format: str = "%Y%m%d_%H%M%S"

    @field_validator('compression_level')
    @classmethod
    def validate_compression_level(cls, v):
        if not 0 <= v <= 9:
            raise ValueError('compression_level must be between 0 and 9')
        return v

    @field_validator('time_format')
    @classmethod
    def validate_time_format(cls, v):
        if any(sep in v for sep in ('/', '\\', ':')):
            raise ValueError('time_format must not produce path separators or colons')
        return v


class LoggingOptions(BaseModel):
    """Logging options."""
    level: str = "INFO"
    file: Optional[Path] = Path("logs/backup.log")
    console: bool = True
    max_file_size: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5

    @field_validator('level')
    @classmethod
    def validate_level(cls, v):
        if v.upper() not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            raise ValueError(f'Unknown log level: {v}')
        return v.upper()


class BackupSettings(BaseModel):
    """Main configuration class."""
    strategy: StrategyName = StrategyName.COPY
    max_workers: Optional[int] = None
    archive: ArchiveOptions = Field(default_factory=ArchiveOptions)
    logging: LoggingOptions = Field(default_factory=LoggingOptions)

    @field_validator('max_workers')
    @classmethod
    def validate_max_workers(cls, v):
        if v is not None and v < 1:
            raise ValueError('max_workers must be at least 1')
        return v

    @classmethod
    def from_yaml(cls, config_path: Union[str, Path]) -> "BackupSettings":
        """Load configuration from YAML file."""
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f) or {}

        return cls(**config_data)

    def to_yaml(self, config_path: Union[str, Path]) -> None:
        """Save configuration to YAML file."""
        config_path = Path(config_path)
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.safe_dump(self.model_dump(mode='json'), f, default_flow_style=False, indent=2)


class CredentialsConfig(BaseModel):
    """Credentials configuration (stored separately for security)."""
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    aws_session_token: Optional[str] = None
    aws_region: str = "us-east-1"

    azure_storage_account: Optional[str] = None
    azure_storage_account_key: Optional[str] = None
    azure_storage_connection_string: Optional[str] = None

    @classmethod
    def from_yaml(cls, credentials_path: Union[str, Path]) -> "CredentialsConfig":
        """Load credentials from YAML file."""
        credentials_path = Path(credentials_path)
        if not credentials_path.exists():
            return cls()  # Return empty config if file doesn't exist

        with open(credentials_path, 'r', encoding='utf-8') as f:
            creds_data = yaml.safe_load(f) or {}

        return cls(**creds_data)

    @classmethod
    def from_env(cls) -> "CredentialsConfig":
        """Load credentials from environment variables."""
        return cls(
            aws_access_key_id=os.getenv('AWS_ACCESS_KEY_ID'),
            aws_secret_access_key=os.getenv('AWS_SECRET_ACCESS_KEY'),
            aws_session_token=os.getenv('AWS_SESSION_TOKEN'),
            aws_region=os.getenv('AWS_DEFAULT_REGION', 'us-east-1'),
            azure_storage_account=os.getenv('AZURE_STORAGE_ACCOUNT'),
            azure_storage_account_key=os.getenv('AZURE_STORAGE_ACCOUNT_KEY'),
            azure_storage_connection_string=os.getenv('AZURE_STORAGE_CONNECTION_STRING'),
        )

    def merged_with_env(self) -> "CredentialsConfig":
        """Return a copy where unset values are taken from the environment."""
        env = self.from_env()
        explicit = self.model_dump(exclude_unset=True, exclude_none=True)
        return env.model_copy(update=explicit)
