"""Configuration settings and models for the uploader."""

import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..exceptions import ConfigurationError

# Section name used when the YAML file nests settings, as appsettings.json did
CONFIG_SECTION = "app_settings"
ENV_PREFIX = "FILES_UPLOADER_"


class LoggingConfig(BaseModel):
    """Logging options."""
    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    file: Optional[Path] = Path("logs/files_uploader.log")
    console: bool = True
    max_file_size: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5

    @field_validator('level')
    @classmethod
    def validate_level(cls, v):
        v = v.upper()
        if v not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            raise ValueError(f'unknown log level: {v}')
        return v


class UploaderConfig(BaseModel):
    """Main configuration class."""
    model_config = ConfigDict(frozen=True)

    scan_interval_minutes: int = Field(..., ge=1, le=60)
    scan_folder: str
    container: str
    max_files_to_store: Optional[int] = Field(default=None, ge=0)
    parallel_uploads: int = Field(default=1, ge=1, le=32)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator('scan_folder', 'container')
    @classmethod
    def validate_not_blank(cls, v, info):
        if not v or not v.strip():
            raise ValueError(f'{info.field_name} must not be empty')
        return v.strip()

    @property
    def retention_enabled(self) -> bool:
        return self.max_files_to_store is not None

    @property
    def scan_interval_seconds(self) -> float:
        return self.scan_interval_minutes * 60.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any], apply_env: bool = True) -> "UploaderConfig":
        """Validate settings from a mapping, optionally layering environment overrides."""
        data = dict(data.get(CONFIG_SECTION, data) or {})
        if apply_env:
            data.update(_env_overrides())
        try:
            return cls(**data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    @classmethod
    def from_yaml(cls, config_path: Union[str, Path], apply_env: bool = True) -> "UploaderConfig":
        """Load configuration from YAML file.

        A missing file is allowed so the service can be configured purely
        through ``FILES_UPLOADER_*`` environment variables.
        """
        config_path = Path(config_path)
        config_data: Dict[str, Any] = {}
        if config_path.exists():
            try:
                with open(config_path, 'r', encoding='utf-8') as f:
                    config_data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Cannot parse {config_path}: {e}") from e
            if not isinstance(config_data, dict):
                raise ConfigurationError(f"Configuration root in {config_path} must be a mapping")

        return cls.from_dict(config_data, apply_env=apply_env)

    def to_yaml(self, config_path: Union[str, Path]) -> None:
        """Save configuration to YAML file."""
        config_path = Path(config_path)
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump(
                {CONFIG_SECTION: self.model_dump(mode='json', exclude_none=True)},
                f,
                default_flow_style=False,
                indent=2,
                sort_keys=False,
            )


class CredentialsConfig(BaseModel):
    """Credentials configuration (stored separately for security)."""
    model_config = ConfigDict(frozen=True)

    azure_storage_connection_string: Optional[str] = None
    azure_storage_account_name: Optional[str] = None
    azure_storage_account_key: Optional[str] = None
    use_default_credential: bool = False

    @classmethod
    def from_yaml(cls, credentials_path: Union[str, Path]) -> "CredentialsConfig":
        """Load credentials from YAML file."""
        credentials_path = Path(credentials_path)
        if not credentials_path.exists():
            return cls()  # Return empty config if file doesn't exist

        try:
            with open(credentials_path, 'r', encoding='utf-8') as f:
                creds_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Cannot parse {credentials_path}: {e}") from e
        if not isinstance(creds_data, dict):
            raise ConfigurationError(f"Credentials root in {credentials_path} must be a mapping")

        try:
            return cls(**creds_data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid credentials file {credentials_path}: {e}") from e

    @classmethod
    def from_env(cls) -> "CredentialsConfig":
        """Load credentials from environment variables."""
        return cls(
            azure_storage_connection_string=os.getenv('AZURE_STORAGE_CONNECTION_STRING'),
            azure_storage_account_name=os.getenv('AZURE_STORAGE_ACCOUNT_NAME'),
            azure_storage_account_key=os.getenv('AZURE_STORAGE_ACCOUNT_KEY'),
            use_default_credential=os.getenv('AZURE_USE_DEFAULT_CREDENTIAL', '').lower() in ('1', 'true', 'yes'),
        )

    @classmethod
    def load(cls, credentials_path: Union[str, Path]) -> "CredentialsConfig":
        """Load credentials from file, filling unset values from the environment."""
        from_file = cls.from_yaml(credentials_path)
        from_env = cls.from_env()
        merged = {
            name: getattr(from_file, name) or getattr(from_env, name)
            for name in cls.model_fields
        }
        return cls(**merged)

    def validate_for_azure(self) -> None:
        """Ensure at least one usable way to reach the storage account exists."""
        if self.azure_storage_connection_string:
            return
        if not self.azure_storage_account_name:
            raise ConfigurationError(
                "Azure storage credentials missing: set azure_storage_connection_string "
                "or azure_storage_account_name with a key or default credential"
            )
        if not (self.azure_storage_account_key or self.use_default_credential):
            raise ConfigurationError(
                "azure_storage_account_name requires azure_storage_account_key "
                "or use_default_credential"
            )


def _env_overrides() -> Dict[str, Any]:
    """Collect ``FILES_UPLOADER_*`` settings from the environment."""
    overrides = {}
    for field_name in ('scan_interval_minutes', 'scan_folder', 'container',
                       'max_files_to_store', 'parallel_uploads'):
        value = os.getenv(f"{ENV_PREFIX}{field_name.upper()}")
        if value is not None and value != '':
            overrides[field_name] = value
    return overrides
