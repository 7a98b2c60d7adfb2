"""Configuration management for the uploader."""

from .settings import CredentialsConfig, LoggingConfig, UploaderConfig

__all__ = ["UploaderConfig", "CredentialsConfig", "LoggingConfig"]
