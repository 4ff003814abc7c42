"""Configuration management for the backup tool."""

from .settings import ArchiveOptions, BackupSettings, CredentialsConfig, LoggingOptions, StrategyName

__all__ = ["ArchiveOptions", "BackupSettings", "CredentialsConfig", "LoggingOptions", "StrategyName"]
