"""Backup engine: tree walker, strategies and destination fan-out."""

from .archive import ArchiveBackupStrategy
from .base import BackupStrategy, StrategyKind, create_strategy
from .coordinator import BackupOutcome, FanOutCoordinator, RunResult
from .copy import CopyBackupStrategy
from .walker import TreeEntry, walk

__all__ = [
    "ArchiveBackupStrategy",
    "BackupOutcome",
    "BackupStrategy",
    "CopyBackupStrategy",
    "FanOutCoordinator",
    "RunResult",
    "StrategyKind",
    "TreeEntry",
    "create_strategy",
    "walk",
]
