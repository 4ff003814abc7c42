"""Backup strategy interface and factory."""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

from ..destinations.classifier import Destination
from ..utils.logging import ContextualLogger, get_logger
from .errors import BackupFailedError, RemoteUploadError


class StrategyKind(str, Enum):
    """The closed set of backup strategies."""
    COPY = "copy"
    ARCHIVE = "archive"

    @classmethod
    def from_name(cls, name: str) -> "StrategyKind":
        """Resolve a user-facing name; ``compress`` is an alias of ``archive``."""
        value = getattr(name, "value", name)
        normalized = str(value).strip().lower()
        if normalized == "compress":
            return cls.ARCHIVE
        try:
            return cls(normalized)
        except ValueError:
            raise ValueError(f"Unknown backup strategy: {name}") from None


class BackupStrategy(ABC):
    """Materializes a source tree at one or more destinations."""

    kind: StrategyKind

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or get_logger("engine")

    def backup(self, source_root: Union[str, Path], destinations: Sequence[Destination],
               uploader=None) -> None:
        """Back up ``source_root`` to every destination, one after another.

        Every destination is attempted even when an earlier one fails.

        Raises:
            BackupFailedError: If at least one destination failed
        """
        failures: List[Tuple[Destination, BaseException]] = []
        for destination in destinations:
            try:
                if destination.is_remote:
                    if uploader is None:
                        raise RemoteUploadError(f"No remote uploader configured for {destination}")
                    self.hand_off(source_root, destination, uploader)
                else:
                    self.backup_to(source_root, destination)
            except Exception as e:
                self.destination_logger(destination).error(
                    f"Failed to back up ({getattr(e, 'kind', 'unexpected')}): {e}"
                )
                failures.append((destination, e))

        if failures:
            raise BackupFailedError(failures)

    @abstractmethod
    def backup_to(self, source_root: Union[str, Path], destination: Destination) -> None:
        """Back up ``source_root`` to a single local destination."""

    @abstractmethod
    def hand_off(self, source_root: Union[str, Path], destination: Destination, uploader) -> None:
        """Prepare the backup and pass it to the remote ``uploader``."""

    def destination_logger(self, destination: Destination) -> ContextualLogger:
        return ContextualLogger(self.logger, {"destination": destination.target})


def create_strategy(name: Union[str, StrategyKind], settings=None,
                    logger: Optional[logging.Logger] = None) -> BackupStrategy:
    """Create the strategy registered under ``name``.

    Args:
        name: ``copy``, ``archive`` or ``compress``
        settings: Optional BackupSettings supplying archive options
        logger: Logger injected into the strategy

    Raises:
        ValueError: If the name is not a known strategy
    """
    from .archive import ArchiveBackupStrategy
    from .copy import CopyBackupStrategy

    kind = StrategyKind.from_name(name)
    if kind is StrategyKind.COPY:
        return CopyBackupStrategy(logger=logger)
    if kind is StrategyKind.ARCHIVE:
        options = settings.archive if settings is not None else None
        if options is None:
            return ArchiveBackupStrategy(logger=logger)
        return ArchiveBackupStrategy(
            compression_level=options.compression_level,
            time_format=options.time_format,
            logger=logger,
        )
    raise ValueError(f"Unknown backup strategy: {name}")
