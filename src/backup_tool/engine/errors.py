"""Exceptions raised by the backup engine.

Each class corresponds to one kind of failure. Everything except
``ValidationError`` is local to a single destination: the coordinator turns it
into that destination's outcome and keeps going with the others.
"""

from typing import List, Optional, Sequence


class BackupError(Exception):
    """Base class for all backup engine errors."""
    kind = "backup"


class ValidationError(BackupError):
    """Raised when the source or the destination list is unusable."""
    kind = "validation"


class TraversalError(BackupError):
    """Raised when a source tree node cannot be resolved or listed."""
    kind = "traversal"


class DestinationIOError(BackupError):
    """Raised when reading the source or writing a destination fails."""
    kind = "io"


class FinalizationError(BackupError):
    """Raised when an archive cannot be finalized."""
    kind = "finalization"


class RemoteUploadError(BackupError):
    """Raised when a remote upload is unsupported or fails."""
    kind = "remote"


class BackupFailedError(BackupError):
    """Raised when one or more destinations of a run failed.

    The message is the first failure; ``failures`` holds every
    ``(destination, error)`` pair of the run.
    """
    kind = "aggregate"

    def __init__(self, failures: Sequence, first: Optional[BaseException] = None):
        self.failures: List = list(failures)
        if first is None and self.failures:
            first = self.failures[0][1]
        self.first = first
        count = len(self.failures)
        message = f"{count} destination(s) failed"
        if first is not None:
            message = f"{message}; first failure: {first}"
        super().__init__(message)
