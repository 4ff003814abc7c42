"""Runs one backup per destination in parallel and aggregates the outcomes."""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Union

from ..destinations.classifier import Destination
from ..utils.logging import ContextualLogger, TimedOperation, get_logger
from .base import BackupStrategy
from .errors import BackupFailedError, RemoteUploadError, ValidationError


@dataclass(frozen=True)
class BackupOutcome:
    """Result of backing up to one destination."""
    destination: Destination
    error: Optional[BaseException] = None
    duration: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @property
    def status(self) -> str:
        return "success" if self.succeeded else "failed"


@dataclass
class RunResult:
    """All outcomes of one run, in the order the destinations were given."""
    outcomes: List[BackupOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return all(outcome.succeeded for outcome in self.outcomes)

    @property
    def failures(self) -> List[BackupOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.succeeded]

    @property
    def first_failure(self) -> Optional[BackupOutcome]:
        """First failed destination in submission order."""
        failures = self.failures
        return failures[0] if failures else None

    def raise_for_failures(self) -> None:
        """Raise BackupFailedError if any destination failed."""
        failures = self.failures
        if failures:
            raise BackupFailedError(
                [(outcome.destination, outcome.error) for outcome in failures],
                first=failures[0].error,
            )


class FanOutCoordinator:
    """Backs up one source to many destinations concurrently.

    Every destination is attempted exactly once and a failing destination
    never stops the others. Remote destinations go through the strategy's
    hand-off to ``uploader``; local ones are written directly.
    """

    def __init__(self, max_workers: Optional[int] = None, uploader=None,
                 logger: Optional[logging.Logger] = None):
        """Initialize the coordinator.

        Args:
            max_workers: Size of the worker pool; defaults to one per destination
            uploader: RemoteUploader used for remote destinations
            logger: Logger for progress and failures
        """
        self.max_workers = max_workers
        self.uploader = uploader
        self.logger = logger or get_logger("coordinator")

    def run(self, source_root: Union[str, Path], destinations: Sequence[Destination],
            strategy: BackupStrategy) -> RunResult:
        """Back up ``source_root`` to every destination with ``strategy``.

        Returns:
            RunResult with exactly one outcome per destination

        Raises:
            ValidationError: If the source or destinations are unusable; raised
                before any destination is touched
        """
        source = self.validate(source_root, destinations)

        slots: List[Optional[BackupOutcome]] = [None] * len(destinations)
        workers = self.max_workers or len(destinations)
        self.logger.info(
            f"Backing up {source} to {len(destinations)} destination(s) "
            f"with the {strategy.kind.value} strategy ({workers} workers)"
        )

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="backup") as executor:
            futures = {
                executor.submit(self._backup_one, source, destination, strategy): index
                for index, destination in enumerate(destinations)
            }
            for future in as_completed(futures):
                index = futures[future]
                outcome = future.result()
                slots[index] = outcome
                if not outcome.succeeded:
                    self._context(outcome.destination).error(
                        f"Backup failed ({getattr(outcome.error, 'kind', 'unexpected')}): {outcome.error}"
                    )

        result = RunResult(outcomes=[outcome for outcome in slots if outcome is not None])
        if result.succeeded:
            self.logger.info("All destinations backed up successfully")
        else:
            self.logger.error(
                f"{len(result.failures)} of {len(result.outcomes)} destination(s) failed"
            )
        return result

    def validate(self, source_root: Union[str, Path],
                 destinations: Sequence[Destination]) -> Path:
        """Check the inputs of a run and return the absolute source path."""
        if source_root is None or str(source_root) == "":
            raise ValidationError("A source directory is required")

        source = Path(source_root).expanduser().absolute()
        if not source.exists():
            raise ValidationError(f"Source directory does not exist: {source}")
        if not source.is_dir():
            raise ValidationError(f"Source is not a directory: {source}")

        if not destinations:
            raise ValidationError("At least one destination is required")

        resolved_source = source.resolve()
        seen = set()
        for destination in destinations:
            if destination.is_remote:
                key = destination.target
            else:
                key = str(Path(destination.target).expanduser().resolve())
            if key in seen:
                raise ValidationError(f"Destination {destination.target} is given more than once")
            seen.add(key)
            if destination.is_remote:
                continue
            target = Path(key)
            if target == resolved_source or resolved_source in target.parents:
                raise ValidationError(
                    f"Destination {destination.target} is inside the source directory {source}"
                )

        return source

    def _backup_one(self, source: Path, destination: Destination,
                    strategy: BackupStrategy) -> BackupOutcome:
        # Runs in a worker thread; every exception becomes this destination's outcome
        context = self._context(destination)
        started = time.monotonic()
        try:
            with TimedOperation(context, f"{strategy.kind.value} backup"):
                if destination.is_remote:
                    if self.uploader is None:
                        raise RemoteUploadError(
                            f"No remote uploader configured for {destination.platform.value} "
                            f"destination {destination.target}"
                        )
                    strategy.hand_off(source, destination, self.uploader)
                else:
                    strategy.backup_to(source, destination)
        except Exception as e:
            return BackupOutcome(destination, error=e, duration=time.monotonic() - started)
        return BackupOutcome(destination, duration=time.monotonic() - started)

    def _context(self, destination: Destination) -> ContextualLogger:
        return ContextualLogger(self.logger, {"destination": destination.target})
