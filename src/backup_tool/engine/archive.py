"""Archive strategy: write the source tree into one ZIP file per destination."""

import logging
import shutil
import tempfile
import zipfile
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from ..destinations.classifier import Destination
from .base import BackupStrategy, StrategyKind
from .errors import DestinationIOError, FinalizationError
from .walker import TreeEntry, is_leaf_directory, walk

ARCHIVE_EXTENSION = "zip"


class ArchiveBackupStrategy(BackupStrategy):
    """Creates ``<source>_<timestamp>.zip`` in every destination.

    Entries are written in walk order with the source file's mode and
    modification time, so two archives of an unchanged tree have identical
    entries. Empty directories get an explicit ``name/`` entry; any other
    directory is implied by the paths of its files.
    """

    kind = StrategyKind.ARCHIVE

    def __init__(
        self,
        compression_level: int = 6,
        time_format: str = "%Y%m%d_%H%M%S",
        timestamp: Optional[datetime] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize the archive strategy.

        Args:
            compression_level: DEFLATE level, 0-9
            time_format: strftime format of the timestamp in archive names
            timestamp: Time used in archive names; defaults to now, taken once
                so every destination of a run gets the same name
            logger: Logger to report progress to
        """
        super().__init__(logger=logger)
        self.compression_level = compression_level
        self.time_format = time_format
        self.timestamp = timestamp or datetime.now()

    def archive_filename(self, source_root: Union[str, Path]) -> str:
        """Return ``<source dir name>_<timestamp>.zip``."""
        source_name = Path(source_root).resolve().name or "backup"
        return f"{source_name}_{self.timestamp.strftime(self.time_format)}.{ARCHIVE_EXTENSION}"

    def backup_to(self, source_root: Union[str, Path], destination: Destination) -> None:
        """Write ``<source>_<timestamp>.zip`` into the local directory ``destination.target``."""
        archive_path = Path(destination.target) / self.archive_filename(source_root)
        log = self.destination_logger(destination)
        log.info(f"Starting ZIP backup to {archive_path}")

        try:
            archive_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DestinationIOError(f"failed to create destination directory {archive_path.parent}: {e}") from e

        self.create_archive(source_root, archive_path)
        log.info(f"ZIP backup to {archive_path} completed successfully")

    def hand_off(self, source_root: Union[str, Path], destination: Destination, uploader) -> None:
        """Build the archive in a temporary directory and upload it.

        The temporary directory is removed whether or not the upload succeeds.
        """
        log = self.destination_logger(destination)
        filename = self.archive_filename(source_root)
        temp_dir = tempfile.mkdtemp(prefix='backup_tool_')
        try:
            log.info(f"Building {filename} for upload to {destination.target}")
            self.create_archive(source_root, Path(temp_dir) / filename)
            location = uploader.upload(temp_dir, destination, filename)
            log.info(f"Uploaded archive to {location}")
        finally:
            shutil.rmtree(temp_dir, ignore_errors=True)

    def create_archive(self, source_root: Union[str, Path], archive_path: Path) -> Path:
        """Write the whole source tree into ``archive_path``.

        A partially written archive is removed when the walk fails.

        Raises:
            DestinationIOError: If the archive or a source file cannot be accessed
            TraversalError: If the walk fails
            FinalizationError: If the archive cannot be finalized
        """
        try:
            zip_file = zipfile.ZipFile(
                archive_path,
                'w',
                compression=zipfile.ZIP_DEFLATED,
                compresslevel=self.compression_level,
                strict_timestamps=False,
            )
        except OSError as e:
            raise DestinationIOError(f"failed to create zip file {archive_path}: {e}") from e

        try:
            walk(
                source_root,
                on_file=lambda entry: self._add_file(zip_file, entry),
                on_directory=lambda entry: self._add_directory(zip_file, entry),
            )
        except BaseException:
            self._discard(zip_file, archive_path)
            raise

        try:
            zip_file.close()
        except (OSError, ValueError) as e:
            raise FinalizationError(f"failed to finalize zip archive {archive_path}: {e}") from e

        return archive_path

    def _add_file(self, zip_file: zipfile.ZipFile, entry: TreeEntry) -> None:
        # write() takes the header (name, mode, mtime) from the source file
        # and the compression settings from the archive
        try:
            zip_file.write(entry.absolute_path, entry.archive_name)
        except UnicodeEncodeError as e:
            raise DestinationIOError(_unencodable_name(entry)) from e
        except OSError as e:
            raise DestinationIOError(f"failed to add {entry.archive_name!r} to archive: {e}") from e

    def _add_directory(self, zip_file: zipfile.ZipFile, entry: TreeEntry) -> None:
        try:
            if not is_leaf_directory(entry):
                return
            # Stored as "name/" without payload; a linked directory counts as empty
            zip_file.write(entry.absolute_path, entry.archive_name)
        except UnicodeEncodeError as e:
            raise DestinationIOError(_unencodable_name(entry)) from e
        except OSError as e:
            raise DestinationIOError(f"failed to add directory {entry.archive_name!r} to archive: {e}") from e

    def _discard(self, zip_file: zipfile.ZipFile, archive_path: Path) -> None:
        try:
            zip_file.close()
        except (OSError, ValueError) as e:
            self.logger.debug(f"Ignoring close error for discarded archive {archive_path}: {e}")
        try:
            archive_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            self.logger.warning(f"Could not remove partial archive {archive_path}: {e}")


def _unencodable_name(entry: TreeEntry) -> str:
    # ZIP entry names must be UTF-8; undecodable POSIX names arrive as surrogates
    return (f"cannot store {entry.archive_name!r} in a ZIP archive: "
            f"the file name is not valid UTF-8")
