"""Copy strategy: mirror the source tree onto each destination."""

import os
import shutil
import stat
from pathlib import Path
from typing import List, Tuple, Union

from ..destinations.classifier import Destination
from .base import BackupStrategy, StrategyKind
from .errors import DestinationIOError
from .walker import TreeEntry, is_leaf_directory, walk

COPY_BUFFER_SIZE = 1024 * 1024  # 1MB


class CopyBackupStrategy(BackupStrategy):
    """Recursive copy of the source tree into each destination directory.

    Files are overwritten on every run, so copying twice into the same
    destination gives the same tree as copying once. A failed copy leaves
    whatever was written so far in place.
    """

    kind = StrategyKind.COPY

    def backup_to(self, source_root: Union[str, Path], destination: Destination) -> None:
        """Copy the tree into the local directory ``destination.target``.

        Raises:
            TraversalError: If the source tree cannot be walked
            DestinationIOError: If a file or directory cannot be copied
        """
        log = self.destination_logger(destination)
        destination_root = Path(destination.target)
        log.info(f"Starting recursive backup to {destination_root}")

        # Directory modes and times are applied once their contents are written
        pending_directories: List[Tuple[Path, TreeEntry]] = []

        def on_directory(entry: TreeEntry) -> None:
            target = destination_root / entry.relative_path
            create_directory(target, entry.mode)
            pending_directories.append((target, entry))

        def on_file(entry: TreeEntry) -> None:
            target = destination_root / entry.relative_path
            log.debug(f"Copying file from {entry.absolute_path} to {target}")
            copy_file(entry.absolute_path, target, entry)

        walk(source_root, on_file=on_file, on_directory=on_directory)

        for target, entry in reversed(pending_directories):
            apply_metadata(target, entry)

        log.info(f"Backup to {destination_root} completed successfully")

    def hand_off(self, source_root: Union[str, Path], destination: Destination, uploader) -> None:
        """Upload every file of the tree, keyed by its forward-slash relative path.

        Args:
            source_root: Directory to back up
            destination: Remote destination
            uploader: RemoteUploader doing the transfers
        """
        log = self.destination_logger(destination)
        log.info(f"Starting file upload to {destination.platform.value} destination {destination.target}")
        uploaded = 0

        def on_file(entry: TreeEntry) -> None:
            nonlocal uploaded
            uploader.upload(source_root, destination, entry.archive_name)
            uploaded += 1

        def on_directory(entry: TreeEntry) -> None:
            if is_leaf_directory(entry):
                log.debug(f"Skipping empty directory {entry.archive_name}/ (not representable remotely)")

        walk(source_root, on_file=on_file, on_directory=on_directory)
        log.info(f"Uploaded {uploaded} files to {destination.target}")


def create_directory(target: Path, mode: int) -> None:
    """Create ``target`` and keep it owner-writable until metadata is applied."""
    try:
        target.mkdir(mode=mode | stat.S_IRWXU, parents=True, exist_ok=True)
        current = stat.S_IMODE(target.stat().st_mode)
        if current & stat.S_IRWXU != stat.S_IRWXU:
            os.chmod(target, current | stat.S_IRWXU)
    except OSError as e:
        raise DestinationIOError(f"failed to create directory {target}: {e}") from e


def copy_file(src: Path, dst: Path, entry: TreeEntry) -> None:
    """Copy a single file, then give it the source's mode and modification time."""
    try:
        src_file = open(src, 'rb')
    except OSError as e:
        raise DestinationIOError(f"failed to open source file {src}: {e}") from e

    with src_file:
        try:
            dst.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DestinationIOError(f"failed to create directories for {dst}: {e}") from e

        try:
            _make_owner_writable(dst)
            fd = os.open(dst, os.O_CREAT | os.O_WRONLY | os.O_TRUNC, entry.mode)
        except OSError as e:
            raise DestinationIOError(f"failed to create destination file {dst}: {e}") from e

        try:
            with os.fdopen(fd, 'wb') as dst_file:
                shutil.copyfileobj(src_file, dst_file, COPY_BUFFER_SIZE)
        except OSError as e:
            raise DestinationIOError(f"failed to copy file from {src} to {dst}: {e}") from e

    apply_metadata(dst, entry)


def apply_metadata(target: Path, entry: TreeEntry) -> None:
    """Give ``target`` the permission bits and modification time of ``entry``.

    Args:
        target: Copied file or directory in the destination
        entry: Source node it was copied from

    Raises:
        DestinationIOError: If the metadata cannot be set
    """
    try:
        os.chmod(target, entry.mode)
        os.utime(target, (entry.mtime, entry.mtime))
    except OSError as e:
        raise DestinationIOError(f"failed to set permissions on {target}: {e}") from e


def _make_owner_writable(path: Path) -> None:
    # A read-only file from an earlier run must still be overwritable
    if not path.exists() or os.access(path, os.W_OK):
        return
    current = stat.S_IMODE(path.stat().st_mode)
    os.chmod(path, current | stat.S_IWUSR)
