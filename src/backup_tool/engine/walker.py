"""Directory tree walker.

Visits every node under a source root in a fixed order (lexical by name,
depth-first, a directory before its children) and hands each one to a
caller-supplied handler. The strategies build on this: the copy strategy
mirrors entries onto a destination root, the archive strategy writes them into
a ZIP file.
"""

import os
import stat
from dataclasses import dataclass
from pathlib import Path, PurePath
from typing import Callable, List, Optional, Union

from .errors import DestinationIOError, TraversalError


@dataclass(frozen=True)
class TreeEntry:
    """A single node visited during a walk.

    A symbolic link to a directory inside the root has ``is_link`` set; its
    contents are not visited, so it stands for an empty directory.
    """
    absolute_path: Path
    relative_path: PurePath
    is_directory: bool
    mode: int
    mtime: float
    size: int = 0
    is_link: bool = False

    @property
    def is_root(self) -> bool:
        return str(self.relative_path) == "."

    @property
    def archive_name(self) -> str:
        """Relative path with forward slashes, as used inside archives."""
        return self.relative_path.as_posix()


EntryHandler = Callable[[TreeEntry], None]


def is_empty_dir(path: Union[str, Path]) -> bool:
    """Return True when the directory has no children at all."""
    with os.scandir(path) as it:
        for _ in it:
            return False
    return True


def is_leaf_directory(entry: TreeEntry) -> bool:
    """True for a non-root directory with nothing below it in the walk."""
    if not entry.is_directory or entry.is_root:
        return False
    return entry.is_link or is_empty_dir(entry.absolute_path)


def walk(
    source_root: Union[str, Path],
    on_file: Optional[EntryHandler] = None,
    on_directory: Optional[EntryHandler] = None,
    destination_root: Optional[Union[str, Path]] = None,
) -> None:
    """Walk ``source_root`` and apply the handlers to every node.

    Args:
        source_root: Directory to traverse
        on_file: Called for every file. Defaults to doing nothing.
        on_directory: Called for every directory, including the root itself
            (relative path ``"."``). Defaults to creating the equivalent
            directory under ``destination_root`` when one is given.
        destination_root: Root used by the default directory handler

    Raises:
        TraversalError: If a node cannot be listed or resolves outside the root
        Exception: Whatever a handler raises; the walk stops at that point
    """
    root = Path(source_root)
    try:
        resolved_root = root.resolve(strict=True)
        root_stat = root.stat()
    except OSError as e:
        raise TraversalError(f"Error accessing path {root}: {e}") from e

    if on_directory is None:
        on_directory = _default_directory_handler(destination_root)

    root_entry = TreeEntry(
        absolute_path=root,
        relative_path=PurePath("."),
        is_directory=True,
        mode=stat.S_IMODE(root_stat.st_mode),
        mtime=root_stat.st_mtime,
    )
    on_directory(root_entry)
    _walk_directory(root, root, resolved_root, on_file, on_directory)


def _walk_directory(directory: Path, root: Path, resolved_root: Path,
                    on_file: Optional[EntryHandler], on_directory: EntryHandler) -> None:
    for child in _sorted_children(directory):
        entry = _make_entry(child, root, resolved_root)
        if entry is None:
            continue

        if entry.is_directory:
            on_directory(entry)
            if not entry.is_link:
                _walk_directory(child, root, resolved_root, on_file, on_directory)
        elif on_file is not None:
            on_file(entry)


def _sorted_children(directory: Path) -> List[Path]:
    try:
        with os.scandir(directory) as it:
            names = sorted(item.name for item in it)
    except OSError as e:
        raise TraversalError(f"Error accessing path {directory}: {e}") from e
    return [directory / name for name in names]


def _make_entry(path: Path, root: Path, resolved_root: Path) -> Optional[TreeEntry]:
    try:
        relative = path.relative_to(root)
    except ValueError as e:
        raise TraversalError(f"Error getting relative path for {path}: {e}") from e

    is_link = path.is_symlink()
    try:
        if is_link:
            target = path.resolve(strict=True)
            if target != resolved_root and resolved_root not in target.parents:
                raise TraversalError(
                    f"Symbolic link {path} points outside the source root: {target}"
                )
        st = path.stat()
    except OSError as e:
        raise TraversalError(f"Error accessing path {path}: {e}") from e

    is_directory = stat.S_ISDIR(st.st_mode)
    if not is_directory and not stat.S_ISREG(st.st_mode):
        # sockets, fifos and device nodes
        return None
    return TreeEntry(
        absolute_path=path,
        relative_path=PurePath(relative),
        is_directory=is_directory,
        mode=stat.S_IMODE(st.st_mode),
        mtime=st.st_mtime,
        size=0 if is_directory else st.st_size,
        is_link=is_link,
    )


def _default_directory_handler(destination_root: Optional[Union[str, Path]]) -> EntryHandler:
    def create_directory(entry: TreeEntry) -> None:
        if destination_root is None:
            return
        target = Path(destination_root) / entry.relative_path
        try:
            target.mkdir(mode=entry.mode, parents=True, exist_ok=True)
        except OSError as e:
            raise DestinationIOError(f"failed to create directory {target}: {e}") from e

    return create_directory
