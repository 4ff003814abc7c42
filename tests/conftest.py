"""
Shared pytest fixtures for the backup tool tests.

This module provides fixtures for:
- Source trees on disk
- Local destination descriptors
- A recording remote uploader
"""

import logging
import os
import stat
from pathlib import Path

import pytest

from backup_tool.destinations.classifier import Destination, DestinationKind, Platform, classify_destination
from backup_tool.destinations.remote import RemoteUploader


@pytest.fixture
def simple_tree(tmp_path):
    """
    Create ``root/{a.txt="hi", sub/ (empty)}``.

    Returns the path to ``root``.
    """
    root = tmp_path / "root"
    root.mkdir()
    (root / "a.txt").write_text("hi")
    (root / "sub").mkdir()
    return root


@pytest.fixture
def nested_tree(tmp_path):
    """
    Create a source tree with nested directories and varied permissions.

    root/
        a.txt           0o640
        bin/run.sh      0o755
        docs/guide.md
        docs/img/logo.png
        empty/
        locked/         0o750, contains secret.txt 0o600
    """
    root = tmp_path / "root"
    root.mkdir()

    (root / "a.txt").write_text("alpha")
    os.chmod(root / "a.txt", 0o640)

    (root / "bin").mkdir()
    (root / "bin" / "run.sh").write_text("#!/bin/sh\necho hi\n")
    os.chmod(root / "bin" / "run.sh", 0o755)

    (root / "docs" / "img").mkdir(parents=True)
    (root / "docs" / "guide.md").write_text("# Guide\n")
    (root / "docs" / "img" / "logo.png").write_bytes(bytes(range(256)) * 8)

    (root / "empty").mkdir()

    (root / "locked").mkdir()
    (root / "locked" / "secret.txt").write_text("s3cr3t")
    os.chmod(root / "locked" / "secret.txt", 0o600)
    os.chmod(root / "locked", 0o750)

    return root


@pytest.fixture
def local_destination(tmp_path):
    """Factory for local destinations under ``tmp_path``."""
    def make(name: str) -> Destination:
        return classify_destination(str(tmp_path / name))
    return make


@pytest.fixture
def broken_destination(tmp_path):
    """
    Local destination that can never be written.

    Its parent is a regular file, so every mkdir below it fails, even for root.
    """
    blocker = tmp_path / "not_a_directory"
    blocker.write_text("blocker")
    return Destination(
        target=str(blocker / "dest"),
        kind=DestinationKind.LOCAL,
        platform=Platform.LOCAL,
    )


@pytest.fixture
def test_logger():
    """Logger injected into strategies and coordinators under test."""
    return logging.getLogger("backup_tool.tests")


class RecordingUploader(RemoteUploader):
    """Uploader that records calls and the content of uploaded files."""

    def __init__(self):
        self.calls = []
        self.contents = {}

    def upload(self, source_root, destination, name):
        path = Path(source_root) / name
        self.calls.append((Path(source_root), destination, name))
        self.contents[name] = path.read_bytes()
        return f"{destination.target.rstrip('/')}/{name}"


@pytest.fixture
def recording_uploader():
    return RecordingUploader()


def snapshot(root: Path) -> dict:
    """
    Describe a tree as ``{relative posix path: (is_dir, mode, content)}``.

    The root itself is not included.
    """
    result = {}
    for dirpath, dirnames, filenames in os.walk(root):
        for name in dirnames + filenames:
            path = Path(dirpath) / name
            rel = path.relative_to(root).as_posix()
            st = path.stat()
            is_dir = stat.S_ISDIR(st.st_mode)
            content = None if is_dir else path.read_bytes()
            result[rel] = (is_dir, stat.S_IMODE(st.st_mode), content)
    return result


@pytest.fixture
def tree_snapshot():
    return snapshot
