"""
Unit tests for the archive strategy (backup_tool/engine/archive.py).
"""

import os
import zipfile
from datetime import datetime
from pathlib import Path

import pytest

from backup_tool.config.settings import BackupSettings
from backup_tool.destinations.classifier import classify_destination
from backup_tool.engine import archive as archive_module
from backup_tool.engine.archive import ArchiveBackupStrategy
from backup_tool.engine.base import create_strategy
from backup_tool.engine.errors import BackupFailedError, DestinationIOError, FinalizationError, TraversalError

TIMESTAMP = datetime(2024, 1, 2, 3, 4, 5)


@pytest.fixture
def strategy(test_logger):
    return ArchiveBackupStrategy(timestamp=TIMESTAMP, logger=test_logger)


def only_archive(directory) -> Path:
    archives = list(Path(directory).glob("*.zip"))
    assert len(archives) == 1
    return archives[0]


class TestArchiveNaming:
    """Test archive file naming."""

    def test_filename_from_source_name_and_timestamp(self, strategy, simple_tree):
        assert strategy.archive_filename(simple_tree) == "root_20240102_030405.zip"

    def test_default_format_sorts_chronologically(self, simple_tree):
        earlier = ArchiveBackupStrategy(timestamp=datetime(2023, 12, 31, 23, 59, 59))
        later = ArchiveBackupStrategy(timestamp=datetime(2024, 1, 1, 0, 0, 0))

        assert earlier.archive_filename(simple_tree) < later.archive_filename(simple_tree)

    def test_custom_time_format(self, simple_tree):
        strategy = ArchiveBackupStrategy(time_format="%Y-%m-%d", timestamp=TIMESTAMP)
        assert strategy.archive_filename(simple_tree) == "root_2024-01-02.zip"

    def test_same_name_for_every_destination(self, strategy, simple_tree, local_destination):
        strategy.backup_to(simple_tree, local_destination("d1"))
        strategy.backup_to(simple_tree, local_destination("d2"))

        assert only_archive(simple_tree.parent / "d1").name == only_archive(simple_tree.parent / "d2").name


class TestArchiveContents:
    """Test the entries written to the archive."""

    def test_simple_tree_has_exactly_two_entries(self, strategy, simple_tree, local_destination):
        strategy.backup_to(simple_tree, local_destination("d1"))

        with zipfile.ZipFile(only_archive(simple_tree.parent / "d1")) as zf:
            infos = zf.infolist()
            assert [info.filename for info in infos] == ["a.txt", "sub/"]
            assert zf.read("a.txt") == b"hi"
            assert infos[1].is_dir()
            assert infos[1].file_size == 0

    def test_nested_tree_entries_in_walk_order(self, strategy, nested_tree, local_destination):
        strategy.backup_to(nested_tree, local_destination("d1"))

        with zipfile.ZipFile(only_archive(nested_tree.parent / "d1")) as zf:
            assert zf.namelist() == [
                "a.txt",
                "bin/run.sh",
                "docs/guide.md",
                "docs/img/logo.png",
                "empty/",
                "locked/secret.txt",
            ]
            assert zf.read("docs/img/logo.png") == bytes(range(256)) * 8
            assert zf.testzip() is None

    def test_entry_names_use_forward_slashes(self, strategy, nested_tree, local_destination):
        strategy.backup_to(nested_tree, local_destination("d1"))

        with zipfile.ZipFile(only_archive(nested_tree.parent / "d1")) as zf:
            assert all("\\" not in name for name in zf.namelist())

    def test_permissions_and_mtime_preserved(self, strategy, nested_tree, local_destination):
        os.utime(nested_tree / "a.txt", (1_700_000_000, 1_700_000_000))
        strategy.backup_to(nested_tree, local_destination("d1"))

        with zipfile.ZipFile(only_archive(nested_tree.parent / "d1")) as zf:
            assert (zf.getinfo("bin/run.sh").external_attr >> 16) & 0o777 == 0o755
            assert (zf.getinfo("locked/secret.txt").external_attr >> 16) & 0o777 == 0o600
            assert zf.getinfo("a.txt").date_time == datetime.fromtimestamp(1_700_000_000).timetuple()[:6]

    def test_entries_are_deflated(self, strategy, nested_tree, local_destination):
        strategy.backup_to(nested_tree, local_destination("d1"))

        with zipfile.ZipFile(only_archive(nested_tree.parent / "d1")) as zf:
            files = [info for info in zf.infolist() if not info.is_dir()]
            assert all(info.compress_type == zipfile.ZIP_DEFLATED for info in files)

    def test_archives_are_reproducible(self, strategy, nested_tree, local_destination):
        strategy.backup_to(nested_tree, local_destination("d1"))
        strategy.backup_to(nested_tree, local_destination("d2"))

        def describe(path):
            with zipfile.ZipFile(path) as zf:
                return [(i.filename, i.date_time, i.CRC, i.external_attr) for i in zf.infolist()]

        assert describe(only_archive(nested_tree.parent / "d1")) == \
            describe(only_archive(nested_tree.parent / "d2"))

    def test_extracting_restores_empty_directory(self, strategy, simple_tree, local_destination, tmp_path):
        strategy.backup_to(simple_tree, local_destination("d1"))
        restored = tmp_path / "restored"

        with zipfile.ZipFile(only_archive(simple_tree.parent / "d1")) as zf:
            zf.extractall(restored)

        assert (restored / "a.txt").read_text() == "hi"
        assert (restored / "sub").is_dir()

    def test_empty_source_produces_empty_archive(self, strategy, tmp_path, local_destination):
        source = tmp_path / "nothing"
        source.mkdir()

        strategy.backup_to(source, local_destination("d1"))

        with zipfile.ZipFile(only_archive(tmp_path / "d1")) as zf:
            assert zf.namelist() == []


class TestArchiveDestinations:
    """Test destination handling and failures."""

    def test_creates_missing_destination_directory(self, strategy, simple_tree, local_destination):
        destination = local_destination("deep/nested/dest")

        strategy.backup_to(simple_tree, destination)

        assert only_archive(destination.target).name == "root_20240102_030405.zip"

    def test_unwritable_destination_raises_io_error(self, strategy, simple_tree, broken_destination):
        with pytest.raises(DestinationIOError):
            strategy.backup_to(simple_tree, broken_destination)

    def test_finalization_failure(self, strategy, simple_tree, local_destination, monkeypatch):
        def failing_close(self):
            raise OSError("disk full")

        monkeypatch.setattr(archive_module.zipfile.ZipFile, "close", failing_close)

        with pytest.raises(FinalizationError, match="disk full"):
            strategy.backup_to(simple_tree, local_destination("d1"))

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks not supported")
    def test_failed_walk_removes_partial_archive(self, strategy, simple_tree, local_destination, tmp_path):
        outside = tmp_path / "outside.txt"
        outside.write_text("outside")
        os.symlink(outside, simple_tree / "z_escape.txt")

        with pytest.raises(TraversalError):
            strategy.backup_to(simple_tree, local_destination("d1"))

        assert list((tmp_path / "d1").glob("*.zip")) == []

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks not supported")
    def test_linked_directory_stored_as_empty_directory(self, strategy, tmp_path, local_destination):
        source = tmp_path / "root"
        (source / "docs").mkdir(parents=True)
        (source / "docs" / "g.md").write_text("guide")
        os.symlink(source / "docs", source / "link")

        strategy.backup_to(source, local_destination("d1"))

        with zipfile.ZipFile(only_archive(tmp_path / "d1")) as zf:
            assert zf.namelist() == ["docs/g.md", "link/"]
            assert zf.getinfo("link/").is_dir()

    def test_file_name_that_is_not_utf8(self, strategy, simple_tree, local_destination, tmp_path):
        try:
            (simple_tree / os.fsdecode(b"bad\xff.txt")).write_text("x")
        except (OSError, UnicodeEncodeError):
            pytest.skip("file system rejects non UTF-8 names")

        with pytest.raises(DestinationIOError, match="not valid UTF-8"):
            strategy.backup_to(simple_tree, local_destination("d1"))

        assert list((tmp_path / "d1").glob("*.zip")) == []

    def test_failure_does_not_stop_later_destinations(self, strategy, simple_tree, local_destination):
        class FailingUploader:
            def upload(self, source_root, destination, name):
                raise RuntimeError("network down")

        good = local_destination("good")

        with pytest.raises(BackupFailedError) as exc_info:
            strategy.backup(simple_tree, [classify_destination("s3://bucket"), good],
                            uploader=FailingUploader())

        assert only_archive(good.target).name == "root_20240102_030405.zip"
        assert isinstance(exc_info.value.first, RuntimeError)


class TestArchiveHandOff:
    """Test handing the archive to a remote uploader."""

    def test_uploads_finished_archive(self, strategy, simple_tree, recording_uploader, tmp_path):
        destination = classify_destination("azure://container/backups")

        strategy.hand_off(simple_tree, destination, recording_uploader)

        assert len(recording_uploader.calls) == 1
        temp_root, called_destination, name = recording_uploader.calls[0]
        assert called_destination == destination
        assert name == "root_20240102_030405.zip"
        # Temporary build directory is cleaned up afterwards
        assert not temp_root.exists()

        archive_bytes = recording_uploader.contents[name]
        archive_copy = tmp_path / "uploaded_copy.zip"
        archive_copy.write_bytes(archive_bytes)
        with zipfile.ZipFile(archive_copy) as zf:
            assert zf.namelist() == ["a.txt", "sub/"]

    def test_temp_directory_removed_on_upload_failure(self, strategy, simple_tree):
        seen = []

        class FailingUploader:
            def upload(self, source_root, destination, name):
                seen.append(Path(source_root))
                raise RuntimeError("upload failed")

        with pytest.raises(RuntimeError):
            strategy.hand_off(simple_tree, classify_destination("s3://bucket"), FailingUploader())

        assert seen and not seen[0].exists()


class TestCreateStrategy:
    """Test building the archive strategy from settings."""

    @pytest.mark.parametrize("name", ["archive", "compress", "ARCHIVE"])
    def test_archive_aliases(self, name):
        assert isinstance(create_strategy(name), ArchiveBackupStrategy)

    def test_options_from_settings(self):
        settings = BackupSettings(archive={"compression_level": 9, "time_format": "%Y"})

        strategy = create_strategy("compress", settings=settings)

        assert strategy.compression_level == 9
        assert strategy.time_format == "%Y"

    def test_unknown_strategy(self):
        with pytest.raises(ValueError, match="Unknown backup strategy"):
            create_strategy("mirror")
