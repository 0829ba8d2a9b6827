"""
Test suite for ArchiveReader.

Tests entry listing, data/ path normalization, part ordering and the
entry-count and byte ceilings.

System role: Verification of low-level archive access
"""

import re

import pytest

from backup_engine.core.archive_ingestion.archive_reader import (
    ArchiveReader,
    extract_part_number,
    to_archive_relative_path,
)
from backup_engine.core.exceptions import ArchiveFormatError, ResourceLimitError


class TestPathHelpers:
    """Test entry name normalization."""

    def test_relative_path_starts_at_data_folder(self):
        assert to_archive_relative_path("twitter-2024/Data/account.js") == "Data/account.js"
        assert to_archive_relative_path("./data/tweets.js") == "data/tweets.js"
        assert to_archive_relative_path("wrapper\\data\\like.js") == "data/like.js"

    def test_names_without_data_folder_are_kept(self):
        assert to_archive_relative_path("Your archive.html") == "Your archive.html"

    def test_part_number(self):
        assert extract_part_number("data/tweets-part2.js") == 2
        assert extract_part_number("data/tweets.js") == 0


class TestArchiveReader:
    """Test reading entries under ceilings."""

    def test_match_orders_by_part_then_path(self, build_zip):
        # Arrange
        path = build_zip(
            {
                "export/data/tweets-part1.js": "b",
                "export/data/tweets.js": "a",
                "export/data/tweets-part2.js": "c",
            }
        )
        pattern = re.compile(r"^data/tweets?(?:-part\d+)?\.js$")

        # Act
        with ArchiveReader(path, max_entries=10) as reader:
            matched = [entry.path for entry in reader.match([pattern])]

        # Assert
        assert matched == ["data/tweets.js", "data/tweets-part1.js", "data/tweets-part2.js"]

    def test_under_lists_only_files_below_folders(self, build_zip):
        # Arrange
        path = build_zip(
            {
                "data/tweets_media/1-a.jpg": b"1",
                "data/tweets_media/": b"",
                "data/profile_media/2-b.jpg": b"2",
                "data/tweets.js": "x",
            }
        )

        # Act
        with ArchiveReader(path, max_entries=10) as reader:
            paths = sorted(entry.path for entry in reader.under(["data/tweets_media", "data/profile_media"]))

        # Assert
        assert paths == ["data/profile_media/2-b.jpg", "data/tweets_media/1-a.jpg"]

    def test_entry_count_ceiling(self, build_zip):
        # Arrange
        path = build_zip({f"data/tweets_media/{i}.jpg": b"x" for i in range(5)})

        # Act / Assert
        with ArchiveReader(path, max_entries=3) as reader:
            with pytest.raises(ResourceLimitError) as exc_info:
                reader.entries()

        assert exc_info.value.limit_name == "max_zip_entries"
        assert exc_info.value.observed == 5
        assert exc_info.value.limit == 3

    def test_read_stops_when_actual_bytes_exceed_ceiling(self, build_zip):
        # Arrange
        path = build_zip({"data/tweets_media/big.mp4": b"x" * 100})

        # Act / Assert
        with ArchiveReader(path, max_entries=10, chunk_size=16) as reader:
            entry = reader.entries()[0]
            with pytest.raises(ResourceLimitError) as exc_info:
                reader.read(entry, max_bytes=40, limit_name="max_media_entry_bytes")

        assert exc_info.value.limit_name == "max_media_entry_bytes"
        assert exc_info.value.observed <= 48
        assert "data/tweets_media/big.mp4" in exc_info.value.message

    def test_read_within_ceiling(self, build_zip):
        # Arrange
        path = build_zip({"data/account.js": "hello"})

        # Act
        with ArchiveReader(path, max_entries=10) as reader:
            data = reader.read(reader.entries()[0], max_bytes=5)

        # Assert
        assert data == b"hello"

    def test_not_a_zip(self, tmp_path):
        # Arrange
        path = tmp_path / "upload.zip"
        path.write_bytes(b"definitely not a zip")

        # Act / Assert
        with pytest.raises(ArchiveFormatError):
            with ArchiveReader(str(path), max_entries=10):
                pass

    def test_used_outside_context(self, build_zip):
        reader = ArchiveReader(build_zip({"data/account.js": "x"}), max_entries=10)
        with pytest.raises(RuntimeError):
            reader.entries()
