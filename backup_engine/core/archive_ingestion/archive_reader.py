"""
ZIP archive reader with resource ceilings.

Wraps zipfile.ZipFile over a local temp file. Entry names are normalized to
paths relative to the export's `data/` folder; entry bytes are only read on
demand and are streamed in chunks so a ceiling can stop a read early,
whatever the entry declares in the central directory.

Dependencies: zipfile (stdlib)
System role: Low-level archive access for the ingestion pipeline tasks
"""

import logging
import re
import zipfile
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Pattern

from backup_engine.core.exceptions import ArchiveFormatError, ResourceLimitError

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_BYTES = 1024 * 1024

_PART_NUMBER = re.compile(r"-part(\d+)\.js$", re.IGNORECASE)


def normalize_entry_name(name: str) -> str:
    """Forward slashes, no leading `./`, surrounding whitespace removed."""
    normalized = name.replace("\\", "/")
    if normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized.strip()


def to_archive_relative_path(name: str) -> str:
    """
    Path starting at the first `data/` segment (case-insensitive).

    Archives re-zipped by users often wrap everything in an extra folder;
    names without a `data/` segment are returned normalized.
    """
    normalized = normalize_entry_name(name)
    index = normalized.lower().find("data/")
    return normalized[index:] if index >= 0 else normalized


def extract_part_number(path: str) -> int:
    """Part number of `...-partN.js` files, 0 when the file is unsplit."""
    match = _PART_NUMBER.search(path)
    return int(match.group(1)) if match else 0


@dataclass(frozen=True)
class ArchiveEntry:
    """One file or folder in the uploaded ZIP."""

    name: str
    path: str
    size: int
    is_dir: bool
    info: zipfile.ZipInfo = field(repr=False, compare=False)

    @property
    def file_name(self) -> str:
        return self.path.rsplit("/", 1)[-1]


class ArchiveReader:
    """
    Lazy reader over an uploaded export archive.

    Usage:
        with ArchiveReader(path, max_entries=50_000) as reader:
            for entry in reader.match([re.compile(r"^data/account\\.js$")]):
                content = reader.read(entry, max_bytes=1024)
    """

    def __init__(self, zip_path: str, max_entries: int, chunk_size: int = DEFAULT_CHUNK_BYTES) -> None:
        """
        Args:
            zip_path: Local path of the archive
            max_entries: Ceiling on the number of ZIP entries
            chunk_size: Bytes per read when streaming an entry
        """
        self._zip_path = zip_path
        self._max_entries = max_entries
        self._chunk_size = chunk_size
        self._zip: zipfile.ZipFile | None = None
        self._entries: list[ArchiveEntry] | None = None

    def __enter__(self) -> "ArchiveReader":
        try:
            self._zip = zipfile.ZipFile(self._zip_path)
        except (zipfile.BadZipFile, OSError) as e:
            logger.error(f"{__name__}:open - Unreadable archive: {e}", extra={"zip_path": self._zip_path})
            raise ArchiveFormatError("Failed to extract archive. Upload the ZIP file downloaded from Twitter.") from e
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        if self._zip is not None:
            self._zip.close()
            self._zip = None

    def _archive(self) -> zipfile.ZipFile:
        if self._zip is None:
            raise RuntimeError("ArchiveReader used outside of its context")
        return self._zip

    def entries(self) -> list[ArchiveEntry]:
        """
        List all entries once, enforcing the entry-count ceiling.

        Raises:
            ResourceLimitError: More entries than max_entries
        """
        if self._entries is not None:
            return self._entries

        entries: list[ArchiveEntry] = []
        for info in self._archive().infolist():
            entries.append(
                ArchiveEntry(
                    name=info.filename,
                    path=to_archive_relative_path(info.filename),
                    size=max(info.file_size, 0),
                    is_dir=info.is_dir(),
                    info=info,
                )
            )
            if len(entries) > self._max_entries:
                raise ResourceLimitError("max_zip_entries", len(self._archive().infolist()), self._max_entries)

        self._entries = entries
        logger.info(f"{__name__}:entries - Archive listed", extra={"entry_count": len(entries)})
        return entries

    def match(self, patterns: Iterable[Pattern[str]]) -> list[ArchiveEntry]:
        """
        Files whose relative path matches any pattern, ordered by part number then path.
        """
        compiled = list(patterns)
        matched = [
            entry
            for entry in self.entries()
            if not entry.is_dir and any(p.search(entry.path) for p in compiled)
        ]
        return sorted(matched, key=lambda e: (extract_part_number(e.path), e.path))

    def under(self, folders: Iterable[str]) -> list[ArchiveEntry]:
        """Files located below any of the given `data/...` folders."""
        prefixes = tuple(f"{folder.rstrip('/')}/" for folder in folders)
        return [
            entry
            for entry in self.entries()
            if not entry.is_dir and entry.path.startswith(prefixes) and not entry.path.endswith("/")
        ]

    def iter_chunks(
        self,
        entry: ArchiveEntry,
        max_bytes: int,
        limit_name: str = "max_entry_bytes",
    ) -> Iterator[bytes]:
        """
        Stream an entry's bytes, stopping as soon as `max_bytes` is crossed.

        Raises:
            ResourceLimitError: The entry produced more than max_bytes
        """
        total = 0
        with self._archive().open(entry.info) as stream:
            while True:
                chunk = stream.read(self._chunk_size)
                if not chunk:
                    break
                total += len(chunk)
                if total > max_bytes:
                    raise ResourceLimitError(limit_name, total, max_bytes, subject=entry.path)
                yield chunk

    def read(self, entry: ArchiveEntry, max_bytes: int, limit_name: str = "max_entry_bytes") -> bytes:
        """Read a whole entry under a byte ceiling."""
        return b"".join(self.iter_chunks(entry, max_bytes, limit_name))
