"""
Backup storage footprint.

Computes how many bytes a backup occupies: the JSON payload itself, the
re-hosted media objects, and the stored original archive. Archive objects
are recognised either by the backup's recorded archive path or by the
`/archives/` segment in the object key.

Dependencies: json, pydantic
System role: Storage accounting for backups and owners
"""

import json
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from pydantic import BaseModel

ARCHIVE_PATH_SEGMENT = "/archives/"
STORAGE_STAT_KEYS = (
    "storage_payload_bytes",
    "storage_media_bytes",
    "storage_archive_bytes",
    "storage_total_bytes",
)


class StorageBreakdown(BaseModel):
    payload_bytes: int = 0
    media_bytes: int = 0
    archive_bytes: int = 0
    total_bytes: int = 0
    media_files: int = 0


class UserStorageSummary(BaseModel):
    total_bytes: int = 0
    payload_bytes: int = 0
    media_bytes: int = 0
    archive_bytes: int = 0
    unique_file_count: int = 0
    backups_count: int = 0


def _as_dict(value: Any) -> dict[str, Any]:
    return dict(value) if isinstance(value, Mapping) else {}


def _positive_number(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return int(value) if value > 0 else 0
    if isinstance(value, str):
        try:
            parsed = float(value)
        except ValueError:
            return 0
        return int(parsed) if parsed > 0 else 0
    return 0


def is_archive_path(path: str) -> bool:
    return ARCHIVE_PATH_SEGMENT in path


def archive_path_from_data(data: Any) -> str | None:
    """Trimmed `archive_file_path` recorded inside backup data, if any."""
    raw = _as_dict(data).get("archive_file_path")
    if not isinstance(raw, str):
        return None
    return raw.strip() or None


def prune_storage_metadata(data: Any) -> dict[str, Any]:
    """Copy of backup data without the fields this module writes."""
    pruned = _as_dict(data)
    pruned.pop("storage", None)
    pruned.pop("file_size", None)
    stats = _as_dict(pruned.get("stats"))
    if stats:
        for key in STORAGE_STAT_KEYS:
            stats.pop(key, None)
        pruned["stats"] = stats
    return pruned


def json_size(value: Any) -> int:
    """UTF-8 size of the compact JSON encoding of `value`."""
    try:
        encoded = json.dumps(value if value is not None else {}, separators=(",", ":"), ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return 0
    return len(encoded.encode("utf-8"))


def calculate_backup_storage(data: Any, media_rows: Iterable[Mapping[str, Any]]) -> StorageBreakdown:
    """
    Compute the storage footprint of one backup.

    Args:
        data: Backup data document
        media_rows: Media records with `file_path` and `file_size`

    Returns:
        StorageBreakdown: payload, media, archive and total bytes plus the
            number of non-archive media files
    """
    parsed = _as_dict(data)
    payload_bytes = json_size(prune_storage_metadata(parsed))
    archive_path = archive_path_from_data(parsed)

    media_bytes = 0
    media_files = 0
    archive_bytes_from_rows = 0
    for row in media_rows:
        path = row.get("file_path") if isinstance(row.get("file_path"), str) else ""
        size = _positive_number(row.get("file_size"))
        if (archive_path and path == archive_path) or is_archive_path(path):
            archive_bytes_from_rows += size
            continue
        media_bytes += size
        media_files += 1

    archive_bytes = _positive_number(parsed.get("uploaded_file_size")) or archive_bytes_from_rows
    return StorageBreakdown(
        payload_bytes=payload_bytes,
        media_bytes=media_bytes,
        archive_bytes=archive_bytes,
        total_bytes=payload_bytes + media_bytes + archive_bytes,
        media_files=media_files,
    )


def apply_storage_breakdown(
    data: Any,
    breakdown: StorageBreakdown,
    now: datetime | None = None,
) -> dict[str, Any]:
    """
    Write a breakdown into backup data.

    Sets data.storage, the storage_* and media_files counters in data.stats,
    and data.file_size (total bytes).
    """
    current = _as_dict(data)
    stamp = (now or datetime.now(timezone.utc)).isoformat()
    storage = _as_dict(current.get("storage"))
    stats = _as_dict(current.get("stats"))

    storage.update(
        payload_bytes=breakdown.payload_bytes,
        media_bytes=breakdown.media_bytes,
        archive_bytes=breakdown.archive_bytes,
        total_bytes=breakdown.total_bytes,
        media_files=breakdown.media_files,
        updated_at=stamp,
    )
    stats.update(
        media_files=breakdown.media_files,
        storage_payload_bytes=breakdown.payload_bytes,
        storage_media_bytes=breakdown.media_bytes,
        storage_archive_bytes=breakdown.archive_bytes,
        storage_total_bytes=breakdown.total_bytes,
    )
    return {**current, "file_size": breakdown.total_bytes, "storage": storage, "stats": stats}


def calculate_user_storage(
    backups: Iterable[Any],
    media_rows: Iterable[Mapping[str, Any]],
) -> UserStorageSummary:
    """
    Owner-level footprint with each object key counted once.

    An object shared by several backups is charged once at its largest
    recorded size; a key is an archive if any reference says so.

    Args:
        backups: Backup data documents of the owner
        media_rows: Media records of the owner

    Returns:
        UserStorageSummary
    """
    usage: dict[str, tuple[int, bool]] = {}

    def record(path: str, size: int, archive: bool) -> None:
        existing = usage.get(path)
        if existing is None:
            usage[path] = (size, archive)
            return
        usage[path] = (max(size, existing[0]), existing[1] or archive)

    for row in media_rows:
        path = row.get("file_path")
        if not isinstance(path, str) or not path:
            continue
        record(path, _positive_number(row.get("file_size")), is_archive_path(path))

    backup_list = [_as_dict(b) for b in backups]
    for data in backup_list:
        path = archive_path_from_data(data)
        if path:
            record(path, _positive_number(data.get("uploaded_file_size")), True)

    archive_bytes = sum(size for size, archive in usage.values() if archive)
    media_bytes = sum(size for size, archive in usage.values() if not archive)
    payload_bytes = sum(json_size(prune_storage_metadata(data)) for data in backup_list)

    return UserStorageSummary(
        total_bytes=payload_bytes + archive_bytes + media_bytes,
        payload_bytes=payload_bytes,
        media_bytes=media_bytes,
        archive_bytes=archive_bytes,
        unique_file_count=len(usage),
        backups_count=len(backup_list),
    )
