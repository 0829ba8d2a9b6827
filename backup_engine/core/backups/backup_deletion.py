"""
Backup deletion planning.

Decides which blob objects may be removed together with a backup: its
media objects and stored archive, minus any key another backup still
references.

Dependencies: pydantic
System role: Pure planning step used by BackupService.delete_backup
"""

from typing import Iterable

from pydantic import BaseModel


class BackupDeletionResult(BaseModel):
    media_files_checked: int = 0
    candidate_paths_checked: int = 0
    storage_files_deleted: int = 0
    storage_files_delete_failed: int = 0
    backup_deleted: bool = False


def candidate_paths(media_paths: Iterable[str | None], archive_path: str | None) -> list[str]:
    """Unique, non-empty object keys owned by a backup, in first-seen order."""
    paths = [p for p in media_paths if isinstance(p, str) and p]
    if archive_path:
        paths.append(archive_path)
    return list(dict.fromkeys(paths))


def paths_to_delete(candidates: Iterable[str], shared: set[str]) -> list[str]:
    """Candidates that no other backup references."""
    return [path for path in candidates if path not in shared]
