"""
Schema-tolerant insert helper.

Deployments can lag behind the ORM by a migration or two. Inserts of rows
with optional columns therefore retry without a column the database reports
as unknown, instead of failing the whole job.

Recognised "unknown column" shapes:
  - PostgreSQL SQLSTATE 42703: column "X" of relation "T" does not exist
  - PostgREST PGRST204: Could not find the 'X' column of 'T' in the schema cache
  - SQLite: table T has no column named X

Dependencies: re, logging
System role: Persistence compatibility shim used by BackupService
"""

import logging
import re
from typing import Any, Awaitable, Callable, Iterable

logger = logging.getLogger(__name__)

UNDEFINED_COLUMN_SQLSTATE = "42703"
POSTGREST_MISSING_COLUMN_CODE = "PGRST204"

_PG_RELATION_PATTERN = re.compile(
    r'column "(?P<column>[^"]+)" of relation "(?P<table>[^"]+)" does not exist',
    re.IGNORECASE,
)
_PG_BARE_PATTERN = re.compile(r'column "?(?:\w+\.)?(?P<column>[\w]+)"? does not exist', re.IGNORECASE)
_POSTGREST_PATTERN = re.compile(
    r"'(?P<column>[^']+)' column of '(?P<table>[^']+)'",
    re.IGNORECASE,
)
_SQLITE_PATTERN = re.compile(
    r"table (?P<table>\S+) has no column named (?P<column>\w+)",
    re.IGNORECASE,
)

InsertFn = Callable[[dict[str, Any]], Awaitable[Any]]


def _error_code(exc: BaseException) -> str | None:
    for source in (exc, getattr(exc, "orig", None)):
        if source is None:
            continue
        for attr in ("sqlstate", "pgcode", "code"):
            value = getattr(source, attr, None)
            if isinstance(value, str) and value:
                return value
    return None


def _error_text(exc: BaseException) -> str:
    orig = getattr(exc, "orig", None)
    parts = [str(exc)]
    if orig is not None:
        parts.append(str(orig))
    return " ".join(parts)


def parse_missing_column(exc: BaseException, table: str | None = None) -> str | None:
    """
    Extract the unknown column name from a database error.

    Args:
        exc: Error raised by the insert/update
        table: When given, only errors about this table are recognised

    Returns:
        str | None: Column name, or None if the error is not an unknown-column error
    """
    text = _error_text(exc)
    code = _error_code(exc)

    for pattern in (_PG_RELATION_PATTERN, _POSTGREST_PATTERN, _SQLITE_PATTERN):
        match = pattern.search(text)
        if match is None:
            continue
        if table and match.group("table").strip('"`') != table:
            return None
        return match.group("column")

    if code in (UNDEFINED_COLUMN_SQLSTATE, POSTGREST_MISSING_COLUMN_CODE):
        match = _PG_BARE_PATTERN.search(text)
        if match:
            return match.group("column")
    return None


def is_missing_column_error(exc: BaseException, column: str, table: str | None = None) -> bool:
    """True when `exc` reports that `column` does not exist."""
    return parse_missing_column(exc, table) == column


async def insert_with_optional_columns(
    insert: InsertFn,
    record: dict[str, Any],
    optional_columns: Iterable[str],
    table: str | None = None,
) -> dict[str, Any]:
    """
    Insert a record, dropping optional columns the database does not know.

    The first attempt uses the full record. Each retry removes exactly one
    optional column that the error named and that is still present, so the
    number of retries never exceeds the number of optional columns.

    Args:
        insert: Async callable performing the insert for a column mapping
        record: Column values to insert
        optional_columns: Columns that may be dropped
        table: Table name used to match error messages

    Returns:
        dict: The column mapping that was finally inserted

    Raises:
        Exception: The original error when it is not an unknown-column error,
            or names a column that is required or already dropped
    """
    optional = set(optional_columns)
    current = dict(record)
    dropped: list[str] = []

    while True:
        try:
            await insert(current)
            break
        except Exception as e:
            column = parse_missing_column(e, table)
            if column is None or column not in optional or column not in current:
                raise
            logger.warning(
                f"{__name__}:insert_with_optional_columns - Retrying without unknown column",
                extra={"table": table, "column": column},
            )
            current.pop(column)
            dropped.append(column)

    if dropped:
        logger.info(
            f"{__name__}:insert_with_optional_columns - Inserted after dropping columns",
            extra={"table": table, "dropped_columns": dropped},
        )
    return current
