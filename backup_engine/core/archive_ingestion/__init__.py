"""
Archive ingestion pipeline for uploaded export ZIPs.

Flow: staged blob -> local temp file -> metadata files -> typed records ->
backup row -> re-hosted media -> rewritten references -> completed job.

Exports: ArchiveIngestionPipeline, ArchiveReader, parse_archive_js
"""

from .archive_reader import ArchiveEntry, ArchiveReader
from .entrypoint import ArchiveIngestionPipeline
from .quirky_json import extract_json_literal, parse_archive_js

__all__ = [
    "ArchiveEntry",
    "ArchiveIngestionPipeline",
    "ArchiveReader",
    "extract_json_literal",
    "parse_archive_js",
]
