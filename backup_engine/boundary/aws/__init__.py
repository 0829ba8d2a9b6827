"""Object storage adapters."""

from backup_engine.boundary.aws.s3_blob_store import BlobStore, S3BlobStore

__all__ = ["BlobStore", "S3BlobStore"]
