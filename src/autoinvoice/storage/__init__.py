"""Storage layer for database and S3 operations."""

from .database import DatabaseClient
from .attachments import S3Client

__all__ = ["DatabaseClient", "S3Client"]
