"""Email ingestion module."""

from .base import EmailSource
from .gmail import GmailSource, build_credentials

__all__ = ["EmailSource", "GmailSource", "build_credentials"]
