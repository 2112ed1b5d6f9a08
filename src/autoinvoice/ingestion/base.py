"""Abstract base class for email ingestion."""

from abc import ABC, abstractmethod
from typing import Optional

from ..models import AttachmentPayload


class EmailSource(ABC):
    """Abstract interface for fetching invoice attachments from a mailbox."""

    @abstractmethod
    def list_messages(self, query: str, max_results: int) -> list[dict]:
        """List messages matching a search query.

        Args:
            query: Provider search query (e.g., "subject:invoice has:attachment")
            max_results: Maximum number of messages to return

        Returns:
            list[dict]: Message stubs ({"id", "threadId"}) in provider order
        """
        pass

    @abstractmethod
    def get_message(self, message_id: str) -> dict:
        """Fetch a full message with headers and part tree."""
        pass

    @abstractmethod
    def download_attachment(self, message_id: str, attachment_id: str) -> tuple[bytes, int]:
        """Download one attachment.

        Returns:
            tuple[bytes, int]: Decoded bytes and the size reported by the provider
        """
        pass

    @abstractmethod
    def fetch_invoice_attachments(self, query: str, max_results: int) -> list[AttachmentPayload]:
        """List matching messages and download their supported attachments."""
        pass

    def current_tokens(self) -> Optional[dict]:
        """Credentials to persist after a run, if the source refreshed them."""
        return None
