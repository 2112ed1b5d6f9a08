"""Parsing utilities for Gmail API message resources (format=full)."""

import logging
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Iterator

from ..models import EmailAttachmentRef, ParsedEmail, SUPPORTED_MIME_TYPES

logger = logging.getLogger(__name__)


class GmailMessageParser:
    """Extract headers and attachment references from a Gmail message."""

    @staticmethod
    def parse(message: dict) -> ParsedEmail:
        """Parse a Gmail message resource.

        Args:
            message: Message resource as returned by users.messages.get

        Returns:
            ParsedEmail: Subject, ISO date and supported attachment references
        """
        payload = message.get("payload") or {}
        headers = payload.get("headers") or []

        return ParsedEmail(
            message_id=message["id"],
            subject=GmailMessageParser._header(headers, "subject") or "No Subject",
            date=GmailMessageParser._parse_date(GmailMessageParser._header(headers, "date")),
            attachments=GmailMessageParser._extract_attachments(message["id"], payload),
        )

    @staticmethod
    def _header(headers: list[dict], name: str) -> str | None:
        for header in headers:
            if header.get("name", "").lower() == name:
                return header.get("value")
        return None

    @staticmethod
    def _parse_date(value: str | None) -> str:
        """Convert an RFC 2822 Date header to ISO-8601, defaulting to now."""
        if value:
            try:
                return parsedate_to_datetime(value).isoformat()
            except (TypeError, ValueError):
                logger.warning(f"Unparsable Date header: {value!r}")
        return datetime.now(timezone.utc).isoformat()

    @staticmethod
    def _walk(part: dict) -> Iterator[dict]:
        yield part
        for child in part.get("parts") or []:
            yield from GmailMessageParser._walk(child)

    @staticmethod
    def _extract_attachments(message_id: str, payload: dict) -> list[EmailAttachmentRef]:
        """Collect attachments of supported types from the whole part tree.

        Args:
            message_id: Gmail message id
            payload: Root message part

        Returns:
            list[EmailAttachmentRef]: Attachments in part-tree order
        """
        attachments = []

        for part in GmailMessageParser._walk(payload):
            filename = part.get("filename")
            attachment_id = (part.get("body") or {}).get("attachmentId")

            # Skip if no filename or body reference (not an attachment)
            if not filename or not attachment_id:
                continue

            mime_type = (part.get("mimeType") or "").lower()
            if mime_type not in SUPPORTED_MIME_TYPES:
                logger.debug(f"Skipping {filename} ({mime_type}) in message {message_id}")
                continue

            attachments.append(EmailAttachmentRef(
                message_id=message_id,
                attachment_id=attachment_id,
                filename=filename,
                mime_type=mime_type,
            ))

        return attachments
