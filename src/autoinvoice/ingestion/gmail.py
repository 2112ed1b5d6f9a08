"""Gmail API ingestion with OAuth2 user credentials."""

import base64
import logging
from typing import Optional

from google.auth.exceptions import RefreshError
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from ..errors import AuthenticationError, MailProviderError
from ..models import AttachmentPayload
from ..processing.email_parser import GmailMessageParser
from .base import EmailSource

logger = logging.getLogger(__name__)

TOKEN_URI = "https://oauth2.googleapis.com/token"


def build_credentials(tokens: dict, client_id: str, client_secret: str) -> Credentials:
    """Create refreshable Google credentials from a stored token response.

    Args:
        tokens: Token response fields (access_token, refresh_token, scope)
        client_id: OAuth2 client ID (for token refresh)
        client_secret: OAuth2 client secret (for token refresh)
    """
    scope = tokens.get("scope")
    return Credentials(
        token=tokens.get("access_token"),
        refresh_token=tokens.get("refresh_token"),
        token_uri=TOKEN_URI,
        client_id=client_id,
        client_secret=client_secret,
        scopes=scope.split() if isinstance(scope, str) else scope,
    )


def _decode_base64url(data: str) -> bytes:
    """Decode Gmail's unpadded base64url transport encoding."""
    return base64.urlsafe_b64decode(data + "=" * (-len(data) % 4))


class GmailSource(EmailSource):
    """Gmail email source using the Gmail REST API."""

    def __init__(self, credentials: Optional[Credentials] = None, service=None):
        """Initialize Gmail source.

        Args:
            credentials: Authorized user credentials
            service: Prebuilt Gmail API resource (takes precedence over credentials)
        """
        if service is None and credentials is None:
            raise AuthenticationError("Gmail source requires credentials")
        self.credentials = credentials
        self._service = service
        self.parser = GmailMessageParser()

    @property
    def service(self):
        if self._service is None:
            self._service = build("gmail", "v1", credentials=self.credentials, cache_discovery=False)
        return self._service

    def list_messages(self, query: str, max_results: int) -> list[dict]:
        """List message stubs matching a Gmail search query.

        Raises:
            AuthenticationError: If Google rejects the stored credentials
            MailProviderError: If the Gmail API call fails
        """
        try:
            response = self.service.users().messages().list(
                userId="me",
                q=query,
                maxResults=max_results,
            ).execute()
        except RefreshError as e:
            raise AuthenticationError(f"Google credentials rejected: {e}") from e
        except HttpError as e:
            if e.resp.status == 401:
                raise AuthenticationError(f"Google credentials rejected: {e}") from e
            raise MailProviderError(f"Failed to list emails from Gmail: {e}") from e

        messages = response.get("messages") or []
        if not messages:
            logger.info(f"No messages found matching query: {query}")
        else:
            logger.info(f"Found {len(messages)} emails matching query")
        return messages

    def get_message(self, message_id: str) -> dict:
        """Fetch a full message (headers and part tree).

        Raises:
            AuthenticationError: If the access token cannot be refreshed
            MailProviderError: If the Gmail API call fails
        """
        try:
            return self.service.users().messages().get(
                userId="me",
                id=message_id,
                format="full",
            ).execute()
        except RefreshError as e:
            raise AuthenticationError(f"Google credentials rejected: {e}") from e
        except HttpError as e:
            raise MailProviderError(f"Failed to get email details for {message_id}: {e}") from e

    def download_attachment(self, message_id: str, attachment_id: str) -> tuple[bytes, int]:
        """Download and decode one attachment.

        Raises:
            AuthenticationError: If the access token cannot be refreshed
            MailProviderError: If the Gmail API call fails
        """
        try:
            response = self.service.users().messages().attachments().get(
                userId="me",
                messageId=message_id,
                id=attachment_id,
            ).execute()
        except RefreshError as e:
            raise AuthenticationError(f"Google credentials rejected: {e}") from e
        except HttpError as e:
            raise MailProviderError(
                f"Failed to download attachment {attachment_id} from message {message_id}: {e}"
            ) from e

        data = _decode_base64url(response.get("data", ""))
        return data, response.get("size", len(data))

    def fetch_invoice_attachments(self, query: str, max_results: int) -> list[AttachmentPayload]:
        """Download every supported attachment of the messages matching `query`.

        A message or attachment that fails for any reason (API error, network
        error, undecodable body) is logged and skipped. Only a failure to list
        messages or rejected credentials propagate.

        Args:
            query: Gmail search query
            max_results: Maximum number of messages to inspect

        Returns:
            list[AttachmentPayload]: Attachments in message order, then part order
        """
        payloads = []

        for stub in self.list_messages(query, max_results):
            message_id = stub["id"]
            try:
                parsed = self.parser.parse(self.get_message(message_id))
            except AuthenticationError:
                raise
            except Exception as e:
                logger.error(f"Skipping email {message_id}: {e}")
                continue

            for ref in parsed.attachments:
                logger.info(f"Found attachment: {ref.filename} ({ref.mime_type}) in email {message_id}")
                try:
                    data, size = self.download_attachment(message_id, ref.attachment_id)
                except AuthenticationError:
                    raise
                except Exception as e:
                    logger.error(f"Skipping {ref.filename}: {e}")
                    continue

                payloads.append(AttachmentPayload(
                    filename=ref.filename,
                    mime_type=ref.mime_type,
                    data=data,
                    size_bytes=size,
                    message_id=message_id,
                    email_subject=parsed.subject,
                    email_date=parsed.date,
                ))

        logger.info(f"Fetched {len(payloads)} invoice attachments")
        return payloads

    def current_tokens(self) -> Optional[dict]:
        """Token fields after any refresh performed during API calls."""
        if self.credentials is None:
            return None
        return {
            "access_token": self.credentials.token,
            "refresh_token": self.credentials.refresh_token,
            "scope": " ".join(self.credentials.scopes or []),
        }
