"""S3-compatible storage for invoice files using boto3."""

import logging
import uuid
from pathlib import Path

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..errors import StorageError

logger = logging.getLogger(__name__)


class S3Client:
    """S3-compatible storage client (supports Supabase Storage and Cloudflare R2)."""

    def __init__(
        self,
        endpoint_url: str,
        bucket_name: str,
        access_key_id: str,
        secret_access_key: str,
        public_base_url: str,
        client=None,
    ):
        """Initialize S3 client.

        Args:
            endpoint_url: S3 endpoint URL (Supabase: https://<project>.supabase.co/storage/v1/s3)
            bucket_name: Bucket name (e.g., "invoice-files")
            access_key_id: Access key ID
            secret_access_key: Secret access key
            public_base_url: Public URL prefix of the bucket
                (Supabase: https://<project>.supabase.co/storage/v1/object/public/invoice-files)
            client: Prebuilt boto3 S3 client (mainly for tests)
        """
        self.bucket_name = bucket_name
        self.public_base_url = public_base_url.rstrip("/")
        self.s3_client = client or boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
        )
        logger.info(f"S3 client initialized for bucket: {bucket_name}")

    def generate_key(self, user_id: str, filename: str) -> str:
        """Generate a collision-free object key in the user's namespace.

        Format: {user_id}/{uuid4 hex}{extension}
        """
        extension = Path(filename).suffix.lower()
        return f"{user_id}/{uuid.uuid4().hex}{extension}"

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url}/{key}"

    def upload_attachment(
        self,
        key: str,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> str:
        """Upload a file and return its public URL.

        Args:
            key: S3 object key
            data: File data as bytes
            content_type: MIME type of the file

        Raises:
            StorageError: If the upload fails
        """
        try:
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error uploading attachment {key}: {e}")
            raise StorageError(f"Upload of {key} failed: {e}") from e

        logger.debug(f"Uploaded attachment: {key} ({len(data)} bytes)")
        return self.public_url(key)
