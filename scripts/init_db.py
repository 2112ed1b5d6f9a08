"""Create the database schema and check bucket access with environment variables."""

import logging
import sys

from botocore.exceptions import BotoCoreError, ClientError

from autoinvoice.config import Config
from autoinvoice.storage import DatabaseClient, S3Client

logger = logging.getLogger(__name__)


def init_database(config: Config) -> bool:
    """Create tables and drop stale login hand-offs."""
    db = DatabaseClient(config.database_url)
    try:
        db.create_schema()
        purged = db.purge_expired_handoffs()
        print(f"✓ Schema ready ({purged} expired hand-off(s) purged)")
        return True
    except Exception as e:
        print(f"✗ Failed to initialize database: {e}")
        return False
    finally:
        db.close()


def check_bucket(config: Config) -> bool:
    """List a few objects to confirm the credentials can reach the bucket."""
    s3 = S3Client(
        endpoint_url=config.s3_endpoint,
        bucket_name=config.s3_bucket,
        access_key_id=config.aws_access_key_id,
        secret_access_key=config.aws_secret_access_key,
        public_base_url=config.s3_public_url,
    )
    try:
        response = s3.s3_client.list_objects_v2(Bucket=config.s3_bucket, MaxKeys=5)
    except (ClientError, BotoCoreError) as e:
        print(f"✗ Failed to list objects: {e}")
        return False

    print(f"✓ Bucket {config.s3_bucket} reachable ({response.get('KeyCount', 0)} object(s) sampled)")
    return True


def main() -> int:
    logging.basicConfig(level=logging.INFO)

    try:
        config = Config.from_env()
    except ValueError as e:
        print(f"ERROR: {e}")
        return 1

    print("Configuration:")
    print(f"  Database: {config.database_url.split('@')[-1]}")
    print(f"  Endpoint: {config.s3_endpoint}")
    print(f"  Bucket: {config.s3_bucket}")
    print()

    ok = init_database(config) and check_bucket(config)
    print("=" * 60)
    print("Setup complete ✓" if ok else "Setup failed ✗")
    print("=" * 60)
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
