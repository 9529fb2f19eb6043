"""S3 implementation of CoverStorage."""

import logging
from typing import Optional

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from ..domain.errors import CoverUploadError
from ..domain.interfaces.cover_storage import CoverStorage

logger = logging.getLogger(__name__)


class S3CoverStorage(CoverStorage):
    """Stores cover images in an S3 bucket readable by the public."""

    def __init__(
        self,
        bucket_name: str,
        region_name: str = "us-west-2",
        public_base_url: Optional[str] = None,
    ):
        """Initialize the S3 cover storage.

        Args:
            bucket_name: Bucket receiving the covers.
            region_name: AWS region of the bucket.
            public_base_url: Address covers are served from (a CDN, say);
                defaults to the bucket's virtual-hosted URL.
        """
        self.bucket_name = bucket_name
        self.region_name = region_name
        self.public_base_url = (
            public_base_url or f"https://{bucket_name}.s3.{region_name}.amazonaws.com"
        ).rstrip("/")
        self._session = aioboto3.Session()

    async def upload(self, owner_id: str, filename: str, content: bytes, content_type: str) -> str:
        key = f"{owner_id}/{filename}"
        try:
            async with self._session.client("s3", region_name=self.region_name) as s3:
                await s3.put_object(
                    Bucket=self.bucket_name,
                    Key=key,
                    Body=content,
                    ContentType=content_type,
                )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Cover upload to s3://{self.bucket_name}/{key} failed: {e}")
            raise CoverUploadError(f"Error uploading image: {e}", path=key) from e

        logger.info(f"Uploaded cover: {key}")
        return f"{self.public_base_url}/{key}"
