"""S3 implementation of AssetCache."""

import hashlib
import json
import logging
from typing import Optional

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from ..domain.entities.cache import CachedResponse, CacheRequest
from ..domain.errors import CacheStoreError
from ..domain.interfaces.asset_cache import AssetCache

logger = logging.getLogger(__name__)

MARKER = ".generation"


class S3AssetCache(AssetCache):
    """Asset cache persisted in an S3 bucket.

    Each generation is a top-level prefix; an entry is the response body
    stored under ``{generation}/{sha256(request key)}`` with status, URL and
    headers in object metadata.
    """

    def __init__(self, bucket_name: str, generation: str, region_name: str = "us-west-2"):
        """Initialize the S3 asset cache.

        Args:
            bucket_name: Bucket holding every generation.
            generation: Tag of the current generation.
            region_name: AWS region of the bucket.
        """
        self.bucket_name = bucket_name
        self.region_name = region_name
        self._generation = generation
        self._session = aioboto3.Session()

    @property
    def generation(self) -> str:
        return self._generation

    def _object_key(self, request: CacheRequest) -> str:
        digest = hashlib.sha256(request.key.encode("utf-8")).hexdigest()
        return f"{self._generation}/{digest}"

    async def open_generation(self, generation: str) -> None:
        async with self._session.client("s3", region_name=self.region_name) as s3:
            await s3.put_object(Bucket=self.bucket_name, Key=f"{generation}/{MARKER}", Body=b"")

    async def generations(self) -> list[str]:
        tags = []
        async with self._session.client("s3", region_name=self.region_name) as s3:
            paginator = s3.get_paginator("list_objects_v2")
            async for page in paginator.paginate(Bucket=self.bucket_name, Delimiter="/"):
                for prefix in page.get("CommonPrefixes", []):
                    tags.append(prefix["Prefix"].rstrip("/"))
        return tags

    async def lookup(self, request: CacheRequest) -> Optional[CachedResponse]:
        key = self._object_key(request)
        async with self._session.client("s3", region_name=self.region_name) as s3:
            try:
                obj = await s3.get_object(Bucket=self.bucket_name, Key=key)
            except ClientError as e:
                if e.response.get("Error", {}).get("Code") not in ("NoSuchKey", "404"):
                    # An unreadable cache degrades to a miss.
                    logger.warning(f"Cache lookup for {request.key} failed: {e}")
                return None
            body = await obj["Body"].read()

        metadata = obj.get("Metadata", {})
        return CachedResponse(
            status_code=int(metadata.get("status", "200")),
            headers=json.loads(metadata.get("headers", "{}")),
            body=body,
            url=metadata.get("url") or request.url,
        )

    async def store(self, request: CacheRequest, response: CachedResponse) -> None:
        key = self._object_key(request)
        metadata = {
            "status": str(response.status_code),
            "url": response.url or request.url,
            "headers": json.dumps(response.headers),
        }
        try:
            async with self._session.client("s3", region_name=self.region_name) as s3:
                await s3.put_object(
                    Bucket=self.bucket_name,
                    Key=key,
                    Body=response.body,
                    ContentType=response.headers.get("content-type", "application/octet-stream"),
                    Metadata=metadata,
                )
        except (BotoCoreError, ClientError) as e:
            raise CacheStoreError(f"Could not cache {request.key}: {e}", key=request.key, generation=self._generation) from e

    async def evict_generations_except(self, current: str) -> list[str]:
        stale = [tag for tag in await self.generations() if tag != current]
        if not stale:
            return []

        async with self._session.client("s3", region_name=self.region_name) as s3:
            paginator = s3.get_paginator("list_objects_v2")
            for tag in stale:
                async for page in paginator.paginate(Bucket=self.bucket_name, Prefix=f"{tag}/"):
                    objects = [{"Key": obj["Key"]} for obj in page.get("Contents", [])]
                    if objects:
                        # list_objects_v2 pages hold at most 1000 keys, the delete_objects limit.
                        await s3.delete_objects(Bucket=self.bucket_name, Delete={"Objects": objects})
                logger.info(f"Deleted cache generation {tag} from s3://{self.bucket_name}")
        return stale
