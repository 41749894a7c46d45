"""S3 / S3-compatible asset storage (AWS, MinIO)."""

import logging
import re

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from lifestory.core.errors import AssetOperationError
from lifestory.services.asset_store import (
    StoredAsset,
    generate_key,
    guess_content_type,
    is_bare_key,
)

logger = logging.getLogger(__name__)

_AWS_URL = re.compile(r"^https?://[^/]+\.s3[.-][^/]*amazonaws\.com/(.+)$")


class S3AssetStore:
    """AssetStore backed by an S3 bucket.

    Public URLs use the virtual-hosted AWS form unless ``endpoint_url`` is set,
    in which case they are path-style under the endpoint.
    """

    def __init__(
        self,
        bucket: str,
        region: str = "ap-south-1",
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        endpoint_url: str | None = None,
        *,
        _client=None,  # Injected in tests
    ):
        self.bucket = bucket
        self.region = region
        self.endpoint_url = endpoint_url.rstrip("/") if endpoint_url else None

        if _client is not None:
            self._client = _client
        else:
            kwargs = {
                "region_name": region,
                "config": Config(signature_version="s3v4"),
            }
            if access_key_id and secret_access_key:
                kwargs["aws_access_key_id"] = access_key_id
                kwargs["aws_secret_access_key"] = secret_access_key
            if self.endpoint_url:
                kwargs["endpoint_url"] = self.endpoint_url
            self._client = boto3.client("s3", **kwargs)

        logger.info("S3 storage configured: bucket=%s region=%s", bucket, region)

    def put(
        self,
        data: bytes,
        folder: str,
        original_name: str,
        content_type: str | None = None,
    ) -> StoredAsset:
        key = generate_key(folder, original_name)
        ct = content_type or guess_content_type(original_name)
        logger.info("[S3 UPLOAD] %s -> s3://%s/%s (%s)", original_name, self.bucket, key, ct)
        try:
            self._client.put_object(Bucket=self.bucket, Key=key, Body=data, ContentType=ct)
        except (BotoCoreError, ClientError) as exc:
            raise AssetOperationError(f"Upload of {original_name} failed: {exc}") from exc
        return StoredAsset(key=key, url=self.url_for(key))

    def delete(self, key: str) -> bool:
        logger.info("[S3 DELETE] Attempting to delete: %s", key)
        try:
            self._client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            logger.error("[S3 DELETE] Failed to delete %s: %s", key, exc)
            return False
        logger.info("[S3 DELETE] Deleted: %s", key)
        return True

    def url_for(self, key: str) -> str:
        if self.endpoint_url:
            return f"{self.endpoint_url}/{self.bucket}/{key}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    def key_from_reference(self, ref: str) -> str | None:
        """Key for an S3 URL or bare key; None for legacy local paths."""
        if not ref:
            return None
        match = _AWS_URL.match(ref)
        if match:
            return match.group(1)
        if self.endpoint_url:
            prefix = f"{self.endpoint_url}/{self.bucket}/"
            if ref.startswith(prefix):
                return ref[len(prefix):] or None
        if is_bare_key(ref):
            return ref
        return None
