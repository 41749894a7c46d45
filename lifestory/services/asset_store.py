"""Asset storage abstraction with a local-filesystem implementation."""

import logging
import mimetypes
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol
from urllib.parse import urlparse

logger = logging.getLogger(__name__)


@dataclass
class StoredAsset:
    """Result of a successful put."""

    key: str  # e.g. "media/3f2c...e1.mp4"
    url: str  # public URL, stored in the document as the asset reference


class AssetStore(Protocol):
    """Durable key -> bytes storage used by the lifecycle layer."""

    def put(
        self,
        data: bytes,
        folder: str,
        original_name: str,
        content_type: str | None = None,
    ) -> StoredAsset:
        """Store bytes under a fresh key inside ``folder``."""
        ...

    def delete(self, key: str) -> bool:
        """Remove ``key``. True when removed or already absent."""
        ...

    def url_for(self, key: str) -> str: ...

    def key_from_reference(self, ref: str) -> str | None:
        """Resolve a stored reference to a key; None when unrecognised."""
        ...


def generate_key(folder: str, original_name: str) -> str:
    """Unique key: ``folder/uuid4.ext`` keeping the original extension."""
    ext = Path(original_name or "").suffix.lower()
    return f"{folder}/{uuid.uuid4()}{ext}"


def guess_content_type(filename: str) -> str:
    content_type, _ = mimetypes.guess_type(filename)
    return content_type or "application/octet-stream"


def _has_scheme(ref: str) -> bool:
    return bool(urlparse(ref).scheme)


def is_bare_key(ref: str) -> bool:
    """``folder/name`` style key: relative, no scheme, no parent traversal."""
    if not ref or ref.startswith("/") or _has_scheme(ref) or "/" not in ref:
        return False
    return ".." not in Path(ref).parts


# ---------------------------------------------------------------------------
# Local filesystem implementation
# ---------------------------------------------------------------------------


class LocalAssetStore:
    """Stores assets as files under ``root``; served at ``url_prefix``."""

    def __init__(self, root: str | Path, url_prefix: str = "/uploads"):
        self.root = Path(root)
        self.url_prefix = "/" + url_prefix.strip("/")

    def _path_for(self, key: str) -> Path | None:
        try:
            root = self.root.resolve()
            path = (root / key).resolve()
        except (ValueError, OSError):
            return None
        if not path.is_relative_to(root) or path == root:
            return None
        return path

    def put(
        self,
        data: bytes,
        folder: str,
        original_name: str,
        content_type: str | None = None,
    ) -> StoredAsset:
        key = generate_key(folder, original_name)
        path = self._path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        logger.info(
            "Stored %s as %s (%d bytes, %s)",
            original_name,
            key,
            len(data),
            content_type or guess_content_type(original_name),
        )
        return StoredAsset(key=key, url=self.url_for(key))

    def delete(self, key: str) -> bool:
        path = self._path_for(key)
        if path is None:
            logger.warning("Refusing to delete key outside the uploads root: %s", key)
            return False
        try:
            path.unlink(missing_ok=True)
        except (OSError, ValueError) as e:
            logger.error("Failed to delete %s: %s", key, e)
            return False
        logger.info("Deleted %s", key)
        return True

    def url_for(self, key: str) -> str:
        return f"{self.url_prefix}/{key}"

    def key_from_reference(self, ref: str) -> str | None:
        if not ref:
            return None
        prefix = self.url_prefix + "/"
        if ref.startswith(prefix):
            ref = ref[len(prefix):]
        if not is_bare_key(ref) or self._path_for(ref) is None:
            return None
        return ref


def create_asset_store(settings) -> AssetStore:
    """Build the AssetStore selected by ``settings.storage_backend``."""
    if settings.storage_backend == "s3":
        from lifestory.services.s3_service import S3AssetStore

        return S3AssetStore(
            bucket=settings.aws_s3_bucket_name,
            region=settings.aws_region,
            access_key_id=settings.aws_access_key_id,
            secret_access_key=settings.aws_secret_access_key,
            endpoint_url=settings.s3_endpoint_url or None,
        )
    return LocalAssetStore(settings.uploads_dir, url_prefix=settings.uploads_url_prefix)
