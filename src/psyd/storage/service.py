"""
Object storage for listing images, with provider abstraction.

Supports any S3-compatible bucket (aioboto3) and a local directory for development.
Removal is best-effort everywhere: a missing object is not an error and failures
are logged, never raised.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Sequence
from pathlib import Path

import structlog

from psyd.config import get_settings

logger = structlog.get_logger()


class BaseStorageProvider(ABC):
    """Abstract base class for object storage providers."""

    def __init__(self, public_base_url: str) -> None:
        self.public_base_url = public_base_url.rstrip("/")

    @abstractmethod
    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        """Store ``data`` at ``path``. Returns the stored path."""
        ...

    @abstractmethod
    async def remove(self, paths: Sequence[str]) -> None:
        """Best-effort removal of objects. Never raises."""
        ...

    def public_url(self, path: str) -> str:
        """Public retrieval URL for a stored path."""
        return f"{self.public_base_url}/{path.lstrip('/')}"


class S3StorageProvider(BaseStorageProvider):
    """Store objects in an S3-compatible bucket via aioboto3."""

    def __init__(
        self,
        bucket: str,
        region: str,
        public_base_url: str = "",
        endpoint_url: str | None = None,
    ) -> None:
        super().__init__(public_base_url or f"https://{bucket}.s3.{region}.amazonaws.com")
        self.bucket = bucket
        self.region = region
        self.endpoint_url = endpoint_url or None

    def _client(self):  # noqa: ANN202
        import aioboto3

        session = aioboto3.Session()
        return session.client("s3", region_name=self.region, endpoint_url=self.endpoint_url)

    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        """Upload via PutObject."""
        async with self._client() as s3:
            await s3.put_object(
                Bucket=self.bucket,
                Key=path,
                Body=data,
                ContentType=content_type,
                CacheControl="public, max-age=31536000",
            )
        logger.info("object_stored", path=path, size=len(data), provider="s3")
        return path

    async def remove(self, paths: Sequence[str]) -> None:
        """Delete via DeleteObjects; S3 reports missing keys as deleted."""
        keys = [p for p in paths if p]
        if not keys:
            return
        try:
            async with self._client() as s3:
                await s3.delete_objects(
                    Bucket=self.bucket,
                    Delete={"Objects": [{"Key": k} for k in keys], "Quiet": True},
                )
            logger.info("objects_removed", count=len(keys), provider="s3")
        except Exception:
            logger.exception("object_remove_failed", paths=keys, provider="s3")


class LocalStorageProvider(BaseStorageProvider):
    """Store objects under a local directory (development)."""

    def __init__(self, root: str, public_base_url: str = "/media") -> None:
        super().__init__(public_base_url)
        self.root = Path(root)

    def _resolve(self, path: str) -> Path:
        target = (self.root / path.lstrip("/")).resolve()
        if self.root.resolve() not in target.parents:
            msg = f"Path escapes storage root: {path}"
            raise ValueError(msg)
        return target

    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        """Write the object to disk."""
        target = self._resolve(path)

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)

        await asyncio.to_thread(_write)
        logger.info("object_stored", path=path, size=len(data), provider="local")
        return path

    async def remove(self, paths: Sequence[str]) -> None:
        """Unlink files; missing files are ignored."""
        for path in paths:
            if not path:
                continue
            try:
                target = self._resolve(path)
                await asyncio.to_thread(target.unlink, True)
            except Exception:
                logger.exception("object_remove_failed", path=path, provider="local")


def _create_provider() -> BaseStorageProvider:
    """Create storage provider based on configuration."""
    settings = get_settings()
    provider_name = settings.storage_provider.lower()

    if provider_name == "s3":
        return S3StorageProvider(
            bucket=settings.storage_bucket,
            region=settings.storage_region,
            public_base_url=settings.storage_public_base_url,
            endpoint_url=settings.storage_endpoint_url,
        )
    if provider_name == "local":
        return LocalStorageProvider(
            root=settings.storage_local_root,
            public_base_url=settings.storage_public_base_url or "/media",
        )
    msg = f"Unsupported storage provider: {provider_name}"
    raise ValueError(msg)


# Module-level singleton
_storage: BaseStorageProvider | None = None


def get_storage() -> BaseStorageProvider:
    """Get or create the storage provider singleton (FastAPI dependency)."""
    global _storage  # noqa: PLW0603
    if _storage is None:
        _storage = _create_provider()
    return _storage


def reset_storage() -> None:
    """Reset the storage singleton (for testing)."""
    global _storage  # noqa: PLW0603
    _storage = None
