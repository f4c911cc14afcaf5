"""
Blob Storage

Downloads uploaded file content for extraction:
- Local filesystem (uploads directory)
- HTTP object storage (public bucket URLs)

A file row's url holds either a bare object path ("user_id/report.pdf") or
the public URL the upload produced
(".../storage/v1/object/public/file-storage/user_id/report.pdf").
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlparse

import httpx

from docchat.core.config import Settings
from docchat.core.documents.errors import (
    BlobNotFoundError,
    ConfigurationError,
    StorageError,
)

logger = logging.getLogger(__name__)


def object_path_from_pointer(pointer: str, bucket: str) -> str:
    """
    Extract the object path from a storage pointer.

    Accepts a bare path or a public URL containing "/<bucket>/".

    Raises:
        BlobNotFoundError: If the pointer is empty or a URL without the bucket
    """
    if not pointer or not pointer.strip():
        raise BlobNotFoundError("The file has no storage location.")

    pointer = pointer.strip()
    if "://" not in pointer:
        return pointer.lstrip("/")

    path = unquote(urlparse(pointer).path)
    marker = f"/{bucket}/"
    if marker not in path:
        raise BlobNotFoundError(f"Could not find the file in storage bucket '{bucket}'.")
    object_path = path.split(marker, 1)[1]
    if not object_path:
        raise BlobNotFoundError("The storage URL does not point to a file.")
    return object_path


class BlobStorage(ABC):
    """Storage collaborator: fetch the bytes behind a storage pointer."""

    def __init__(self, bucket: str = "file-storage"):
        self.bucket = bucket

    @abstractmethod
    async def download_blob(self, pointer: str) -> bytes:
        """
        Download file content.

        Raises:
            BlobNotFoundError: The object does not exist
            StorageError: Transient failure talking to storage
        """
        pass


class LocalBlobStorage(BlobStorage):
    """Files stored under a local directory (development, single host)."""

    def __init__(self, root: Path, bucket: str = "file-storage"):
        super().__init__(bucket=bucket)
        self.root = Path(root)

    def _resolve(self, pointer: str) -> Path:
        object_path = object_path_from_pointer(pointer, self.bucket)
        full_path = (self.root / object_path).resolve()
        # Stay inside the storage root
        if self.root.resolve() not in full_path.parents:
            raise BlobNotFoundError("The storage location is outside the upload directory.")
        return full_path

    async def download_blob(self, pointer: str) -> bytes:
        path = self._resolve(pointer)
        try:
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(None, path.read_bytes)
        except FileNotFoundError:
            raise BlobNotFoundError(f"Could not find the file in storage: {path.name}")
        except PermissionError:
            raise StorageError(f"Permission denied reading {path.name}")
        except OSError as e:
            raise StorageError(f"Cannot read file {path.name}: {e}")


class HttpBlobStorage(BlobStorage):
    """Files served by an HTTP object store (public bucket URLs)."""

    def __init__(
        self,
        base_url: str,
        bucket: str = "file-storage",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(bucket=bucket)
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    def _url_for(self, pointer: str) -> str:
        if pointer.strip().startswith(("http://", "https://")):
            # Validate that it points into our bucket
            object_path_from_pointer(pointer, self.bucket)
            return pointer.strip()
        object_path = object_path_from_pointer(pointer, self.bucket)
        return f"{self.base_url}/{self.bucket}/{object_path}"

    async def download_blob(self, pointer: str) -> bytes:
        url = self._url_for(pointer)
        try:
            if self._client is not None:
                response = await self._client.get(url, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(url)
            response.raise_for_status()
            return response.content
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status in (400, 404):
                raise BlobNotFoundError("Could not find the file in storage.")
            logger.warning(f"Storage download failed with HTTP {status}: {url}")
            raise StorageError(f"Storage returned HTTP {status}")
        except httpx.HTTPError as e:
            raise StorageError(f"Storage download failed: {e}")


def create_blob_storage(settings: Settings) -> BlobStorage:
    """
    Build the configured blob storage.

    Raises:
        ConfigurationError: If neither a local root nor a base URL is configured
    """
    if settings.blob_storage_root:
        return LocalBlobStorage(Path(settings.blob_storage_root), bucket=settings.blob_storage_bucket)
    if settings.blob_storage_base_url:
        return HttpBlobStorage(
            settings.blob_storage_base_url,
            bucket=settings.blob_storage_bucket,
            timeout=settings.blob_storage_timeout,
        )
    raise ConfigurationError("Blob storage is not configured. Set BLOB_STORAGE_ROOT or BLOB_STORAGE_BASE_URL.")
