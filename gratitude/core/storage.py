"""
File storage for scanned cards, letters and voice memos.
S3 OR local filesystem. Controlled by FF_USE_S3 flag.
"""

import asyncio
import logging
import mimetypes
import re
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from .config import get_settings
from .flags import get_flags

logger = logging.getLogger(__name__)

# Stored names are uuid4().hex[:FILE_ID_LENGTH] plus the original extension
FILE_ID_LENGTH = 12
FILE_ID_PATTERN = re.compile(rf"[0-9a-f]{{{FILE_ID_LENGTH}}}")


def _object_key(user_id: str, filename: str, folder: str = "") -> str:
    ext = Path(filename).suffix.lower()
    unique = f"{uuid.uuid4().hex[:FILE_ID_LENGTH]}{ext}"
    key = f"{user_id}/{folder}/{unique}" if folder else f"{user_id}/{unique}"
    return key.strip("/")


def guess_content_type(filename: str) -> str:
    ct, _ = mimetypes.guess_type(filename)
    return ct or "application/octet-stream"


class StorageBackend(ABC):
    @abstractmethod
    async def upload(
        self, file_bytes: bytes, filename: str, user_id: str, folder: str = ""
    ) -> str:
        """Upload file. Returns the URL/path to the stored file."""
        ...

    async def read_file(
        self, file_id: str, user_id: str, folder: str = "memories"
    ) -> Optional[tuple[bytes, str]]:
        """Read one of the user's files by its ID. Returns (bytes, content_type) or None."""
        return None


class S3Storage(StorageBackend):
    def __init__(self):
        self._client = None

    def _get_client(self):
        if self._client is None:
            import boto3

            settings = get_settings()
            kwargs = {"region_name": settings.aws_region}
            if settings.aws_access_key_id:
                kwargs["aws_access_key_id"] = settings.aws_access_key_id
                kwargs["aws_secret_access_key"] = settings.aws_secret_access_key
            self._client = boto3.client("s3", **kwargs)
        return self._client

    async def upload(
        self, file_bytes: bytes, filename: str, user_id: str, folder: str = ""
    ) -> str:
        settings = get_settings()
        key = _object_key(user_id, filename, folder)

        # boto3 is blocking
        await asyncio.to_thread(
            self._get_client().put_object,
            Bucket=settings.s3_bucket_name,
            Key=key,
            Body=file_bytes,
            ContentType=guess_content_type(filename),
        )

        logger.info("Uploaded to S3: %s", key)
        return f"https://{settings.s3_bucket_name}.s3.{settings.aws_region}.amazonaws.com/{key}"


class LocalStorage(StorageBackend):
    def __init__(self, base_path: Optional[str] = None):
        self.base_path = Path(base_path or get_settings().local_storage_path)

    async def upload(
        self, file_bytes: bytes, filename: str, user_id: str, folder: str = ""
    ) -> str:
        file_path = self.base_path / _object_key(user_id, filename, folder)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_bytes(file_bytes)

        logger.info("Saved locally: %s", file_path)
        return str(file_path)

    async def read_file(
        self, file_id: str, user_id: str, folder: str = "memories"
    ) -> Optional[tuple[bytes, str]]:
        """Find a stored file by its ID (UUID stem) in the user's own folder."""
        if not FILE_ID_PATTERN.fullmatch(file_id or ""):
            return None
        search_dir = self.base_path / user_id
        if folder:
            search_dir = search_dir / folder
        if not search_dir.is_dir():
            return None

        for path in search_dir.iterdir():
            if path.is_file() and path.stem == file_id:
                return path.read_bytes(), guess_content_type(path.name)
        return None


def get_storage() -> StorageBackend:
    """Return the active storage backend based on feature flags."""
    if get_flags().use_s3:
        return S3Storage()
    return LocalStorage()
