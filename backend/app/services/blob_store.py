import os
import re
import time
from abc import ABC, abstractmethod
from urllib.parse import quote

import aiofiles
import aiofiles.os

from app.config import Settings

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


def sanitize_file_name(name: str) -> str:
    return _UNSAFE_FILENAME_CHARS.sub("_", name)


def production_upload_path(shipment_id: str, original_name: str, now_ms: int | None = None) -> str:
    """Storage path for an uploaded production spreadsheet.

    ``shipments/{shipment_id}/production/{timestamp_ms}-{sanitized_name}``
    """
    timestamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"shipments/{shipment_id}/production/{timestamp}-{sanitize_file_name(original_name)}"


class BlobStore(ABC):
    """Storage for uploaded source files."""

    @abstractmethod
    async def save_object(self, path: str, data: bytes, content_type: str | None = None) -> None:
        ...

    @abstractmethod
    async def delete_object(self, path: str) -> None:
        """Delete ``path``. Missing objects are not an error."""

    @abstractmethod
    def public_url(self, path: str) -> str:
        ...


class LocalBlobStore(BlobStore):
    """Blob store backed by a directory on local disk."""

    def __init__(self, root_dir: str, public_base_url: str = ""):
        self.root_dir = os.path.abspath(root_dir)
        self.public_base_url = public_base_url.rstrip("/")

    @classmethod
    def from_settings(cls, settings: Settings) -> "LocalBlobStore":
        return cls(settings.blob_storage_dir, settings.blob_public_base_url)

    def _resolve(self, path: str) -> str:
        full_path = os.path.abspath(os.path.join(self.root_dir, path.lstrip("/")))
        if os.path.commonpath([full_path, self.root_dir]) != self.root_dir:
            raise ValueError(f"Path escapes blob root: {path}")
        return full_path

    async def save_object(self, path: str, data: bytes, content_type: str | None = None) -> None:
        full_path = self._resolve(path)
        os.makedirs(os.path.dirname(full_path), exist_ok=True)
        async with aiofiles.open(full_path, "wb") as f:
            await f.write(data)

    async def delete_object(self, path: str) -> None:
        full_path = self._resolve(path)
        try:
            await aiofiles.os.remove(full_path)
        except FileNotFoundError:
            pass

    def public_url(self, path: str) -> str:
        return f"{self.public_base_url}/{quote(path)}"
