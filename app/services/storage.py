"""Object storage used for upload artifacts (error reports).

``ObjectStorage`` is the interface the pipeline depends on. The filesystem
implementation keeps objects under ``settings.storage_root`` and builds
public URLs from ``settings.public_base_url``.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Protocol

from app.core.config import settings
from app.core.exceptions import NotFoundError

logger = logging.getLogger(__name__)


class ObjectStorage(Protocol):
    async def upload(self, path: str, data: bytes, content_type: str = "application/octet-stream") -> None: ...

    async def download(self, path: str) -> bytes: ...

    def public_url(self, path: str) -> str: ...


class LocalObjectStorage:
    """Stores objects as files below a root directory."""

    def __init__(self, root: str | Path, base_url: str):
        self._root = Path(root).resolve()
        self._base_url = base_url.rstrip("/")

    def _resolve(self, path: str) -> Path:
        target = (self._root / path.lstrip("/")).resolve()
        if self._root not in target.parents:
            raise NotFoundError("Object", path)
        return target

    async def upload(self, path: str, data: bytes, content_type: str = "application/octet-stream") -> None:
        target = self._resolve(path)

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)

        await asyncio.to_thread(_write)
        logger.info("Stored %s (%d bytes, %s)", path, len(data), content_type)

    async def download(self, path: str) -> bytes:
        target = self._resolve(path)
        if not target.is_file():
            raise NotFoundError("Object", path)
        return await asyncio.to_thread(target.read_bytes)

    def public_url(self, path: str) -> str:
        return f"{self._base_url}/{path.lstrip('/')}"


def get_storage() -> ObjectStorage:
    """FastAPI dependency returning the configured storage backend."""
    return LocalObjectStorage(settings.storage_root, settings.public_base_url)
