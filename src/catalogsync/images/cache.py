"""Two-level (memory + disk) byte cache for listing pictures."""

from __future__ import annotations

import hashlib
import logging
import shutil
from pathlib import Path
from typing import Dict, Optional

import httpx

from catalogsync.exceptions import StorageError

logger = logging.getLogger(__name__)


class ImageCache:
    """Caches downloaded image bytes in memory and under ``directory``.

    Disk entries are named by the SHA-256 of their URL and treated as
    immutable once written.
    """

    def __init__(self, directory: Path | str, *, timeout: float = 30.0) -> None:
        self.directory = Path(directory)
        self.timeout = timeout
        self._memory: Dict[str, bytes] = {}

    def _path_for(self, url: str) -> Path:
        return self.directory / hashlib.sha256(url.encode("utf-8")).hexdigest()

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, follow_redirects=True)

    async def get(self, url: str) -> bytes:
        """Return the image at ``url``: memory, then disk, then network."""
        data: Optional[bytes] = self._memory.get(url)
        if data is not None:
            return data
        path = self._path_for(url)
        if path.is_file():
            data = path.read_bytes()
        else:
            async with self._client() as client:
                resp = await client.get(url)
                resp.raise_for_status()
                data = resp.content
            self.directory.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        self._memory[url] = data
        return data

    def clear_memory_cache(self) -> None:
        self._memory.clear()

    def clear_disk_cache(self) -> None:
        if not self.directory.exists():
            return
        try:
            shutil.rmtree(self.directory)
        except OSError as exc:
            raise StorageError(f"Failed to clear image cache at {self.directory}") from exc
        logger.info("Image disk cache cleared at %s", self.directory)

    def memory_size(self) -> int:
        return sum(len(b) for b in self._memory.values())

    def disk_size(self) -> int:
        """Total bytes of cached files on disk."""
        if not self.directory.exists():
            return 0
        return sum(p.stat().st_size for p in self.directory.iterdir() if p.is_file())

    def size(self) -> int:
        return self.memory_size() + self.disk_size()
