"""Storage helpers: durable key-value storage, transient blobs and downloads."""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
import uuid
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)

BLOB_SCHEME = "blob:"


class DurableStorage:
    """JSON-file backed key/value store surviving restarts.

    Values are strings, mirroring the browser ``localStorage`` contract: callers
    serialize and deserialize their own payloads.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def _read_all(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        with self.path.open("r", encoding="utf-8") as fp:
            data = json.load(fp)
        if not isinstance(data, dict):
            raise ValueError(f"Storage file {self.path} does not hold a JSON object")
        return {str(key): str(value) for key, value in data.items()}

    def _write_all(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fp:
                json.dump(data, fp, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _read_for_write(self) -> Dict[str, str]:
        """Return the stored map, or an empty one when the file is unreadable.

        A corrupt file is overwritten by the next write.
        """
        try:
            return self._read_all()
        except ValueError as exc:
            logger.warning("Discarding unreadable storage file %s: %s", self.path, exc)
            return {}

    def get_item(self, key: str) -> Optional[str]:
        """Return the stored string for ``key`` or None."""
        return self._read_all().get(key)

    def set_item(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``."""
        data = self._read_for_write()
        data[key] = value
        self._write_all(data)

    def remove_item(self, key: str) -> None:
        """Delete ``key`` if present."""
        data = self._read_for_write()
        if data.pop(key, None) is not None:
            self._write_all(data)


class BlobRegistry:
    """Session-scoped registry of fetched image bytes keyed by ``blob:`` URLs."""

    def __init__(self) -> None:
        self._blobs: Dict[str, bytes] = {}

    def register(self, payload: bytes) -> str:
        """Keep ``payload`` in memory and return its transient URL."""
        url = f"{BLOB_SCHEME}{uuid.uuid4()}"
        self._blobs[url] = payload
        return url

    def resolve(self, url: str) -> Optional[bytes]:
        """Return the bytes behind ``url`` if it is still alive."""
        return self._blobs.get(url)

    def revoke(self, url: str) -> None:
        """Release the bytes behind ``url``."""
        self._blobs.pop(url, None)

    def __len__(self) -> int:
        return len(self._blobs)


def download_filename(prompt: str) -> str:
    """Return the file name used when saving an image for ``prompt``."""
    slug = re.sub(r"[^a-zA-Z0-9]", "-", prompt[:20])
    return f"generated-image-{slug}.png"


class StorageService:
    """Handle saving generated assets to the download directory."""

    def __init__(self, output_dir: Path) -> None:
        self.output_dir = Path(output_dir)

    def save_image(self, payload: bytes, prompt: str) -> Path:
        """Persist image bytes and return the file path."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        target = self.output_dir / download_filename(prompt)
        target.write_bytes(payload)
        logger.info("Saved image for prompt %r to %s", prompt[:40], target)
        return target
