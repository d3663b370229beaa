"""Image generation history tracking and persistence."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from modules.services.storage_service import DurableStorage
from modules.utils.image_utils import is_data_url

logger = logging.getLogger(__name__)

HISTORY_STORAGE_KEY = "aiHubImageHistory"


@dataclass(slots=True)
class ImageHistoryEntry:
    """Metadata describing a generated image."""

    id: str
    prompt: str
    image_url: str  # data: URL (persistable) or blob: URL (session only)
    timestamp: datetime


def serialize_entry(entry: ImageHistoryEntry) -> Dict[str, Any]:
    """Return the persistable subset of ``entry``."""
    return {
        "id": entry.id,
        "prompt": entry.prompt,
        "timestamp": entry.timestamp.isoformat(),
        "imageUrl": entry.image_url if is_data_url(entry.image_url) else None,
    }


def deserialize_entry(item: Any) -> Optional[ImageHistoryEntry]:
    """Rebuild an entry from stored metadata, or None if it is unusable."""
    if not isinstance(item, dict):
        return None
    image_url = item.get("imageUrl")
    if not image_url or not isinstance(image_url, str):
        return None
    try:
        timestamp = datetime.fromisoformat(str(item["timestamp"]))
    except (KeyError, TypeError, ValueError):
        return None
    return ImageHistoryEntry(
        id=str(item.get("id") or ""),
        prompt=str(item.get("prompt") or ""),
        image_url=image_url,
        timestamp=timestamp,
    )


class GenerationHistoryService:
    """Persist the image history under a single durable storage key."""

    def __init__(self, storage: DurableStorage, key: str = HISTORY_STORAGE_KEY) -> None:
        self.storage = storage
        self.key = key

    def save(self, entries: List[ImageHistoryEntry]) -> None:
        """Write the history metadata; failures are logged and swallowed."""
        payload = json.dumps([serialize_entry(entry) for entry in entries])
        try:
            self.storage.set_item(self.key, payload)
        except (OSError, TypeError, ValueError) as exc:
            logger.warning("Failed to save history to storage: %s", exc)

    def load(self) -> List[ImageHistoryEntry]:
        """Return restorable entries; corrupt storage yields an empty history."""
        try:
            raw = self.storage.get_item(self.key)
            if not raw:
                return []
            items = json.loads(raw)
        except (OSError, ValueError) as exc:
            logger.warning("Failed to load history from storage: %s", exc)
            return []

        if not isinstance(items, list):
            logger.warning("Ignoring stored history of type %s", type(items).__name__)
            return []

        entries = [entry for entry in map(deserialize_entry, items) if entry is not None]
        logger.info("Restored %d of %d stored history entries", len(entries), len(items))
        return entries
