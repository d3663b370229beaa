"""Full re-render of the image display, history grid and chat transcript."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from modules.services.app_state import AppState, ChatMessage
from modules.services.history_service import ImageHistoryEntry
from modules.services.storage_service import BlobRegistry
from modules.utils.image_utils import load_image

logger = logging.getLogger(__name__)

TOAST_SUCCESS = "success"
TOAST_ERROR = "error"


@dataclass(slots=True)
class Toast:
    """Transient notification shown to the user."""

    message: str
    kind: str = TOAST_SUCCESS


Notifier = Callable[[Toast], None]


def _safe_image(url: Optional[str], blobs: BlobRegistry) -> Any:
    if not url:
        return None
    try:
        return load_image(url, blobs)
    except (LookupError, OSError, ValueError) as exc:
        logger.warning("Cannot display image %s: %s", url[:40], exc)
        return None


def format_timestamp(entry: ImageHistoryEntry) -> str:
    return entry.timestamp.strftime("%Y-%m-%d %H:%M:%S")


def render_current(state: AppState) -> Tuple[Any, str]:
    """Return the current image and its prompt for the result card."""
    if not (state.current_image and state.current_prompt):
        return None, ""
    return _safe_image(state.current_image, state.blobs), state.current_prompt


@dataclass(slots=True)
class HistoryView:
    """Gallery items plus the entry id behind each displayed position."""

    items: List[Tuple[Any, str]]
    ids: List[str]
    broken: List[str] = field(default_factory=list)

    @property
    def visible(self) -> bool:
        return bool(self.items)


def render_history(entries: List[ImageHistoryEntry], blobs: BlobRegistry) -> HistoryView:
    """Return ``(image, caption)`` gallery items, newest first.

    Entries whose image can no longer be decoded are left out of the grid and
    their ids are reported in ``broken``.
    """
    view = HistoryView(items=[], ids=[])
    for entry in entries:
        image = _safe_image(entry.image_url, blobs)
        if image is None:
            view.broken.append(entry.id)
            continue
        view.items.append((image, f"{entry.prompt}\n{format_timestamp(entry)}"))
        view.ids.append(entry.id)
    return view


def render_chat(messages: List[ChatMessage]) -> List[Dict[str, str]]:
    return [{"role": message.role, "content": message.content} for message in messages]
