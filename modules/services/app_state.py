"""In-memory UI state and the pure transitions that mutate it."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from modules.services.history_service import ImageHistoryEntry
from modules.services.storage_service import BlobRegistry

ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"
DEFAULT_HISTORY_LIMIT = 10


@dataclass(slots=True)
class ChatMessage:
    """A single transcript line."""

    id: int
    role: str
    content: str
    timestamp: datetime


@dataclass
class AppState:
    """Per-session state shared by the image and chat tabs.

    The busy flags gate duplicate submissions: callers check them before
    starting a request and must release them once the request settles.
    ``blobs`` holds the fetched image bytes behind this session's ``blob:``
    URLs, and ``gallery_ids`` maps displayed gallery positions to entry ids.
    """

    active_tab: str = "image"
    is_generating_image: bool = False
    current_image: Optional[str] = None
    current_prompt: str = ""
    image_history: List[ImageHistoryEntry] = field(default_factory=list)
    history_limit: int = DEFAULT_HISTORY_LIMIT
    is_sending_message: bool = False
    chat_history: List[ChatMessage] = field(default_factory=list)
    chat_message_id_counter: int = 0
    pending_message: Optional[str] = None
    blobs: BlobRegistry = field(default_factory=BlobRegistry)
    gallery_ids: List[str] = field(default_factory=list)
    clock: Callable[[], datetime] = datetime.now

    # Image history -----------------------------------------------------------
    def _next_image_id(self, now: datetime) -> str:
        candidate = int(now.timestamp() * 1000)
        taken = {entry.id for entry in self.image_history}
        while str(candidate) in taken:
            candidate += 1
        return str(candidate)

    def add_image(self, prompt: str, image_url: str) -> ImageHistoryEntry:
        """Make ``image_url`` current and push it to the front of the history."""
        now = self.clock()
        entry = ImageHistoryEntry(
            id=self._next_image_id(now),
            prompt=prompt,
            image_url=image_url,
            timestamp=now,
        )
        self.current_image = image_url
        self.current_prompt = prompt
        self.image_history.insert(0, entry)
        del self.image_history[self.history_limit :]
        return entry

    def delete_image(self, entry_id: str) -> Optional[ImageHistoryEntry]:
        """Remove the entry with ``entry_id``; returns it, or None if absent."""
        for index, entry in enumerate(self.image_history):
            if entry.id == entry_id:
                return self.image_history.pop(index)
        return None

    def find_image(self, entry_id: str) -> Optional[ImageHistoryEntry]:
        return next((entry for entry in self.image_history if entry.id == entry_id), None)

    def restore_history(self, entries: List[ImageHistoryEntry]) -> None:
        """Replace the history with previously persisted entries."""
        self.image_history = list(entries[: self.history_limit])

    # Chat ---------------------------------------------------------------------
    def append_message(self, role: str, content: str) -> ChatMessage:
        """Append a message with the next monotonic id."""
        if role not in (ROLE_USER, ROLE_ASSISTANT):
            raise ValueError(f"Unknown chat role: {role}")
        self.chat_message_id_counter += 1
        message = ChatMessage(
            id=self.chat_message_id_counter,
            role=role,
            content=content,
            timestamp=self.clock(),
        )
        self.chat_history.append(message)
        return message

    def clear_chat(self) -> None:
        self.chat_history = []
        self.chat_message_id_counter = 0

    # Busy flags ---------------------------------------------------------------
    def begin_image_generation(self) -> bool:
        """Claim the image busy flag; False when a generation is in flight."""
        if self.is_generating_image:
            return False
        self.is_generating_image = True
        return True

    def end_image_generation(self) -> None:
        self.is_generating_image = False

    def begin_message_send(self) -> bool:
        """Claim the chat busy flag; False when a send is in flight."""
        if self.is_sending_message:
            return False
        self.is_sending_message = True
        return True

    def end_message_send(self) -> None:
        self.is_sending_message = False
