"""Resolver exceptions and user-facing error categorization."""

from __future__ import annotations

from typing import List, Tuple


class ResolverError(RuntimeError):
    """Base class for request resolution failures."""


class FetchError(ResolverError):
    """A single strategy could not obtain a usable response."""


class MalformedResponseError(ResolverError):
    """The upstream response lacks the expected field."""


class AllStrategiesFailed(ResolverError):
    """Every strategy in a fallback chain raised."""

    def __init__(self, failures: List[Tuple[str, BaseException]]) -> None:
        super().__init__("All methods failed")
        self.failures = failures

    @property
    def last_error(self) -> BaseException | None:
        return self.failures[-1][1] if self.failures else None


FLOW_IMAGE = "image"
FLOW_CHAT = "chat"

# Checked in order; the first substring found in the error message wins.
_CATEGORY_MARKERS: List[Tuple[str, str]] = [
    ("cors", "CORS"),
    ("network", "Failed to fetch"),
    ("not_found", "404"),
    ("server", "500"),
]

ERROR_MESSAGES = {
    FLOW_IMAGE: {
        "cors": "CORS restriction: Please try opening the image URL directly in a new tab",
        "network": "Network error: Please check your internet connection and try again",
        "not_found": "API endpoint not found. Please check if the service is available",
        "server": "Server error: The image generation service is temporarily unavailable",
        "generic": "Failed to generate image. Please try again or contact support.",
    },
    FLOW_CHAT: {
        "cors": "CORS restriction: Unable to connect to chat service",
        "network": "Network error: Please check your internet connection",
        "not_found": "Chat service not found. Please check if the service is available",
        "server": "Server error: The chat service is temporarily unavailable",
        "generic": "Failed to send message. Please try again.",
    },
}


def error_category(error: BaseException) -> str:
    """Classify ``error`` by best-effort substring matching on its message."""
    text = str(error)
    for category, marker in _CATEGORY_MARKERS:
        if marker in text:
            return category
    return "generic"


def categorize_error(error: BaseException, flow: str) -> str:
    """Return the toast text for ``error`` raised by the ``flow`` handler."""
    try:
        messages = ERROR_MESSAGES[flow]
    except KeyError as exc:
        raise ValueError(f"Unknown flow: {flow}") from exc
    return messages[error_category(error)]
