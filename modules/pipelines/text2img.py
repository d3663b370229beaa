"""Text-to-image resolution against the relay API with progressive fallbacks."""

from __future__ import annotations

import logging
import webbrowser
from dataclasses import dataclass
from typing import Callable, List, Optional

import requests

from config.settings import AppConfig
from modules.pipelines.errors import AllStrategiesFailed, FetchError
from modules.pipelines.fallback import Strategy, build_url, fetch, first_success, wrap_public_proxy
from modules.services.storage_service import BlobRegistry
from modules.utils.image_utils import create_placeholder_data_url, is_decodable_image

logger = logging.getLogger(__name__)

PLACEHOLDER_STRATEGY = "placeholder"


@dataclass(slots=True)
class ImageResult:
    """Result payload produced by the text-to-image resolver."""

    image_url: str
    prompt: str
    strategy: str
    placeholder: bool = False


def _open_in_browser(url: str) -> bool:
    return webbrowser.open(url, new=2)


class Text2ImageService:
    """Obtain an image for a prompt, degrading to a local placeholder.

    Network strategies run in order (direct call, proxy path, public proxy);
    the first one returning image bytes wins. When all of them fail the direct
    URL is opened in a new browser tab and a placeholder card is synthesized,
    so ``generate`` only raises if the placeholder itself cannot be drawn.
    """

    def __init__(
        self,
        config: AppConfig,
        session: Optional[requests.Session] = None,
        blobs: Optional[BlobRegistry] = None,
        opener: Optional[Callable[[str], bool]] = None,
    ) -> None:
        self.config = config
        self.session = session or requests.Session()
        self.blobs = blobs if blobs is not None else BlobRegistry()
        self.opener = opener or _open_in_browser

    def direct_url(self, prompt: str) -> str:
        return build_url(self.config.api_base_url, self.config.image_endpoint, prompt)

    def proxy_url(self, prompt: str) -> str:
        return build_url(self.config.api_base_url, self.config.image_proxy_path, prompt)

    def _fetch_image(self, url: str, error_label: str, blobs: BlobRegistry) -> str:
        response = fetch(self.session, url, timeout=self.config.request_timeout, error_label=error_label)
        payload = response.content
        if not payload:
            raise FetchError(f"{error_label} empty image body")
        if not is_decodable_image(payload):
            raise FetchError(f"{error_label} body is not a decodable image")
        return blobs.register(payload)

    def strategies(self, prompt: str, blobs: Optional[BlobRegistry] = None) -> List[Strategy[str]]:
        """Return the ordered network strategies for ``prompt``.

        Fetched bytes are registered in ``blobs``, defaulting to the service registry.
        """
        registry = self.blobs if blobs is None else blobs
        direct = self.direct_url(prompt)
        chain: List[Strategy[str]] = [
            Strategy("direct", lambda: self._fetch_image(direct, "HTTP error!", registry)),
            Strategy("proxy", lambda: self._fetch_image(self.proxy_url(prompt), "Proxy error!", registry)),
        ]
        if self.config.public_proxy_url:
            public = wrap_public_proxy(self.config.public_proxy_url, "raw", direct)
            chain.append(
                Strategy("public_proxy", lambda: self._fetch_image(public, "Alternative proxy error!", registry))
            )
        return chain

    def create_placeholder(self, prompt: str) -> ImageResult:
        """Open the direct URL for the user and return a local placeholder."""
        direct = self.direct_url(prompt)
        try:
            opened = self.opener(direct)
        except webbrowser.Error as exc:
            logger.warning("Could not open %s in a browser: %s", direct, exc)
            opened = False
        if not opened:
            logger.warning("No browser tab opened for %s", direct)
        return ImageResult(
            image_url=create_placeholder_data_url(prompt),
            prompt=prompt,
            strategy=PLACEHOLDER_STRATEGY,
            placeholder=True,
        )

    def generate(self, prompt: str, blobs: Optional[BlobRegistry] = None) -> ImageResult:
        """Generate an image from text prompt."""
        try:
            name, image_url = first_success(self.strategies(prompt, blobs))
        except AllStrategiesFailed as exc:
            logger.warning("All image strategies failed for %r, using placeholder: %s", prompt, exc.last_error)
            return self.create_placeholder(prompt)
        logger.info("Image for %r obtained via %s", prompt, name)
        return ImageResult(image_url=image_url, prompt=prompt, strategy=name)
