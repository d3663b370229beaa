"""Chat completion resolution against the relay API."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, List, Optional

import requests

from config.settings import AppConfig
from modules.pipelines.errors import FetchError, MalformedResponseError
from modules.pipelines.fallback import Strategy, build_url, fetch, first_success, wrap_public_proxy

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ChatReply:
    """Assistant text extracted from a completion payload."""

    content: str
    strategy: str


def extract_content(payload: Any) -> str:
    """Return ``choices[0].message.content`` or raise MalformedResponseError."""
    try:
        content = payload["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        raise MalformedResponseError("Invalid response format") from exc
    if content is None:
        raise MalformedResponseError("Invalid response format")
    return str(content)


def parse_body(body: Any) -> Any:
    """Decode a JSON reply body or raise MalformedResponseError."""
    if not isinstance(body, (str, bytes)):
        raise MalformedResponseError("Invalid response format")
    try:
        return json.loads(body)
    except ValueError as exc:
        raise MalformedResponseError("Invalid response format") from exc


class ChatService:
    """Send a prompt to the chat endpoint, falling back through proxies."""

    def __init__(self, config: AppConfig, session: Optional[requests.Session] = None) -> None:
        self.config = config
        self.session = session or requests.Session()

    def direct_url(self, prompt: str) -> str:
        return build_url(self.config.api_base_url, self.config.chat_endpoint, prompt)

    def _fetch_text(self, url: str, error_label: str) -> str:
        response = fetch(self.session, url, timeout=self.config.request_timeout, error_label=error_label)
        return response.text

    def _fetch_enveloped(self, url: str) -> Any:
        response = fetch(self.session, url, timeout=self.config.request_timeout, error_label="Alternative proxy error!")
        try:
            envelope = response.json()
        except ValueError as exc:
            raise FetchError("Alternative proxy error! invalid JSON envelope") from exc
        return envelope.get("contents") if isinstance(envelope, dict) else None

    def strategies(self, prompt: str) -> List[Strategy[Any]]:
        """Return the ordered strategies; each yields the undecoded reply body."""
        direct = self.direct_url(prompt)
        proxy = build_url(self.config.api_base_url, self.config.chat_proxy_path, prompt)
        chain: List[Strategy[Any]] = [
            Strategy("direct", lambda: self._fetch_text(direct, "HTTP error!")),
            Strategy("proxy", lambda: self._fetch_text(proxy, "Proxy error!")),
        ]
        if self.config.public_proxy_url:
            public = wrap_public_proxy(self.config.public_proxy_url, "get", direct)
            chain.append(Strategy("public_proxy", lambda: self._fetch_enveloped(public)))
        return chain

    def send(self, prompt: str) -> ChatReply:
        """Return the assistant reply for ``prompt``.

        Raises ``AllStrategiesFailed`` when no strategy got a reply and
        ``MalformedResponseError`` when the winning body is not a completion.
        The body is decoded only after a strategy has won, so a malformed
        reply never falls through to the next strategy.
        """
        name, body = first_success(self.strategies(prompt))
        logger.info("Chat reply obtained via %s", name)
        return ChatReply(content=extract_content(parse_body(body)), strategy=name)
