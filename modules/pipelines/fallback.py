"""First-success-wins evaluation of ordered request strategies."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Generic, List, Sequence, Tuple, TypeVar
from urllib.parse import quote, urlencode

import requests

from modules.pipelines.errors import AllStrategiesFailed, FetchError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class Strategy(Generic[T]):
    """A named, zero-argument attempt at obtaining a result."""

    name: str
    run: Callable[[], T]


def first_success(strategies: Sequence[Strategy[T]]) -> Tuple[str, T]:
    """Return ``(name, result)`` of the first strategy that does not raise.

    Later strategies are never invoked once one succeeds. When every strategy
    raises, ``AllStrategiesFailed`` carries the individual failures in order.
    """
    failures: List[Tuple[str, BaseException]] = []
    for strategy in strategies:
        try:
            result = strategy.run()
        except Exception as exc:  # noqa: BLE001
            logger.info("Strategy %s failed, trying next: %s", strategy.name, exc)
            failures.append((strategy.name, exc))
            continue
        if failures:
            logger.info("Strategy %s succeeded after %d failure(s)", strategy.name, len(failures))
        return strategy.name, result
    raise AllStrategiesFailed(failures)


def build_url(base_url: str, path: str, prompt: str) -> str:
    """Join ``base_url`` and ``path`` and append the encoded prompt query."""
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}?{urlencode({'prompt': prompt}, quote_via=quote)}"


def wrap_public_proxy(proxy_url: str, mode: str, target_url: str) -> str:
    """Return the public proxy URL fetching ``target_url`` (``raw`` or ``get``)."""
    return f"{proxy_url.rstrip('/')}/{mode}?{urlencode({'url': target_url}, quote_via=quote)}"


def fetch(
    session: requests.Session,
    url: str,
    *,
    timeout: float | None,
    error_label: str,
) -> requests.Response:
    """GET ``url`` and raise ``FetchError`` for transport or status failures."""
    try:
        response = session.get(url, timeout=timeout)
    except requests.RequestException as exc:
        raise FetchError(f"Failed to fetch: {exc}") from exc
    if not response.ok:
        raise FetchError(f"{error_label} status: {response.status_code}")
    return response
