"""Text2ImageService fallback chain tests."""

from __future__ import annotations

import pytest
import requests

from modules.pipelines import text2img
from modules.services.storage_service import BlobRegistry
from modules.utils.image_utils import decode_data_url, is_blob_url, is_data_url
from tests.fakes import API, PUBLIC, DummyResponse, DummySession, RecordingOpener, png_bytes

PNG_BYTES = png_bytes()


def build_service(config, routes, opener=None):
    session = DummySession(routes)
    blobs = BlobRegistry()
    service = text2img.Text2ImageService(
        config, session=session, blobs=blobs, opener=opener or RecordingOpener()
    )
    return service, session, blobs


def test_direct_call_wins(config):
    service, session, blobs = build_service(config, {API: DummyResponse(content=PNG_BYTES)})

    result = service.generate("sunset")

    assert result.strategy == "direct"
    assert result.placeholder is False
    assert is_blob_url(result.image_url)
    assert blobs.resolve(result.image_url) == PNG_BYTES
    assert session.calls == [f"{API}/api/imagine?prompt=sunset"]


def test_falls_back_to_proxy_path(config):
    config.image_proxy_path = "/proxy/imagine"
    routes = {
        f"{API}/api/imagine": DummyResponse(status_code=500),
        f"{API}/proxy/imagine": DummyResponse(content=PNG_BYTES),
    }
    service, session, _ = build_service(config, routes)

    result = service.generate("sunset")

    assert result.strategy == "proxy"
    assert session.calls == [
        f"{API}/api/imagine?prompt=sunset",
        f"{API}/proxy/imagine?prompt=sunset",
    ]


def test_falls_back_to_public_proxy(config):
    routes = {
        API: requests.ConnectionError("refused"),
        f"{PUBLIC}/raw": DummyResponse(content=PNG_BYTES),
    }
    service, session, _ = build_service(config, routes)

    result = service.generate("sunset")

    assert result.strategy == "public_proxy"
    assert len(session.calls) == 3
    assert session.calls[2].startswith(f"{PUBLIC}/raw?url=http%3A%2F%2Frelay.test")


def test_empty_body_counts_as_failure(config):
    routes = {
        API: DummyResponse(content=b""),
        f"{PUBLIC}/raw": DummyResponse(content=PNG_BYTES),
    }
    service, _, _ = build_service(config, routes)

    assert service.generate("sunset").strategy == "public_proxy"


def test_undecodable_body_falls_through(config):
    routes = {
        API: DummyResponse(content=b"<html>Bad gateway</html>"),
        f"{PUBLIC}/raw": DummyResponse(content=PNG_BYTES),
    }
    service, session, blobs = build_service(config, routes)

    result = service.generate("sunset")

    assert result.strategy == "public_proxy"
    assert len(session.calls) == 3
    assert len(blobs) == 1
    assert blobs.resolve(result.image_url) == PNG_BYTES


def test_bytes_go_to_the_given_registry(config):
    service, _, own_blobs = build_service(config, {API: DummyResponse(content=PNG_BYTES)})
    session_blobs = BlobRegistry()

    result = service.generate("sunset", session_blobs)

    assert session_blobs.resolve(result.image_url) == PNG_BYTES
    assert len(own_blobs) == 0


def test_placeholder_when_everything_fails(config):
    opener = RecordingOpener()
    service, session, blobs = build_service(config, {}, opener=opener)

    result = service.generate("a very long prompt about mountains and lakes")

    assert result.placeholder is True
    assert result.strategy == text2img.PLACEHOLDER_STRATEGY
    assert is_data_url(result.image_url)
    assert decode_data_url(result.image_url).startswith(b"\x89PNG")
    assert opener.urls == [service.direct_url("a very long prompt about mountains and lakes")]
    assert len(session.calls) == 3
    assert len(blobs) == 0


def test_placeholder_survives_missing_browser(config):
    service, _, _ = build_service(config, {}, opener=RecordingOpener(result=False))

    assert service.generate("sunset").placeholder is True


def test_public_proxy_can_be_disabled(config):
    config.public_proxy_url = ""
    service, session, _ = build_service(config, {})

    service.generate("sunset")

    assert len(session.calls) == 2
    assert not any(call.startswith(PUBLIC) for call in session.calls)


def test_placeholder_errors_propagate(config, monkeypatch):
    def broken(prompt):
        raise OSError("cannot draw")

    monkeypatch.setattr(text2img, "create_placeholder_data_url", broken)
    service, _, _ = build_service(config, {})

    with pytest.raises(OSError):
        service.generate("sunset")
