"""ChatService fallback chain tests."""

from __future__ import annotations

import pytest
import requests

from modules.pipelines.chat import ChatService, extract_content
from modules.pipelines.errors import AllStrategiesFailed, MalformedResponseError
from tests.fakes import API, PUBLIC, DummyResponse, DummySession, chat_payload, envelope


def test_direct_reply(config):
    session = DummySession({API: DummyResponse(json_data=chat_payload("Hello!"))})
    reply = ChatService(config, session=session).send("hi")

    assert reply.content == "Hello!"
    assert reply.strategy == "direct"
    assert session.calls == [f"{API}/api/chat?prompt=hi"]


def test_public_proxy_envelope_is_unwrapped(config):
    session = DummySession(
        {
            API: DummyResponse(status_code=404),
            f"{PUBLIC}/get": DummyResponse(json_data=envelope(chat_payload("From proxy"))),
        }
    )
    reply = ChatService(config, session=session).send("hi")

    assert reply.content == "From proxy"
    assert reply.strategy == "public_proxy"
    assert len(session.calls) == 3


def test_envelope_without_contents_is_malformed(config):
    session = DummySession(
        {
            API: requests.ConnectionError("down"),
            f"{PUBLIC}/get": DummyResponse(json_data={"status": {"http_code": 500}}),
        }
    )
    with pytest.raises(MalformedResponseError):
        ChatService(config, session=session).send("hi")
    assert len(session.calls) == 3


def test_envelope_that_is_not_json_falls_through(config):
    session = DummySession(
        {
            API: requests.ConnectionError("down"),
            f"{PUBLIC}/get": DummyResponse(content=b"<html>gateway</html>"),
        }
    )
    with pytest.raises(AllStrategiesFailed):
        ChatService(config, session=session).send("hi")


def test_malformed_payload_does_not_fall_back(config):
    session = DummySession({API: DummyResponse(json_data={"error": "nope"})})

    with pytest.raises(MalformedResponseError, match="Invalid response format"):
        ChatService(config, session=session).send("hi")
    assert len(session.calls) == 1


def test_non_json_reply_does_not_fall_back(config):
    session = DummySession(
        {
            API: DummyResponse(text="<html>Bad gateway</html>"),
            PUBLIC: DummyResponse(json_data=envelope(chat_payload("unused"))),
        }
    )

    with pytest.raises(MalformedResponseError, match="Invalid response format"):
        ChatService(config, session=session).send("hi")
    assert session.calls == [f"{API}/api/chat?prompt=hi"]


def test_all_strategies_fail(config):
    session = DummySession({})
    with pytest.raises(AllStrategiesFailed, match="All methods failed"):
        ChatService(config, session=session).send("sunset")
    assert len(session.calls) == 3


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"choices": []},
        {"choices": [{}]},
        {"choices": [{"message": {"content": None}}]},
        ["not", "a", "dict"],
    ],
)
def test_extract_content_rejects_missing_fields(payload):
    with pytest.raises(MalformedResponseError):
        extract_content(payload)
