import asyncio
import json

import httpx
import pytest

from talking_character.assistant.gateway_client import GatewayClient
from talking_character.errors import GatewayError


def make_gateway(handler):
    return GatewayClient("http://gateway.test/api", transport=httpx.MockTransport(handler))


def test_chat_sends_camel_case_payload():
    seen = []

    def handler(request):
        seen.append((request.url.path, json.loads(request.content)))
        return httpx.Response(200, json={"response": "Ahoy!", "usage": {}})

    gateway = make_gateway(handler)
    reply = asyncio.run(gateway.chat([{"role": "user", "content": "Hi"}], system="Be brief.", max_tokens=50))

    assert reply == "Ahoy!"
    path, payload = seen[0]
    assert path == "/api/chat"
    assert payload == {"messages": [{"role": "user", "content": "Hi"}], "system": "Be brief.", "maxTokens": 50}


def test_error_body_becomes_gateway_error():
    gateway = make_gateway(lambda r: httpx.Response(429, json={"error": "Too many requests"}))
    with pytest.raises(GatewayError) as excinfo:
        asyncio.run(gateway.chat([]))
    assert excinfo.value.status_code == 429
    assert excinfo.value.message == "Too many requests"


def test_error_without_body():
    gateway = make_gateway(lambda r: httpx.Response(502, text="Bad gateway"))
    with pytest.raises(GatewayError, match="API error: 502"):
        asyncio.run(gateway.tts_elevenlabs("Hello"))


def test_transport_failure_becomes_gateway_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(GatewayError, match="Gateway unreachable"):
        asyncio.run(make_gateway(handler).chat([]))


def test_malformed_chat_response():
    gateway = make_gateway(lambda r: httpx.Response(200, json={"unexpected": True}))
    with pytest.raises(GatewayError, match="Malformed"):
        asyncio.run(gateway.chat([]))


def test_tts_returns_audio_bytes():
    seen = []

    def handler(request):
        seen.append(json.loads(request.content))
        return httpx.Response(200, content=b"mp3-bytes")

    gateway = make_gateway(handler)
    audio = asyncio.run(gateway.tts_openai("Hello", model="tts-1", voice="onyx", speed=1.0))
    assert audio == b"mp3-bytes"
    assert seen == [{"input": "Hello", "model": "tts-1", "voice": "onyx", "speed": 1.0}]


def test_heygen_helpers():
    def handler(request):
        if request.url.path.endswith("/speak"):
            return httpx.Response(200, json={"task_id": "t1"})
        if request.url.path.endswith("/avatars"):
            return httpx.Response(200, json={"avatars": [{"avatar_id": "a1"}]})
        return httpx.Response(200, json={"session_id": "s1"})

    gateway = make_gateway(handler)
    assert asyncio.run(gateway.heygen_speak("s1", "Hi")) == "t1"
    assert asyncio.run(gateway.heygen_avatars()) == [{"avatar_id": "a1"}]
    assert asyncio.run(gateway.heygen_create_session())["session_id"] == "s1"
