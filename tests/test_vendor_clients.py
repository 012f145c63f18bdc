import asyncio
import json

import httpx
import pytest

from talking_character.avatar import HeyGenClient
from talking_character.errors import UpstreamError
from talking_character.llm import Message, OpenAILLM
from talking_character.tts import ElevenLabsProvider, OpenAITTSProvider


def client_for(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_openai_llm_chat():
    seen = []

    def handler(request):
        seen.append(json.loads(request.content))
        return httpx.Response(200, json={
            "model": "gpt-4o-mini",
            "choices": [{"message": {"content": "Hello!"}}],
            "usage": {"total_tokens": 3},
        })

    llm = OpenAILLM(api_key="sk", client=client_for(handler))
    result = asyncio.run(llm.chat([Message(role="user", content="Hi")], max_tokens=20, temperature=0.0))

    assert result.content == "Hello!"
    assert result.usage == {"total_tokens": 3}
    assert seen[0]["max_tokens"] == 20
    assert seen[0]["temperature"] == 0.0
    assert seen[0]["messages"] == [{"role": "user", "content": "Hi"}]


def test_openai_llm_error_message():
    def handler(request):
        return httpx.Response(429, json={"error": {"message": "Rate limit reached"}})

    llm = OpenAILLM(api_key="sk", client=client_for(handler))
    with pytest.raises(UpstreamError) as excinfo:
        asyncio.run(llm.chat([Message(role="user", content="Hi")]))
    assert excinfo.value.status_code == 429
    assert excinfo.value.message == "Rate limit reached"
    assert excinfo.value.vendor == "openai"


def test_openai_llm_default_error_message():
    llm = OpenAILLM(api_key="sk", client=client_for(lambda request: httpx.Response(502, text="Bad gateway")))
    with pytest.raises(UpstreamError, match="API error"):
        asyncio.run(llm.chat([Message(role="user", content="Hi")]))


def test_elevenlabs_error_detail():
    def handler(request):
        return httpx.Response(401, json={"detail": "Invalid API key"})

    tts = ElevenLabsProvider(api_key="el", voice_id="v", client=client_for(handler))
    with pytest.raises(UpstreamError) as excinfo:
        asyncio.run(tts.open_stream("Hello"))
    assert (excinfo.value.status_code, excinfo.value.message) == (401, "Invalid API key")


def test_elevenlabs_default_error():
    tts = ElevenLabsProvider(api_key="el", voice_id="v", client=client_for(lambda r: httpx.Response(500)))
    with pytest.raises(UpstreamError, match="TTS API error"):
        asyncio.run(tts.open_stream("Hello"))


def test_openai_tts_stream_reads_bytes():
    async def scenario():
        tts = OpenAITTSProvider(api_key="sk", client=client_for(lambda r: httpx.Response(200, content=b"mp3")))
        response = await tts.open_stream("Hello")
        body = b"".join([chunk async for chunk in response.aiter_bytes()])
        await response.aclose()
        return body

    assert asyncio.run(scenario()) == b"mp3"


def test_heygen_error_message():
    def handler(request):
        return httpx.Response(400, json={"message": "Avatar not found"})

    heygen = HeyGenClient(api_key="hg", client=client_for(handler))
    with pytest.raises(UpstreamError) as excinfo:
        asyncio.run(heygen.create_session("missing"))
    assert excinfo.value.message == "Avatar not found"
    assert excinfo.value.vendor == "heygen"


def test_heygen_default_error_and_list():
    heygen = HeyGenClient(api_key="hg", client=client_for(lambda r: httpx.Response(500, text="oops")))
    with pytest.raises(UpstreamError, match="HeyGen API error"):
        asyncio.run(heygen.speak("s1", "Hello"))

    empty = HeyGenClient(api_key="hg", client=client_for(lambda r: httpx.Response(200, json={"data": {}})))
    assert asyncio.run(empty.list_avatars()) == []


def test_heygen_speak_defaults_to_talk():
    seen = []

    def handler(request):
        seen.append(json.loads(request.content))
        return httpx.Response(200, json={"data": {"task_id": "t9"}})

    heygen = HeyGenClient(api_key="hg", client=client_for(handler))
    assert asyncio.run(heygen.speak("s1", "Hello")) == "t9"
    assert seen == [{"session_id": "s1", "text": "Hello", "task_type": "talk"}]
