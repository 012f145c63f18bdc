import asyncio
import json

import httpx
import pytest

from talking_character.assistant.gateway_client import GatewayClient
from talking_character.assistant.speech import (
    ElevenLabsSpeech,
    LocalSpeech,
    OpenAISpeech,
    SpeechOutputSelector,
    SpeechProducer,
    build_speech_output,
    pick_voice,
)
from talking_character.config import ElevenLabsSettings, LocalTTSSettings, OpenAITTSSettings, build_settings
from talking_character.errors import GatewayError, SpeechError


class FakeProducer(SpeechProducer):
    def __init__(self, name, error=None, block=False):
        self.name = name
        self.error = error
        self.texts = []
        self.stops = 0
        self.release = asyncio.Event() if block else None

    async def start(self, text, on_started):
        self.texts.append(text)
        if self.error is not None:
            raise self.error
        on_started()
        if self.release is not None:
            await self.release.wait()

    def stop(self):
        self.stops += 1
        if self.release is not None:
            self.release.set()


class Recorder:
    def __init__(self):
        self.events = []

    def on_start(self):
        self.events.append("start")

    def on_end(self):
        self.events.append("end")

    def on_error(self, error):
        self.events.append(("error", type(error).__name__))


def make_selector(primary_error=None, local_error=None, provider="elevenlabs"):
    producers = {
        "elevenlabs": FakeProducer("elevenlabs", error=primary_error),
        "openai": FakeProducer("openai"),
        "local": FakeProducer("local", error=local_error),
    }
    return SpeechOutputSelector(producers, provider=provider), producers


def test_primary_speaks_cleaned_text():
    selector, producers = make_selector()
    rec = Recorder()

    used = asyncio.run(selector.speak("Test 🎉 message!!", rec.on_start, rec.on_end, rec.on_error))

    assert used == "elevenlabs"
    assert producers["elevenlabs"].texts == ["Test message!!"]
    assert producers["local"].texts == []
    assert rec.events == ["start", "end"]


def test_primary_failure_falls_back_to_local_once():
    selector, producers = make_selector(primary_error=GatewayError("API error: 500", 500))
    rec = Recorder()

    used = asyncio.run(selector.speak("Hello", rec.on_start, rec.on_end, rec.on_error))

    assert used == "local"
    assert len(producers["elevenlabs"].texts) == 1
    assert len(producers["local"].texts) == 1
    assert producers["openai"].texts == []
    assert rec.events == ["start", "end"]


def test_all_producers_failing_reports_one_error():
    selector, producers = make_selector(
        primary_error=GatewayError("API error: 500", 500),
        local_error=SpeechError("no engine"),
    )
    rec = Recorder()

    used = asyncio.run(selector.speak("Hello", rec.on_start, rec.on_end, rec.on_error))

    assert used is None
    assert sum(len(p.texts) for p in producers.values()) == 2
    assert rec.events == [("error", "SpeechError")]


def test_local_primary_has_no_second_producer():
    selector, producers = make_selector(local_error=SpeechError("no engine"), provider="local")
    rec = Recorder()

    assert selector.producer_order() == ["local"]
    assert asyncio.run(selector.speak("Hello", rec.on_start, rec.on_end, rec.on_error)) is None
    assert len(producers["local"].texts) == 1
    assert rec.events == [("error", "SpeechError")]


def test_openai_primary_order():
    selector, _ = make_selector()
    selector.set_provider("openai")
    assert selector.producer_order() == ["openai", "local"]


def test_unknown_provider_is_ignored():
    selector, _ = make_selector()
    selector.set_provider("browser")
    assert selector.provider == "elevenlabs"


def test_emoji_only_text_ends_without_speaking():
    selector, producers = make_selector()
    rec = Recorder()

    assert asyncio.run(selector.speak("🌴", rec.on_start, rec.on_end, rec.on_error)) is None
    assert all(p.texts == [] for p in producers.values())
    assert rec.events == ["end"]


def test_stop_twice_fires_on_end_once():
    async def scenario():
        producers = {"elevenlabs": FakeProducer("elevenlabs", block=True), "local": FakeProducer("local")}
        selector = SpeechOutputSelector(producers)
        rec = Recorder()

        task = asyncio.create_task(selector.speak("Hello", rec.on_start, rec.on_end, rec.on_error))
        await asyncio.sleep(0)
        assert selector.is_speaking

        selector.stop()
        selector.stop()
        used = await task
        return used, rec, producers, selector

    used, rec, producers, selector = asyncio.run(scenario())
    assert used is None
    assert rec.events == ["start", "end"]
    assert producers["local"].texts == []
    assert not selector.is_speaking


def test_stop_without_session_does_nothing():
    selector, producers = make_selector()
    selector.stop()
    assert all(p.stops == 0 for p in producers.values())


class FakeVoice:
    def __init__(self, voice_id, name):
        self.id = voice_id
        self.name = name


class FakeEngine:
    def __init__(self):
        self.properties = {}
        self.said = []
        self.stopped = False

    def getProperty(self, name):
        if name == "voices":
            return [FakeVoice("v1", "French"), FakeVoice("v2", "English (Great Britain)")]
        return self.properties.get(name)

    def setProperty(self, name, value):
        self.properties[name] = value

    def say(self, text):
        self.said.append(text)

    def runAndWait(self):
        pass

    def stop(self):
        self.stopped = True


def test_local_speech_configures_engine_and_speaks():
    engine = FakeEngine()
    local = LocalSpeech(LocalTTSSettings(rate=150, volume=0.8, preferred_voice="Zira"), engine_factory=lambda: engine)
    started = []

    asyncio.run(local.start("Hello there", lambda: started.append(True)))

    assert engine.said == ["Hello there"]
    assert engine.properties == {"voice": "v2", "rate": 150, "volume": 0.8}
    assert started == [True]

    local.stop()
    assert engine.stopped


def test_local_speech_engine_failure_is_speech_error():
    def broken_factory():
        raise RuntimeError("no driver")

    local = LocalSpeech(engine_factory=broken_factory)
    with pytest.raises(SpeechError, match="no driver"):
        asyncio.run(local.start("Hello", lambda: None))


def test_unexpected_producer_error_still_falls_back_to_local():
    selector, producers = make_selector(primary_error=PermissionError("player not executable"))
    rec = Recorder()

    used = asyncio.run(selector.speak("Hello", rec.on_start, rec.on_end, rec.on_error))

    assert used == "local"
    assert len(producers["local"].texts) == 1
    assert rec.events == ["start", "end"]
    assert not selector.is_speaking
    assert selector._session is None


def test_unexpected_errors_everywhere_end_in_one_error_callback():
    selector, _ = make_selector(primary_error=OSError("disk full"), local_error=RuntimeError("engine crashed"))
    rec = Recorder()

    assert asyncio.run(selector.speak("Hello", rec.on_start, rec.on_end, rec.on_error)) is None
    assert rec.events == [("error", "SpeechError")]
    assert selector._session is None


class BrokenVoicesEngine(FakeEngine):
    def getProperty(self, name):
        raise RuntimeError("voice registry unreadable")


def test_local_speech_engine_setup_failure_is_speech_error():
    local = LocalSpeech(engine_factory=BrokenVoicesEngine)
    with pytest.raises(SpeechError, match="voice registry unreadable"):
        asyncio.run(local.start("Hello", lambda: None))


def test_pick_voice_prefers_named_voice_over_earlier_english():
    voices = [FakeVoice("v1", "English (America)"), FakeVoice("v2", "Microsoft Zira - English")]
    assert pick_voice(voices, "Zira").id == "v2"
    assert pick_voice(voices, "Hazel").id == "v1"
    assert pick_voice([FakeVoice("v3", "French")], "Zira") is None


class RecordingPlayer:
    def __init__(self):
        self.played = []
        self.stops = 0

    async def play(self, audio, suffix=".mp3", on_started=None):
        self.played.append((audio, suffix))
        if on_started:
            on_started()

    def stop(self):
        self.stops += 1


class FakeGatewayTTS:
    """Gateway /api/tts routes answering with fixed MP3 bytes."""

    def __init__(self, status=200):
        self.status = status
        self.requests = []
        self.received = asyncio.Event()
        self.release = None

    async def __call__(self, request):
        self.requests.append(request)
        self.received.set()
        if self.release is not None:
            await self.release.wait()
        if self.status != 200:
            return httpx.Response(self.status, json={"error": "TTS API error"})
        return httpx.Response(200, content=b"ID3-mp3", headers={"content-type": "audio/mpeg"})

    def last_json(self):
        return json.loads(self.requests[-1].content)


def make_gateway(handler):
    return GatewayClient("http://gateway.test/api", transport=httpx.MockTransport(handler))


def test_elevenlabs_speech_fetches_with_voice_settings_then_plays():
    handler = FakeGatewayTTS()
    player = RecordingPlayer()
    settings = ElevenLabsSettings(voice_id="voice-1", model_id="eleven_turbo", stability=0.3, style=0.1)
    producer = ElevenLabsSpeech(make_gateway(handler), player, settings)
    started = []

    asyncio.run(producer.start("Hello", lambda: started.append(True)))

    assert handler.requests[-1].url.path == "/api/tts/elevenlabs"
    assert handler.last_json() == {
        "text": "Hello",
        "voiceId": "voice-1",
        "modelId": "eleven_turbo",
        "voiceSettings": {
            "stability": 0.3,
            "similarity_boost": 0.75,
            "style": 0.1,
            "use_speaker_boost": True,
        },
    }
    assert player.played == [(b"ID3-mp3", ".mp3")]
    assert started == [True]


def test_openai_speech_sends_model_voice_and_speed():
    handler = FakeGatewayTTS()
    player = RecordingPlayer()
    producer = OpenAISpeech(make_gateway(handler), player, OpenAITTSSettings(voice="nova", speed=1.25))

    asyncio.run(producer.start("Hi", lambda: None))

    assert handler.requests[-1].url.path == "/api/tts/openai"
    assert handler.last_json() == {"input": "Hi", "model": "tts-1", "voice": "nova", "speed": 1.25}
    assert player.played == [(b"ID3-mp3", ".mp3")]


def test_stop_during_fetch_skips_playback():
    async def scenario():
        handler = FakeGatewayTTS()
        handler.release = asyncio.Event()
        player = RecordingPlayer()
        producer = ElevenLabsSpeech(make_gateway(handler), player, ElevenLabsSettings())

        task = asyncio.create_task(producer.start("Hello", lambda: None))
        await handler.received.wait()
        producer.stop()
        handler.release.set()
        await task
        return player

    player = asyncio.run(scenario())
    assert player.played == []
    assert player.stops == 1


def test_gateway_speech_error_is_gateway_error():
    producer = OpenAISpeech(make_gateway(FakeGatewayTTS(status=500)), RecordingPlayer(), OpenAITTSSettings())
    with pytest.raises(GatewayError, match="TTS API error"):
        asyncio.run(producer.start("Hi", lambda: None))


def test_build_speech_output_falls_back_from_vendor_to_local_engine():
    settings = build_settings({"tts": {"provider": "elevenlabs"}})
    player = RecordingPlayer()
    selector = build_speech_output(settings, make_gateway(FakeGatewayTTS(status=500)), player)
    engine = FakeEngine()
    selector.producers["local"]._engine_factory = lambda: engine
    rec = Recorder()

    used = asyncio.run(selector.speak("Hello 🌴", rec.on_start, rec.on_end, rec.on_error))

    assert sorted(selector.producers) == ["elevenlabs", "local", "openai"]
    assert isinstance(selector.producers["openai"], OpenAISpeech)
    assert used == "local"
    assert player.played == []
    assert engine.said == ["Hello"]
    assert rec.events == ["start", "end"]
