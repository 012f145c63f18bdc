"""
Speech Output - turns a reply into audible speech.

Producers (closed set):
- elevenlabs : vendor voice through the gateway (primary by default)
- openai     : alternate vendor voice through the gateway
- local      : offline engine (pyttsx3), the last resort

SpeechOutputSelector tries the primary producer and falls back to the
local one, each at most once per utterance.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional

import pyttsx3

from ..config import ElevenLabsSettings, LocalTTSSettings, OpenAITTSSettings, Settings
from ..errors import SpeechError, TalkingCharacterError
from ..utils.text import clean_text_for_tts
from .audio_player import AudioPlayer
from .gateway_client import GatewayClient

logger = logging.getLogger(__name__)

PROVIDERS = ("elevenlabs", "openai", "local")
LOCAL_PROVIDER = "local"


class SpeechProducer(ABC):
    """
    One way of speaking a text.

    start() returns once the utterance has finished playing and raises
    a TalkingCharacterError when it could not be spoken. The selector
    treats any other exception the same way.
    """

    name: str = "speech"

    @abstractmethod
    async def start(self, text: str, on_started: Callable[[], None]) -> None:
        pass

    @abstractmethod
    def stop(self) -> None:
        pass


class GatewaySpeechProducer(SpeechProducer):
    """Fetches MP3 audio from the gateway and plays it."""

    def __init__(self, gateway: GatewayClient, player: AudioPlayer):
        self.gateway = gateway
        self.player = player
        self._stopped = False

    @abstractmethod
    async def fetch_audio(self, text: str) -> bytes:
        pass

    async def start(self, text: str, on_started: Callable[[], None]) -> None:
        self._stopped = False
        audio = await self.fetch_audio(text)
        if self._stopped:
            return
        await self.player.play(audio, suffix=".mp3", on_started=on_started)

    def stop(self) -> None:
        self._stopped = True
        self.player.stop()


class ElevenLabsSpeech(GatewaySpeechProducer):
    name = "elevenlabs"

    def __init__(self, gateway: GatewayClient, player: AudioPlayer, settings: ElevenLabsSettings):
        super().__init__(gateway, player)
        self.settings = settings

    async def fetch_audio(self, text: str) -> bytes:
        s = self.settings
        return await self.gateway.tts_elevenlabs(
            text,
            voice_id=s.voice_id,
            model_id=s.model_id,
            voice_settings={
                "stability": s.stability,
                "similarity_boost": s.similarity_boost,
                "style": s.style,
                "use_speaker_boost": s.use_speaker_boost,
            },
        )


class OpenAISpeech(GatewaySpeechProducer):
    name = "openai"

    def __init__(self, gateway: GatewayClient, player: AudioPlayer, settings: OpenAITTSSettings):
        super().__init__(gateway, player)
        self.settings = settings

    async def fetch_audio(self, text: str) -> bytes:
        return await self.gateway.tts_openai(
            text,
            model=self.settings.model,
            voice=self.settings.voice,
            speed=self.settings.speed,
        )


def pick_voice(voices: list, preferred: str = "") -> Optional[Any]:
    """The voice whose name contains `preferred`, else the first English one."""
    for wanted in (preferred, "English"):
        if not wanted:
            continue
        for voice in voices:
            if wanted in (getattr(voice, "name", "") or ""):
                return voice
    return None


class LocalSpeech(SpeechProducer):
    """
    Offline speech with pyttsx3.

    The engine is created on first use; its blocking run loop runs in
    the default executor.
    """

    name = LOCAL_PROVIDER

    def __init__(self, settings: Optional[LocalTTSSettings] = None, engine_factory: Callable[[], Any] = pyttsx3.init):
        self.settings = settings or LocalTTSSettings()
        self._engine_factory = engine_factory
        self._engine = None

    def _get_engine(self):
        if self._engine is None:
            try:
                engine = self._engine_factory()
            except Exception as e:
                raise SpeechError(f"Local speech engine unavailable: {e}") from e

            try:
                voice = pick_voice(engine.getProperty("voices") or [], self.settings.preferred_voice)
                if voice is not None:
                    engine.setProperty("voice", voice.id)
                engine.setProperty("rate", self.settings.rate)
                engine.setProperty("volume", self.settings.volume)
            except Exception as e:
                raise SpeechError(f"Local speech engine setup failed: {e}") from e

            self._engine = engine
            logger.info("🔈 Local speech engine ready")
        return self._engine

    def _run(self, text: str):
        self._engine.say(text)
        self._engine.runAndWait()

    async def start(self, text: str, on_started: Callable[[], None]) -> None:
        self._get_engine()
        on_started()
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._run, text)
        except Exception as e:
            raise SpeechError(f"Local speech failed: {e}") from e

    def stop(self) -> None:
        if self._engine is not None:
            self._engine.stop()


@dataclass
class SpeechSession:
    """State of one speak() call."""
    on_start: Optional[Callable[[], None]] = None
    on_end: Optional[Callable[[], None]] = None
    on_error: Optional[Callable[[Exception], None]] = None
    producer: Optional[str] = None
    started: bool = False
    finished: bool = False


def _notify(callback: Optional[Callable], *args):
    """Call callback, logging (not raising) its errors."""
    if callback is None:
        return
    try:
        callback(*args)
    except Exception as e:
        logger.error(f"Callback error: {e}")


class SpeechOutputSelector:
    """
    Speaks replies with the primary producer, falling back to local.

    For every speak() call: on_start fires at most once, and exactly one
    of on_end / on_error fires.
    """

    def __init__(self, producers: dict[str, SpeechProducer], provider: str = "elevenlabs"):
        self.producers = producers
        self.provider = provider if provider in PROVIDERS else LOCAL_PROVIDER
        self._session: Optional[SpeechSession] = None

    @property
    def is_speaking(self) -> bool:
        return self._session is not None and self._session.started and not self._session.finished

    def producer_order(self) -> list[str]:
        """Primary first, then local (each at most once)."""
        order = [self.provider]
        if self.provider != LOCAL_PROVIDER:
            order.append(LOCAL_PROVIDER)
        return order

    def set_provider(self, provider: str):
        if provider not in PROVIDERS:
            logger.warning(f"Unknown speech provider '{provider}', keeping '{self.provider}'")
            return
        self.provider = provider
        logger.info(f"🔊 Speech provider set to: {provider}")

    async def speak(
        self,
        text: str,
        on_start: Optional[Callable[[], None]] = None,
        on_end: Optional[Callable[[], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None
    ) -> Optional[str]:
        """
        Speak `text` (cleaned of emoji and extra whitespace).

        Returns:
            Name of the producer that spoke it, or None if every producer
            failed, the text was empty after cleaning, or stop() was called
        """
        if self._session is not None:
            self.stop()

        session = SpeechSession(on_start=on_start, on_end=on_end, on_error=on_error)
        self._session = session

        clean_text = clean_text_for_tts(text)
        if not clean_text:
            self._finish(session)
            return None

        last_error: Optional[Exception] = None
        for name in self.producer_order():
            producer = self.producers.get(name)
            if producer is None:
                continue
            if session.finished:
                return None

            session.producer = name
            try:
                await producer.start(clean_text, lambda: self._started(session))
            except TalkingCharacterError as e:
                last_error = e
                logger.warning(f"⚠️ Speech via {name} failed: {e}")
                continue
            except Exception as e:
                last_error = SpeechError(f"{name} speech failed: {e}")
                logger.error(f"❌ Unexpected error from {name} speech: {e!r}")
                continue

            if session.finished:
                return None
            self._finish(session)
            return name

        if not session.finished:
            self._fail(session, last_error or SpeechError("No speech producer available"))
        return None

    def _started(self, session: SpeechSession):
        if session.started or session.finished:
            return
        session.started = True
        _notify(session.on_start)

    def _finish(self, session: SpeechSession):
        session.finished = True
        if self._session is session:
            self._session = None
        _notify(session.on_end)

    def _fail(self, session: SpeechSession, error: Exception):
        session.finished = True
        if self._session is session:
            self._session = None
        logger.error(f"❌ Speech failed: {error}")
        _notify(session.on_error, error)

    def stop(self):
        """Stop the current utterance. Safe to call repeatedly."""
        session = self._session
        if session is None:
            return
        self._session = None
        session.finished = True

        for producer in self.producers.values():
            producer.stop()
        _notify(session.on_end)


def build_speech_output(settings: Settings, gateway: GatewayClient, player: Optional[AudioPlayer] = None) -> SpeechOutputSelector:
    """Create the selector with the three standard producers."""
    player = player or AudioPlayer()
    producers: dict[str, SpeechProducer] = {
        "elevenlabs": ElevenLabsSpeech(gateway, player, settings.elevenlabs),
        "openai": OpenAISpeech(gateway, player, settings.tts.openai),
        "local": LocalSpeech(settings.tts.local),
    }
    return SpeechOutputSelector(producers, provider=settings.tts.provider)
