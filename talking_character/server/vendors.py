"""
Vendor clients used by the gateway routes.

Clients are created lazily on first use and shared for the lifetime of
the app, so connections to each vendor are pooled.
"""

import logging
from typing import Optional

import httpx

from ..avatar import HeyGenClient
from ..config import Settings
from ..llm import BaseLLM, OpenAILLM
from ..tts import ElevenLabsProvider, OpenAITTSProvider

logger = logging.getLogger(__name__)


class VendorClients:
    """
    Lazy registry of vendor clients.

    Attributes:
        settings: Frozen application settings (credentials included)
        transport: Optional httpx transport shared by every client
                   (tests pass an httpx.MockTransport)
    """

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self.transport = transport
        self._llm: Optional[BaseLLM] = None
        self._elevenlabs: Optional[ElevenLabsProvider] = None
        self._openai_tts: Optional[OpenAITTSProvider] = None
        self._heygen: Optional[HeyGenClient] = None

    def _http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.settings.server.http_timeout,
            transport=self.transport,
        )

    @property
    def llm(self) -> BaseLLM:
        """Get or create the chat provider (lazy loading)."""
        if self._llm is None:
            chat = self.settings.chat
            self._llm = OpenAILLM(
                api_key=chat.api_key,
                model=chat.model,
                base_url=chat.base_url,
                max_tokens=chat.max_tokens,
                temperature=chat.temperature,
                client=self._http_client(),
            )
            logger.info(f"🧠 LLM: OpenAI ({chat.model})")
        return self._llm

    @property
    def elevenlabs(self) -> ElevenLabsProvider:
        """Get or create the ElevenLabs provider (lazy loading)."""
        if self._elevenlabs is None:
            el = self.settings.elevenlabs
            self._elevenlabs = ElevenLabsProvider(
                api_key=el.api_key,
                voice_id=el.voice_id,
                model_id=el.model_id,
                stability=el.stability,
                similarity_boost=el.similarity_boost,
                base_url=el.base_url,
                client=self._http_client(),
            )
            logger.info(f"🔊 TTS: ElevenLabs (voice={el.voice_id})")
        return self._elevenlabs

    @property
    def openai_tts(self) -> OpenAITTSProvider:
        """Get or create the OpenAI speech provider (lazy loading)."""
        if self._openai_tts is None:
            cfg = self.settings.tts.openai
            self._openai_tts = OpenAITTSProvider(
                api_key=self.settings.chat.api_key,
                model=cfg.model,
                voice=cfg.voice,
                speed=cfg.speed,
                base_url=self.settings.chat.base_url,
                client=self._http_client(),
            )
            logger.info(f"🔊 TTS: OpenAI ({cfg.model}, {cfg.voice})")
        return self._openai_tts

    @property
    def heygen(self) -> HeyGenClient:
        """Get or create the HeyGen client (lazy loading)."""
        if self._heygen is None:
            hg = self.settings.heygen
            self._heygen = HeyGenClient(
                api_key=hg.api_key,
                avatar_id=hg.avatar_id,
                elevenlabs_voice_id=self.settings.elevenlabs.voice_id,
                elevenlabs_api_key=self.settings.elevenlabs.api_key,
                base_url=hg.base_url,
                client=self._http_client(),
            )
            logger.info("🎭 Avatar: HeyGen streaming")
        return self._heygen

    async def close(self):
        """Close every client that was created."""
        for client in (self._llm, self._elevenlabs, self._openai_tts, self._heygen):
            if client is not None:
                await client.close()
        self._llm = self._elevenlabs = self._openai_tts = self._heygen = None
