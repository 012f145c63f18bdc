"""
TTS implementation using ElevenLabs.

Two synthesis modes:
- Streaming MP3 (POST /text-to-speech/{voice_id})
- MP3 + character timestamps for lip-sync
  (POST /text-to-speech/{voice_id}/with-timestamps)
"""

import logging
from typing import Any, Optional

import httpx

from .base import BaseTTS, TTSResult

logger = logging.getLogger(__name__)


class ElevenLabsProvider(BaseTTS):
    """
    TTS provider using the ElevenLabs API.

    Attributes:
        voice_id: Default voice
        model_id: Default model (e.g., "eleven_monolingual_v1")
        voice_settings: Default voice settings sent with every request

    Example:
        tts = ElevenLabsProvider(api_key="...", voice_id="...")
        async for chunk in tts.synthesize_stream("Hello!"):
            out.write(chunk)
    """

    vendor = "elevenlabs"

    def __init__(
        self,
        api_key: str,
        voice_id: str,
        model_id: str = "eleven_monolingual_v1",
        stability: float = 0.5,
        similarity_boost: float = 0.75,
        base_url: str = "https://api.elevenlabs.io/v1",
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        super().__init__(client or httpx.AsyncClient(timeout=timeout))
        self.api_key = api_key
        self.voice_id = voice_id
        self.model_id = model_id
        self.voice_settings = {
            "stability": stability,
            "similarity_boost": similarity_boost,
        }
        self.base_url = base_url.rstrip("/")

    @property
    def _headers(self) -> dict:
        return {"xi-api-key": self.api_key}

    def extract_error(self, data: Any) -> Optional[str]:
        """ElevenLabs errors carry a "detail" field (string or object)."""
        if not isinstance(data, dict):
            return None
        detail = data.get("detail")
        if isinstance(detail, dict):
            return detail.get("message")
        return detail or None

    def _payload(self, text: str, model_id: Optional[str], voice_settings: Optional[dict]) -> dict:
        return {
            "text": text,
            "model_id": model_id or self.model_id,
            "voice_settings": voice_settings or self.voice_settings,
        }

    async def open_stream(
        self,
        text: str,
        voice_id: Optional[str] = None,
        model_id: Optional[str] = None,
        voice_settings: Optional[dict] = None
    ) -> httpx.Response:
        """
        Start a streaming synthesis.

        Args:
            text: Text to synthesize
            voice_id: Voice override
            model_id: Model override
            voice_settings: Voice settings override

        Returns:
            Streaming response (audio/mpeg), status already checked
        """
        voice = voice_id or self.voice_id
        logger.debug(f"🔊 ElevenLabs stream: voice={voice}, {len(text)} chars")
        request = self._client.build_request(
            "POST",
            f"{self.base_url}/text-to-speech/{voice}",
            headers=self._headers,
            json=self._payload(text, model_id, voice_settings),
        )
        return await self._send_streaming(request)

    async def synthesize_with_timestamps(
        self,
        text: str,
        voice_id: Optional[str] = None,
        model_id: Optional[str] = None
    ) -> TTSResult:
        """
        Synthesize audio together with character timestamps.

        Returns:
            TTSResult with audio_base64 and alignment set

        Raises:
            UpstreamError: ElevenLabs answered with a non-2xx status
        """
        voice = voice_id or self.voice_id
        response = await self._client.post(
            f"{self.base_url}/text-to-speech/{voice}/with-timestamps",
            headers=self._headers,
            json=self._payload(text, model_id, None),
        )
        if response.is_error:
            raise self._upstream_error(response)

        data = response.json()
        return TTSResult(
            audio_base64=data.get("audio_base64"),
            alignment=data.get("alignment"),
        )
