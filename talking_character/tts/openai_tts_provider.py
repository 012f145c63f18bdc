"""
TTS implementation using OpenAI speech (POST /audio/speech).

Used as the alternate vendor voice when ElevenLabs is not wanted.
"""

import logging
from typing import Any, Optional

import httpx

from .base import BaseTTS

logger = logging.getLogger(__name__)


class OpenAITTSProvider(BaseTTS):
    """
    TTS provider using OpenAI's speech endpoint.

    Attributes:
        model: "tts-1" or "tts-1-hd"
        voice: Voice name (e.g., "onyx")
        speed: Speech speed (0.25 - 4.0)
    """

    vendor = "openai"

    def __init__(
        self,
        api_key: str,
        model: str = "tts-1",
        voice: str = "onyx",
        speed: float = 1.0,
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        super().__init__(client or httpx.AsyncClient(timeout=timeout))
        self.api_key = api_key
        self.model = model
        self.voice = voice
        self.speed = speed
        self.base_url = base_url.rstrip("/")

    def extract_error(self, data: Any) -> Optional[str]:
        if isinstance(data, dict) and isinstance(data.get("error"), dict):
            return data["error"].get("message")
        return None

    async def open_stream(
        self,
        text: str,
        model: Optional[str] = None,
        voice: Optional[str] = None,
        speed: Optional[float] = None
    ) -> httpx.Response:
        """
        Start a streaming synthesis.

        Returns:
            Streaming response (audio/mpeg), status already checked
        """
        logger.debug(f"🔊 OpenAI TTS stream: voice={voice or self.voice}, {len(text)} chars")
        request = self._client.build_request(
            "POST",
            f"{self.base_url}/audio/speech",
            headers={"Authorization": f"Bearer {self.api_key}"},
            json={
                "model": model or self.model,
                "input": text,
                "voice": voice or self.voice,
                "speed": speed or self.speed,
                "response_format": "mp3",
            },
        )
        return await self._send_streaming(request)
