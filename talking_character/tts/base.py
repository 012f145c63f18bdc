"""
Base module for TTS (Text-to-Speech) vendors.

This file defines the INTERFACE that vendor TTS providers implement.
Same principle as for LLM: the gateway routes only see BaseTTS,
so a vendor can be swapped without modifying the routes.

Vendor TTS here is remote: the provider opens an HTTP request to the
vendor and hands back the audio byte stream, which the gateway relays
chunk by chunk to its own caller.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from ..errors import UpstreamError


@dataclass
class TTSResult:
    """
    Result of a voice synthesis.

    Attributes:
        audio_base64: Base64-encoded MP3 audio
        alignment: Character timings for lip-sync
    """
    audio_base64: Optional[str] = None
    alignment: Optional[dict] = None


class BaseTTS(ABC):
    """
    Abstract base class for vendor TTS providers.

    Subclasses implement open_stream(); the gateway relays the
    returned byte stream as-is.
    """

    vendor: str = "tts"
    default_error: str = "TTS API error"

    def __init__(self, client: httpx.AsyncClient):
        self._client = client

    @abstractmethod
    async def open_stream(self, text: str, **options: Any) -> httpx.Response:
        """
        Start a synthesis request and return the streaming response.

        The vendor status has already been checked when this returns.
        The caller owns the response and must close it (aclose()).

        Raises:
            UpstreamError: The vendor answered with a non-2xx status
            httpx.HTTPError: The request could not be sent
        """
        pass

    def extract_error(self, data: Any) -> Optional[str]:
        """Pull a human-readable message out of a vendor error body."""
        return None

    async def _send_streaming(self, request: httpx.Request) -> httpx.Response:
        """Send a request in streaming mode, raising on vendor errors."""
        response = await self._client.send(request, stream=True)
        if response.is_error:
            await response.aread()
            await response.aclose()
            raise self._upstream_error(response)
        return response

    def _upstream_error(self, response: httpx.Response) -> UpstreamError:
        try:
            message = self.extract_error(response.json())
        except ValueError:
            message = None
        return UpstreamError(message or self.default_error, response.status_code, vendor=self.vendor)

    async def close(self):
        """Properly close the HTTP connection."""
        await self._client.aclose()
