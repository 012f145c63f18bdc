"""
Gateway Client - what the front-end calls.

Thin async wrapper over the gateway's /api routes. Any non-2xx answer
and any transport failure is raised as GatewayError, so callers only
have one error type to handle.
"""

import logging
from typing import Any, Optional

import httpx

from ..errors import GatewayError

logger = logging.getLogger(__name__)


class GatewayClient:
    """
    HTTP client for the Talking Character gateway.

    Example:
        gateway = GatewayClient("http://localhost:3000/api")
        reply = await gateway.chat([{"role": "user", "content": "Hi"}])
        await gateway.close()
    """

    def __init__(
        self,
        base_url: str = "http://localhost:3000/api",
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout, transport=transport)

    async def _request(self, method: str, path: str, payload: Optional[dict] = None) -> httpx.Response:
        try:
            response = await self._client.request(method, f"{self.base_url}{path}", json=payload)
        except httpx.HTTPError as e:
            raise GatewayError(f"Gateway unreachable: {e}") from e

        if response.is_error:
            try:
                data = response.json()
            except ValueError:
                data = {}
            message = data.get("error") if isinstance(data, dict) else None
            raise GatewayError(message or f"API error: {response.status_code}", response.status_code)

        return response

    async def _json(self, method: str, path: str, payload: Optional[dict] = None) -> dict:
        response = await self._request(method, path, payload)
        try:
            data = response.json()
        except ValueError as e:
            raise GatewayError(f"Malformed response from {path}") from e
        if not isinstance(data, dict):
            raise GatewayError(f"Malformed response from {path}")
        return data

    async def chat(
        self,
        messages: list[dict],
        system: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None
    ) -> str:
        """
        Ask the gateway for the character's reply.

        Args:
            messages: [{"role": ..., "content": ...}, ...]
            system: Character system prompt

        Returns:
            The reply text
        """
        payload: dict[str, Any] = {"messages": messages}
        if system is not None:
            payload["system"] = system
        if model is not None:
            payload["model"] = model
        if max_tokens is not None:
            payload["maxTokens"] = max_tokens
        if temperature is not None:
            payload["temperature"] = temperature

        data = await self._json("POST", "/chat", payload)
        reply = data.get("response")
        if not isinstance(reply, str):
            raise GatewayError("Malformed response from /chat")
        return reply

    async def tts_elevenlabs(
        self,
        text: str,
        voice_id: Optional[str] = None,
        model_id: Optional[str] = None,
        voice_settings: Optional[dict] = None
    ) -> bytes:
        """Synthesize `text` with ElevenLabs and return the MP3 bytes."""
        payload: dict[str, Any] = {"text": text}
        if voice_id:
            payload["voiceId"] = voice_id
        if model_id:
            payload["modelId"] = model_id
        if voice_settings:
            payload["voiceSettings"] = voice_settings
        response = await self._request("POST", "/tts/elevenlabs", payload)
        return response.content

    async def tts_openai(
        self,
        text: str,
        model: Optional[str] = None,
        voice: Optional[str] = None,
        speed: Optional[float] = None
    ) -> bytes:
        """Synthesize `text` with OpenAI TTS and return the MP3 bytes."""
        payload: dict[str, Any] = {"input": text}
        if model:
            payload["model"] = model
        if voice:
            payload["voice"] = voice
        if speed is not None:
            payload["speed"] = speed
        response = await self._request("POST", "/tts/openai", payload)
        return response.content

    async def heygen_create_session(self, avatar_id: Optional[str] = None, quality: str = "medium") -> dict:
        payload: dict[str, Any] = {"quality": quality}
        if avatar_id:
            payload["avatarId"] = avatar_id
        return await self._json("POST", "/heygen/create-session", payload)

    async def heygen_speak(self, session_id: str, text: str, task_type: str = "talk") -> Optional[str]:
        data = await self._json(
            "POST",
            "/heygen/speak",
            {"sessionId": session_id, "text": text, "taskType": task_type},
        )
        return data.get("task_id")

    async def heygen_close_session(self, session_id: str) -> None:
        await self._json("POST", "/heygen/close-session", {"sessionId": session_id})

    async def heygen_avatars(self) -> list:
        data = await self._json("GET", "/heygen/avatars")
        return data.get("avatars") or []

    async def health(self) -> dict:
        return await self._json("GET", "/health")

    async def close(self):
        """Properly close the HTTP connection."""
        await self._client.aclose()
