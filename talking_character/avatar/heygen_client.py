"""
HeyGen streaming avatar client.

Wraps the four streaming endpoints used by the gateway:
- streaming.new   : create a session (voiced by ElevenLabs)
- streaming.task  : make the avatar speak a text
- streaming.stop  : close a session
- streaming.list  : list available avatars
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from ..errors import UpstreamError

logger = logging.getLogger(__name__)


@dataclass
class AvatarSessionInfo:
    """
    Connection details of a streaming session.

    Attributes:
        session_id: HeyGen session identifier
        access_token: Token the browser uses to join the stream
        url: Streaming server URL
    """
    session_id: Optional[str]
    access_token: Optional[str]
    url: Optional[str]


class HeyGenClient:
    """
    Client for the HeyGen streaming avatar API.

    Attributes:
        avatar_id: Default avatar when the caller does not pick one
        voice: Voice block attached to new sessions (ElevenLabs voice,
               so the avatar speaks with the character's voice)
    """

    default_error = "HeyGen API error"

    def __init__(
        self,
        api_key: str,
        avatar_id: str = "",
        elevenlabs_voice_id: str = "",
        elevenlabs_api_key: str = "",
        base_url: str = "https://api.heygen.com/v1",
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.api_key = api_key
        self.avatar_id = avatar_id
        self.voice = {
            "voice_id": elevenlabs_voice_id,
            "provider": "elevenlabs",
            "api_key": elevenlabs_api_key,
        }
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def _headers(self) -> dict:
        return {"X-Api-Key": self.api_key}

    def _check(self, response: httpx.Response, action: str) -> dict:
        """Return the JSON body or raise UpstreamError with HeyGen's message."""
        if response.is_error:
            try:
                data = response.json()
            except ValueError:
                data = {}
            message = data.get("message") if isinstance(data, dict) else None
            logger.error(f"HeyGen {action} Error ({response.status_code}): {data}")
            raise UpstreamError(message or self.default_error, response.status_code, vendor="heygen")
        return response.json()

    @staticmethod
    def _data(body: Any) -> dict:
        data = body.get("data") if isinstance(body, dict) else None
        return data if isinstance(data, dict) else {}

    async def create_session(
        self,
        avatar_id: Optional[str] = None,
        quality: Optional[str] = None
    ) -> AvatarSessionInfo:
        """
        Create a streaming avatar session.

        Args:
            avatar_id: Avatar override
            quality: "low", "medium" or "high" (default "medium")

        Returns:
            AvatarSessionInfo for the new session
        """
        response = await self._client.post(
            f"{self.base_url}/streaming.new",
            headers=self._headers,
            json={
                "avatar_id": avatar_id or self.avatar_id,
                "quality": quality or "medium",
                "voice": self.voice,
            },
        )
        data = self._data(self._check(response, "Create Session"))
        logger.info(f"🎭 HeyGen session created: {data.get('session_id')}")
        return AvatarSessionInfo(
            session_id=data.get("session_id"),
            access_token=data.get("access_token"),
            url=data.get("url"),
        )

    async def speak(self, session_id: str, text: str, task_type: Optional[str] = None) -> Optional[str]:
        """
        Send text for the avatar to speak.

        Returns:
            The HeyGen task id
        """
        response = await self._client.post(
            f"{self.base_url}/streaming.task",
            headers=self._headers,
            json={
                "session_id": session_id,
                "text": text,
                "task_type": task_type or "talk",
            },
        )
        return self._data(self._check(response, "Speak")).get("task_id")

    async def close_session(self, session_id: str) -> None:
        """Stop a streaming session."""
        response = await self._client.post(
            f"{self.base_url}/streaming.stop",
            headers=self._headers,
            json={"session_id": session_id},
        )
        self._check(response, "Close Session")
        logger.info(f"🎭 HeyGen session closed: {session_id}")

    async def list_avatars(self) -> list:
        """List avatars available for streaming."""
        response = await self._client.get(f"{self.base_url}/streaming.list", headers=self._headers)
        return self._data(self._check(response, "Avatars")).get("avatars") or []

    async def close(self):
        """Properly close the HTTP connection."""
        await self._client.aclose()
