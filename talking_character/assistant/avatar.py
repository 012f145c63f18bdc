"""
Streaming avatar session (client side).

Talks to the gateway's /api/heygen routes. The media stream itself is
rendered elsewhere; events from the avatar's data channel are fed in
as JSON strings through handle_data_message().
"""

import json
import logging
from typing import Callable, Optional

from ..errors import AvatarError, TalkingCharacterError
from .gateway_client import GatewayClient

logger = logging.getLogger(__name__)


class AvatarSession:
    """
    One HeyGen streaming session.

    Callbacks (single handler each):
        on_connected(), on_disconnected(), on_speaking_start(),
        on_speaking_end(), on_error(exc)
    """

    def __init__(self, gateway: GatewayClient, avatar_id: str = "", quality: str = "medium"):
        self.gateway = gateway
        self.avatar_id = avatar_id
        self.quality = quality

        self.session_id: Optional[str] = None
        self.access_token: Optional[str] = None
        self.url: Optional[str] = None
        self.is_connected = False
        self.is_initializing = False

        self.on_connected: Optional[Callable[[], None]] = None
        self.on_disconnected: Optional[Callable[[], None]] = None
        self.on_speaking_start: Optional[Callable[[], None]] = None
        self.on_speaking_end: Optional[Callable[[], None]] = None
        self.on_error: Optional[Callable[[Exception], None]] = None

    def _emit(self, name: str, *args):
        callback = getattr(self, name)
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as e:
            logger.error(f"Avatar callback {name} error: {e}")

    async def create_session(self, avatar_id: Optional[str] = None, quality: Optional[str] = None) -> Optional[str]:
        """
        Create the streaming session.

        Returns:
            The session id, or None if a creation is already in progress

        Raises:
            TalkingCharacterError: The gateway refused or could not be reached
        """
        if self.is_initializing:
            logger.info("Avatar session already initializing...")
            return None

        self.is_initializing = True
        try:
            logger.info("🎭 Creating avatar session...")
            data = await self.gateway.heygen_create_session(avatar_id or self.avatar_id, quality or self.quality)

            session_id = data.get("session_id")
            if not session_id:
                raise AvatarError("Failed to create session")

            self.session_id = session_id
            self.access_token = data.get("access_token")
            self.url = data.get("url")
            self.is_connected = True
            logger.info(f"🎭 Avatar session created: {self.session_id}")
        except TalkingCharacterError as e:
            logger.error(f"Failed to create avatar session: {e}")
            self._emit("on_error", e)
            raise
        finally:
            self.is_initializing = False

        self._emit("on_connected")
        return self.session_id

    def handle_data_message(self, raw: str):
        """Dispatch one data-channel event: speaking_start, speaking_end or error."""
        try:
            message = json.loads(raw)
        except (TypeError, ValueError):
            logger.debug(f"Data channel message: {raw!r}")
            return
        if not isinstance(message, dict):
            logger.debug(f"Data channel message: {message!r}")
            return

        kind = message.get("type")
        if kind == "speaking_start":
            self._emit("on_speaking_start")
        elif kind == "speaking_end":
            self._emit("on_speaking_end")
        elif kind == "error":
            logger.error(f"HeyGen error: {message.get('error')}")
            self._emit("on_error", AvatarError(str(message.get("error") or "Avatar error")))
        else:
            logger.debug(f"HeyGen message: {message}")

    async def speak(self, text: str) -> bool:
        """
        Make the avatar speak `text`.

        Returns:
            True if the avatar accepted the text, False otherwise
        """
        if not self.is_available():
            logger.warning("Avatar not connected. Using fallback TTS.")
            return False

        try:
            task_id = await self.gateway.heygen_speak(self.session_id, text, "talk")
        except TalkingCharacterError as e:
            logger.error(f"Avatar speak error: {e}")
            self._emit("on_error", e)
            return False

        logger.info(f"🎭 Speak task created: {task_id}")
        self._emit("on_speaking_start")
        return True

    def handle_disconnection(self):
        self.is_connected = False
        self._emit("on_disconnected")

    async def close_session(self):
        """Close the session (best effort)."""
        if not self.session_id:
            return

        try:
            await self.gateway.heygen_close_session(self.session_id)
            logger.info("🎭 Avatar session closed")
        except TalkingCharacterError as e:
            logger.error(f"Error closing avatar session: {e}")
        finally:
            self.session_id = None
            self.access_token = None
            self.url = None
            self.is_connected = False

    def is_available(self) -> bool:
        return self.is_connected and self.session_id is not None

    async def list_avatars(self) -> list:
        try:
            return await self.gateway.heygen_avatars()
        except TalkingCharacterError as e:
            logger.error(f"Error getting avatars: {e}")
            return []
