"""
Avatar/Animation Coordinator.

Decides per reply who drives the character: the streaming avatar when
it is connected and accepts the text, otherwise the speech output with
the local idle/talking animation. Only one driver owns a turn.
"""

import asyncio
import logging
from typing import Callable, Optional

from .avatar import AvatarSession
from .character import CharacterAnimator
from .speech import SpeechOutputSelector

logger = logging.getLogger(__name__)

AVATAR_DRIVER = "avatar"
SPEECH_DRIVER = "speech"


class AvatarCoordinator:
    """
    Routes a reply to the avatar or to speech and keeps the character
    animation in step with whichever is speaking.

    An avatar turn ends on the avatar's speaking_end event, or after an
    estimated speaking time (seconds_per_word per word plus end_grace)
    when no event arrives.
    """

    def __init__(
        self,
        animator: CharacterAnimator,
        speech: SpeechOutputSelector,
        avatar: Optional[AvatarSession] = None,
        use_avatar: bool = False,
        seconds_per_word: float = 0.4,
        end_grace: float = 1.5
    ):
        self.animator = animator
        self.speech = speech
        self.avatar = avatar
        self.use_avatar = use_avatar
        self.seconds_per_word = seconds_per_word
        self.end_grace = end_grace

        self.driver: Optional[str] = None
        self._on_done: Optional[Callable[[], None]] = None
        self._avatar_timer: Optional[asyncio.TimerHandle] = None

        if avatar is not None:
            avatar.on_speaking_start = self._on_avatar_speaking_start
            avatar.on_speaking_end = self._on_avatar_speaking_end

    def speaking_time(self, text: str) -> float:
        """Estimated seconds the avatar needs to say `text`."""
        return len(text.split()) * self.seconds_per_word + self.end_grace

    def _on_avatar_speaking_start(self):
        if self.driver != AVATAR_DRIVER:
            logger.debug("Ignoring avatar speaking_start (speech owns the turn)")
            return
        self.animator.start_talking()

    def _on_avatar_speaking_end(self):
        if self.driver != AVATAR_DRIVER:
            logger.debug("Ignoring avatar speaking_end (speech owns the turn)")
            return
        self.animator.stop_talking()
        self._complete()

    def _on_avatar_timeout(self):
        self._avatar_timer = None
        if self.driver != AVATAR_DRIVER:
            return
        logger.info("🎭 No speaking_end from avatar, ending turn")
        self.animator.stop_talking()
        self._complete()

    def _on_speech_end(self):
        self.animator.stop_talking()
        self._complete()

    def _on_speech_error(self, error: Exception):
        logger.warning(f"Speech ended with error: {error}")
        self.animator.stop_talking()
        self._complete()

    def _cancel_avatar_timer(self):
        if self._avatar_timer is not None:
            self._avatar_timer.cancel()
            self._avatar_timer = None

    def _complete(self):
        self._cancel_avatar_timer()
        on_done, self._on_done = self._on_done, None
        self.driver = None
        if on_done:
            on_done()

    async def present(self, text: str, on_done: Optional[Callable[[], None]] = None) -> str:
        """
        Present a reply.

        With the avatar driver this returns as soon as the avatar has
        accepted the text (on_done fires on its speaking_end event or
        when the estimated speaking time runs out). With the speech
        driver it returns after playback.

        Returns:
            "avatar" or "speech"
        """
        if self.driver is not None:
            self.stop()
        self._on_done = on_done

        if self.use_avatar and self.avatar is not None and self.avatar.is_available():
            self.driver = AVATAR_DRIVER
            if await self.avatar.speak(text):
                if self.driver == AVATAR_DRIVER:
                    loop = asyncio.get_running_loop()
                    self._avatar_timer = loop.call_later(self.speaking_time(text), self._on_avatar_timeout)
                return AVATAR_DRIVER
            logger.info("Avatar speak failed, falling back to TTS")

        self.driver = SPEECH_DRIVER
        await self.speech.speak(
            text,
            on_start=self.animator.start_talking,
            on_end=self._on_speech_end,
            on_error=self._on_speech_error,
        )
        return SPEECH_DRIVER

    def stop(self):
        """Stop speaking and put the character back to idle."""
        self.speech.stop()
        self.animator.stop_talking()
        self._complete()
