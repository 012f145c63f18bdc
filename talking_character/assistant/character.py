"""
Character animation state.

The character is either idle or talking. After talking stops, the idle
animation resumes after a short delay.
"""

import asyncio
import logging
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class CharacterState(Enum):
    IDLE = "idle"
    TALKING = "talking"


class CharacterAnimator:
    """
    Idle/talking state machine.

    Callbacks:
        on_state_change(state): every transition
        on_idle_resumed(): idle animation resumes after idle_delay
    """

    def __init__(self, idle_delay: float = 2.0):
        self.idle_delay = idle_delay
        self.state = CharacterState.IDLE
        self.idle_animating = True

        self.on_state_change: Optional[Callable[[CharacterState], None]] = None
        self.on_idle_resumed: Optional[Callable[[], None]] = None

        self._idle_timer: Optional[asyncio.TimerHandle] = None

    @property
    def is_talking(self) -> bool:
        return self.state is CharacterState.TALKING

    def _set_state(self, state: CharacterState):
        self.state = state
        logger.debug(f"🎬 Character {state.value}")
        if self.on_state_change:
            self.on_state_change(state)

    def _cancel_idle_timer(self):
        if self._idle_timer is not None:
            self._idle_timer.cancel()
            self._idle_timer = None

    def start_talking(self):
        self._cancel_idle_timer()
        self.idle_animating = False
        if not self.is_talking:
            self._set_state(CharacterState.TALKING)

    def stop_talking(self):
        """Return to idle; the idle animation resumes after idle_delay."""
        if not self.is_talking:
            return
        self._set_state(CharacterState.IDLE)

        self._cancel_idle_timer()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop (synchronous caller): resume at once
            self._resume_idle()
            return
        self._idle_timer = loop.call_later(self.idle_delay, self._resume_idle)

    def _resume_idle(self):
        self._idle_timer = None
        if self.is_talking:
            return
        self.idle_animating = True
        if self.on_idle_resumed:
            self.on_idle_resumed()

    def reset(self):
        """Cancel timers and go straight back to idle."""
        self._cancel_idle_timer()
        if self.is_talking:
            self._set_state(CharacterState.IDLE)
        self.idle_animating = True
