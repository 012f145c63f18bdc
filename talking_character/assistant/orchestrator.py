"""
Turn Orchestrator - one conversation turn at a time.

Flow:
1. Record the user message
2. Ask the gateway for the character's reply
3. Cap the reply length (or pick a fallback line if the relay failed)
4. Record the reply
"""

import logging
import random
from typing import Optional

from ..config import CharacterSettings, ChatSettings
from ..errors import BusyError, GatewayError
from ..utils.text import truncate_to_max_words
from .gateway_client import GatewayClient
from .history import ConversationHistory

logger = logging.getLogger(__name__)


class TurnOrchestrator:
    """
    Runs conversation turns against the gateway.

    Turns never overlap: a submit() while another is in flight raises
    BusyError without touching the history. A relay failure is not an
    error for the caller; the turn completes with a fallback line.
    """

    def __init__(
        self,
        gateway: GatewayClient,
        history: ConversationHistory,
        character: Optional[CharacterSettings] = None,
        chat: Optional[ChatSettings] = None,
        context_messages: Optional[int] = None,
        rng: Optional[random.Random] = None
    ):
        self.gateway = gateway
        self.history = history
        self.character = character or CharacterSettings()
        self.chat = chat or ChatSettings()
        self.context_messages = context_messages
        self.rng = rng or random.Random()

        self._is_processing = False

    @property
    def is_processing(self) -> bool:
        return self._is_processing

    def fallback_response(self) -> str:
        """Pick one of the character's fixed fallback lines."""
        lines = self.character.fallback_lines
        if not lines:
            return "Sorry, I lost my train of thought. Could you say that again?"
        return self.rng.choice(lines)

    async def submit(self, user_text: str) -> str:
        """
        Run one turn.

        Returns:
            The reply (word-capped) or a fallback line

        Raises:
            BusyError: A turn is already in progress
        """
        if self._is_processing:
            raise BusyError("Already processing a message")

        self._is_processing = True
        try:
            self.history.append("user", user_text)
            messages = self.history.context(self.context_messages)

            try:
                reply = await self.gateway.chat(
                    messages,
                    system=self.character.system_prompt,
                    model=self.chat.model,
                    max_tokens=self.chat.max_tokens,
                    temperature=self.chat.temperature,
                )
                reply = truncate_to_max_words(reply, self.chat.max_response_words)
            except GatewayError as e:
                logger.error(f"Chat relay error: {e}")
                reply = self.fallback_response()

            self.history.append("assistant", reply)
            logger.info(f"💬 {self.character.name}: {reply}")
            return reply
        finally:
            self._is_processing = False
