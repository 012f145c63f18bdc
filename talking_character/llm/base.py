"""
Base module for LLM (Large Language Models).

This file defines the INTERFACE that chat providers implement.
The gateway only talks to BaseLLM, so the vendor behind /api/chat
can be swapped without touching the routes.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Message:
    """
    Represents a message sent to the chat vendor.

    Attributes:
        role: "user", "assistant", or "system"
        content: The message content
    """
    role: str  # "user", "assistant", "system"
    content: str


@dataclass
class LLMResponse:
    """
    Represents the LLM response.

    Attributes:
        content: The response text
        model: The name of the model used
        usage: Token accounting as reported by the vendor
    """
    content: str
    model: str
    usage: dict = field(default_factory=dict)


class BaseLLM(ABC):
    """
    Abstract base class for chat providers.

    Implementations raise UpstreamError when the vendor answers with a
    non-2xx status and let httpx transport errors propagate.
    """

    @abstractmethod
    async def chat(
        self,
        messages: list[Message],
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None
    ) -> LLMResponse:
        """
        Send messages to the LLM and get a response.

        Args:
            messages: Conversation, system prompt first
            model: Override the configured model
            max_tokens: Override the configured token cap
            temperature: Override the configured temperature

        Returns:
            LLMResponse with the response content
        """
        pass

    async def close(self):
        """Release network resources."""
        pass
