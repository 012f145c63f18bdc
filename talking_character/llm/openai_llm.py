"""
LLM implementation using the OpenAI chat completions API.

POST {base_url}/chat/completions with a Bearer token.
"""

import httpx
import logging
from typing import Optional

from ..errors import UpstreamError
from .base import BaseLLM, Message, LLMResponse

logger = logging.getLogger(__name__)


def extract_openai_error(response: httpx.Response, default: str = "API error") -> str:
    """Best-effort error message from an OpenAI error body."""
    try:
        data = response.json()
    except ValueError:
        return default
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return error["message"]
    return default


class OpenAILLM(BaseLLM):
    """
    Client for OpenAI chat completions.

    Attributes:
        model: Default model (e.g., "gpt-4o-mini")
        max_tokens: Default token cap (kept small to enforce short replies)
        temperature: Default sampling temperature
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str = "https://api.openai.com/v1",
        max_tokens: int = 50,
        temperature: float = 0.8,
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        """
        Initialize the OpenAI client.

        Args:
            api_key: OpenAI API key
            model: Model used when the caller does not pick one
            base_url: API root
            max_tokens: Token cap used when the caller does not pick one
            temperature: Temperature used when the caller does not pick one
            timeout: Request timeout in seconds
            client: Pre-built httpx client (tests inject a mock transport)
        """
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._client = client or httpx.AsyncClient(timeout=timeout)

    def _format_messages(self, messages: list[Message]) -> list[dict]:
        """OpenAI expects: [{"role": "user", "content": "..."}]"""
        return [{"role": m.role, "content": m.content} for m in messages]

    async def chat(
        self,
        messages: list[Message],
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None
    ) -> LLMResponse:
        """
        Send a chat completion request.

        Args:
            messages: Conversation, system prompt first
            model: Model override
            max_tokens: Token cap override
            temperature: Temperature override

        Returns:
            The complete LLM response (content may be empty)

        Raises:
            UpstreamError: OpenAI answered with a non-2xx status
            httpx.HTTPError: The request could not be sent
        """
        model = model or self.model
        logger.debug(f"📤 Sending request to OpenAI ({model})...")

        response = await self._client.post(
            f"{self.base_url}/chat/completions",
            headers={"Authorization": f"Bearer {self.api_key}"},
            json={
                "model": model,
                "max_tokens": max_tokens or self.max_tokens,
                "temperature": temperature if temperature is not None else self.temperature,
                "messages": self._format_messages(messages),
            }
        )

        if response.is_error:
            message = extract_openai_error(response)
            logger.error(f"OpenAI API Error ({response.status_code}): {message}")
            raise UpstreamError(message, response.status_code, vendor="openai")

        data = response.json()
        choices = data.get("choices") or [{}]
        content = (choices[0].get("message") or {}).get("content") or ""

        return LLMResponse(
            content=content,
            model=data.get("model", model),
            usage=data.get("usage") or {}
        )

    async def close(self):
        """Properly close the HTTP connection."""
        await self._client.aclose()
