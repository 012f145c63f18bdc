# LLM Module - chat completion vendors
from .base import BaseLLM, Message, LLMResponse
from .openai_llm import OpenAILLM

__all__ = [
    "BaseLLM",
    "Message",
    "LLMResponse",
    "OpenAILLM",
]
