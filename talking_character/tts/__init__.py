# TTS Module - vendor Text-to-Speech relays
#
# Providers:
# - ElevenLabsProvider : High-quality cloned voice, streaming + timestamps for lip-sync
# - OpenAITTSProvider  : OpenAI speech, alternate vendor voice

from .base import BaseTTS, TTSResult
from .elevenlabs_provider import ElevenLabsProvider
from .openai_tts_provider import OpenAITTSProvider

__all__ = [
    "BaseTTS",
    "TTSResult",
    "ElevenLabsProvider",
    "OpenAITTSProvider",
]
