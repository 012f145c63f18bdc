"""
Utility modules for Talking Character.
"""

from .text import clean_text_for_tts, truncate_to_max_words
from .logger import setup_logging
from .character_loader import (
    get_available_characters,
    load_character_preset,
    resolve_character_config,
)

__all__ = [
    "clean_text_for_tts",
    "truncate_to_max_words",
    "setup_logging",
    # Character management
    "get_available_characters",
    "load_character_preset",
    "resolve_character_config",
]
