"""
Text helpers shared by the gateway and the client.

- clean_text_for_tts: strip emoji/symbol ranges before speech synthesis
- truncate_to_max_words: hard word cap on AI replies
"""

import re

# Emoji / symbol blocks removed before synthesis
EMOJI_PATTERN = re.compile(
    "["
    "\U0001F600-\U0001F64F"  # Emoticons
    "\U0001F300-\U0001F5FF"  # Misc symbols and pictographs
    "\U0001F680-\U0001F6FF"  # Transport and map
    "\U0001F1E0-\U0001F1FF"  # Flags
    "\u2600-\u26FF"          # Misc symbols
    "\u2700-\u27BF"          # Dingbats
    "]"
)

WHITESPACE_PATTERN = re.compile(r"\s+")

ELLIPSIS = "..."


def clean_text_for_tts(text: str) -> str:
    """
    Clean text before sending it to a speech producer.

    Removes emoji and symbol code points, collapses whitespace runs
    to a single space and trims the result.

    Args:
        text: Raw text (usually an AI reply)

    Returns:
        Text safe to speak

    Example:
        >>> clean_text_for_tts("Test 🎉 message!!")
        'Test message!!'
    """
    text = EMOJI_PATTERN.sub("", text)
    return WHITESPACE_PATTERN.sub(" ", text).strip()


def truncate_to_max_words(text: str, max_words: int) -> str:
    """
    Cap a reply to a maximum number of words.

    Args:
        text: Reply text
        max_words: Maximum number of words to keep

    Returns:
        The text unchanged if it has max_words words or fewer,
        otherwise the first max_words words joined by single spaces
        followed by "..."
    """
    words = text.split()
    if len(words) <= max_words:
        return text
    return " ".join(words[:max_words]) + ELLIPSIS
