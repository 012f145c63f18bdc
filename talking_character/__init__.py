"""
Talking Character - an AI character that talks back.

- server: HTTP gateway relaying chat, TTS and avatar calls to vendor APIs
- assistant: console client running conversation turns through the gateway
"""

__version__ = "0.1.0"
