"""
Talking Character client package.

Provides the console application combining:
- Gateway client (chat, speech and avatar relays)
- Turn orchestration with a persisted, bounded history
- Speech output with local fallback
- Avatar session and character animation
"""

from .avatar import AvatarSession
from .character import CharacterAnimator, CharacterState
from .coordinator import AvatarCoordinator
from .gateway_client import GatewayClient
from .history import ChatMessage, ConversationHistory, LocalStorage
from .orchestrator import TurnOrchestrator
from .speech import SpeechOutputSelector, build_speech_output
from .app import TalkingCharacterApp

__all__ = [
    'AvatarSession',
    'CharacterAnimator',
    'CharacterState',
    'AvatarCoordinator',
    'GatewayClient',
    'ChatMessage',
    'ConversationHistory',
    'LocalStorage',
    'TurnOrchestrator',
    'SpeechOutputSelector',
    'build_speech_output',
    'TalkingCharacterApp',
]
