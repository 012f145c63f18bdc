# Avatar Module - remote streaming avatar vendors
from .heygen_client import HeyGenClient, AvatarSessionInfo

__all__ = [
    "HeyGenClient",
    "AvatarSessionInfo",
]
