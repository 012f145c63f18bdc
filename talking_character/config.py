"""
Configuration loading.

Settings come from three places, later ones winning:
1. Built-in defaults (the dataclass fields below)
2. config/config.yaml (or the file named by TALKING_CHARACTER_CONFIG)
3. Environment variables / .env for vendor credentials and deployment knobs

The result is a tree of frozen dataclasses. It is built once at startup
and passed by reference to every component that needs it.
"""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv

from .utils.character_loader import resolve_character_config

logger = logging.getLogger(__name__)

# Project root (go up from talking_character/)
PROJECT_ROOT = Path(__file__).parent.parent
DEFAULT_CONFIG_PATH = PROJECT_ROOT / "config" / "config.yaml"

DEFAULT_ALLOWED_ORIGINS = (
    "http://localhost:8080",
    "http://127.0.0.1:8080",
    "http://localhost:5500",
    "http://127.0.0.1:5500",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
)


@dataclass(frozen=True)
class ServerSettings:
    """Gateway server settings."""
    host: str = "0.0.0.0"
    port: int = 3000
    allowed_origins: tuple[str, ...] = DEFAULT_ALLOWED_ORIGINS
    allowed_origin_regex: str = r"^https?://.*\.vercel\.(app|sh)$"
    allow_all_origins: bool = False
    rate_limit_requests: int = 3
    rate_limit_window: float = 60.0
    max_body_bytes: int = 10 * 1024
    http_timeout: float = 60.0
    static_dir: Optional[str] = None


@dataclass(frozen=True)
class ChatSettings:
    """Chat completion (OpenAI) settings."""
    api_key: str = ""
    base_url: str = "https://api.openai.com/v1"
    model: str = "gpt-4o-mini"
    max_tokens: int = 50
    temperature: float = 0.8
    max_response_words: int = 15


@dataclass(frozen=True)
class ElevenLabsSettings:
    api_key: str = ""
    base_url: str = "https://api.elevenlabs.io/v1"
    voice_id: str = "ErXwobaYiN019PkySvjV"
    model_id: str = "eleven_monolingual_v1"
    stability: float = 0.5
    similarity_boost: float = 0.75
    style: float = 0.5
    use_speaker_boost: bool = True


@dataclass(frozen=True)
class OpenAITTSSettings:
    model: str = "tts-1"
    voice: str = "onyx"
    speed: float = 1.0


@dataclass(frozen=True)
class LocalTTSSettings:
    """Offline speech engine (pyttsx3) settings."""
    rate: int = 175
    volume: float = 1.0
    preferred_voice: str = "English"


@dataclass(frozen=True)
class TTSSettings:
    """Client-side speech settings."""
    # Primary producer: "elevenlabs", "openai" or "local"
    provider: str = "elevenlabs"
    openai: OpenAITTSSettings = field(default_factory=OpenAITTSSettings)
    local: LocalTTSSettings = field(default_factory=LocalTTSSettings)


@dataclass(frozen=True)
class HeyGenSettings:
    api_key: str = ""
    base_url: str = "https://api.heygen.com/v1"
    avatar_id: str = ""


@dataclass(frozen=True)
class AvatarSettings:
    """Client-side streaming avatar behaviour."""
    enabled: bool = False
    fallback_to_tts: bool = True
    auto_connect: bool = False
    quality: str = "medium"
    avatar_id: str = ""
    # No speaking_end event: end the turn after len(words) * seconds_per_word + end_grace
    seconds_per_word: float = 0.4
    end_grace: float = 1.5


@dataclass(frozen=True)
class CharacterSettings:
    """Persona, canned lines and animation timing."""
    name: str = "Island Friend"
    subtitle: str = ""
    preset: Optional[str] = None
    system_prompt: str = "You are a helpful assistant."
    fallback_lines: tuple[str, ...] = (
        "Hmm, my thoughts drifted off with the tide. Could you say that again?",
    )
    welcome_lines: tuple[str, ...] = ("Hello there! What would you like to talk about?",)
    # Preset prompts: ((id, label, prompt), ...)
    prompts: tuple[tuple[str, str, str], ...] = ()
    idle_delay: float = 2.0


@dataclass(frozen=True)
class HistorySettings:
    max_messages: int = 50
    storage_path: str = "~/.talking_character/storage.json"
    storage_key: str = "talkingCharacterHistory"
    # None = send the whole transcript with every turn
    context_messages: Optional[int] = None


@dataclass(frozen=True)
class ClientSettings:
    """Where the console client finds the gateway."""
    base_url: str = "http://localhost:3000/api"
    timeout: float = 60.0


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


@dataclass(frozen=True)
class Settings:
    server: ServerSettings = field(default_factory=ServerSettings)
    chat: ChatSettings = field(default_factory=ChatSettings)
    elevenlabs: ElevenLabsSettings = field(default_factory=ElevenLabsSettings)
    heygen: HeyGenSettings = field(default_factory=HeyGenSettings)
    tts: TTSSettings = field(default_factory=TTSSettings)
    avatar: AvatarSettings = field(default_factory=AvatarSettings)
    character: CharacterSettings = field(default_factory=CharacterSettings)
    history: HistorySettings = field(default_factory=HistorySettings)
    client: ClientSettings = field(default_factory=ClientSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)


def _build(cls, data: Optional[dict]):
    """
    Build a frozen settings dataclass from a (possibly partial) dict.

    Unknown keys are logged and ignored. Nested sections are built
    recursively and lists become tuples so the result stays hashable.
    """
    data = data or {}
    kwargs: dict[str, Any] = {}
    known = {f.name: f for f in fields(cls)}

    for key, value in data.items():
        if key not in known:
            logger.warning(f"Unknown config key '{key}' in section {cls.__name__}")
            continue
        default = known[key].default_factory() if callable(known[key].default_factory) else known[key].default
        if hasattr(default, "__dataclass_fields__"):
            kwargs[key] = _build(type(default), value)
        elif isinstance(value, list):
            kwargs[key] = tuple(tuple(v) if isinstance(v, list) else v for v in value)
        else:
            kwargs[key] = value

    return cls(**kwargs)


def _prompts_from_preset(raw: Any) -> list:
    """Turn preset prompt dicts into (id, label, prompt) triples."""
    prompts = []
    for item in raw or []:
        if isinstance(item, dict):
            prompts.append([item.get("id", ""), item.get("label", ""), item.get("prompt", "")])
        else:
            prompts.append(list(item))
    return prompts


def _apply_environment(raw: dict) -> dict:
    """Overlay credentials and deployment knobs from the environment."""
    env = os.environ

    chat = raw.setdefault("chat", {})
    if env.get("OPENAI_API_KEY"):
        chat["api_key"] = env["OPENAI_API_KEY"]

    elevenlabs = raw.setdefault("elevenlabs", {})
    if env.get("ELEVENLABS_API_KEY"):
        elevenlabs["api_key"] = env["ELEVENLABS_API_KEY"]
    if env.get("ELEVENLABS_VOICE_ID"):
        elevenlabs["voice_id"] = env["ELEVENLABS_VOICE_ID"]

    heygen = raw.setdefault("heygen", {})
    if env.get("HEYGEN_API_KEY"):
        heygen["api_key"] = env["HEYGEN_API_KEY"]
    if env.get("HEYGEN_AVATAR_ID"):
        heygen["avatar_id"] = env["HEYGEN_AVATAR_ID"]

    server = raw.setdefault("server", {})
    if env.get("PORT"):
        server["port"] = int(env["PORT"])
    if env.get("ALLOWED_ORIGINS"):
        server["allowed_origins"] = [o.strip() for o in env["ALLOWED_ORIGINS"].split(",") if o.strip()]
    if env.get("VERCEL"):
        # Deployed on the hosting platform: be permissive
        server["allow_all_origins"] = True

    return raw


def load_config(config_path: Optional[Path] = None) -> Settings:
    """
    Load configuration from config.yaml and the environment.

    Args:
        config_path: YAML file to read. Defaults to TALKING_CHARACTER_CONFIG
                     or config/config.yaml at the project root.

    Returns:
        Frozen Settings
    """
    load_dotenv()

    if config_path is None:
        env_path = os.environ.get("TALKING_CHARACTER_CONFIG")
        config_path = Path(env_path) if env_path else DEFAULT_CONFIG_PATH

    raw: dict = {}
    if config_path.exists():
        with open(config_path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    else:
        logger.warning(f"Config file not found: {config_path} (using defaults)")

    raw = resolve_character_config(raw, config_path.parent / "characters")
    character = raw.get("character", {})
    if "prompts" in character:
        character["prompts"] = _prompts_from_preset(character["prompts"])

    return build_settings(_apply_environment(raw))


def build_settings(raw: Optional[dict] = None) -> Settings:
    """Build Settings from an already-parsed dict (no file or env access)."""
    return _build(Settings, raw)
