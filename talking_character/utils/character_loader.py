"""
Character preset loader.

Loads character configurations from config/characters/*.yaml files.
A preset bundles everything that makes a persona: the system prompt,
the canned fallback and welcome lines, the preset question buttons
and optional voice/avatar overrides.
"""

import yaml
import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# Project root (go up from talking_character/utils/)
PROJECT_ROOT = Path(__file__).parent.parent.parent
DEFAULT_CHARACTERS_DIR = PROJECT_ROOT / "config" / "characters"

# Keys copied from a preset into the character section
CHARACTER_KEYS = [
    "name",
    "subtitle",
    "system_prompt",
    "fallback_lines",
    "welcome_lines",
    "prompts",
    "idle_delay",
]


def get_available_characters(characters_dir: Path = DEFAULT_CHARACTERS_DIR) -> list[str]:
    """
    List all available character presets.

    Returns:
        List of character preset names (without .yaml extension)
    """
    if not characters_dir.exists():
        return []

    return sorted(f.stem for f in characters_dir.glob("*.yaml"))


def load_character_preset(
    preset_name: str,
    characters_dir: Path = DEFAULT_CHARACTERS_DIR
) -> Optional[dict]:
    """
    Load a character preset from <characters_dir>/<preset_name>.yaml

    Args:
        preset_name: Name of the preset (e.g., "island_friend")
        characters_dir: Directory holding the preset files

    Returns:
        Character configuration dict, or None if not found or unreadable
    """
    preset_path = characters_dir / f"{preset_name}.yaml"

    if not preset_path.exists():
        logger.warning(f"Character preset not found: {preset_path}")
        return None

    try:
        with open(preset_path, "r", encoding="utf-8") as f:
            preset = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Failed to load character preset {preset_name}: {e}")
        return None

    logger.info(f"🎭 Loaded character preset: {preset.get('name', preset_name)}")
    return preset


def resolve_character_config(
    config: dict,
    characters_dir: Path = DEFAULT_CHARACTERS_DIR
) -> dict:
    """
    Resolve character configuration, loading preset if specified.

    If config["character"]["preset"] names a preset, it is loaded and
    merged with the inline character section. Inline values win.

    Args:
        config: Main configuration dict (from config.yaml)
        characters_dir: Directory holding the preset files

    Returns:
        Updated config dict with resolved character settings
    """
    character_config = config.get("character", {}) or {}
    preset_name = character_config.get("preset")

    if not preset_name:
        # No preset, use inline config
        return config

    preset = load_character_preset(preset_name, characters_dir)
    if not preset:
        logger.warning(f"Preset '{preset_name}' not found, using default config")
        return config

    resolved_character = {key: preset[key] for key in CHARACTER_KEYS if key in preset}
    resolved_character["preset"] = preset_name

    # Allow inline overrides
    for key, value in character_config.items():
        if key != "preset" and value:
            resolved_character[key] = value

    config["character"] = resolved_character

    # Voice overrides: the character's ElevenLabs voice and TTS provider
    voice_config = preset.get("voice", {}) or {}
    if voice_config.get("elevenlabs_voice_id"):
        config.setdefault("elevenlabs", {}).setdefault("voice_id", voice_config["elevenlabs_voice_id"])
        logger.info(f"🎤 Using voice: {voice_config['elevenlabs_voice_id']}")
    if voice_config.get("provider"):
        config.setdefault("tts", {}).setdefault("provider", voice_config["provider"])

    # Avatar override
    avatar_config = preset.get("avatar", {}) or {}
    if avatar_config.get("avatar_id"):
        config.setdefault("avatar", {}).setdefault("avatar_id", avatar_config["avatar_id"])

    return config
