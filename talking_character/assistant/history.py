"""
Conversation History Store.

Keeps the transcript bounded to the newest N messages and persists it
after every change through LocalStorage, a small JSON-file key-value
store (the console counterpart of a browser's local storage).
"""

import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional, Union

logger = logging.getLogger(__name__)

ROLES = ("user", "assistant")
DEFAULT_STORAGE_KEY = "talkingCharacterHistory"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class ChatMessage:
    """
    One transcript entry.

    Attributes:
        role: "user" or "assistant"
        content: Message text
        timestamp: ISO-8601 creation time
    """
    role: str
    content: str
    timestamp: str = field(default_factory=_now)

    def __post_init__(self):
        if self.role not in ROLES:
            raise ValueError(f"Invalid message role: {self.role!r}")

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ChatMessage":
        return cls(role=data["role"], content=str(data["content"]), timestamp=str(data.get("timestamp") or _now()))


class LocalStorage:
    """
    JSON file holding string values under string keys.

    A missing or malformed file reads as empty.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()

    def _read(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")

    def get_item(self, key: str) -> Optional[str]:
        value = self._read().get(key)
        return value if isinstance(value, str) else None

    def set_item(self, key: str, value: str):
        data = self._read()
        data[key] = value
        self._write(data)

    def remove_item(self, key: str):
        data = self._read()
        if data.pop(key, None) is not None:
            self._write(data)


class ConversationHistory:
    """
    Bounded, persisted conversation transcript.

    The orchestrator is the only writer. Every append trims the oldest
    messages so that len(history) <= max_messages, then saves.
    """

    def __init__(
        self,
        storage: Optional[LocalStorage] = None,
        max_messages: int = 50,
        storage_key: str = DEFAULT_STORAGE_KEY
    ):
        if max_messages < 1:
            raise ValueError("max_messages must be at least 1")
        self.storage = storage
        self.max_messages = max_messages
        self.storage_key = storage_key
        self._messages: list[ChatMessage] = []

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[ChatMessage]:
        return iter(tuple(self._messages))

    @property
    def messages(self) -> tuple[ChatMessage, ...]:
        return tuple(self._messages)

    def append(self, role: str, content: str) -> ChatMessage:
        """Add a message, drop the oldest beyond the bound, persist."""
        message = ChatMessage(role=role, content=content)
        self._messages.append(message)
        if len(self._messages) > self.max_messages:
            self._messages = self._messages[-self.max_messages:]
        self._save()
        return message

    def context(self, limit: Optional[int] = 10) -> list[dict]:
        """Last `limit` messages as {role, content} pairs (all of them if None)."""
        messages = self._messages if limit is None else self._messages[-limit:] if limit > 0 else []
        return [{"role": m.role, "content": m.content} for m in messages]

    def clear(self):
        self._messages = []
        self._save()
        logger.info("Conversation history cleared")

    def load(self) -> int:
        """
        Restore the transcript from storage.

        Unreadable or malformed data leaves the history empty.

        Returns:
            Number of messages restored
        """
        self._messages = []
        if self.storage is None:
            return 0

        raw = self.storage.get_item(self.storage_key)
        if not raw:
            return 0

        try:
            items = json.loads(raw)
            if not isinstance(items, list):
                raise ValueError("stored history is not a list")
            messages = [ChatMessage.from_dict(item) for item in items]
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Could not load conversation history: {e}")
            return 0

        self._messages = messages[-self.max_messages:]
        logger.info(f"📜 Restored {len(self._messages)} messages")
        return len(self._messages)

    def _save(self):
        if self.storage is None:
            return
        try:
            payload = json.dumps([m.to_dict() for m in self._messages], ensure_ascii=False)
            self.storage.set_item(self.storage_key, payload)
        except OSError as e:
            logger.warning(f"Could not save conversation history: {e}")
