"""
Talking Character Application - console front-end.

Wires together:
- TurnOrchestrator: user text -> gateway chat -> reply (or fallback)
- AvatarCoordinator: avatar or speech + character animation
- ConversationHistory: persisted transcript

Usage:
    python -m talking_character.assistant

Commands:
    /stop            Stop the current speech
    /clear           Clear the conversation history
    /presets         List the character's preset prompts
    /preset <id>     Send a preset prompt
    /voice <name>    Switch speech provider (elevenlabs, openai, local)
    /history         Show the conversation history
    /avatar          Connect the streaming avatar
    /quit            Exit
"""

import argparse
import asyncio
import dataclasses
import logging
import random
from pathlib import Path
from typing import Callable, Optional

from ..config import Settings, load_config
from ..errors import TalkingCharacterError
from ..utils.logger import setup_logging
from .avatar import AvatarSession
from .character import CharacterAnimator
from .coordinator import AvatarCoordinator
from .gateway_client import GatewayClient
from .history import ConversationHistory, LocalStorage
from .orchestrator import TurnOrchestrator
from .speech import PROVIDERS, SpeechOutputSelector, build_speech_output

logger = logging.getLogger(__name__)


class TalkingCharacterApp:
    """
    Application controller.

    Components are built in start() unless injected. While a reply is
    being fetched or spoken the app is busy and new messages are
    refused (with a notice), like a disabled input box.

    Callbacks:
        on_notice(message, kind): kind is "info", "success" or "error"
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        gateway: Optional[GatewayClient] = None,
        speech: Optional[SpeechOutputSelector] = None,
        storage: Optional[LocalStorage] = None,
        rng: Optional[random.Random] = None
    ):
        self.settings = settings or load_config()
        self.rng = rng or random.Random()

        self.gateway = gateway
        self.speech = speech
        self.storage = storage
        self.history: Optional[ConversationHistory] = None
        self.orchestrator: Optional[TurnOrchestrator] = None
        self.animator: Optional[CharacterAnimator] = None
        self.avatar: Optional[AvatarSession] = None
        self.coordinator: Optional[AvatarCoordinator] = None

        self.use_avatar = self.settings.avatar.enabled
        self.avatar_connected = False

        self.on_notice: Optional[Callable[[str, str], None]] = None

        self._busy = False
        self._presentation: Optional[asyncio.Task] = None
        self._turn_finished: Optional[asyncio.Event] = None

    @property
    def is_busy(self) -> bool:
        return self._busy

    def _notice(self, message: str, kind: str = "info"):
        logger.info(f"[{kind}] {message}")
        if self.on_notice:
            self.on_notice(message, kind)

    async def start(self):
        """Build the components and restore the history."""
        s = self.settings

        if self.gateway is None:
            self.gateway = GatewayClient(s.client.base_url, timeout=s.client.timeout)
        if self.speech is None:
            self.speech = build_speech_output(s, self.gateway)
        if self.storage is None:
            self.storage = LocalStorage(s.history.storage_path)

        self.history = ConversationHistory(self.storage, s.history.max_messages, s.history.storage_key)
        self.history.load()

        self.orchestrator = TurnOrchestrator(
            self.gateway,
            self.history,
            character=s.character,
            chat=s.chat,
            context_messages=s.history.context_messages,
            rng=self.rng,
        )
        self.animator = CharacterAnimator(idle_delay=s.character.idle_delay)

        if self.use_avatar:
            self.avatar = AvatarSession(self.gateway, s.avatar.avatar_id or s.heygen.avatar_id, s.avatar.quality)
            self.avatar.on_connected = self._on_avatar_connected
            self.avatar.on_disconnected = self._on_avatar_disconnected
            self.avatar.on_error = self._on_avatar_error

        self.coordinator = AvatarCoordinator(
            self.animator,
            self.speech,
            self.avatar,
            self.use_avatar,
            seconds_per_word=s.avatar.seconds_per_word,
            end_grace=s.avatar.end_grace,
        )

        logger.info(f"🏝️ {s.character.name} initialized (speech={self.speech.provider}, avatar={self.use_avatar})")

        if self.use_avatar and s.avatar.auto_connect:
            await self.connect_avatar()

    def _on_avatar_connected(self):
        self.avatar_connected = True
        self._notice("Avatar connected", "success")

    def _on_avatar_disconnected(self):
        self.avatar_connected = False
        self._notice("Avatar disconnected", "info")

    def _on_avatar_error(self, error: Exception):
        logger.error(f"Avatar error: {error}")
        self._notice("Avatar error - using voice only", "error")

    async def connect_avatar(self) -> bool:
        """Create the streaming avatar session. Returns True when connected."""
        if self.avatar is None:
            self._notice("Avatar mode is disabled", "info")
            return False
        if self.avatar_connected or self.avatar.is_initializing:
            return self.avatar_connected

        try:
            await self.avatar.create_session()
        except TalkingCharacterError as e:
            logger.error(f"Failed to connect avatar: {e}")
            if self.settings.avatar.fallback_to_tts:
                self._notice("Using voice-only mode", "info")
            return False
        return self.avatar.is_available()

    def welcome_message(self) -> str:
        return self.rng.choice(self.settings.character.welcome_lines or ("Hello!",))

    async def process_message(self, text: str) -> Optional[str]:
        """
        Send a message and start presenting the reply.

        Returns:
            The reply, or None if the message was refused or failed
        """
        text = (text or "").strip()
        if not text:
            self._notice("Type something first", "info")
            return None
        if self._busy:
            self._notice("Processing...", "info")
            return None

        self._busy = True
        self._turn_finished = asyncio.Event()
        try:
            reply = await self.orchestrator.submit(text)
        except Exception as e:
            logger.error(f"Error: {e}")
            self._turn_done()
            self._notice("Transmission failed", "error")
            return None

        self._presentation = asyncio.create_task(self._present(reply))
        return reply

    async def _present(self, reply: str):
        try:
            await self.coordinator.present(reply, on_done=self._turn_done)
        except Exception as e:
            logger.error(f"Presentation error: {e}")
            self._turn_done()

    def _turn_done(self):
        self._busy = False
        if self._turn_finished is not None:
            self._turn_finished.set()

    async def wait_until_idle(self):
        """Wait until the current reply has been presented and the turn is over."""
        if self._presentation is not None:
            await self._presentation
        if self._turn_finished is not None:
            await self._turn_finished.wait()

    async def handle_preset(self, prompt_id: str) -> Optional[str]:
        """Send one of the character's preset prompts."""
        for pid, _label, prompt in self.settings.character.prompts:
            if pid == prompt_id:
                return await self.process_message(prompt)
        self._notice(f"Unknown preset: {prompt_id}", "error")
        return None

    def stop_speech(self):
        self.coordinator.stop()
        self._turn_done()

    def clear_chat(self) -> str:
        """Clear the history and return a fresh welcome line."""
        self.history.clear()
        self._notice("History cleared", "success")
        return self.welcome_message()

    async def close(self):
        """Stop speech, close the avatar session and the gateway client."""
        if self.coordinator is not None:
            self.coordinator.stop()
        if self._presentation is not None and not self._presentation.done():
            await self._presentation
        if self.avatar is not None:
            await self.avatar.close_session()
        if self.gateway is not None:
            await self.gateway.close()


async def handle_command(app: TalkingCharacterApp, line: str) -> bool:
    """Run a /command. Returns False when the console should exit."""
    command, _, arg = line.partition(" ")
    arg = arg.strip()
    name = app.settings.character.name

    if command in ("/quit", "/exit"):
        return False
    elif command == "/stop":
        app.stop_speech()
    elif command == "/clear":
        print(f"🏝️ {name}: {app.clear_chat()}")
    elif command == "/presets":
        for pid, label, _prompt in app.settings.character.prompts:
            print(f"   {pid:<10} {label}")
    elif command == "/preset":
        reply = await app.handle_preset(arg)
        if reply:
            print(f"🏝️ {name}: {reply}")
    elif command == "/voice":
        app.speech.set_provider(arg)
        print(f"🔊 Voice: {app.speech.provider}")
    elif command == "/history":
        for message in app.history:
            who = "👤 You" if message.role == "user" else f"🏝️ {name}"
            print(f"{who}: {message.content}")
    elif command == "/avatar":
        if await app.connect_avatar():
            print("🎭 Avatar live")
    else:
        print("Commands: /stop /clear /presets /preset <id> /voice <name> /history /avatar /quit")
    return True


async def run_console(app: TalkingCharacterApp):
    """Read lines from the terminal until /quit or EOF."""
    await app.start()
    app.on_notice = lambda message, kind: print(f"   ({message})")

    character = app.settings.character
    print("=" * 50)
    print(f"🏝️ {character.name}" + (f" - {character.subtitle}" if character.subtitle else ""))
    print("=" * 50)
    print("Type a message, or /presets, /stop, /clear, /quit")
    print()
    print(f"🏝️ {character.name}: {app.welcome_message()}")

    loop = asyncio.get_running_loop()
    try:
        while True:
            try:
                line = await loop.run_in_executor(None, input, "👤 You: ")
            except (EOFError, KeyboardInterrupt):
                break

            line = line.strip()
            if not line:
                continue
            if line.startswith("/"):
                if not await handle_command(app, line):
                    break
                continue

            reply = await app.process_message(line)
            if reply:
                print(f"🏝️ {character.name}: {reply}")
    finally:
        await app.close()
        print("\n👋 Goodbye!")


def main():
    parser = argparse.ArgumentParser(description="Talking Character console")
    parser.add_argument("--config", type=Path, default=None,
                        help="Path to config.yaml")
    parser.add_argument("--voice", type=str, choices=PROVIDERS, default=None,
                        help="Speech provider")
    parser.add_argument("--avatar", action="store_true",
                        help="Enable the streaming avatar and connect on start")
    parser.add_argument("--gateway", type=str, default=None,
                        help="Gateway base URL (e.g. http://localhost:3000/api)")
    args = parser.parse_args()

    settings = load_config(args.config)
    setup_logging(settings.logging.level)

    if args.voice:
        settings = dataclasses.replace(settings, tts=dataclasses.replace(settings.tts, provider=args.voice))
    if args.avatar:
        settings = dataclasses.replace(
            settings, avatar=dataclasses.replace(settings.avatar, enabled=True, auto_connect=True)
        )
    if args.gateway:
        settings = dataclasses.replace(settings, client=dataclasses.replace(settings.client, base_url=args.gateway))

    try:
        asyncio.run(run_console(TalkingCharacterApp(settings)))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
