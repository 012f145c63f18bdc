"""
Audio playback through a command-line player.

Uses ffplay, mpv or aplay depending on availability. The audio is
written to a temp file and the player process is awaited, so a caller
knows when playback has finished.
"""

import asyncio
import logging
import tempfile
from pathlib import Path
from typing import Callable, Optional

from ..errors import SpeechError

logger = logging.getLogger(__name__)

PLAYERS = [
    ["ffplay", "-nodisp", "-autoexit", "-loglevel", "quiet"],
    ["mpv", "--no-terminal", "--no-video"],
    ["aplay"],  # WAV only
]


class AudioPlayer:
    """
    Plays one clip at a time; stop() terminates the running player.
    """

    def __init__(self, players: Optional[list[list[str]]] = None):
        self.players = players or PLAYERS
        self._process: Optional[asyncio.subprocess.Process] = None
        self._stopped = False

    @property
    def is_playing(self) -> bool:
        return self._process is not None and self._process.returncode is None

    async def _launch(self, audio_path: Path) -> asyncio.subprocess.Process:
        failures = []
        for player_cmd in self.players:
            try:
                return await asyncio.create_subprocess_exec(
                    *player_cmd,
                    str(audio_path),
                    stdout=asyncio.subprocess.DEVNULL,
                    stderr=asyncio.subprocess.DEVNULL,
                )
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning(f"Audio player {player_cmd[0]} could not start: {e}")
                failures.append(f"{player_cmd[0]}: {e}")
        if failures:
            raise SpeechError(f"No audio player could start ({'; '.join(failures)})")
        raise SpeechError("No audio player found (ffplay, mpv, aplay)")

    async def play(
        self,
        audio: bytes,
        suffix: str = ".mp3",
        on_started: Optional[Callable[[], None]] = None
    ) -> None:
        """
        Play `audio` and wait for the player to exit.

        Raises:
            SpeechError: No player is installed or the player failed
        """
        if not audio:
            raise SpeechError("No audio to play")

        try:
            with tempfile.NamedTemporaryFile(suffix=suffix, delete=False) as f:
                f.write(audio)
                audio_path = Path(f.name)
        except OSError as e:
            raise SpeechError(f"Could not write audio file: {e}") from e

        self._stopped = False
        try:
            self._process = await self._launch(audio_path)
            if self._stopped:
                self._process.terminate()
            elif on_started:
                on_started()
            returncode = await self._process.wait()
            if returncode != 0 and not self._stopped:
                raise SpeechError(f"Audio player exited with code {returncode}")
        finally:
            self._process = None
            audio_path.unlink(missing_ok=True)

    def stop(self):
        """Terminate the running player, if any."""
        self._stopped = True
        if self.is_playing:
            try:
                self._process.terminate()
            except ProcessLookupError:
                pass
