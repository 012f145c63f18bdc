import asyncio

import pytest

from talking_character.assistant.audio_player import AudioPlayer
from talking_character.errors import SpeechError


def test_play_runs_player_and_reports_start():
    player = AudioPlayer([["true"]])
    started = []

    asyncio.run(player.play(b"ID3-mp3", on_started=lambda: started.append(True)))

    assert started == [True]
    assert not player.is_playing


def test_failing_player_is_speech_error():
    player = AudioPlayer([["false"]])
    with pytest.raises(SpeechError, match="exited with code 1"):
        asyncio.run(player.play(b"ID3-mp3"))


def test_missing_players_are_skipped():
    player = AudioPlayer([["no-such-audio-player-xyz"], ["true"]])
    asyncio.run(player.play(b"ID3-mp3"))

    nothing = AudioPlayer([["no-such-audio-player-xyz"]])
    with pytest.raises(SpeechError, match="No audio player found"):
        asyncio.run(nothing.play(b"ID3-mp3"))


def test_player_that_cannot_start_is_speech_error(tmp_path):
    not_executable = tmp_path / "player"
    not_executable.write_text("#!/bin/sh\n")
    not_executable.chmod(0o644)

    player = AudioPlayer([[str(not_executable)]])
    with pytest.raises(SpeechError, match="could not start"):
        asyncio.run(player.play(b"ID3-mp3"))


def test_empty_audio_is_speech_error():
    with pytest.raises(SpeechError, match="No audio to play"):
        asyncio.run(AudioPlayer([["true"]]).play(b""))


def test_stopped_player_ends_without_error():
    async def scenario():
        player = AudioPlayer([["sh", "-c", "sleep 5", "player"]])
        task = asyncio.create_task(player.play(b"ID3-mp3"))
        for _ in range(200):
            if player.is_playing:
                break
            await asyncio.sleep(0.01)
        assert player.is_playing

        player.stop()
        await asyncio.wait_for(task, timeout=5)
        return player

    player = asyncio.run(scenario())
    assert not player.is_playing
