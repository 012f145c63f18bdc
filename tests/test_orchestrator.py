import asyncio
import random

import pytest

from talking_character.assistant.history import ConversationHistory
from talking_character.assistant.orchestrator import TurnOrchestrator
from talking_character.config import CharacterSettings, ChatSettings
from talking_character.errors import BusyError, GatewayError

FALLBACKS = ("Fallback one", "Fallback two", "Fallback three")


class FakeGateway:
    def __init__(self, reply="Ahoy there!", error=None):
        self.reply = reply
        self.error = error
        self.calls = []
        self.release = None

    async def chat(self, messages, **kwargs):
        self.calls.append((messages, kwargs))
        if self.release is not None:
            await self.release.wait()
        if self.error is not None:
            raise self.error
        return self.reply


def make_orchestrator(gateway, **kwargs):
    character = CharacterSettings(name="Tester", system_prompt="Be brief.", fallback_lines=FALLBACKS)
    return TurnOrchestrator(
        gateway,
        ConversationHistory(max_messages=50),
        character=character,
        chat=ChatSettings(),
        rng=random.Random(7),
        **kwargs,
    )


def test_submit_records_both_messages():
    gateway = FakeGateway()
    orchestrator = make_orchestrator(gateway)

    reply = asyncio.run(orchestrator.submit("Hello"))

    assert reply == "Ahoy there!"
    assert [(m.role, m.content) for m in orchestrator.history] == [("user", "Hello"), ("assistant", "Ahoy there!")]
    messages, kwargs = gateway.calls[0]
    assert messages == [{"role": "user", "content": "Hello"}]
    assert kwargs["system"] == "Be brief."
    assert kwargs["max_tokens"] == 50
    assert not orchestrator.is_processing


def test_relay_down_gives_fallback_line():
    orchestrator = make_orchestrator(FakeGateway(error=GatewayError("Gateway unreachable")))

    reply = asyncio.run(orchestrator.submit("Hello"))

    assert reply in FALLBACKS
    assert len(orchestrator.history) == 2
    assert orchestrator.history.messages[-1].content == reply


def test_relay_error_status_gives_fallback_line():
    orchestrator = make_orchestrator(FakeGateway(error=GatewayError("Invalid API key", 401)))
    assert asyncio.run(orchestrator.submit("Hi")) in FALLBACKS


def test_long_reply_is_truncated():
    orchestrator = make_orchestrator(FakeGateway(reply=" ".join(["word"] * 30)))
    reply = asyncio.run(orchestrator.submit("Talk a lot"))
    assert reply == " ".join(["word"] * 15) + "..."


def test_second_submit_while_busy_is_rejected():
    async def scenario():
        gateway = FakeGateway()
        gateway.release = asyncio.Event()
        orchestrator = make_orchestrator(gateway)

        first = asyncio.create_task(orchestrator.submit("one"))
        await asyncio.sleep(0)
        assert orchestrator.is_processing

        with pytest.raises(BusyError):
            await orchestrator.submit("two")
        assert [m.content for m in orchestrator.history] == ["one"]

        gateway.release.set()
        await first
        return orchestrator

    orchestrator = asyncio.run(scenario())
    assert [m.content for m in orchestrator.history] == ["one", "Ahoy there!"]
    assert not orchestrator.is_processing


def test_history_failure_clears_processing_flag():
    orchestrator = make_orchestrator(FakeGateway())

    def broken_append(role, content):
        raise ValueError("corrupt role")

    orchestrator.history.append = broken_append
    with pytest.raises(ValueError):
        asyncio.run(orchestrator.submit("Hello"))
    assert not orchestrator.is_processing


def test_context_window_limits_sent_messages():
    gateway = FakeGateway()
    orchestrator = make_orchestrator(gateway, context_messages=3)

    async def scenario():
        for text in ("a", "b", "c"):
            await orchestrator.submit(text)

    asyncio.run(scenario())
    messages, _ = gateway.calls[-1]
    assert messages == [
        {"role": "user", "content": "b"},
        {"role": "assistant", "content": "Ahoy there!"},
        {"role": "user", "content": "c"},
    ]


def test_fallback_is_deterministic_with_seeded_rng():
    a = make_orchestrator(FakeGateway())
    b = make_orchestrator(FakeGateway())
    assert [a.fallback_response() for _ in range(5)] == [b.fallback_response() for _ in range(5)]
