"""
HTTP Routes - REST API endpoints.

Relays chat, TTS and avatar requests to the vendors with the server's
credentials. Every failure is answered as {"error": "..."}.
"""

import logging
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Optional

import httpx
from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.background import BackgroundTask

from ..config import Settings
from ..errors import ValidationError
from ..llm import LLMResponse, Message
from ..utils.text import truncate_to_max_words
from .vendors import VendorClients

logger = logging.getLogger(__name__)

router = APIRouter(tags=["API"])

DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant."
WORD_LIMIT_INSTRUCTION = (
    "\n\nIMPORTANT: You MUST keep ALL responses to {max_words} words or less. "
    "Be extremely concise and brief. No exceptions."
)
EMPTY_REPLY = "No response generated."


class RequestModel(BaseModel):
    """Request bodies accept camelCase keys and ignore unknown ones."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ChatRequest(RequestModel):
    # List shape is checked in the handler
    messages: Any = None
    system: Optional[str] = None
    model: Optional[str] = None
    max_tokens: Optional[int] = Field(None, alias="maxTokens")
    temperature: Optional[float] = None


class ChatResponse(BaseModel):
    response: str
    usage: dict = {}


class ElevenLabsRequest(RequestModel):
    text: Optional[str] = None
    voice_id: Optional[str] = Field(None, alias="voiceId")
    model_id: Optional[str] = Field(None, alias="modelId")
    voice_settings: Optional[dict] = Field(None, alias="voiceSettings")


class TimestampsResponse(BaseModel):
    audio_base64: Optional[str] = None
    alignment: Optional[dict] = None


class OpenAITTSRequest(RequestModel):
    input: Optional[str] = None
    model: Optional[str] = None
    voice: Optional[str] = None
    speed: Optional[float] = None


class CreateSessionRequest(RequestModel):
    avatar_id: Optional[str] = Field(None, alias="avatarId")
    quality: Optional[str] = None


class CreateSessionResponse(BaseModel):
    session_id: Optional[str] = None
    access_token: Optional[str] = None
    url: Optional[str] = None


class SpeakRequest(RequestModel):
    session_id: Optional[str] = Field(None, alias="sessionId")
    text: Optional[str] = None
    task_type: Optional[str] = Field(None, alias="taskType")


class SpeakResponse(BaseModel):
    task_id: Optional[str] = None


class CloseSessionRequest(RequestModel):
    session_id: Optional[str] = Field(None, alias="sessionId")


class ConversationRequest(RequestModel):
    messages: Any = None
    system: Optional[str] = None
    session_id: Optional[str] = Field(None, alias="sessionId")
    use_avatar: Optional[bool] = Field(False, alias="useAvatar")


class ConversationResponse(BaseModel):
    response: str
    taskId: Optional[str] = None
    useAvatar: bool


class HealthResponse(BaseModel):
    status: str
    timestamp: str


def _settings(request: Request) -> Settings:
    return request.app.state.settings


def _vendors(request: Request) -> VendorClients:
    return request.app.state.vendors


def build_chat_messages(messages: Any, system: Optional[str], max_words: int) -> list[Message]:
    """
    Validate the caller's messages and prepend the system prompt.

    The word-limit instruction is appended to the system prompt so the
    model is told about the cap; truncation afterwards is the backstop.

    Raises:
        ValidationError: messages is missing, not a list, or malformed
    """
    if not isinstance(messages, list):
        raise ValidationError("Messages array is required")

    instruction = WORD_LIMIT_INSTRUCTION.format(max_words=max_words)
    chat_messages = [Message(role="system", content=(system or DEFAULT_SYSTEM_PROMPT) + instruction)]

    for item in messages:
        if not isinstance(item, dict) or "role" not in item or "content" not in item:
            raise ValidationError("Each message needs a role and content")
        chat_messages.append(Message(role=str(item["role"]), content=str(item["content"])))

    return chat_messages


async def run_chat(
    settings: Settings,
    vendors: VendorClients,
    messages: list[Message],
    model: Optional[str] = None,
    max_tokens: Optional[int] = None,
    temperature: Optional[float] = None
) -> LLMResponse:
    """Call the chat vendor and enforce the reply word cap."""
    cap = settings.chat.max_tokens
    result = await vendors.llm.chat(
        messages,
        model=model,
        max_tokens=min(max_tokens, cap) if max_tokens else cap,
        temperature=temperature,
    )
    result.content = truncate_to_max_words(result.content or EMPTY_REPLY, settings.chat.max_response_words)
    return result


async def relay_stream(upstream: httpx.Response) -> AsyncIterator[bytes]:
    """Yield the vendor's audio chunks as they arrive, closing the upstream response however the stream ends."""
    try:
        async for chunk in upstream.aiter_bytes():
            yield chunk
    finally:
        await upstream.aclose()


def _require_text(text: Optional[str], message: str = "Text is required") -> str:
    if not text or not text.strip():
        raise ValidationError(message)
    return text


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(status="ok", timestamp=datetime.now(timezone.utc).isoformat())


@router.post("/chat", response_model=ChatResponse)
async def chat(body: ChatRequest, request: Request):
    """
    Chat endpoint - relays a conversation to the chat vendor.

    Returns the (word-capped) reply and the vendor's token usage.
    """
    settings = _settings(request)
    messages = build_chat_messages(body.messages, body.system, settings.chat.max_response_words)

    result = await run_chat(
        settings,
        _vendors(request),
        messages,
        model=body.model,
        max_tokens=body.max_tokens,
        temperature=body.temperature,
    )
    return ChatResponse(response=result.content, usage=result.usage)


@router.post("/tts/elevenlabs")
async def elevenlabs_tts(body: ElevenLabsRequest, request: Request):
    """
    ElevenLabs TTS endpoint.

    Streams the vendor's MP3 bytes back as they arrive.
    """
    text = _require_text(body.text)
    upstream = await _vendors(request).elevenlabs.open_stream(
        text,
        voice_id=body.voice_id,
        model_id=body.model_id,
        voice_settings=body.voice_settings,
    )
    return StreamingResponse(
        relay_stream(upstream),
        media_type="audio/mpeg",
        background=BackgroundTask(upstream.aclose),
    )


@router.post("/tts/elevenlabs-with-timestamps", response_model=TimestampsResponse)
async def elevenlabs_tts_with_timestamps(body: ElevenLabsRequest, request: Request):
    """
    ElevenLabs TTS with timestamps for lip-sync.

    Returns base64 audio plus character timings for mouth animation.
    """
    text = _require_text(body.text)
    result = await _vendors(request).elevenlabs.synthesize_with_timestamps(
        text,
        voice_id=body.voice_id,
        model_id=body.model_id,
    )
    return TimestampsResponse(audio_base64=result.audio_base64, alignment=result.alignment)


@router.post("/tts/openai")
async def openai_tts(body: OpenAITTSRequest, request: Request):
    """OpenAI TTS endpoint (alternate vendor voice), streamed like ElevenLabs."""
    text = _require_text(body.input, "Input text is required")
    upstream = await _vendors(request).openai_tts.open_stream(
        text,
        model=body.model,
        voice=body.voice,
        speed=body.speed,
    )
    return StreamingResponse(
        relay_stream(upstream),
        media_type="audio/mpeg",
        background=BackgroundTask(upstream.aclose),
    )


@router.post("/heygen/create-session", response_model=CreateSessionResponse)
async def heygen_create_session(request: Request, body: Optional[CreateSessionRequest] = None):
    """Create a streaming avatar session voiced by the character's ElevenLabs voice."""
    body = body or CreateSessionRequest()
    info = await _vendors(request).heygen.create_session(body.avatar_id, body.quality)
    return CreateSessionResponse(
        session_id=info.session_id,
        access_token=info.access_token,
        url=info.url,
    )


@router.post("/heygen/speak", response_model=SpeakResponse)
async def heygen_speak(body: SpeakRequest, request: Request):
    """Send text to the avatar for speaking."""
    if not body.session_id or not body.text:
        raise ValidationError("Session ID and text are required")

    task_id = await _vendors(request).heygen.speak(body.session_id, body.text, body.task_type)
    return SpeakResponse(task_id=task_id)


@router.post("/heygen/close-session")
async def heygen_close_session(body: CloseSessionRequest, request: Request):
    """Close a streaming avatar session."""
    if not body.session_id:
        raise ValidationError("Session ID is required")

    await _vendors(request).heygen.close_session(body.session_id)
    return {"success": True}


@router.get("/heygen/avatars")
async def heygen_avatars(request: Request):
    """List avatars available for streaming."""
    return {"avatars": await _vendors(request).heygen.list_avatars()}


@router.post(
    "/conversation",
    response_model=ConversationResponse,
    response_model_exclude_none=True,
)
async def conversation(body: ConversationRequest, request: Request):
    """
    Combined endpoint: chat + avatar in one call.

    1. Get the reply from the chat vendor
    2. If an avatar session is given, make the avatar speak it
    3. Otherwise (or if the avatar fails) the client speaks it with TTS
    """
    settings = _settings(request)
    vendors = _vendors(request)
    messages = build_chat_messages(body.messages, body.system, settings.chat.max_response_words)

    result = await run_chat(settings, vendors, messages)

    if body.use_avatar and body.session_id:
        try:
            task_id = await vendors.heygen.speak(body.session_id, result.content)
            return ConversationResponse(response=result.content, taskId=task_id, useAvatar=True)
        except Exception as e:
            # Continue without avatar
            logger.error(f"Avatar speak error: {e}")

    return ConversationResponse(response=result.content, useAvatar=False)
