"""Wire messages for the realtime conversation protocol.

Outgoing client messages serialise to JSON objects tagged by ``type``;
incoming server events are parsed from JSON text into typed records.
"""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass, field
from typing import Any, Callable, Union

_U32_MAX = 0xFFFFFFFF


class MessageError(ValueError):
    """Raised when a message cannot be parsed or is malformed."""


# ---------------------------------------------------------------------------
# Outgoing configuration records
# ---------------------------------------------------------------------------


@dataclass
class TranscriptionConfig:
    """Which model transcribes the user's input audio."""

    model: str

    def to_dict(self) -> dict[str, Any]:
        return {"model": self.model}


@dataclass
class TurnDetectionConfig:
    """Voice-activity detection settings used to find turn boundaries."""

    detection_type: str = "server_vad"
    threshold: float = 0.8
    prefix_padding_ms: int = 300
    silence_duration_ms: int = 500
    interrupt_response: bool = True
    create_response: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.detection_type,
            "threshold": self.threshold,
            "prefix_padding_ms": self.prefix_padding_ms,
            "silence_duration_ms": self.silence_duration_ms,
            "interrupt_response": self.interrupt_response,
            "create_response": self.create_response,
        }


@dataclass
class SessionConfig:
    """Session-wide settings sent with ``session.update``."""

    modalities: list[str]
    instructions: str
    voice: str
    input_audio_format: str
    output_audio_format: str
    input_audio_transcription: TranscriptionConfig | None = None
    turn_detection: TurnDetectionConfig | None = None
    tools: list[Any] = field(default_factory=list)
    tool_choice: str = "none"
    temperature: float = 0.8
    max_response_output_tokens: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "modalities": list(self.modalities),
            "instructions": self.instructions,
            "voice": self.voice,
            "input_audio_format": self.input_audio_format,
            "output_audio_format": self.output_audio_format,
            "input_audio_transcription": (
                self.input_audio_transcription.to_dict()
                if self.input_audio_transcription is not None
                else None
            ),
            "turn_detection": (
                self.turn_detection.to_dict() if self.turn_detection is not None else None
            ),
            "tools": list(self.tools),
            "tool_choice": self.tool_choice,
            "temperature": self.temperature,
            "max_response_output_tokens": self.max_response_output_tokens,
        }


@dataclass
class ResponseConfig:
    """Per-response overrides sent with ``response.create``."""

    modalities: list[str]
    instructions: str | None = None
    voice: str | None = None
    output_audio_format: str | None = None
    tools: list[Any] | None = None
    tool_choice: str | None = None
    temperature: float | None = None
    max_output_tokens: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "modalities": list(self.modalities),
            "instructions": self.instructions,
            "voice": self.voice,
            "output_audio_format": self.output_audio_format,
            "tools": list(self.tools) if self.tools is not None else None,
            "tool_choice": self.tool_choice,
            "temperature": self.temperature,
            "max_output_tokens": self.max_output_tokens,
        }


class ContentKind(enum.Enum):
    """The kinds of content a conversation item can carry."""

    INPUT_TEXT = "input_text"
    INPUT_AUDIO = "input_audio"
    TEXT = "text"
    AUDIO = "audio"

    @property
    def is_audio(self) -> bool:
        return self in (ContentKind.INPUT_AUDIO, ContentKind.AUDIO)


@dataclass
class ContentPart:
    """One piece of content: text, or base64 audio with an optional transcript."""

    kind: ContentKind
    text: str | None = None
    audio: str | None = None
    transcript: str | None = None

    def __post_init__(self) -> None:
        if self.kind.is_audio:
            if self.audio is None:
                raise MessageError(f"{self.kind.value} content requires audio")
        elif self.text is None:
            raise MessageError(f"{self.kind.value} content requires text")

    def to_dict(self) -> dict[str, Any]:
        if self.kind.is_audio:
            return {
                "type": self.kind.value,
                "audio": self.audio,
                "transcript": self.transcript,
            }
        return {"type": self.kind.value, "text": self.text}

    @classmethod
    def from_dict(cls, data: Any) -> ContentPart:
        if not isinstance(data, dict):
            raise MessageError("content part must be an object")
        tag = _tag(data)
        try:
            kind = ContentKind(tag)
        except ValueError:
            raise MessageError(f"unknown content type: {tag!r}") from None
        if kind.is_audio:
            return cls(
                kind,
                audio=_string(data, "audio"),
                transcript=_optional_string(data, "transcript"),
            )
        return cls(kind, text=_string(data, "text"))


@dataclass
class ConversationItem:
    """An item added to the conversation history."""

    item_type: str
    role: str
    content: list[ContentPart] = field(default_factory=list)
    id: str | None = None
    status: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.item_type,
            "status": self.status,
            "role": self.role,
            "content": [part.to_dict() for part in self.content],
        }


# ---------------------------------------------------------------------------
# Outgoing client messages
# ---------------------------------------------------------------------------


@dataclass
class SessionUpdate:
    session: SessionConfig

    def to_dict(self) -> dict[str, Any]:
        return {"type": "session.update", "session": self.session.to_dict()}


@dataclass
class InputAudioBufferAppend:
    audio: str  # base64-encoded PCM16

    def to_dict(self) -> dict[str, Any]:
        return {"type": "input_audio_buffer.append", "audio": self.audio}


@dataclass
class InputAudioBufferCommit:
    def to_dict(self) -> dict[str, Any]:
        return {"type": "input_audio_buffer.commit"}


@dataclass
class ResponseCreate:
    response: ResponseConfig

    def to_dict(self) -> dict[str, Any]:
        return {"type": "response.create", "response": self.response.to_dict()}


@dataclass
class ConversationItemCreate:
    item: ConversationItem

    def to_dict(self) -> dict[str, Any]:
        return {"type": "conversation.item.create", "item": self.item.to_dict()}


@dataclass
class ConversationItemTruncate:
    item_id: str
    content_index: int
    audio_end_ms: int
    event_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "type": "conversation.item.truncate",
            "item_id": self.item_id,
            "content_index": self.content_index,
            "audio_end_ms": self.audio_end_ms,
        }
        if self.event_id is not None:
            result["event_id"] = self.event_id
        return result


ClientMessage = Union[
    SessionUpdate,
    InputAudioBufferAppend,
    InputAudioBufferCommit,
    ResponseCreate,
    ConversationItemCreate,
    ConversationItemTruncate,
]


def encode_message(message: ClientMessage) -> str:
    """Serialise a client message to compact JSON text."""
    return json.dumps(message.to_dict(), separators=(",", ":"), ensure_ascii=False)


# ---------------------------------------------------------------------------
# Incoming server events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ErrorDetails:
    message: str
    code: str | None = None
    param: str | None = None
    error_type: str | None = None


@dataclass(frozen=True)
class ErrorEvent:
    error: ErrorDetails


@dataclass(frozen=True)
class SessionCreated:
    session: Any


@dataclass(frozen=True)
class SessionUpdated:
    session: Any


@dataclass(frozen=True)
class ConversationItemCreated:
    item: Any


@dataclass(frozen=True)
class ConversationItemTruncated:
    item: Any


@dataclass(frozen=True)
class ResponseAudioDelta:
    response_id: str
    item_id: str
    output_index: int
    content_index: int
    delta: str  # base64-encoded PCM16


@dataclass(frozen=True)
class ResponseAudioDone:
    response_id: str
    item_id: str
    output_index: int
    content_index: int


@dataclass(frozen=True)
class ResponseTextDelta:
    response_id: str
    item_id: str
    output_index: int
    content_index: int
    delta: str


@dataclass(frozen=True)
class ResponseAudioTranscriptDelta:
    response_id: str
    item_id: str
    output_index: int
    content_index: int
    delta: str


@dataclass(frozen=True)
class ResponseDone:
    response: Any


@dataclass(frozen=True)
class SpeechStarted:
    audio_start_ms: int
    item_id: str


@dataclass(frozen=True)
class SpeechStopped:
    audio_end_ms: int
    item_id: str


@dataclass(frozen=True)
class OtherEvent:
    """Any event whose type this client does not handle."""

    event_type: str


ServerEvent = Union[
    ErrorEvent,
    SessionCreated,
    SessionUpdated,
    ConversationItemCreated,
    ConversationItemTruncated,
    ResponseAudioDelta,
    ResponseAudioDone,
    ResponseTextDelta,
    ResponseAudioTranscriptDelta,
    ResponseDone,
    SpeechStarted,
    SpeechStopped,
    OtherEvent,
]


def _tag(data: dict[str, Any]) -> str:
    if "type" not in data:
        raise MessageError("missing field `type`")
    tag = data["type"]
    if not isinstance(tag, str):
        raise MessageError("field `type` must be a string")
    return tag


def _field(data: dict[str, Any], name: str) -> Any:
    if name not in data:
        raise MessageError(f"missing field `{name}`")
    return data[name]


def _string(data: dict[str, Any], name: str) -> str:
    value = _field(data, name)
    if not isinstance(value, str):
        raise MessageError(f"field `{name}` must be a string")
    return value


def _optional_string(data: dict[str, Any], name: str) -> str | None:
    value = data.get(name)
    if value is not None and not isinstance(value, str):
        raise MessageError(f"field `{name}` must be a string or null")
    return value


def _u32(data: dict[str, Any], name: str) -> int:
    value = _field(data, name)
    if isinstance(value, bool) or not isinstance(value, int):
        raise MessageError(f"field `{name}` must be an unsigned integer")
    if not 0 <= value <= _U32_MAX:
        raise MessageError(f"field `{name}` is out of range: {value}")
    return value


_FieldReader = Callable[[dict[str, Any], str], Any]

_DELTA_FIELDS: tuple[tuple[str, _FieldReader], ...] = (
    ("response_id", _string),
    ("item_id", _string),
    ("output_index", _u32),
    ("content_index", _u32),
    ("delta", _string),
)

_EVENTS: dict[str, tuple[type, tuple[tuple[str, _FieldReader], ...]]] = {
    "session.created": (SessionCreated, (("session", _field),)),
    "session.updated": (SessionUpdated, (("session", _field),)),
    "conversation.item.created": (ConversationItemCreated, (("item", _field),)),
    "conversation.item.truncated": (ConversationItemTruncated, (("item", _field),)),
    "response.audio.delta": (ResponseAudioDelta, _DELTA_FIELDS),
    "response.audio.done": (ResponseAudioDone, _DELTA_FIELDS[:-1]),
    "response.text.delta": (ResponseTextDelta, _DELTA_FIELDS),
    "response.audio_transcript.delta": (ResponseAudioTranscriptDelta, _DELTA_FIELDS),
    "response.done": (ResponseDone, (("response", _field),)),
    "input_audio_buffer.speech_started": (
        SpeechStarted,
        (("audio_start_ms", _u32), ("item_id", _string)),
    ),
    "input_audio_buffer.speech_stopped": (
        SpeechStopped,
        (("audio_end_ms", _u32), ("item_id", _string)),
    ),
}


def _parse_error(data: dict[str, Any]) -> ErrorEvent:
    details = _field(data, "error")
    if not isinstance(details, dict):
        raise MessageError("field `error` must be an object")
    return ErrorEvent(
        ErrorDetails(
            message=_string(details, "message"),
            code=_optional_string(details, "code"),
            param=_optional_string(details, "param"),
            error_type=_optional_string(details, "type"),
        )
    )


def parse_event(data: str | bytes) -> ServerEvent:
    """Parse one server event from JSON text.

    Unknown event types yield :class:`OtherEvent`; malformed input raises
    :class:`MessageError`.
    """
    try:
        payload = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise MessageError(f"invalid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise MessageError("event must be a JSON object")
    tag = _tag(payload)
    if tag == "error":
        return _parse_error(payload)
    known = _EVENTS.get(tag)
    if known is None:
        return OtherEvent(tag)
    event_class, fields = known
    return event_class(**{name: read(payload, name) for name, read in fields})


def default_session_config(transcription_model: str) -> SessionConfig:
    """The session configuration used for a voice conversation."""
    return SessionConfig(
        modalities=["text", "audio"],
        instructions="You are a helpful AI assistant. Respond naturally and conversationally.",
        voice="alloy",
        input_audio_format="pcm16",
        output_audio_format="pcm16",
        input_audio_transcription=TranscriptionConfig(model=transcription_model),
        turn_detection=TurnDetectionConfig(
            detection_type="server_vad",
            threshold=0.8,
            prefix_padding_ms=300,
            silence_duration_ms=500,
            interrupt_response=True,
            create_response=True,
        ),
        tools=[],
        tool_choice="none",
        temperature=0.8,
        max_response_output_tokens=4096,
    )