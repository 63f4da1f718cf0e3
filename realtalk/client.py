"""Conversation state machine for a realtime voice session.

The client turns user actions and incoming server events into outgoing
messages, audio engine changes and the status text a front end displays.
"""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Protocol

from .audio import AudioEngine, f32_to_pcm16, pcm16_to_f32
from .messages import (
    ClientMessage,
    ConversationItemCreated,
    ConversationItemTruncated,
    ErrorEvent,
    InputAudioBufferAppend,
    InputAudioBufferCommit,
    MessageError,
    ResponseAudioDelta,
    ResponseAudioTranscriptDelta,
    ResponseDone,
    SessionCreated,
    SessionUpdate,
    SessionUpdated,
    SpeechStarted,
    SpeechStopped,
    default_session_config,
    encode_message,
    parse_event,
)

log = logging.getLogger(__name__)

CHUNK_INTERVAL = 0.020
"""Seconds between audio chunks sent while a conversation is active."""

_TRANSCRIPT_LIMIT = 500
_TRANSCRIPT_DROP = 200


class Transport(Protocol):
    """Anything that can send one text frame; raises OSError on failure."""

    def send_string(self, text: str) -> None: ...


@dataclass(frozen=True)
class ButtonLabels:
    """Texts for the connect, start and stop buttons."""

    connect: str
    start: str
    stop: str


class RealtimeClient:
    """Drives one realtime conversation over a transport."""

    def __init__(self, audio: AudioEngine | None = None) -> None:
        self.audio = audio if audio is not None else AudioEngine()
        self.transport: Transport | None = None
        self.is_connected = False
        self.conversation_active = False
        self.streaming = False
        self.has_sent_audio = False
        self.ai_is_responding = False
        self.user_is_interrupting = False
        self.current_assistant_item_id: str | None = None
        self.transcript = ""
        self.status = "Ready to connect"
        self.connection_status = "Disconnected"

    # -- connection -------------------------------------------------------

    def begin_session(self, transport: Transport, transcription_model: str) -> None:
        """Adopt a freshly opened transport and configure the session."""
        self.transport = transport
        self.connection_status = "🔄 Connecting..."
        log.info("Initializing session with transcription model %s", transcription_model)
        self.send(SessionUpdate(default_session_config(transcription_model)))

    def on_opened(self) -> None:
        log.info("WebSocket connected")
        self.is_connected = True

    def on_binary(self, data: bytes) -> None:
        log.info("Received binary WebSocket message: %d bytes", len(data))

    def on_error(self, error: object) -> None:
        log.warning("WebSocket error: %s", error)
        self.connection_status = f"❌ Error: {error}"
        self.is_connected = False

    def on_closed(self) -> None:
        log.info("WebSocket closed")
        self.connection_status = "❌ Disconnected"
        self.is_connected = False
        self.conversation_active = False
        self.streaming = False

    # -- server events ----------------------------------------------------

    def on_text(self, data: str) -> None:
        """Handle one text frame from the server."""
        try:
            event = parse_event(data)
        except MessageError as exc:
            log.warning("Failed to parse server message: %s", exc)
            return

        if isinstance(event, SessionCreated):
            self.status = "✅ Session ready"
            self.is_connected = True
            self.connection_status = "✅ Connected to OpenAI"
        elif isinstance(event, SessionUpdated):
            self.status = "✅ Session configured"
        elif isinstance(event, ResponseAudioDelta):
            self._on_audio_delta(event)
        elif isinstance(event, ResponseAudioTranscriptDelta):
            self._on_transcript_delta(event.delta)
        elif isinstance(event, ResponseDone):
            self._on_response_done()
        elif isinstance(event, SpeechStarted):
            self.status = "🎤 Speech detected - interrupting AI"
            cleared = self.audio.stop_playback()
            log.info("Cleared %d samples from playback buffer", cleared)
            self._set_recording(True)
        elif isinstance(event, SpeechStopped):
            self.status = "🤔 Processing..."
            self._set_recording(False)
        elif isinstance(event, ConversationItemCreated):
            self.status = "✅ User speech transcribed"
        elif isinstance(event, ConversationItemTruncated):
            self.status = "✅ AI speech truncated"
        elif isinstance(event, ErrorEvent):
            log.warning("Server error: %s", event.error)
            self.status = f"❌ Error: {event.error.message}"
            self._set_recording(True)
        else:
            log.debug("Received other message type: %s", event)

    def _set_recording(self, value: bool) -> None:
        if self.conversation_active:
            self.audio.recording = value

    def _on_audio_delta(self, event: ResponseAudioDelta) -> None:
        if self.user_is_interrupting:
            log.debug("Ignoring audio delta while the user is interrupting")
            return
        if self.current_assistant_item_id is None:
            self.current_assistant_item_id = event.item_id
        self.ai_is_responding = True
        self._set_recording(False)
        try:
            audio_bytes = base64.b64decode(event.delta, validate=True)
        except (binascii.Error, ValueError):
            log.warning("Discarding audio delta with invalid base64")
            return
        self._add_audio_to_playback(audio_bytes)

    def _add_audio_to_playback(self, audio_bytes: bytes) -> None:
        if not self.ai_is_responding:
            log.debug("Skipping audio while the assistant is not responding")
            return
        samples = pcm16_to_f32(audio_bytes)
        if self.audio.enqueue_playback(samples):
            log.debug("Started fresh playback (%d samples)", len(samples))
        else:
            log.debug("Appended to playback (%d samples)", len(samples))

    def _on_transcript_delta(self, delta: str) -> None:
        self.ai_is_responding = True
        self.transcript += delta
        if len(self.transcript.encode("utf-8")) > _TRANSCRIPT_LIMIT:
            self.transcript = self.transcript[_TRANSCRIPT_DROP:]

    def _on_response_done(self) -> None:
        if self.audio.playing:
            self.status = "Playing audio"
            self.audio.wait_until_idle()
        self.user_is_interrupting = False
        self.ai_is_responding = False
        self.current_assistant_item_id = None
        self.status = "✅ Response completed - listening again"
        self._set_recording(True)

    # -- conversation -----------------------------------------------------

    def start_conversation(self) -> bool:
        """Begin listening and streaming; False when not connected."""
        if not self.is_connected:
            self.status = "❌ Not connected to OpenAI"
            return False
        self.conversation_active = True
        self.ai_is_responding = False
        self.has_sent_audio = False
        self.audio.reset()
        self.audio.recording = True
        self.transcript = ""
        self.status = "🎤 Listening..."
        self.streaming = True
        return True

    def stop_conversation(self) -> None:
        """Stop listening, flush remaining audio and commit it if any was sent."""
        self.conversation_active = False
        self.ai_is_responding = False
        self.audio.recording = False
        self.streaming = False
        self.send_audio_chunk()
        if self.has_sent_audio:
            self.send(InputAudioBufferCommit())
        self.status = "⏹️ Conversation stopped"

    def tick(self) -> bool:
        """Called every CHUNK_INTERVAL; streams captured audio. True if a chunk was sent."""
        if self.streaming and self.conversation_active:
            return self.send_audio_chunk()
        return False

    def send_audio_chunk(self) -> bool:
        """Send everything captured so far as one append message."""
        samples = self.audio.take_recorded()
        if not samples:
            return False
        encoded = base64.b64encode(f32_to_pcm16(samples)).decode("ascii")
        self.send(InputAudioBufferAppend(encoded))
        self.has_sent_audio = True
        return True

    def send(self, message: ClientMessage) -> bool:
        """Send a message if a transport is attached; False if it could not be sent."""
        if self.transport is None:
            return False
        try:
            self.transport.send_string(encode_message(message))
        except OSError as exc:
            log.warning("Failed to send message: %s", exc)
            return False
        return True

    def button_labels(self) -> ButtonLabels:
        if not self.is_connected:
            return ButtonLabels(
                "🔗 Connect to OpenAI",
                "🎤 Start Conversation (Disconnected)",
                "⏹️ Stop Conversation",
            )
        if self.conversation_active:
            return ButtonLabels("✅ Connected", "🎤 Conversation Active", "⏹️ Stop Conversation")
        return ButtonLabels("✅ Connected", "🎤 Start Conversation", "⏹️ Stop Conversation")