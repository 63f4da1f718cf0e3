import json

import pytest

from realtalk.messages import (
    ContentKind,
    ContentPart,
    ConversationItem,
    ConversationItemCreate,
    ConversationItemTruncate,
    ErrorEvent,
    InputAudioBufferAppend,
    InputAudioBufferCommit,
    MessageError,
    OtherEvent,
    ResponseAudioDelta,
    ResponseAudioDone,
    ResponseConfig,
    ResponseCreate,
    ResponseDone,
    SessionCreated,
    SessionUpdate,
    SpeechStarted,
    SpeechStopped,
    default_session_config,
    encode_message,
    parse_event,
)


def test_session_update_wire_format():
    config = default_session_config("moyoyo-whisper")
    decoded = json.loads(encode_message(SessionUpdate(config)))
    assert decoded["type"] == "session.update"
    session = decoded["session"]
    assert session["modalities"] == ["text", "audio"]
    assert session["voice"] == "alloy"
    assert session["input_audio_format"] == "pcm16"
    assert session["input_audio_transcription"] == {"model": "moyoyo-whisper"}
    assert session["turn_detection"]["type"] == "server_vad"
    assert session["turn_detection"]["prefix_padding_ms"] == 300
    assert session["turn_detection"]["silence_duration_ms"] == 500
    assert session["tool_choice"] == "none"
    assert session["max_response_output_tokens"] == 4096


def test_session_optional_fields_serialise_as_null():
    config = default_session_config("moyoyo-funasr")
    config.turn_detection = None
    config.input_audio_transcription = None
    session = json.loads(encode_message(SessionUpdate(config)))["session"]
    assert session["turn_detection"] is None
    assert session["input_audio_transcription"] is None


def test_commit_is_type_only():
    assert json.loads(encode_message(InputAudioBufferCommit())) == {
        "type": "input_audio_buffer.commit"
    }


def test_append_carries_audio():
    decoded = json.loads(encode_message(InputAudioBufferAppend("AAAA")))
    assert decoded == {"type": "input_audio_buffer.append", "audio": "AAAA"}


def test_encoded_message_is_compact_and_type_first():
    text = encode_message(InputAudioBufferAppend("AAAA"))
    assert " " not in text
    assert text.startswith('{"type":')


def test_truncate_omits_missing_event_id():
    decoded = json.loads(encode_message(ConversationItemTruncate("item_a", 0, 1200)))
    assert "event_id" not in decoded
    assert decoded["item_id"] == "item_a"
    assert decoded["audio_end_ms"] == 1200


def test_truncate_includes_event_id():
    decoded = json.loads(
        encode_message(ConversationItemTruncate("item_a", 0, 1200, event_id="ev"))
    )
    assert decoded["event_id"] == "ev"


def test_response_create_nulls():
    decoded = json.loads(encode_message(ResponseCreate(ResponseConfig(["text"]))))
    assert decoded["type"] == "response.create"
    assert decoded["response"]["modalities"] == ["text"]
    assert decoded["response"]["tools"] is None
    assert decoded["response"]["temperature"] is None


def test_conversation_item_create():
    item = ConversationItem(
        "message", "user", [ContentPart(ContentKind.INPUT_TEXT, text="hello")]
    )
    decoded = json.loads(encode_message(ConversationItemCreate(item)))
    assert decoded["type"] == "conversation.item.create"
    assert decoded["item"]["type"] == "message"
    assert decoded["item"]["id"] is None
    assert decoded["item"]["content"] == [{"type": "input_text", "text": "hello"}]


@pytest.mark.parametrize(
    "part",
    [
        ContentPart(ContentKind.INPUT_TEXT, text="hi"),
        ContentPart(ContentKind.TEXT, text="there"),
        ContentPart(ContentKind.INPUT_AUDIO, audio="AAAA", transcript="hi"),
        ContentPart(ContentKind.AUDIO, audio="AAAA"),
    ],
)
def test_content_part_round_trip(part):
    assert ContentPart.from_dict(part.to_dict()) == part


def test_content_part_unknown_type():
    with pytest.raises(MessageError):
        ContentPart.from_dict({"type": "video", "data": "x"})


def test_content_part_missing_text():
    with pytest.raises(MessageError):
        ContentPart.from_dict({"type": "text"})


def test_content_part_requires_audio_when_built():
    with pytest.raises(MessageError):
        ContentPart(ContentKind.AUDIO, text="oops")


def test_parse_audio_delta():
    event = parse_event(
        json.dumps(
            {
                "type": "response.audio.delta",
                "response_id": "resp_1",
                "item_id": "item_1",
                "output_index": 0,
                "content_index": 0,
                "delta": "AAAA",
                "event_id": "ignored",
            }
        )
    )
    assert event == ResponseAudioDelta("resp_1", "item_1", 0, 0, "AAAA")


def test_parse_audio_done_without_delta():
    event = parse_event(
        '{"type":"response.audio.done","response_id":"r","item_id":"i",'
        '"output_index":2,"content_index":3}'
    )
    assert event == ResponseAudioDone("r", "i", 2, 3)


def test_parse_session_created_keeps_raw_session():
    event = parse_event('{"type":"session.created","session":{"id":"s1"}}')
    assert event == SessionCreated({"id": "s1"})


def test_parse_response_done():
    event = parse_event('{"type":"response.done","response":null}')
    assert event == ResponseDone(None)


def test_parse_speech_events():
    started = parse_event(
        '{"type":"input_audio_buffer.speech_started","audio_start_ms":10,"item_id":"a"}'
    )
    stopped = parse_event(
        '{"type":"input_audio_buffer.speech_stopped","audio_end_ms":20,"item_id":"a"}'
    )
    assert started == SpeechStarted(10, "a")
    assert stopped == SpeechStopped(20, "a")


def test_parse_error_event():
    event = parse_event(
        '{"type":"error","error":{"message":"bad","code":null,"type":"invalid_request_error"}}'
    )
    assert isinstance(event, ErrorEvent)
    assert event.error.message == "bad"
    assert event.error.code is None
    assert event.error.param is None
    assert event.error.error_type == "invalid_request_error"


def test_parse_unknown_type_is_other():
    assert parse_event('{"type":"rate_limits.updated"}') == OtherEvent("rate_limits.updated")


@pytest.mark.parametrize(
    "text",
    [
        "not json",
        "[1, 2]",
        '{"session": {}}',
        '{"type": 5}',
        '{"type":"session.created"}',
        '{"type":"error","error":{"code":"x"}}',
        '{"type":"input_audio_buffer.speech_started","audio_start_ms":-1,"item_id":"a"}',
        '{"type":"input_audio_buffer.speech_started","audio_start_ms":1.5,"item_id":"a"}',
        '{"type":"input_audio_buffer.speech_stopped","audio_end_ms":true,"item_id":"a"}',
        '{"type":"input_audio_buffer.speech_stopped","audio_end_ms":1,"item_id":3}',
    ],
)
def test_parse_rejects_malformed(text):
    with pytest.raises(MessageError):
        parse_event(text)


def test_parse_rejects_u32_overflow():
    text = json.dumps(
        {"type": "input_audio_buffer.speech_started", "audio_start_ms": 2**32, "item_id": "a"}
    )
    with pytest.raises(MessageError):
        parse_event(text)