# realtalk

`realtalk` drives a voice conversation with a server that speaks the
Realtime API message format over a WebSocket. It configures the session
for 24 kHz PCM16 audio with server-side voice activity detection, streams
recorded audio as base64-encoded chunks, queues the audio the server
returns for playback, and keeps a running transcript of the reply.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Running

```
realtalk [--url URL] [--log-level {DEBUG,INFO,WARNING,ERROR}]
```

`--url` defaults to `ws://localhost:8123`; the connection is opened with
the `OpenAI-Beta: realtime=v1` header. `--log-level` defaults to
`WARNING`.

Commands are read one per line from standard input:

| Command | Effect |
| --- | --- |
| `funasr` | connect and ask for the `moyoyo-funasr` transcription model |
| `whisper` | connect and ask for the `moyoyo-whisper` transcription model |
| `connect funasr` / `connect whisper` | the same as above |
| `start` | start a conversation (only once connected) |
| `stop` | stop the conversation, send the remaining audio and commit it |
| `status` | print the connection status, the status line and the button labels |
| `quit` / `exit` / `q` | leave the program |

Unknown commands print an error on standard error and are ignored. Each
time the connection status, status line or transcript changes, a line of
the form `[connection status] status` is printed, followed by
`AI: <transcript>` when the transcript has changed.

While a conversation is active, recorded audio is sent every 20 ms. When
the server reports that speech started, queued playback is dropped and
recording resumes; when speech stops, recording pauses until the response
is done. After `response.done` the client waits for playback to finish and
then listens again.

## What it does not do

The console program has no microphone or speaker connection. Nothing
feeds `AudioEngine.capture` from a real input device, so no audio is
recorded or sent; the playback side is drained by a silent output loop
in real time rather than played through speakers. There is no graphical
interface: the button texts are only shown by the `status` command.

## Library use

- `realtalk.messages` holds the outgoing messages (`SessionUpdate`,
  `InputAudioBufferAppend`, `InputAudioBufferCommit`, `ResponseCreate`,
  `ConversationItemCreate`, `ConversationItemTruncate`) and their
  configuration records (`SessionConfig`, `TranscriptionConfig`,
  `TurnDetectionConfig`, `ResponseConfig`, `ConversationItem`,
  `ContentPart`). `encode_message` turns a message into compact JSON;
  `parse_event` reads a server event into a typed record such as
  `ResponseAudioDelta`, `SpeechStarted` or `ErrorEvent`, returns
  `OtherEvent` for unknown types, and raises `MessageError` for malformed
  input. `default_session_config` gives the session settings sent on
  connect.
- `realtalk.audio` converts between float samples and little-endian PCM16
  with `f32_to_pcm16` (clamping to [-1, 1]) and `pcm16_to_f32`.
  `AudioEngine` keeps the thread-safe recorded and playback buffers:
  `capture` keeps every other sample of 48 kHz input while recording,
  `render` fills output frames by repeating each 24 kHz sample twice on
  every channel, and `take_recorded`, `enqueue_playback`, `stop_playback`,
  `reset` and `wait_until_idle` manage the buffers.
- `realtalk.client.RealtimeClient` holds the conversation state. Call
  `begin_session` with any object that has `send_string`, feed it
  transport events (`on_opened`, `on_text`, `on_binary`, `on_error`,
  `on_closed`), and call `start_conversation`, `stop_conversation` and
  `tick`. Its `status`, `connection_status` and `transcript` attributes
  hold the display text, and `button_labels` returns a `ButtonLabels`.
- `realtalk.app` has `WebSocketTransport`, a blocking WebSocket
  connection, `parse_command` for the console commands, and `main`.

```python
from realtalk.audio import f32_to_pcm16, pcm16_to_f32
from realtalk.messages import InputAudioBufferCommit, encode_message

print(encode_message(InputAudioBufferCommit()))
print(pcm16_to_f32(f32_to_pcm16([0.0, 1.0, -1.0])))
```