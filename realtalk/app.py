"""Console front end: connect to a realtime server and drive a conversation.

Commands are read one per line from standard input:
``funasr`` / ``whisper`` (or ``connect <model>``), ``start``, ``stop``,
``status`` and ``quit``.
"""

from __future__ import annotations

import argparse
import logging
import sys
import threading
from collections.abc import Mapping
from typing import TextIO

import websocket

from .client import CHUNK_INTERVAL, RealtimeClient

DEFAULT_URL = "ws://localhost:8123"
DEFAULT_HEADERS = {"OpenAI-Beta": "realtime=v1"}

MODELS = {
    "funasr": "moyoyo-funasr",
    "whisper": "moyoyo-whisper",
}

_OUTPUT_RATE = 48_000
_OUTPUT_CHANNELS = 2
_FRAMES_PER_TICK = int(_OUTPUT_RATE * CHUNK_INTERVAL)

log = logging.getLogger(__name__)


class WebSocketTransport:
    """A blocking WebSocket connection that speaks in text and binary frames."""

    def __init__(self, url: str, headers: Mapping[str, str] | None = None) -> None:
        header_lines = [f"{name}: {value}" for name, value in (headers or {}).items()]
        try:
            self._ws = websocket.create_connection(url, header=header_lines)
        except websocket.WebSocketException as exc:
            raise OSError(f"cannot connect to {url}: {exc}") from exc
        self.url = url

    def send_string(self, text: str) -> None:
        """Send one text frame; raises OSError on failure."""
        try:
            self._ws.send(text)
        except websocket.WebSocketException as exc:
            raise OSError(str(exc)) from exc

    def receive(self) -> str | bytes | None:
        """Block for the next frame: str for text, bytes for binary, None once closed."""
        try:
            opcode, data = self._ws.recv_data()
        except websocket.WebSocketConnectionClosedException:
            return None
        except websocket.WebSocketException as exc:
            raise OSError(str(exc)) from exc
        if opcode == websocket.ABNF.OPCODE_CLOSE:
            return None
        if opcode == websocket.ABNF.OPCODE_TEXT:
            return data.decode("utf-8") if isinstance(data, (bytes, bytearray)) else data
        return bytes(data)

    def close(self) -> None:
        """Close the connection, ignoring errors from an already broken socket."""
        try:
            self._ws.close()
        except (websocket.WebSocketException, OSError) as exc:
            log.debug("Error while closing WebSocket: %s", exc)


def parse_command(line: str) -> tuple[str, str | None] | None:
    """Turn one input line into ``(action, argument)``; None for a blank line.

    Raises ValueError for an unknown command.
    """
    words = line.split()
    if not words:
        return None
    verb, *rest = (word.lower() for word in words)
    if verb in MODELS and not rest:
        return ("connect", MODELS[verb])
    if verb == "connect":
        if len(rest) != 1 or rest[0] not in MODELS:
            raise ValueError(f"usage: connect {{{'|'.join(MODELS)}}}")
        return ("connect", MODELS[rest[0]])
    if verb in ("start", "stop", "status") and not rest:
        return (verb, None)
    if verb in ("quit", "exit", "q") and not rest:
        return ("quit", None)
    raise ValueError(f"unknown command: {line.strip()!r}")


class _Session:
    """Owns the client, its transport and the background threads."""

    def __init__(self, url: str, out: TextIO) -> None:
        self.url = url
        self.client = RealtimeClient()
        self._out = out
        self._lock = threading.RLock()
        self._transport: WebSocketTransport | None = None
        self._stop = threading.Event()
        self._shown: tuple[str, str, str] | None = None
        self._threads = [
            threading.Thread(target=self._run_output, daemon=True),
            threading.Thread(target=self._run_streaming, daemon=True),
        ]
        for thread in self._threads:
            thread.start()

    # A null output device: consumes playback audio in real time.
    def _run_output(self) -> None:
        while not self._stop.wait(CHUNK_INTERVAL):
            self.client.audio.render(_FRAMES_PER_TICK, _OUTPUT_CHANNELS)

    def _run_streaming(self) -> None:
        while not self._stop.wait(CHUNK_INTERVAL):
            with self._lock:
                self.client.tick()

    def _run_receiver(self, transport: WebSocketTransport) -> None:
        while True:
            try:
                message = transport.receive()
            except OSError as exc:
                with self._lock:
                    if transport is self._transport:
                        self.client.on_error(exc)
                        self.announce()
                return
            with self._lock:
                if transport is not self._transport:
                    return
                if message is None:
                    self.client.on_closed()
                    self.announce()
                    return
                if isinstance(message, str):
                    self.client.on_text(message)
                else:
                    self.client.on_binary(message)
                self.announce()

    def announce(self) -> None:
        client = self.client
        shown = (client.connection_status, client.status, client.transcript)
        if shown == self._shown:
            return
        previous = self._shown
        self._shown = shown
        print(f"[{client.connection_status}] {client.status}", file=self._out)
        if client.transcript and (previous is None or previous[2] != client.transcript):
            print(f"AI: {client.transcript}", file=self._out)
        self._out.flush()

    def _drop_transport(self) -> None:
        transport, self._transport = self._transport, None
        if transport is not None:
            transport.close()

    def connect(self, model: str) -> None:
        with self._lock:
            self._drop_transport()
            self.client.connection_status = "🔄 Connecting..."
            self.announce()
        try:
            transport = WebSocketTransport(self.url, DEFAULT_HEADERS)
        except OSError as exc:
            with self._lock:
                self.client.on_error(exc)
                self.announce()
            return
        with self._lock:
            self._transport = transport
            self.client.begin_session(transport, model)
            self.client.on_opened()
            self.announce()
        threading.Thread(target=self._run_receiver, args=(transport,), daemon=True).start()

    def dispatch(self, action: str) -> None:
        with self._lock:
            if action == "start":
                self.client.start_conversation()
            elif action == "stop":
                self.client.stop_conversation()
            elif action == "status":
                labels = self.client.button_labels()
                print(f"[{self.client.connection_status}] {self.client.status}", file=self._out)
                print(f"{labels.connect} | {labels.start} | {labels.stop}", file=self._out)
                self._out.flush()
                return
            self.announce()

    def shutdown(self) -> None:
        self._stop.set()
        with self._lock:
            self._drop_transport()
        for thread in self._threads:
            thread.join(timeout=1.0)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="realtalk", description="Realtime voice conversation client."
    )
    parser.add_argument("--url", default=DEFAULT_URL, help="server WebSocket URL")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="logging verbosity",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the console client, reading commands from standard input."""
    args = _build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level))
    session = _Session(args.url, sys.stdout)
    try:
        session.announce()
        for line in sys.stdin:
            try:
                command = parse_command(line)
            except ValueError as exc:
                print(exc, file=sys.stderr)
                continue
            if command is None:
                continue
            action, argument = command
            if action == "quit":
                break
            if action == "connect" and argument is not None:
                session.connect(argument)
            else:
                session.dispatch(action)
    except KeyboardInterrupt:
        pass
    finally:
        session.shutdown()
    return 0


if __name__ == "__main__":
    sys.exit(main())