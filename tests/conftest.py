"""Shared fixtures: a scripted WebSocket connection and frame builders."""
from __future__ import annotations

from typing import List, Optional, Union

import pytest
from websockets.exceptions import ConnectionClosedError, ConnectionClosedOK
from websockets.frames import Close

from cadence.speech.registry import VoiceRegistry

VOICES = ("en-US-AriaNeural", "en-GB-SoniaNeural", "de-DE-KatjaNeural")


def audio_frame(payload: bytes, request_id: str = "abc", prefixed: bool = True) -> bytes:
    """Binary audio frame the way the service sends it."""
    header = (
        f"X-RequestId:{request_id}\r\n"
        "Content-Type:audio/mpeg\r\n"
        "X-StreamId:1\r\n"
        "Path:audio\r\n"
    ).encode("ascii")
    if prefixed:
        return len(header).to_bytes(2, "big") + header + payload
    return header + payload


def text_frame(path: str, body: str = "") -> str:
    return f"X-RequestId:abc\r\nContent-Type:application/json; charset=utf-8\r\nPath:{path}\r\n\r\n{body}"


def bare_audio_frame(payload: bytes) -> bytes:
    """Binary frame with only the Path line; audio follows its terminator directly."""
    return b"Path:audio\r\n" + payload


def bare_error_frame(detail: str) -> str:
    """Error frame with the detail appended to the Path line."""
    return "Path:error" + detail


def normal_close() -> ConnectionClosedOK:
    return ConnectionClosedOK(Close(1000, ""), Close(1000, ""), True)


def abnormal_close() -> ConnectionClosedError:
    return ConnectionClosedError(None, None)


class FakeConnection:
    """
    Scripted stand-in for websockets' ClientConnection.

    recv() returns the scripted messages in order, raising any scripted
    exception; once the script is exhausted the peer closes normally.
    """

    def __init__(self, script: List[Union[str, bytes, BaseException]], send_error: Optional[BaseException] = None):
        self._script = list(script)
        self._send_error = send_error
        self.sent: List[str] = []
        self.recv_timeouts: List[Optional[float]] = []
        self.close_calls = 0

    def send(self, message):
        if self._send_error is not None:
            raise self._send_error
        self.sent.append(message)

    def recv(self, timeout=None):
        self.recv_timeouts.append(timeout)
        if not self._script:
            raise normal_close()
        item = self._script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    def close(self):
        self.close_calls += 1


class FakeConnector:
    """connect() replacement recording its calls and handing out one FakeConnection."""

    def __init__(self, connection: Optional[FakeConnection] = None, error: Optional[BaseException] = None):
        self.connection = connection
        self.error = error
        self.calls = []

    def __call__(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error is not None:
            raise self.error
        return self.connection


@pytest.fixture
def registry():
    return VoiceRegistry(VOICES)


@pytest.fixture
def audio_script():
    """Typical successful turn: metadata, two audio frames, turn.end."""
    return [
        text_frame("turn.start", '{"context":{}}'),
        text_frame("response", "{}"),
        text_frame("audio.metadata", '{"Metadata":[]}'),
        audio_frame(b"\xff\xf3chunk-one"),
        audio_frame(b"\xff\xf3chunk-two"),
        text_frame("turn.end", "{}"),
    ]
