"""
Synthesis Session - one WebSocket connection per synthesis call.

State machine:

    CONNECTING ──> CONFIGURING ──> STREAMING ──> COMPLETED
        │               │              │
        └───────────────┴──────────────┴───────> FAILED

    CONNECTING   open wss://...?trustedclienttoken=..&ConnectionId=..
                 failure (incl. rejected handshake) -> NetworkFailureError
    CONFIGURING  send speech.config, then ssml, as text frames
                 failure -> SynthesisError
    STREAMING    receive until turn.end, an error frame, or a normal close
                 - binary Path:audio  -> append payload
                 - Path:turn.end      -> done
                 - Path:error         -> SynthesisError (frame text in details)
                 - normal close       -> done
                 - other recv failure -> SynthesisError
    COMPLETED    empty buffer -> NoAudioReceivedError

The connection is closed exactly once on every path after it opened.

Each session blocks its calling thread for the whole call. Set
receive_timeout to bound every individual receive; leave it None to wait
for the peer indefinitely.
"""
from __future__ import annotations

import time
import uuid
from enum import Enum
from typing import Any, Callable, Dict, Optional, Union
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from websockets.exceptions import (
    ConnectionClosed,
    ConnectionClosedOK,
    InvalidStatus,
    WebSocketException,
)
from websockets.sync.client import connect as ws_connect

from cadence.core.logging import debug, fail, get_logger, verbose
from cadence.speech.errors import (
    NetworkFailureError,
    NoAudioReceivedError,
    SpeechError,
    SynthesisError,
)
from cadence.speech.protocol import (
    FramePath,
    build_config_message,
    build_speech_message,
    parse_frame,
)

_LOG = get_logger("cadence.session")

ConnectFn = Callable[..., Any]


class SessionState(Enum):
    CONNECTING = "connecting"
    CONFIGURING = "configuring"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


class AudioAssembler:
    """
    Accumulates audio from inbound frames.

    feed() returns True once the turn has ended; result() returns the
    assembled audio or raises NoAudioReceivedError.
    """

    def __init__(self):
        self._buffer = bytearray()
        self.audio_frames = 0
        self.ignored_frames = 0

    def __len__(self) -> int:
        return len(self._buffer)

    def feed(self, message: Union[str, bytes]) -> bool:
        """
        Process one message.

        Raises:
            SynthesisError: On a Path:error frame.
        """
        frame = parse_frame(message)
        path = frame.path

        if frame.binary and path == FramePath.AUDIO:
            self._buffer.extend(frame.body)
            self.audio_frames += 1
            debug(_LOG, "frame", path=path, size=len(frame.body))
            return False

        if frame.starts_path(FramePath.TURN_END):
            return True

        if frame.starts_path(FramePath.ERROR):
            detail = frame.body.decode("utf-8", errors="replace").strip()
            if not detail:
                detail = frame.headers["Path"][len(FramePath.ERROR):].strip()
            raise SynthesisError(f"Service error: {detail}", {"frame": frame.text()})

        self.ignored_frames += 1
        debug(_LOG, "frame_ignored", path=path or "-", binary=frame.binary)
        return False

    def result(self) -> bytes:
        if not self._buffer:
            raise NoAudioReceivedError()
        return bytes(self._buffer)


def read_audio(
    connection: Any,
    receive_timeout: Optional[float] = None,
    assembler: Optional[AudioAssembler] = None,
) -> bytes:
    """
    Run the receive loop on an open connection and return the audio.

    Args:
        connection: Object with recv(timeout=...) like websockets' ClientConnection.
        receive_timeout: Per-receive timeout in seconds, None to block.
        assembler: Optional assembler, to inspect frame counts afterwards.

    Raises:
        SynthesisError: Error frame, receive failure or receive timeout.
        NoAudioReceivedError: Stream ended without audio.
    """
    assembler = assembler if assembler is not None else AudioAssembler()

    while True:
        try:
            message = connection.recv(timeout=receive_timeout)
        except ConnectionClosedOK:
            verbose(_LOG, "peer_closed", audio_bytes=len(assembler))
            break
        except TimeoutError as exc:
            raise SynthesisError(
                f"No frame received within {receive_timeout}s",
                {"receive_timeout_s": receive_timeout},
            ) from exc
        except (WebSocketException, OSError) as exc:
            raise SynthesisError(
                f"Failed to read message: {exc}",
                {"error_type": type(exc).__name__},
            ) from exc

        if assembler.feed(message):
            break

    return assembler.result()


class SynthesisSession:
    """
    One synthesis call over one connection.

    Args:
        endpoint: WebSocket endpoint of the synthesis service.
        trusted_token: Access token, sent as trustedclienttoken.
        output_format: Audio encoding requested in speech.config.
        word_boundary: Request word-boundary metadata frames.
        open_timeout: Handshake timeout in seconds.
        receive_timeout: Per-receive timeout in seconds, None to block.
        connect: Connection factory, websockets.sync.client.connect by default.
        request_id: Call id used as ConnectionId and X-RequestId.
        headers: Extra HTTP headers for the handshake.

    Usage:
        session = SynthesisSession(wss_url, token, "audio-24khz-48kbitrate-mono-mp3")
        audio = session.run(ssml)
    """

    def __init__(
        self,
        endpoint: str,
        trusted_token: str,
        output_format: str,
        *,
        word_boundary: bool = True,
        open_timeout: Optional[float] = 10.0,
        receive_timeout: Optional[float] = None,
        connect: Optional[ConnectFn] = None,
        request_id: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self._endpoint = endpoint
        self._trusted_token = trusted_token
        self._output_format = output_format
        self._word_boundary = word_boundary
        self._open_timeout = open_timeout
        self._receive_timeout = receive_timeout
        self._connect = connect or ws_connect
        self._headers = headers
        self.request_id = request_id or uuid.uuid4().hex
        self.state = SessionState.CONNECTING
        self.assembler = AudioAssembler()

    def connection_url(self) -> str:
        """Endpoint with trustedclienttoken and ConnectionId query parameters."""
        parts = urlsplit(self._endpoint)
        query = parse_qsl(parts.query)
        query += [("trustedclienttoken", self._trusted_token), ("ConnectionId", self.request_id)]
        return urlunsplit(parts._replace(query=urlencode(query)))

    def run(self, ssml: str) -> bytes:
        """
        Perform the call and return the assembled audio.

        Raises:
            NetworkFailureError: Connection could not be opened.
            SynthesisError: Send/receive failure or an error frame.
            NoAudioReceivedError: The turn ended without audio.
        """
        t0 = time.perf_counter()
        self.state = SessionState.CONNECTING
        connection = self._open()

        try:
            self.state = SessionState.CONFIGURING
            self._configure(connection, ssml)

            self.state = SessionState.STREAMING
            audio = read_audio(connection, self._receive_timeout, self.assembler)
        except SpeechError as exc:
            self.state = SessionState.FAILED
            fail(_LOG, "session_failed", code=exc.code, error=exc.message,
                 seconds=round(time.perf_counter() - t0, 3))
            raise
        except BaseException:
            self.state = SessionState.FAILED
            raise
        finally:
            connection.close()

        self.state = SessionState.COMPLETED
        verbose(_LOG, "session_completed", audio_bytes=len(audio),
                frames=self.assembler.audio_frames,
                seconds=round(time.perf_counter() - t0, 3))
        return audio

    def _open(self) -> Any:
        url = self.connection_url()
        verbose(_LOG, "connecting", endpoint=self._endpoint)
        try:
            return self._connect(
                url,
                additional_headers=self._headers,
                open_timeout=self._open_timeout,
            )
        except InvalidStatus as exc:
            self.state = SessionState.FAILED
            status = exc.response.status_code
            raise NetworkFailureError(
                f"WebSocket connection failed with status {status}",
                {"status": status},
            ) from exc
        except (WebSocketException, OSError) as exc:
            self.state = SessionState.FAILED
            raise NetworkFailureError(
                f"WebSocket connection failed: {exc}",
                {"error_type": type(exc).__name__},
            ) from exc

    def _configure(self, connection: Any, ssml: str) -> None:
        messages = (
            ("config", build_config_message(self._output_format, self._word_boundary)),
            ("ssml", build_speech_message(self.request_id, ssml)),
        )
        for name, message in messages:
            try:
                connection.send(message)
            except (ConnectionClosed, WebSocketException, OSError) as exc:
                raise SynthesisError(
                    f"Failed to send {name}: {exc}",
                    {"error_type": type(exc).__name__},
                ) from exc
            debug(_LOG, "sent", message=name, chars=len(message))
