"""
Wire format for the synthesis WebSocket.

Every message, in both directions, is a block of ``Key:Value`` header
lines separated by CRLF, a blank line, then a body::

    X-Timestamp:2026-01-15T14:30:05.123Z
    Content-Type:application/json; charset=utf-8
    Path:speech.config

    {"context": {...}}

Outbound (text frames, sent in this order on every connection):
    Path:speech.config   output format and metadata options
    Path:ssml            the SSML document for this call

Inbound:
    Path:turn.start      text, ignored
    Path:response        text, ignored
    Path:audio.metadata  text, word boundaries, ignored
    Path:audio           binary, audio payload follows the header block
    Path:turn.end        end of the turn
    Path:error           failure, detail in the body or right after the marker

Binary audio frames from the service are prefixed with a 2-byte big-endian
header length and have no blank line: the payload starts right after the
``Path:audio`` line. parse_frame() handles both the prefixed and the plain
layout, and only ever reads markers from the parsed header block, so
marker-like bytes inside an audio payload are never mistaken for a header.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple, Union

CRLF = "\r\n"

# Header names are tokens: letters, digits and dashes
_HEADER_NAME = re.compile(r"^[A-Za-z0-9-]+$")


class FramePath:
    """Values of the Path header."""
    SPEECH_CONFIG = "speech.config"
    SSML = "ssml"
    TURN_START = "turn.start"
    RESPONSE = "response"
    AUDIO_METADATA = "audio.metadata"
    AUDIO = "audio"
    TURN_END = "turn.end"
    ERROR = "error"


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """Millisecond UTC timestamp with a trailing Z, e.g. 2026-01-15T14:30:05.123Z."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


def _frame(headers: Tuple[Tuple[str, str], ...], body: str) -> str:
    head = CRLF.join(f"{k}:{v}" for k, v in headers)
    return f"{head}{CRLF}{CRLF}{body}"


def build_config_message(
    output_format: str,
    word_boundary: bool = True,
    now: Optional[datetime] = None,
) -> str:
    """Build the speech.config message selecting the audio encoding."""
    config = {
        "context": {
            "synthesis": {
                "audio": {
                    "metadataoptions": {
                        "sentenceBoundaryEnabled": False,
                        "wordBoundaryEnabled": word_boundary,
                    },
                    "outputFormat": output_format,
                },
            },
        },
    }
    headers = (
        ("X-Timestamp", utc_timestamp(now)),
        ("Content-Type", "application/json; charset=utf-8"),
        ("Path", FramePath.SPEECH_CONFIG),
    )
    return _frame(headers, json.dumps(config, separators=(",", ":")))


def build_speech_message(request_id: str, ssml: str, now: Optional[datetime] = None) -> str:
    """Build the ssml message carrying the document to speak."""
    headers = (
        ("X-RequestId", request_id),
        ("Content-Type", "application/ssml+xml"),
        ("X-Timestamp", utc_timestamp(now)),
        ("Path", FramePath.SSML),
    )
    return _frame(headers, ssml)


# =============================================================================
# Inbound frames
# =============================================================================

@dataclass(frozen=True)
class Frame:
    """
    One parsed inbound message.

    Attributes:
        headers: Parsed header block.
        body: Bytes after the header block.
        binary: True for binary WebSocket frames.
        raw: The frame exactly as received.
    """
    headers: Dict[str, str]
    body: bytes
    binary: bool
    raw: bytes = field(repr=False, default=b"")

    @property
    def path(self) -> Optional[str]:
        value = self.headers.get("Path")
        if not value:
            return None
        return value.split()[0]

    def starts_path(self, marker: str) -> bool:
        """
        True when the Path value begins with marker.

        The service may append detail to the Path line itself
        ("Path:errorUnsupported voice"), so the end and error markers
        are matched by prefix rather than equality.
        """
        path = self.path
        return path is not None and path.startswith(marker)

    def text(self) -> str:
        return self.raw.decode("utf-8", errors="replace")


def _parse_header_line(line: bytes) -> Optional[Tuple[str, str]]:
    try:
        decoded = line.decode("ascii")
    except UnicodeDecodeError:
        return None
    name, sep, value = decoded.partition(":")
    if not sep or not _HEADER_NAME.match(name):
        return None
    return name, value.strip()


def _parse_header_block(data: bytes, stop_at_path: bool) -> Tuple[Dict[str, str], int]:
    """
    Read header lines from the start of data.

    The block ends at a blank line, at the first line that is not a
    header, at the end of data, or (when stop_at_path is set) right after
    the line terminator of the Path header.

    Returns:
        (headers, offset of the body)
    """
    headers: Dict[str, str] = {}
    pos = 0
    while pos < len(data):
        nl = data.find(b"\n", pos)
        line_end = len(data) if nl == -1 else nl
        next_pos = len(data) if nl == -1 else nl + 1

        line = data[pos:line_end]
        if line.endswith(b"\r"):
            line = line[:-1]
        if not line:
            return headers, next_pos

        parsed = _parse_header_line(line)
        if parsed is None:
            break
        headers[parsed[0]] = parsed[1]
        pos = next_pos

        if stop_at_path and parsed[0] == "Path":
            # Audio starts right after the Path line terminator
            break
    return headers, pos


def parse_frame(data: Union[str, bytes]) -> Frame:
    """
    Parse one inbound WebSocket message.

    Args:
        data: str for text frames, bytes for binary frames.

    Returns:
        Frame with headers and body. A frame without a recognizable
        header block comes back with empty headers and the whole frame
        as body.
    """
    if isinstance(data, str):
        raw = data.encode("utf-8")
        headers, offset = _parse_header_block(raw, stop_at_path=False)
        return Frame(headers=headers, body=raw[offset:], binary=False, raw=raw)

    raw = bytes(data)
    headers, offset = _parse_header_block(raw, stop_at_path=True)
    if "Path" in headers:
        return Frame(headers=headers, body=raw[offset:], binary=True, raw=raw)

    # Length-prefixed layout used by the service for audio frames
    if len(raw) > 2:
        header_length = int.from_bytes(raw[:2], "big")
        if 0 < header_length <= len(raw) - 2:
            headers, _ = _parse_header_block(raw[2:2 + header_length], stop_at_path=False)
            if "Path" in headers:
                return Frame(headers=headers, body=raw[2 + header_length:], binary=True, raw=raw)

    return Frame(headers={}, body=raw, binary=True, raw=raw)
