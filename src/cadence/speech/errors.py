"""
Error taxonomy for speech synthesis.

Every failure surfaced by the speech package is a SpeechError subclass
carrying a machine-readable code, a message, optional details and the
HTTP status the API layer should answer with. The underlying cause is
always chained (``raise ... from exc``) so it shows up in tracebacks and
logs.

    InvalidInputError        400  request failed validation (caller error)
    NetworkFailureError      503  could not reach / handshake with the service
    ServiceUnavailableError  503  service answered with a failure or a bad catalog
    SynthesisError           500  protocol failure mid-stream
    NoAudioReceivedError     500  stream ended normally without audio

None of these are retried internally.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional


class ErrorCode:
    """Standardized error codes for API responses."""
    INVALID_INPUT = "INVALID_INPUT"
    NETWORK_FAILURE = "NETWORK_FAILURE"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    SYNTHESIS_FAILED = "SYNTHESIS_FAILED"
    NO_AUDIO = "NO_AUDIO"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class SpeechError(Exception):
    """
    Base exception for speech errors.

    Attributes:
        message: Human-readable error message.
        code: Error code from ErrorCode.
        details: Optional dictionary with additional context.
    """
    status_code = 500

    def __init__(self, message: str, code: str = ErrorCode.INTERNAL_ERROR, details: Optional[Dict] = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to standardized error response dict for API."""
        result = {
            "ok": False,
            "error": self.code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


@dataclass(frozen=True)
class Violation:
    """One failed validation check."""
    field: str
    code: str
    message: str


class InvalidInputError(SpeechError):
    """Raised when a request fails validation; lists every violation found."""
    status_code = 400

    def __init__(self, message: str, violations: Optional[List[Violation]] = None):
        self.violations = list(violations or [])
        details = {"violations": [asdict(v) for v in self.violations]} if self.violations else None
        super().__init__(message, ErrorCode.INVALID_INPUT, details)

    @property
    def fields(self) -> List[str]:
        """Names of the fields that failed, in check order."""
        return [v.field for v in self.violations]


class NetworkFailureError(SpeechError):
    """Raised when the service cannot be reached or the handshake fails."""
    status_code = 503

    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.NETWORK_FAILURE, details)


class ServiceUnavailableError(SpeechError):
    """Raised when the service answers with a failure status or a malformed catalog."""
    status_code = 503

    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.SERVICE_UNAVAILABLE, details)


class SynthesisError(SpeechError):
    """Raised on a protocol failure mid-stream (error frame, send or receive failure)."""
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.SYNTHESIS_FAILED, details)


class NoAudioReceivedError(SpeechError):
    """Raised when the stream completed normally but carried no audio."""
    status_code = 500

    def __init__(self, message: str = "No audio data received", details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.NO_AUDIO, details)
