"""
In-memory registry of accepted voice short names.

The registry is populated once at startup from the remote catalog and is
read on every validation afterwards. Reads and the population pass share
one lock: reads are cheap set lookups, and correctness matters more than
throughput here. Until population finishes the registry is simply empty,
so early requests are rejected rather than made to wait.
"""
from __future__ import annotations

import threading
from typing import Callable, Iterable, Set

from cadence.core.logging import get_logger, info
from cadence.speech.errors import ServiceUnavailableError, SpeechError
from cadence.speech.models import Voice

_LOG = get_logger("cadence.registry")


class VoiceRegistry:
    """
    Set of known voice short names, safe for concurrent use.

    Additive only: names are never removed.

    Usage:
        registry = VoiceRegistry()
        registry.populate(catalog.list_voices)
        if "en-US-AriaNeural" in registry:
            ...
    """

    def __init__(self, voices: Iterable[str] = ()):
        self._lock = threading.Lock()
        self._voices: Set[str] = set(voices)
        self._populated = False

    def add(self, short_name: str) -> None:
        with self._lock:
            self._voices.add(short_name)

    def contains(self, short_name: str) -> bool:
        """Membership test; never touches the network."""
        with self._lock:
            return short_name in self._voices

    def __contains__(self, short_name: object) -> bool:
        return isinstance(short_name, str) and self.contains(short_name)

    def __len__(self) -> int:
        with self._lock:
            return len(self._voices)

    @property
    def populated(self) -> bool:
        """True once a population pass has completed."""
        with self._lock:
            return self._populated

    def populate(self, fetch: Callable[[], Iterable[Voice]]) -> int:
        """
        Fill the registry from the remote catalog.

        Args:
            fetch: Zero-argument callable returning the catalog voices.

        Returns:
            Number of voices inserted.

        Raises:
            ServiceUnavailableError: If the catalog cannot be fetched or decoded.
        """
        try:
            voices = list(fetch())
        except SpeechError as exc:
            raise ServiceUnavailableError(
                "Failed to initialize voices",
                {"cause": exc.message, "cause_code": exc.code},
            ) from exc

        with self._lock:
            for voice in voices:
                self._voices.add(voice.short_name)
            self._populated = True

        info(_LOG, "voices_registered", count=len(voices))
        return len(voices)
