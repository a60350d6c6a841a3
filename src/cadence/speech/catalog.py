"""
Voice catalog client.

Fetches the list of voices published by the synthesis service:

    GET <voices_url>?trustedclienttoken=<token>
    200 -> [{"Name": ..., "ShortName": ..., "Gender": ..., "Locale": ...}, ...]

Failure mapping:
    - transport error (DNS, refused, timeout)  -> NetworkFailureError
    - any status other than 200                -> ServiceUnavailableError
    - body that is not a list of voice objects -> ServiceUnavailableError
"""
from __future__ import annotations

import json
from typing import List, Optional

import httpx

from cadence.core.logging import debug, get_logger, verbose, warn
from cadence.speech.errors import NetworkFailureError, ServiceUnavailableError
from cadence.speech.models import Voice

_LOG = get_logger("cadence.catalog")


class VoiceCatalog:
    """
    Client for the remote voice catalog.

    Args:
        voices_url: Catalog endpoint.
        trusted_token: Access token sent as the trustedclienttoken query parameter.
        timeout: Request timeout in seconds.
        client: Optional httpx.Client (tests pass one with a MockTransport).
    """

    def __init__(
        self,
        voices_url: str,
        trusted_token: str,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ):
        self._voices_url = voices_url
        self._trusted_token = trusted_token
        self._timeout = timeout
        self._client = client

    def list_voices(self) -> List[Voice]:
        """
        Fetch the full voice catalog.

        Raises:
            NetworkFailureError: If the request could not be sent.
            ServiceUnavailableError: On a non-200 status or a malformed body.
        """
        params = {"trustedclienttoken": self._trusted_token}
        verbose(_LOG, "catalog_fetch", url=self._voices_url)

        try:
            if self._client is not None:
                resp = self._client.get(self._voices_url, params=params, timeout=self._timeout)
            else:
                with httpx.Client(timeout=self._timeout) as client:
                    resp = client.get(self._voices_url, params=params)
        except httpx.HTTPError as exc:
            warn(_LOG, "catalog_unreachable", error=str(exc), error_type=type(exc).__name__)
            raise NetworkFailureError(
                f"Failed to fetch voices: {exc}",
                {"error_type": type(exc).__name__},
            ) from exc

        if resp.status_code != httpx.codes.OK:
            warn(_LOG, "catalog_bad_status", status=resp.status_code)
            raise ServiceUnavailableError(
                f"Voice catalog returned status {resp.status_code}",
                {"status": resp.status_code},
            )

        try:
            payload = resp.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise ServiceUnavailableError(
                f"Failed to decode voices response: {exc}",
                {"error_type": type(exc).__name__},
            ) from exc

        if not isinstance(payload, list):
            raise ServiceUnavailableError(
                "Voice catalog is not a list",
                {"type": type(payload).__name__},
            )

        try:
            voices = [Voice.from_dict(item) for item in payload]
        except (KeyError, TypeError, AttributeError) as exc:
            raise ServiceUnavailableError(
                f"Malformed voice entry in catalog: {exc}",
                {"error_type": type(exc).__name__},
            ) from exc

        debug(_LOG, "catalog_fetched", count=len(voices))
        return voices
