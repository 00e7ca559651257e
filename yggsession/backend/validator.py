"""Delegated token validation against the external authentication server."""

from __future__ import annotations

import logging

import httpx

from yggsession.backend.config import DEFAULT_VALIDATE_URL

logger = logging.getLogger(__name__)


class ExternalTokenValidator:
    """Ask the external authority whether an access token is currently valid.

    Any outcome other than HTTP 204 counts as invalid, including transport
    errors and timeouts. A single attempt is made per call.
    """

    def __init__(
        self,
        validate_url: str = DEFAULT_VALIDATE_URL,
        timeout: float = 5.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._validate_url = validate_url
        self._timeout = timeout
        self._transport = transport

    def validate(self, access_token: str) -> bool:
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                response = client.post(self._validate_url, json={"accessToken": access_token})
        except httpx.HTTPError as exc:
            logger.warning("External token validation failed: %s", exc)
            return False
        if response.status_code != 204:
            logger.info("External authority rejected token with status %s", response.status_code)
            return False
        return True
