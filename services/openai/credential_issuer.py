"""Mint short-lived realtime credentials without exposing the primary API key."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

LOGGER = logging.getLogger(__name__)
REALTIME_SESSIONS_URL = "https://api.openai.com/v1/realtime/sessions"
DEFAULT_SESSION_MODEL = "gpt-realtime"


class CredentialError(RuntimeError):
    """Minting an ephemeral credential failed."""


@dataclass
class UpstreamCredential:
    """An ephemeral client secret for the realtime endpoint."""

    value: str
    expires_at: Optional[int]
    session_id: Optional[str] = None


class CredentialIssuer:
    """Create ephemeral realtime sessions on behalf of the browser."""

    def __init__(
        self,
        api_key: Optional[str],
        *,
        model: str = DEFAULT_SESSION_MODEL,
        voice: str = "alloy",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the issuer.

        Args:
            api_key: Primary OpenAI API key; minting is disabled when empty.
            model: Realtime model bound to the minted session.
            voice: Voice bound to the minted session.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport, used to stub the endpoint.
        """
        self.api_key = api_key
        self.model = model
        self.voice = voice
        self.timeout = timeout
        self._transport = transport

    def is_enabled(self) -> bool:
        """Return True when an API key is configured."""
        return bool(self.api_key)

    async def mint(self) -> UpstreamCredential:
        """Return a fresh ephemeral credential.

        Raises:
            CredentialError: No API key is configured, the request failed, or
                the response did not contain a client secret.
        """
        if not self.is_enabled():
            raise CredentialError("OpenAI API key is not configured.")

        payload: Dict[str, Any] = {"model": self.model, "voice": self.voice}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    REALTIME_SESSIONS_URL,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json=payload,
                )
        except httpx.HTTPError as exc:
            LOGGER.error("Realtime session request failed: %s", exc)
            raise CredentialError(f"Realtime session request failed: {exc}") from exc

        if response.status_code != 200:
            LOGGER.error("Realtime session creation failed (%s): %s", response.status_code, response.text)
            raise CredentialError(f"OpenAI API error: {response.status_code}")

        data = response.json()
        secret = data.get("client_secret") or {}
        if not secret.get("value"):
            raise CredentialError("Realtime session response did not include a client secret.")
        LOGGER.info("Ephemeral realtime credential created")
        return UpstreamCredential(
            value=secret["value"],
            expires_at=secret.get("expires_at"),
            session_id=data.get("id"),
        )
