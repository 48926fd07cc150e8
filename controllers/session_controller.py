"""Ephemeral credential helpers for browser-side realtime sessions."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import HTTPException, Request

from services.openai.credential_issuer import CredentialError, CredentialIssuer
from services.realtime.protocol import utc_timestamp


async def create_session_credential(request: Request) -> Dict[str, Any]:
	"""Mint a short-lived realtime credential and return it with its expiry."""
	issuer: CredentialIssuer = request.app.state.credential_issuer
	if not issuer.is_enabled():
		raise HTTPException(
			status_code=500,
			detail={"error": True, "message": "OpenAI API key is not configured", "code": "API_KEY_MISSING"},
		)
	try:
		credential = await issuer.mint()
	except CredentialError as exc:
		raise HTTPException(
			status_code=500,
			detail={"error": True, "message": str(exc), "code": "SESSION_CREATE_ERROR"},
		) from exc
	return {
		"client_secret": {"value": credential.value, "expires_at": credential.expires_at},
		"session_id": credential.session_id,
		"timestamp": utc_timestamp(),
	}
