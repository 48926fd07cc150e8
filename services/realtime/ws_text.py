"""Handle text turns coming over the realtime websocket."""
from __future__ import annotations

import logging

from models.client_messages import TextMessage
from models.session_models import RelaySession
from services.realtime.errors import TurnValidationError, UpstreamUnavailable
from services.realtime.fallback_responder import FallbackResponder
from services.realtime.prompts import text_response_instructions
from services.realtime.protocol import client_event, text_turn
from services.realtime.upstream_connector import UpstreamConnector

logger = logging.getLogger(__name__)


class TextMessageHandler:
	"""Send a text turn upstream, or answer it through the fallback responder."""

	def __init__(self, connector: UpstreamConnector, fallback: FallbackResponder) -> None:
		self.connector = connector
		self.fallback = fallback

	async def handle(self, session: RelaySession, message: TextMessage) -> None:
		if not message.content:
			raise TurnValidationError("Message content is required.")
		await self.respond(session, message.content)

	async def respond(self, session: RelaySession, text: str) -> None:
		"""Relay `text` as a user turn; other handlers reuse this for derived text."""
		if session.upstream_ready:
			try:
				await self.connector.send_turn(session, text_turn(text, text_response_instructions()))
				return
			except UpstreamUnavailable as exc:
				logger.warning("Text turn for %s falling back: %s", session.session_key, exc)
		reply = await self.fallback.reply_to_text(session, text)
		await session.send(client_event("ai_response", content=reply))
