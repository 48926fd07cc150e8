"""Handle spoken turns coming over the realtime websocket."""
from __future__ import annotations

import logging

from models.client_messages import AudioMessage
from models.session_models import RelaySession
from services.realtime.errors import ExternalCapabilityError, TurnValidationError, UpstreamUnavailable
from services.realtime.fallback_responder import FallbackResponder
from services.realtime.prompts import AUDIO_PROCESSING_MESSAGE, audio_response_instructions
from services.realtime.protocol import audio_turn, client_event
from services.realtime.upstream_connector import UpstreamConnector
from services.realtime.ws_text import TextMessageHandler

logger = logging.getLogger(__name__)


class AudioMessageHandler:
	"""Stream an audio turn upstream, or transcribe it and answer as text."""

	def __init__(
		self,
		connector: UpstreamConnector,
		fallback: FallbackResponder,
		text_handler: TextMessageHandler,
	) -> None:
		self.connector = connector
		self.fallback = fallback
		self.text_handler = text_handler

	async def handle(self, session: RelaySession, message: AudioMessage) -> None:
		if not message.audio_data:
			raise TurnValidationError("Audio payload is required.")
		if session.upstream_ready:
			try:
				await self.connector.send_turn(session, audio_turn(message.audio_data, audio_response_instructions()))
			except UpstreamUnavailable as exc:
				logger.warning("Audio turn for %s falling back: %s", session.session_key, exc)
			else:
				await session.send(client_event("audio_processing", message=AUDIO_PROCESSING_MESSAGE))
				return

		transcript = await self.fallback.transcribe(message.audio_data, message.mime_type)
		if not transcript:
			raise ExternalCapabilityError("Transcription returned no text.")
		await self.text_handler.respond(session, transcript)
