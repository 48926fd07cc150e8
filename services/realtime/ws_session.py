"""Dispatch realtime websocket events to the appropriate handlers."""
from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Callable, Dict, Optional

from fastapi import WebSocket
from starlette.websockets import WebSocketDisconnect

from dal.material_dal import MaterialDAL
from models.client_messages import (
	AudioMessage,
	MaterialMessage,
	PingMessage,
	ScreenshotAnalysisMessage,
	TextMessage,
	parse_client_message,
)
from models.session_models import RelaySession
from services.realtime.errors import ExternalCapabilityError, ProtocolError, TurnValidationError
from services.realtime.fallback_responder import FallbackResponder
from services.realtime.prompts import CONNECTED_MESSAGE
from services.realtime.protocol import client_event
from services.realtime.session_registry import SessionRegistry
from services.realtime.upstream_connector import UpstreamConnector
from services.realtime.ws_audio import AudioMessageHandler
from services.realtime.ws_image import ImageMessageHandler
from services.realtime.ws_material import MaterialMessageHandler
from services.realtime.ws_text import TextMessageHandler

logger = logging.getLogger(__name__)


class RealtimeRelay:
	"""Bridge browser websockets to the realtime upstream, one session per break."""

	def __init__(
		self,
		registry: SessionRegistry,
		connector: UpstreamConnector,
		fallback: FallbackResponder,
		materials: Optional[MaterialDAL] = None,
		*,
		clock: Callable[[], float] = time.monotonic,
	) -> None:
		self.registry = registry
		self.connector = connector
		self.text_handler = TextMessageHandler(connector, fallback)
		self.audio_handler = AudioMessageHandler(connector, fallback, self.text_handler)
		self.image_handler = ImageMessageHandler(connector, fallback, clock=clock)
		self.material_handler = MaterialMessageHandler(materials, self.text_handler)

	async def open(self, websocket: WebSocket, session_key: str, user_id: Optional[str] = None) -> RelaySession:
		"""Register a session for an accepted websocket and start the upstream connector."""
		session = RelaySession(session_key=session_key, client_channel=websocket, user_id=user_id)
		previous = self.registry.register(session)
		if previous is not None:
			logger.warning("Break %s reconnected; closing the earlier session", session_key)
			await self.close(previous)
		logger.info("Realtime session opened for break %s", session_key)
		await session.send(client_event("connected", breakId=session_key, message=CONNECTED_MESSAGE))
		session.track(asyncio.create_task(self.connector.initialize(session)))
		return session

	async def handle_raw(self, session: RelaySession, raw: str) -> None:
		"""Decode one text frame and dispatch it."""
		try:
			payload = json.loads(raw)
		except (TypeError, ValueError):
			logger.warning("Failed to parse client message for %s", session.session_key)
			await self._send_error(session, "Invalid JSON format")
			return
		if not isinstance(payload, dict):
			await self._send_error(session, "Message must be a JSON object")
			return
		await self.handle(session, payload)

	async def handle(self, session: RelaySession, payload: Dict[str, Any]) -> None:
		"""Process a single inbound websocket payload."""
		message = parse_client_message(payload)
		try:
			if isinstance(message, PingMessage):
				await session.send(client_event("pong"))
			elif isinstance(message, TextMessage):
				await self.text_handler.handle(session, message)
			elif isinstance(message, AudioMessage):
				await self.audio_handler.handle(session, message)
			elif isinstance(message, ScreenshotAnalysisMessage):
				await self.image_handler.analyze(session, message)
			elif isinstance(message, MaterialMessage):
				await self.material_handler.discuss(session, message)
			else:
				raise ProtocolError(f"Unknown message type: {message.type}")
		except (ProtocolError, TurnValidationError) as exc:
			await self._send_error(session, str(exc))
		except ExternalCapabilityError as exc:
			logger.error("External capability failed for %s: %s", session.session_key, exc)
			await self._send_error(session, "The AI could not process that message. Please try again.")
		except Exception:
			logger.exception("Error handling client message for %s", session.session_key)
			await self._send_error(session, "Failed to process message")

	async def close(self, session: RelaySession, code: int = 1000) -> None:
		"""Tear a session down: stop its tasks, close both channels, and unregister it."""
		session.closed = True
		current = asyncio.current_task()
		pending = [task for task in session.tasks if task is not current and not task.done()]
		for task in pending:
			task.cancel()
		await self.connector.close(session)
		if pending:
			await asyncio.gather(*pending, return_exceptions=True)
		if self.registry.remove(session):
			logger.info(
				"Realtime session closed for break %s after %.1fs",
				session.session_key,
				time.time() - session.started_at,
			)
		try:
			await session.client_channel.close(code=code)
		except (WebSocketDisconnect, RuntimeError, OSError):
			pass

	async def _send_error(self, session: RelaySession, detail: str) -> None:
		await session.send(client_event("error", message=detail))
