"""Own the OpenAI Realtime websocket for one relay session."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Dict, Iterable, Optional

from websockets.asyncio.client import connect as websocket_connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from models.session_models import RelaySession, UpstreamState
from services.realtime.errors import UpstreamUnavailable
from services.realtime.prompts import companion_instructions
from services.realtime.protocol import session_update, translate_upstream_event
from utils.settings import RelaySettings

logger = logging.getLogger(__name__)

MAX_UPSTREAM_FRAME_BYTES = 20_000_000


class UpstreamConnector:
	"""Open, feed, and close the upstream realtime channel of a session.

	`connect` defaults to the websockets asyncio client and can be replaced
	with any coroutine returning an object exposing `send`, `close`, and
	async iteration over received frames.
	"""

	def __init__(
		self,
		settings: RelaySettings,
		*,
		connect: Optional[Callable[..., Any]] = None,
		instructions: Optional[str] = None,
	) -> None:
		self.settings = settings
		self._connect = connect or websocket_connect
		self.instructions = instructions or companion_instructions()

	def _headers(self) -> Dict[str, str]:
		return {
			"Authorization": f"Bearer {self.settings.openai_api_key}",
			"OpenAI-Beta": "realtime=v1",
		}

	async def initialize(self, session: RelaySession) -> None:
		"""Connect upstream, send the session configuration, and pump events.

		Runs until the upstream channel closes. Every failure leaves the
		session in fallback mode instead of raising.
		"""
		if not self.settings.upstream_enabled:
			logger.info("OpenAI API key not configured; session %s uses fallback mode", session.session_key)
			session.enter_fallback("no upstream credential configured")
			return

		session.upstream_state = UpstreamState.CONNECTING
		logger.info("Connecting realtime upstream for session %s", session.session_key)
		try:
			channel = await asyncio.wait_for(
				self._connect(
					self.settings.realtime_endpoint,
					additional_headers=self._headers(),
					max_size=MAX_UPSTREAM_FRAME_BYTES,
				),
				timeout=self.settings.upstream_connect_timeout,
			)
		except asyncio.TimeoutError:
			session.upstream_state = UpstreamState.ERRORED
			session.enter_fallback("upstream connect timed out")
			return
		except (OSError, WebSocketException) as exc:
			logger.error("Realtime upstream connect failed for session %s: %s", session.session_key, exc)
			session.upstream_state = UpstreamState.ERRORED
			session.enter_fallback("upstream connect failed")
			return

		if session.closed:
			await self._close_channel(channel)
			return

		session.upstream_channel = channel
		try:
			await channel.send(json.dumps(session_update(self.settings, self.instructions), ensure_ascii=False))
		except ConnectionClosed as exc:
			logger.error("Realtime upstream closed before configuration for %s: %s", session.session_key, exc)
			session.upstream_channel = None
			session.upstream_state = UpstreamState.ERRORED
			session.enter_fallback("upstream closed during configuration")
			return

		session.track(asyncio.create_task(self._expect_ready(session, channel)))
		await self._listen(session, channel)

	async def _expect_ready(self, session: RelaySession, channel: Any) -> None:
		"""Fall back when the upstream never acknowledges the configuration."""
		await asyncio.sleep(self.settings.upstream_ready_timeout)
		if session.upstream_state == UpstreamState.READY or session.upstream_channel is not channel:
			return
		session.upstream_state = UpstreamState.ERRORED
		session.enter_fallback("upstream did not acknowledge the session configuration")
		session.upstream_channel = None
		await self._close_channel(channel)

	async def _listen(self, session: RelaySession, channel: Any) -> None:
		try:
			async for raw in channel:
				try:
					event = json.loads(raw)
				except (TypeError, ValueError):
					logger.error("Failed to parse upstream frame for session %s", session.session_key)
					continue
				if not isinstance(event, dict):
					continue
				try:
					await self.handle_event(session, event)
				except Exception:
					logger.exception("Failed to handle upstream event for session %s", session.session_key)
		except ConnectionClosed as exc:
			logger.info("Realtime upstream closed for session %s: %s", session.session_key, exc)
		except (OSError, WebSocketException) as exc:
			logger.error("Realtime upstream transport error for session %s: %s", session.session_key, exc)
			session.upstream_state = UpstreamState.ERRORED
			session.enter_fallback("upstream transport error")
		finally:
			if session.upstream_channel is channel:
				session.upstream_channel = None
				await self._close_channel(channel)
			if session.upstream_state != UpstreamState.ERRORED:
				session.upstream_state = UpstreamState.CLOSED
			logger.info("Realtime upstream finished for session %s", session.session_key)

	async def handle_event(self, session: RelaySession, event: Dict[str, Any]) -> None:
		"""Update session state for one upstream event and forward its client projection."""
		event_type = event.get("type")
		if event_type == "session.created":
			details = event.get("session")
			logger.info("Upstream session created: %s", details.get("id") if isinstance(details, dict) else None)
		elif event_type == "session.updated":
			session.upstream_state = UpstreamState.READY
		elif event_type == "response.created":
			logger.debug("Upstream response started for session %s", session.session_key)
		elif event_type == "error":
			logger.error("Realtime upstream error for session %s: %s", session.session_key, event.get("error"))
			session.enter_fallback("upstream reported an error")

		translated = translate_upstream_event(event)
		if translated is None:
			logger.debug("Unhandled upstream event type: %s", event_type)
			return
		await session.send(translated)

	async def send_turn(self, session: RelaySession, messages: Iterable[Dict[str, Any]]) -> None:
		"""Send upstream messages in order.

		Raises:
			UpstreamUnavailable: The session cannot use the upstream, or the
				channel closed mid-turn (the session is then in fallback mode).
		"""
		if not session.upstream_ready:
			raise UpstreamUnavailable("Realtime upstream is not ready.")
		channel = session.upstream_channel
		for message in messages:
			try:
				await channel.send(json.dumps(message, ensure_ascii=False))
			except ConnectionClosed as exc:
				if session.upstream_channel is channel:
					session.upstream_channel = None
				session.upstream_state = UpstreamState.CLOSED
				session.enter_fallback("upstream channel closed")
				raise UpstreamUnavailable("Realtime upstream closed.") from exc

	async def close(self, session: RelaySession) -> None:
		"""Close the session's upstream channel if one is open."""
		channel = session.upstream_channel
		session.upstream_channel = None
		if channel is None:
			return
		session.upstream_state = UpstreamState.CLOSED
		await self._close_channel(channel)

	@staticmethod
	async def _close_channel(channel: Any) -> None:
		try:
			await channel.close()
		except (OSError, WebSocketException) as exc:
			logger.debug("Ignoring error while closing upstream channel: %s", exc)
