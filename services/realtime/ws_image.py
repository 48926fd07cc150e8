"""Analyze webcam and screen captures delivered over the realtime websocket."""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable

from models.client_messages import ScreenshotAnalysisMessage
from models.session_models import RelaySession
from services.realtime.errors import TurnValidationError, UpstreamUnavailable
from services.realtime.fallback_responder import FallbackResponder
from services.realtime.prompts import (
	ANALYSIS_STARTED_MESSAGE,
	image_response_instructions,
	screenshot_analysis_prompt,
)
from services.realtime.protocol import client_event, image_turn_item, response_create
from services.realtime.upstream_connector import UpstreamConnector
from utils.media_validation import require_image_data_url

logger = logging.getLogger(__name__)

# Pause between creating the image item and requesting a response so the
# upstream has stored the item first. A workaround, not an ordering guarantee.
IMAGE_RESPONSE_DELAY = 0.1

# Analysis turns closer together than this are dropped without a reply.
MIN_ANALYSIS_INTERVAL = 5.0


class ImageMessageHandler:
	"""Send a two-image analysis turn upstream or answer it with a canned analysis."""

	def __init__(
		self,
		connector: UpstreamConnector,
		fallback: FallbackResponder,
		*,
		clock: Callable[[], float] = time.monotonic,
		response_delay: float = IMAGE_RESPONSE_DELAY,
		min_interval: float = MIN_ANALYSIS_INTERVAL,
	) -> None:
		self.connector = connector
		self.fallback = fallback
		self.clock = clock
		self.response_delay = response_delay
		self.min_interval = min_interval

	async def analyze(self, session: RelaySession, message: ScreenshotAnalysisMessage) -> None:
		"""Validate, de-duplicate, then relay one analysis turn."""
		if not message.webcam_image or not message.screen_image:
			raise TurnValidationError("Both webcam and screen images are required.")
		webcam_image = require_image_data_url(message.webcam_image, "webcam")
		screen_image = require_image_data_url(message.screen_image, "screen")

		now = self.clock()
		if session.last_analysis_at is not None and now - session.last_analysis_at < self.min_interval:
			logger.debug("Ignoring duplicate analysis request for %s", session.session_key)
			return
		session.last_analysis_at = now

		if session.upstream_ready:
			prompt = screenshot_analysis_prompt(message.study_context)
			try:
				await self.connector.send_turn(session, [image_turn_item(prompt, webcam_image, screen_image)])
			except UpstreamUnavailable as exc:
				logger.warning("Analysis turn for %s falling back: %s", session.session_key, exc)
			else:
				session.track(asyncio.create_task(self._request_response(session)))
				await session.send(client_event("screenshot_analysis_started", message=ANALYSIS_STARTED_MESSAGE))
				return

		await session.send(client_event("screenshot_analysis_result", **self.fallback.analyze_images()))

	async def _request_response(self, session: RelaySession) -> None:
		await asyncio.sleep(self.response_delay)
		try:
			await self.connector.send_turn(session, [response_create(image_response_instructions())])
		except UpstreamUnavailable as exc:
			logger.warning("Could not request analysis response for %s: %s", session.session_key, exc)
			await session.send(client_event("screenshot_analysis_result", **self.fallback.analyze_images()))
