"""Replies served when a session cannot use the realtime upstream."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Dict, Optional

from models.session_models import RelaySession
from services.openai.companion_chat import CompanionChat
from services.realtime.dictation_transcriber import DictationTranscriber
from services.realtime.errors import ExternalCapabilityError
from services.realtime.prompts import (
	FALLBACK_ANALYSIS,
	FALLBACK_REPLIES,
	FALLBACK_SUGGESTIONS,
	fallback_system_prompt,
)

logger = logging.getLogger(__name__)


class FallbackResponder:
	"""Produce companion replies without the realtime upstream.

	Text replies come from a single-turn chat completion when one is configured
	and from a fixed pool of canned lines otherwise (or when the completion
	fails). Image analysis is always canned.
	"""

	def __init__(
		self,
		chat: Optional[CompanionChat] = None,
		transcriber: Optional[DictationTranscriber] = None,
		*,
		timeout: float = 30.0,
		rng: Optional[random.Random] = None,
	) -> None:
		self.chat = chat
		self.transcriber = transcriber
		self.timeout = timeout
		self.rng = rng or random.Random()

	def canned_reply(self) -> str:
		return self.rng.choice(FALLBACK_REPLIES)

	async def reply_to_text(self, session: RelaySession, text: str) -> str:
		"""Return a reply for `text`; this never raises."""
		if self.chat is None:
			return self.canned_reply()
		try:
			reply = await asyncio.wait_for(
				self.chat.complete(fallback_system_prompt(), session.history_messages(), text),
				timeout=self.timeout,
			)
		except asyncio.TimeoutError:
			logger.warning("Fallback completion timed out for session %s", session.session_key)
			return self.canned_reply()
		except ExternalCapabilityError as exc:
			logger.warning("Fallback completion failed for session %s: %s", session.session_key, exc)
			return self.canned_reply()
		session.remember("user", text)
		session.remember("assistant", reply)
		return reply

	async def transcribe(self, audio_b64: str, mime_type: Optional[str] = None) -> str:
		"""Return the transcript of an audio turn.

		Raises:
			ExternalCapabilityError: Transcription is unavailable, failed, or timed out.
		"""
		if self.transcriber is None:
			raise ExternalCapabilityError("Transcription is not configured.")
		try:
			return await asyncio.wait_for(self.transcriber.transcribe(audio_b64, mime_type), timeout=self.timeout)
		except asyncio.TimeoutError as exc:
			raise ExternalCapabilityError("Transcription timed out.") from exc

	def analyze_images(self) -> Dict[str, Any]:
		"""Return the canned screenshot analysis payload."""
		return {
			"analysis": FALLBACK_ANALYSIS,
			"suggestions": list(FALLBACK_SUGGESTIONS),
			"fallback": True,
		}
