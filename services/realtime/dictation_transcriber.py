"""Transcribe spoken turns when the realtime upstream is unavailable."""

from __future__ import annotations

import base64
import binascii
import logging
import os
import tempfile
from typing import Optional

from openai import AsyncOpenAI

from services.realtime.errors import ExternalCapabilityError, TurnValidationError

logger = logging.getLogger(__name__)


def _suffix_for_mime(mime_type: Optional[str]) -> str:
	"""Return a file suffix for a browser audio MIME type.

	Browsers record `audio/webm;codecs=opus` by default, so unknown or missing
	types are staged as webm.
	"""
	mime = (mime_type or "").lower().split(";", 1)[0].strip()
	mapping = {
		"audio/webm": ".webm",
		"audio/wav": ".wav",
		"audio/x-wav": ".wav",
		"audio/mpeg": ".mp3",
		"audio/mp3": ".mp3",
		"audio/mp4": ".mp4",
		"audio/aac": ".m4a",
		"audio/ogg": ".ogg",
		"audio/flac": ".flac",
	}
	return mapping.get(mime, ".webm")


class DictationTranscriber:
	"""Convert base64 audio turns into text transcripts."""

	def __init__(self, client: AsyncOpenAI, *, model: str = "whisper-1", language: Optional[str] = None) -> None:
		if client is None:
			raise ValueError("AsyncOpenAI client is required.")
		self.client = client
		self.model = model
		self.language = language

	async def transcribe(self, audio_b64: str, mime_type: Optional[str] = None) -> str:
		"""Return a whitespace-trimmed transcript for one audio turn.

		The audio is staged in a temporary file so the multipart upload carries
		a real filename; the file is removed whether or not the call succeeds.

		Args:
			audio_b64: Base64-encoded audio payload.
			mime_type: Optional MIME type hint used for the staged file suffix.

		Raises:
			TurnValidationError: The payload is not valid base64 audio.
			ExternalCapabilityError: The transcription request failed.
		"""
		try:
			audio_bytes = base64.b64decode(audio_b64, validate=True)
		except (binascii.Error, ValueError) as exc:
			raise TurnValidationError("Audio payload must be base64 encoded.") from exc
		if not audio_bytes:
			raise TurnValidationError("Audio payload is empty.")

		tmp_file = None
		try:
			with tempfile.NamedTemporaryFile(delete=False, prefix="audio_", suffix=_suffix_for_mime(mime_type)) as tf:
				tf.write(audio_bytes)
				tmp_file = tf.name

			kwargs = {"model": self.model, "response_format": "text"}
			if self.language:
				kwargs["language"] = self.language
			with open(tmp_file, "rb") as fh:
				try:
					response = await self.client.audio.transcriptions.create(file=fh, **kwargs)
				except Exception as exc:
					raise ExternalCapabilityError(f"Transcription failed: {exc}") from exc
		finally:
			if tmp_file and os.path.exists(tmp_file):
				try:
					os.remove(tmp_file)
				except OSError:
					logger.warning("Could not remove staged audio file %s", tmp_file)

		# response_format="text" yields a bare string; tolerate object responses too.
		text = response if isinstance(response, str) else getattr(response, "text", "")
		return (text or "").strip()
