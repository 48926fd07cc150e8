"""Message shapes exchanged with the browser and with the realtime upstream.

Upstream-bound builders return plain dicts ready for `json.dumps`; the
upstream-to-client projection maps each upstream event onto at most one
client event.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from services.realtime.prompts import AI_CONNECTED_MESSAGE, AI_SESSION_READY_MESSAGE
from utils.settings import RelaySettings

RESPONSE_MODALITIES = ["text", "audio"]


def utc_timestamp() -> str:
	"""Return an ISO-8601 UTC timestamp with millisecond precision."""
	now = datetime.now(timezone.utc)
	return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def client_event(event_type: str, **payload: Any) -> Dict[str, Any]:
	"""Build an outbound client frame shaped as {type, ...payload, timestamp}."""
	event: Dict[str, Any] = {"type": event_type}
	event.update(payload)
	event["timestamp"] = utc_timestamp()
	return event


# -- relay -> upstream ------------------------------------------------------


def session_update(settings: RelaySettings, instructions: str) -> Dict[str, Any]:
	"""Return the configuration turn sent once the upstream socket opens."""
	return {
		"type": "session.update",
		"session": {
			"modalities": list(RESPONSE_MODALITIES),
			"instructions": instructions,
			"voice": settings.voice,
			"input_audio_format": "pcm16",
			"output_audio_format": "pcm16",
			"input_audio_transcription": {"model": settings.transcribe_model},
			"turn_detection": {
				"type": "server_vad",
				"threshold": 0.5,
				"prefix_padding_ms": 300,
				"silence_duration_ms": 500,
			},
			"tools": [],
			"tool_choice": "auto",
			"temperature": 0.8,
			"max_response_output_tokens": 4096,
		},
	}


def response_create(instructions: Optional[str] = None) -> Dict[str, Any]:
	response: Dict[str, Any] = {"modalities": list(RESPONSE_MODALITIES)}
	if instructions:
		response["instructions"] = instructions
	return {"type": "response.create", "response": response}


def user_item(content: List[Dict[str, Any]]) -> Dict[str, Any]:
	return {
		"type": "conversation.item.create",
		"item": {"type": "message", "role": "user", "content": content},
	}


def text_turn(text: str, instructions: Optional[str] = None) -> List[Dict[str, Any]]:
	"""Item first, then the response trigger."""
	return [user_item([{"type": "input_text", "text": text}]), response_create(instructions)]


def audio_turn(audio_b64: str, instructions: Optional[str] = None) -> List[Dict[str, Any]]:
	"""Append, commit, then trigger; any other order is rejected upstream."""
	return [
		{"type": "input_audio_buffer.append", "audio": audio_b64},
		{"type": "input_audio_buffer.commit"},
		response_create(instructions),
	]


def image_turn_item(prompt: str, webcam_image: str, screen_image: str) -> Dict[str, Any]:
	"""Return the analysis item ordered as [instruction, camera image, screen image]."""
	return user_item(
		[
			{"type": "input_text", "text": prompt},
			{"type": "input_image", "image_url": webcam_image},
			{"type": "input_image", "image_url": screen_image},
		]
	)


# -- upstream -> client -----------------------------------------------------


def _response_text(response: Dict[str, Any]) -> str:
	texts: List[str] = []
	transcripts: List[str] = []
	outputs = response.get("output")
	if not isinstance(outputs, list):
		return ""
	for output in outputs:
		if not isinstance(output, dict) or output.get("type") != "message":
			continue
		# Older payloads nest the content under "message".
		content = output.get("content")
		if content is None and isinstance(output.get("message"), dict):
			content = output["message"].get("content")
		if not isinstance(content, list):
			continue
		for part in content:
			if not isinstance(part, dict):
				continue
			if part.get("type") in ("text", "output_text") and part.get("text"):
				texts.append(part["text"])
			elif part.get("type") in ("audio", "output_audio") and part.get("transcript"):
				transcripts.append(part["transcript"])
	return "\n".join(texts or transcripts)


def _response_done(event: Dict[str, Any]) -> Optional[Dict[str, Any]]:
	response = event.get("response")
	if not isinstance(response, dict):
		return None
	content = _response_text(response)
	if not content:
		return None
	return client_event("ai_response", content=content)


def _audio_delta(event: Dict[str, Any]) -> Optional[Dict[str, Any]]:
	delta = event.get("delta")
	if not delta:
		return None
	return client_event("ai_audio_delta", audioData=delta)


def _upstream_error(event: Dict[str, Any]) -> Dict[str, Any]:
	error = event.get("error") or {}
	message = error.get("message") if isinstance(error, dict) else None
	return client_event("ai_error", message=message or "The AI ran into an error.")


_PROJECTIONS = {
	"session.created": lambda event: client_event("ai_connected", message=AI_CONNECTED_MESSAGE),
	"session.updated": lambda event: client_event("ai_session_ready", message=AI_SESSION_READY_MESSAGE),
	"response.done": _response_done,
	"response.audio.delta": _audio_delta,
	"response.audio.done": lambda event: client_event("ai_audio_done"),
	"input_audio_buffer.speech_started": lambda event: client_event("speech_started"),
	"input_audio_buffer.speech_stopped": lambda event: client_event("speech_stopped"),
	"conversation.item.input_audio_transcription.completed": lambda event: client_event(
		"transcription_completed", transcription=event.get("transcript") or ""
	),
	"error": _upstream_error,
}


def translate_upstream_event(event: Dict[str, Any]) -> Optional[Dict[str, Any]]:
	"""Project one upstream event onto the client event it maps to, if any."""
	event_type = event.get("type")
	if not isinstance(event_type, str):
		return None
	projection = _PROJECTIONS.get(event_type)
	if projection is None:
		return None
	return projection(event)
