"""Typed inbound frames accepted on the realtime websocket."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Union


@dataclass
class StudyContext:
	"""What the learner is studying and for how long."""

	study_content: Optional[str] = None
	elapsed_time: Optional[float] = None
	is_refresh_analysis: bool = False

	@classmethod
	def from_payload(cls, raw: Any) -> "StudyContext":
		if not isinstance(raw, dict):
			return cls()
		elapsed = raw.get("elapsedTime")
		try:
			elapsed_time = float(elapsed) if elapsed is not None else None
		except (TypeError, ValueError):
			elapsed_time = None
		content = str(raw.get("studyContent") or "").strip()
		return cls(
			study_content=content or None,
			elapsed_time=elapsed_time,
			is_refresh_analysis=bool(raw.get("isRefreshAnalysis")),
		)

	@property
	def elapsed_minutes(self) -> Optional[int]:
		if self.elapsed_time is None:
			return None
		return int(self.elapsed_time // 60)


@dataclass
class TextMessage:
	content: str


@dataclass
class AudioMessage:
	audio_data: str
	mime_type: Optional[str] = None


@dataclass
class ScreenshotAnalysisMessage:
	webcam_image: str
	screen_image: str
	study_context: StudyContext = field(default_factory=StudyContext)


@dataclass
class PingMessage:
	pass


@dataclass
class MaterialMessage:
	"""Discuss one stored material, or a folder's materials when only `folder_id` is set."""

	material_id: Optional[int]
	content: str = ""
	folder_id: Optional[int] = None


@dataclass
class UnknownMessage:
	"""Catch-all for frame types this relay does not understand."""

	type: str
	payload: Dict[str, Any] = field(default_factory=dict)


ClientMessage = Union[
	TextMessage,
	AudioMessage,
	ScreenshotAnalysisMessage,
	PingMessage,
	MaterialMessage,
	UnknownMessage,
]


def _text(payload: Dict[str, Any]) -> TextMessage:
	return TextMessage(content=str(payload.get("content") or "").strip())


def _audio(payload: Dict[str, Any]) -> AudioMessage:
	return AudioMessage(
		audio_data=str(payload.get("audioData") or ""),
		mime_type=payload.get("mimeType") or None,
	)


def _screenshot(payload: Dict[str, Any]) -> ScreenshotAnalysisMessage:
	return ScreenshotAnalysisMessage(
		webcam_image=str(payload.get("webcamImage") or ""),
		screen_image=str(payload.get("screenImage") or ""),
		study_context=StudyContext.from_payload(payload.get("studyContext")),
	)


def _optional_id(raw: Any) -> Optional[int]:
	if raw is None:
		return None
	try:
		return int(raw)
	except (TypeError, ValueError):
		return None


def _material(payload: Dict[str, Any]) -> MaterialMessage:
	return MaterialMessage(
		material_id=_optional_id(payload.get("materialId")),
		content=str(payload.get("content") or "").strip(),
		folder_id=_optional_id(payload.get("folderId")),
	)


_PARSERS: Dict[str, Callable[[Dict[str, Any]], ClientMessage]] = {
	"text_message": _text,
	"audio_message": _audio,
	"screenshot_analysis": _screenshot,
	"image_analysis": _screenshot,
	"material_message": _material,
	"ping": lambda payload: PingMessage(),
}


def parse_client_message(payload: Dict[str, Any]) -> ClientMessage:
	"""Map a decoded JSON frame onto its typed message.

	Field-level validation (empty text, missing images) is left to the turn
	handlers so they can answer with a precise error.
	"""
	message_type = str(payload.get("type") or "")
	parser = _PARSERS.get(message_type)
	if parser is None:
		return UnknownMessage(type=message_type, payload=payload)
	return parser(payload)
