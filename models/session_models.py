"""Session domain models for the realtime relay."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from fastapi import WebSocket
from starlette.websockets import WebSocketDisconnect

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 20


class UpstreamState(str, Enum):
	CONNECTING = "connecting"
	READY = "ready"
	CLOSED = "closed"
	ERRORED = "errored"


@dataclass
class ConversationTurn:
	"""One line of fallback chat context."""

	role: str
	content: str

	def as_message(self) -> Dict[str, str]:
		return {"role": self.role, "content": self.content}


@dataclass
class RelaySession:
	"""In-memory state for one break's realtime conversation.

	The session owns its client websocket for its whole lifetime and, when the
	upstream connector succeeded, the upstream websocket as well.
	"""

	session_key: str
	client_channel: WebSocket
	user_id: Optional[str] = None
	upstream_channel: Any = None
	upstream_state: UpstreamState = UpstreamState.CONNECTING
	fallback_mode: bool = False
	conversation_history: List[ConversationTurn] = field(default_factory=list)
	last_analysis_at: Optional[float] = None
	started_at: float = field(default_factory=lambda: time.time())
	closed: bool = False
	tasks: Set[asyncio.Task] = field(default_factory=set)

	@property
	def upstream_ready(self) -> bool:
		"""True when turns may be sent upstream instead of to the fallback responder."""
		return (
			not self.fallback_mode
			and self.upstream_state == UpstreamState.READY
			and self.upstream_channel is not None
		)

	def enter_fallback(self, reason: str) -> None:
		"""Switch the session to fallback mode; it never switches back."""
		if not self.fallback_mode:
			logger.warning("Session %s switching to fallback mode: %s", self.session_key, reason)
		self.fallback_mode = True

	def remember(self, role: str, content: str) -> None:
		"""Append a turn to the fallback history, trimming the oldest pair past the limit."""
		self.conversation_history.append(ConversationTurn(role=role, content=content))
		while len(self.conversation_history) > HISTORY_LIMIT:
			del self.conversation_history[:2]

	def history_messages(self) -> List[Dict[str, str]]:
		return [turn.as_message() for turn in self.conversation_history]

	def track(self, task: asyncio.Task) -> asyncio.Task:
		"""Keep a reference to a background task until it finishes."""
		self.tasks.add(task)
		task.add_done_callback(self.tasks.discard)
		return task

	async def send(self, payload: Dict[str, Any]) -> bool:
		"""Send a JSON frame to the browser; a closed channel makes this a no-op."""
		if self.closed:
			logger.debug("Dropping %s for closed session %s", payload.get("type"), self.session_key)
			return False
		try:
			await self.client_channel.send_text(json.dumps(payload, ensure_ascii=False))
		except (WebSocketDisconnect, RuntimeError, OSError) as exc:
			logger.debug("Client channel for %s unavailable: %s", self.session_key, exc)
			self.closed = True
			return False
		return True
