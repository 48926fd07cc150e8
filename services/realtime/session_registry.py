"""Registry of live realtime sessions keyed by break id."""

from __future__ import annotations

import logging
from typing import Dict, Optional

from models.session_models import RelaySession

logger = logging.getLogger(__name__)


class SessionRegistry:
	"""Track the sessions whose client websocket is currently open.

	The registry is created with the application and emptied by `close_all`
	at shutdown. All access happens on the event loop thread.
	"""

	def __init__(self) -> None:
		self._sessions: Dict[str, RelaySession] = {}

	def __len__(self) -> int:
		return len(self._sessions)

	def __contains__(self, session_key: str) -> bool:
		return session_key in self._sessions

	def register(self, session: RelaySession) -> Optional[RelaySession]:
		"""Store a session and return the one it replaced, if any."""
		previous = self._sessions.get(session.session_key)
		self._sessions[session.session_key] = session
		return previous if previous is not session else None

	def get(self, session_key: str) -> RelaySession:
		"""Return a session or raise KeyError if missing."""
		session = self._sessions.get(session_key)
		if session is None:
			raise KeyError(f"Session {session_key} not found")
		return session

	def remove(self, session: RelaySession) -> bool:
		"""Drop a session unless its key was already taken over by a newer one."""
		if self._sessions.get(session.session_key) is not session:
			return False
		del self._sessions[session.session_key]
		return True

	async def close_all(self, relay) -> None:
		"""Tear down every live session through the relay that owns them."""
		sessions = list(self._sessions.values())
		if sessions:
			logger.info("Closing %d live realtime session(s)", len(sessions))
		for session in sessions:
			await relay.close(session, code=1001)
