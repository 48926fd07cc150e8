"""WebSocket endpoint relaying a break's conversation to the realtime AI."""

from __future__ import annotations

import logging
import re

from fastapi import APIRouter, WebSocket, status
from starlette.websockets import WebSocketDisconnect

from services.realtime.protocol import client_event
from services.realtime.ws_session import RealtimeRelay

logger = logging.getLogger(__name__)

router = APIRouter()

SESSION_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,128}$")
INVALID_PATH_REASON = "Invalid path. Expected /ai/realtime/:breakId"


@router.websocket("/ai/realtime")
@router.websocket("/ai/realtime/")
async def realtime_socket_without_key(websocket: WebSocket):
	"""Reject connections that carry no break id."""
	await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=INVALID_PATH_REASON)


@router.websocket("/ai/realtime/{break_id}")
async def realtime_socket(websocket: WebSocket, break_id: str):
	"""Relay text, audio and image turns for one break over one websocket."""
	if not SESSION_KEY_PATTERN.match(break_id):
		await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=INVALID_PATH_REASON)
		return

	relay: RealtimeRelay = websocket.app.state.relay
	await websocket.accept()
	session = await relay.open(websocket, break_id, user_id=websocket.headers.get("x-user-id"))
	try:
		while True:
			try:
				raw = await websocket.receive_text()
			except WebSocketDisconnect:
				break
			except KeyError:
				# Binary frames carry no "text" key.
				await session.send(client_event("error", message="Invalid websocket frame"))
				continue
			await relay.handle_raw(session, raw)
	except Exception:
		logger.exception("Realtime websocket error for break %s", break_id)
	finally:
		await relay.close(session)
