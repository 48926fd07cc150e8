"""Turn stored study materials into a conversation turn."""
from __future__ import annotations

from typing import Optional

from dal.material_dal import MaterialDAL
from models.client_messages import MaterialMessage
from models.session_models import RelaySession
from services.realtime.errors import TurnValidationError
from services.realtime.prompts import folder_prompt, material_prompt
from services.realtime.ws_text import TextMessageHandler

MATERIAL_EXCERPT_CHARS = 2000

# A folder turn quotes at most this many of the newest materials.
FOLDER_MATERIAL_LIMIT = 5
FOLDER_EXCERPT_CHARS = 400


class MaterialMessageHandler:
	"""Load the requested material or folder and relay it as a text turn."""

	def __init__(self, materials: Optional[MaterialDAL], text_handler: TextMessageHandler) -> None:
		self.materials = materials
		self.text_handler = text_handler

	async def discuss(self, session: RelaySession, message: MaterialMessage) -> None:
		if message.material_id is None and message.folder_id is None:
			raise TurnValidationError("materialId or folderId is required.")
		if self.materials is None:
			raise TurnValidationError("Study materials are not available.")
		if message.material_id is not None:
			text = await self._material_text(session, message)
		else:
			text = await self._folder_text(session, message)
		await self.text_handler.respond(session, text)

	async def _material_text(self, session: RelaySession, message: MaterialMessage) -> str:
		record = await self.materials.get_file(message.material_id, user_id=session.user_id)
		if record is None:
			raise TurnValidationError(f"Material {message.material_id} not found.")
		return material_prompt(record.name, record.excerpt(MATERIAL_EXCERPT_CHARS), message.content)

	async def _folder_text(self, session: RelaySession, message: MaterialMessage) -> str:
		folder = await self.materials.get_folder(message.folder_id, user_id=session.user_id)
		if folder is None:
			raise TurnValidationError(f"Folder {message.folder_id} not found.")
		records = await self.materials.list_folder_files(
			folder.id,
			user_id=session.user_id,
			limit=FOLDER_MATERIAL_LIMIT,
		)
		entries = [(record.name, record.excerpt(FOLDER_EXCERPT_CHARS)) for record in records]
		return folder_prompt(folder.name, entries, message.content)
