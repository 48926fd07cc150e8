from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass
class FolderRecord:
    """In-memory representation of a row in the FOLDER table.

    Attributes:
        id: Primary key (None for new records).
        user_id: Owner of the folder.
        name: Display name.
        parent_id: Enclosing folder id, None for a root folder.
        created_at: Unix timestamp (seconds) when the row was inserted.
    """

    id: Optional[int]
    user_id: str
    name: str
    parent_id: Optional[int] = None
    created_at: Optional[int] = None


@dataclass
class MaterialRecord:
    """In-memory representation of a row in the MATERIAL table.

    Attributes:
        id: Primary key (None for new records).
        user_id: Owner of the material.
        folder_id: Folder holding the material.
        name: Original filename.
        kind: "text" for .txt uploads, "image" for .jpg/.jpeg/.png uploads.
        content: Text body for text materials; None for images.
        created_at: Unix timestamp (seconds) when the row was inserted.
    """

    id: Optional[int]
    user_id: str
    folder_id: Optional[int]
    name: str
    kind: str = "text"
    content: Optional[str] = None
    created_at: Optional[int] = None

    def excerpt(self, limit: int) -> str:
        """Return at most `limit` characters of the text body."""
        if self.kind != "text" or not self.content:
            return ""
        body = self.content.strip()
        if len(body) <= limit:
            return body
        return body[:limit].rstrip() + "..."
